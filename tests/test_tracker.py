"""Tests for the tracking orchestrator (one update cycle end to end)."""
from dataclasses import replace
from datetime import timedelta

import numpy as np
import pytest

from sattrack.data.tle_fetcher import ElementSet
from sattrack.estimation.kalman import FilterRegistry
from sattrack.physics.propagator import EnhancedPropagator
from sattrack.pipeline.integrity import DataIntegrityTracker, SPACE_WEATHER, TLE_DATA
from sattrack.pipeline.results import Position, Unavailable
from sattrack.pipeline.tracker import TrackingOrchestrator
from sattrack.physics.state import OrbitState

from conftest import (
    ISS_LINE1,
    ISS_LINE2,
    NOW,
    FakeElementSets,
    FakeSpaceWeather,
    leo_state,
)


@pytest.fixture
def element_set():
    return ElementSet("25544", "ISS (ZARYA)", ISS_LINE1, ISS_LINE2, NOW - timedelta(seconds=60))


class UnfilteredElementSets(FakeElementSets):
    """Returns every element set it holds, requested or not."""
    def fetch(self, ids):
        return list(self.sets)


def _orchestrator(storage, sets, env, state_source, ids=("25544",)):
    return TrackingOrchestrator(
        storage=storage,
        element_sets=FakeElementSets(sets),
        space_weather=FakeSpaceWeather(env),
        integrity=DataIntegrityTracker(),
        filters=FilterRegistry(),
        norad_ids=ids,
        state_source=state_source,
        clock=lambda: NOW,
    )


class TestUpdateCycle:

    def test_first_cycle_stores_unfiltered_propagation(self, storage, env, element_set, fixed_state_source):
        orch = _orchestrator(storage, [element_set], env, fixed_state_source)
        report = orch.update_cycle()

        assert report.tracked == 1 and report.skipped == 0
        assert report.has_space_weather
        rec = storage.get_latest_position("25544")
        assert rec.method == "enhanced+kalman"
        assert rec.timestamp == NOW

        prop = EnhancedPropagator()
        seed = leo_state(element_set.epoch)
        expected = prop.propagate(seed, NOW, storage.get_satellite("25544").parameters, env)
        geo = prop.cartesian_to_geodetic(expected.position)
        assert rec.latitude == pytest.approx(geo.latitude)
        assert rec.longitude == pytest.approx(geo.longitude)
        assert rec.altitude == pytest.approx(geo.altitude)
        assert rec.velocity_y == pytest.approx(expected.velocity[1])

        assert rec.accuracy_estimate == pytest.approx(
            EnhancedPropagator.estimate_accuracy(60.0, "enhanced", True, True))
        assert len(orch.filters) == 1

    def test_second_cycle_runs_filter(self, storage, env, element_set, fixed_state_source):
        orch = _orchestrator(storage, [element_set], env, fixed_state_source)
        orch.update_cycle()
        kf = orch.filters.get("25544")
        before = kf.uncertainty()

        orch.update_cycle(now=NOW + timedelta(seconds=30))
        assert orch.filters.get("25544") is kf
        assert kf.uncertainty() < before
        assert len(storage.get_position_history("25544")) == 2

    def test_space_weather_persisted(self, storage, env, element_set, fixed_state_source):
        orch = _orchestrator(storage, [element_set], env, fixed_state_source)
        orch.update_cycle()
        sw = storage.get_latest_space_weather()
        assert sw.solar_flux == env.solar_flux
        assert sw.source == "NOAA"
        assert orch.integrity.is_available(SPACE_WEATHER)

    def test_missing_space_weather_degrades_not_fabricates(self, storage, element_set, fixed_state_source):
        orch = _orchestrator(storage, [element_set], None, fixed_state_source)
        report = orch.update_cycle()

        assert report.tracked == 1
        assert not report.has_space_weather
        assert storage.get_latest_space_weather() is None
        assert not orch.integrity.is_available(SPACE_WEATHER)
        rec = storage.get_latest_position("25544")
        assert rec.accuracy_estimate == pytest.approx(
            EnhancedPropagator.estimate_accuracy(60.0, "enhanced", False, True))

        # gravity only
        seed = leo_state(element_set.epoch)
        expected = EnhancedPropagator().propagate(seed, NOW, None, None)
        assert rec.velocity_y == pytest.approx(expected.velocity[1], rel=0, abs=1e-9)

    def test_object_without_initial_state_skipped(self, storage, env, element_set):
        orch = _orchestrator(storage, [element_set], env, lambda es, at: None)
        report = orch.update_cycle()
        assert report.tracked == 0 and report.skipped == 1
        assert storage.get_latest_position("25544") is None
        assert len(orch.filters) == 0

    def test_no_element_sets(self, storage, env, fixed_state_source):
        orch = _orchestrator(storage, [], env, fixed_state_source)
        report = orch.update_cycle()
        assert report.tracked == 0
        assert not orch.integrity.is_available(TLE_DATA)
        assert storage.get_satellites() == []

    def test_one_bad_object_does_not_abort_cycle(self, storage, env, element_set, fixed_state_source):
        bad = replace(element_set, object_id="99999")

        def source(es, at):
            if es.object_id == "99999":
                return OrbitState([np.inf, 0, 0], [0, 1, 0], es.epoch)
            return fixed_state_source(es, at)

        orch = _orchestrator(storage, [bad, element_set], env, source, ids=("99999", "25544"))
        report = orch.update_cycle()
        assert report.tracked == 1
        assert storage.get_latest_position("25544") is not None
        assert storage.get_latest_position("99999") is None

    def test_naive_now_treated_as_utc(self, storage, env, element_set, fixed_state_source):
        orch = _orchestrator(storage, [element_set], env, fixed_state_source)
        report = orch.update_cycle(now=NOW.replace(tzinfo=None))

        assert report.tracked == 1
        rec = storage.get_latest_position("25544")
        assert rec.timestamp == NOW
        assert rec.timestamp.tzinfo is not None
        assert rec.accuracy_estimate == pytest.approx(
            EnhancedPropagator.estimate_accuracy(60.0, "enhanced", True, True))

        orch.update_cycle(now=(NOW + timedelta(seconds=30)).replace(tzinfo=None))
        assert len(storage.get_position_history("25544")) == 2

    def test_unrequested_element_sets_ignored(self, storage, env, element_set, fixed_state_source):
        extra = [replace(element_set, object_id=i) for i in ("11111", "22222")]
        orch = _orchestrator(storage, [], env, fixed_state_source)
        orch.element_sets = UnfilteredElementSets([element_set, element_set] + extra)
        report = orch.update_cycle()

        assert (report.requested, report.tracked, report.skipped) == (1, 1, 0)
        assert storage.get_satellite("11111") is None

    def test_skipped_never_negative(self, storage, env, fixed_state_source):
        sets = [ElementSet(i, i, ISS_LINE1, ISS_LINE2, NOW) for i in ("1", "2", "3")]
        orch = _orchestrator(storage, [], env, fixed_state_source, ids=("1", "1"))
        orch.element_sets = UnfilteredElementSets(sets)
        report = orch.update_cycle()
        assert report.requested == 1
        assert report.skipped == 0 and report.tracked == 1

    def test_existing_parameters_kept(self, storage, env, element_set, fixed_state_source):
        orch = _orchestrator(storage, [element_set], env, fixed_state_source)
        orch.update_cycle()
        sat = storage.get_satellite("25544")
        storage.upsert_satellite(replace(sat, mass=420_000.0, cross_sectional_area=1600.0))

        orch.update_cycle(now=NOW + timedelta(seconds=30))
        sat = storage.get_satellite("25544")
        assert sat.mass == 420_000.0
        assert sat.elements.inclination == pytest.approx(51.6416)


class TestGetSatellitePosition:

    def test_position(self, storage, env, element_set, fixed_state_source):
        orch = _orchestrator(storage, [element_set], env, fixed_state_source)
        orch.update_cycle()
        pos = orch.get_satellite_position("25544")
        assert isinstance(pos, Position)
        assert pos.name == "ISS (ZARYA)"
        d = pos.to_dict()
        assert d["satellite_id"] == "25544"
        assert d["accuracy"]["method"] == "enhanced+kalman"
        assert d["accuracy"]["estimated_error"].startswith("±")

    def test_untracked(self, storage, env, fixed_state_source):
        orch = _orchestrator(storage, [], env, fixed_state_source)
        res = orch.get_satellite_position("25544")
        assert isinstance(res, Unavailable)
        assert res.reason == "satellite not tracked"

    def test_tracked_without_position(self, storage, env, element_set):
        orch = _orchestrator(storage, [element_set], env, lambda es, at: None)
        orch.update_cycle()
        res = orch.get_satellite_position("25544")
        assert isinstance(res, Unavailable)
        assert res.reason == "no position computed yet"
