# sattrack/pipeline/tracker.py
"""
Tracking orchestrator.

One update cycle:
  1) space weather (may be unavailable -> drag skipped, accuracy scored without it)
  2) element sets for every tracked id (missing ids are skipped this cycle)
  3) per object: SGP4 seed -> enhanced propagation -> per-object filter ->
     geodetic conversion -> accuracy score -> stored position
Objects are processed sequentially; a failure on one never aborts the rest.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from sattrack.config import settings
from sattrack.data.storage import MemoryStorage
from sattrack.data.tle_fetcher import ElementSet, parse_mean_elements
from sattrack.data.tle_to_state import element_set_to_state
from sattrack.estimation.kalman import FilterRegistry
from sattrack.models.records import PositionRecord, SpaceWeatherRecord
from sattrack.models.satellite import TrackedSatellite
from sattrack.physics.propagator import EnhancedPropagator, PropagationError
from sattrack.physics.state import EnvironmentalData, OrbitState, as_utc
from sattrack.pipeline.integrity import DataIntegrityTracker, TLE_DATA, SPACE_WEATHER
from sattrack.pipeline.results import CycleReport, Position, PositionResult, Unavailable

logger = logging.getLogger(__name__)

StateSource = Callable[[ElementSet, datetime], Optional[OrbitState]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrackingOrchestrator:
    def __init__(
        self,
        storage: MemoryStorage,
        element_sets,
        space_weather,
        integrity: Optional[DataIntegrityTracker] = None,
        propagator: Optional[EnhancedPropagator] = None,
        filters: Optional[FilterRegistry] = None,
        norad_ids: Iterable[str] = settings.DEFAULT_NORAD_IDS,
        state_source: StateSource = element_set_to_state,
        measurement_uncertainty: float = settings.MEASUREMENT_UNCERTAINTY_M,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        element_sets: object with fetch(ids) -> list[ElementSet]
        space_weather: object with fetch_current() -> Optional[EnvironmentalData]
        """
        self.storage = storage
        self.element_sets = element_sets
        self.space_weather = space_weather
        self.integrity = integrity if integrity is not None else DataIntegrityTracker()
        self.propagator = propagator or EnhancedPropagator()
        self.filters = filters if filters is not None else FilterRegistry()
        self.norad_ids = [str(i) for i in norad_ids]
        self.state_source = state_source
        self.measurement_uncertainty = float(measurement_uncertainty)
        self.clock = clock
        self._cycle_lock = threading.Lock()

    # -----------------------
    # Cycle
    # -----------------------
    def _fetch_space_weather(self, now: datetime) -> Optional[EnvironmentalData]:
        env = self.space_weather.fetch_current()
        if env is None:
            self.integrity.mark_unavailable(SPACE_WEATHER, "NOAA API failed")
            return None
        self.integrity.mark_available(SPACE_WEATHER, "NOAA")
        self.storage.create_space_weather(SpaceWeatherRecord(
            timestamp=now,
            solar_flux=env.solar_flux,
            kp_index=env.kp_index,
            ap_index=env.ap_index,
            dst_index=env.dst_index,
            source="NOAA",
        ))
        return env

    def update_cycle(self, now: Optional[datetime] = None) -> CycleReport:
        """
        Run one full update cycle. Concurrent callers are serialized.
        """
        with self._cycle_lock:
            # naive datetimes are UTC
            now = as_utc(now or self.clock())
            requested = list(dict.fromkeys(self.norad_ids))
            logger.info("Updating %d tracked objects", len(requested))

            env = self._fetch_space_weather(now)

            element_sets = self.element_sets.fetch(requested)
            if element_sets:
                self.integrity.mark_available(TLE_DATA, "Space-Track/CelesTrak")
            else:
                self.integrity.mark_unavailable(TLE_DATA, "no element sets returned")

            tracked = set()
            for es in element_sets:
                if es.object_id not in requested:
                    logger.warning("Ignoring element set for unrequested object %s", es.object_id)
                    continue
                try:
                    if self.process_element_set(es, env, now) is not None:
                        tracked.add(es.object_id)
                except (ValueError, ArithmeticError) as e:
                    logger.warning("Object %s skipped this cycle: %s", es.object_id, e)

            report = CycleReport(
                requested=len(requested),
                tracked=len(tracked),
                skipped=len(requested) - len(tracked),
                has_space_weather=env is not None,
            )
            logger.info("Cycle complete: %d/%d objects tracked", report.tracked, report.requested)
            self.integrity.log_summary()
            return report

    # -----------------------
    # Per object
    # -----------------------
    def register_element_set(self, es: ElementSet) -> TrackedSatellite:
        try:
            elements = parse_mean_elements(es.line2)
        except ValueError:
            elements = None
        existing = self.storage.get_satellite(es.object_id)
        if existing is not None:
            sat = existing.with_element_set(es.name, es.line1, es.line2, es.epoch, elements)
        else:
            sat = TrackedSatellite(
                norad_id=es.object_id,
                name=es.name,
                line1=es.line1,
                line2=es.line2,
                epoch=es.epoch,
                elements=elements,
                drag_coefficient=settings.DEFAULT_DRAG_COEFFICIENT,
                cross_sectional_area=settings.DEFAULT_AREA_M2,
                mass=settings.DEFAULT_MASS_KG,
            )
        return self.storage.upsert_satellite(sat)

    def process_element_set(self, es: ElementSet, env: Optional[EnvironmentalData],
                            now: datetime) -> Optional[PositionRecord]:
        sat = self.register_element_set(es)
        return self.calculate_position(sat, es, env, now)

    def _filter(self, object_id: str, initial: OrbitState, propagated: OrbitState) -> OrbitState:
        with self.filters.lock_for(object_id):
            kf, created = self.filters.get_or_create(object_id, propagated)
            if created:
                return propagated
            kf.predict(initial.seconds_until(propagated.timestamp), propagated)
            return kf.update(propagated, self.measurement_uncertainty)

    def calculate_position(self, sat: TrackedSatellite, es: ElementSet,
                           env: Optional[EnvironmentalData], now: datetime) -> Optional[PositionRecord]:
        now = as_utc(now)
        initial = self.state_source(es, now)
        if initial is None:
            logger.warning("No initial state for %s; skipped", sat.norad_id)
            return None

        params = sat.parameters
        try:
            propagated = self.propagator.propagate(initial, now, params, env)
        except PropagationError as e:
            logger.warning("Propagation failed for %s: %s", sat.norad_id, e)
            return None

        filtered = self._filter(sat.norad_id, initial, propagated)
        geo = self.propagator.cartesian_to_geodetic(filtered.position)

        time_since_epoch = (now - as_utc(sat.epoch)).total_seconds()
        accuracy = self.propagator.estimate_accuracy(
            time_since_epoch,
            settings.PROPAGATION_METHOD,
            env is not None,
            params.is_complete,
        )

        vx, vy, vz = (float(c) for c in filtered.velocity)
        record = PositionRecord(
            norad_id=sat.norad_id,
            timestamp=now,
            latitude=geo.latitude,
            longitude=geo.longitude,
            altitude=geo.altitude,
            velocity_x=vx,
            velocity_y=vy,
            velocity_z=vz,
            accuracy_estimate=accuracy,
            method=settings.STORED_METHOD,
        )
        self.storage.create_position(record)
        logger.debug("%s lat=%.3f lon=%.3f alt=%.1fkm +-%.0fm",
                     sat.norad_id, geo.latitude, geo.longitude, geo.altitude, accuracy)
        return record

    # -----------------------
    # Read side
    # -----------------------
    def get_satellite_position(self, norad_id: str) -> PositionResult:
        sat = self.storage.get_satellite(norad_id)
        if sat is None:
            return Unavailable(norad_id, "satellite not tracked")
        rec = self.storage.get_latest_position(norad_id)
        if rec is None:
            return Unavailable(norad_id, "no position computed yet")
        return Position(
            norad_id=norad_id,
            name=sat.name,
            latitude=rec.latitude,
            longitude=rec.longitude,
            altitude=rec.altitude,
            velocity=(rec.velocity_x, rec.velocity_y, rec.velocity_z),
            accuracy=rec.accuracy_estimate or 0.0,
            method=rec.method,
            timestamp=rec.timestamp,
        )
