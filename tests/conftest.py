from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from sattrack.config.settings import RE
from sattrack.data.storage import MemoryStorage
from sattrack.data.tle_fetcher import ElementSet, epoch_from_line1
from sattrack.physics.state import EnvironmentalData, OrbitState


ISS_LINE1 = "1 25544U 98067A   24015.45833333  .00021387  00000-0  38325-3 0  9996"
ISS_LINE2 = "2 25544  51.6416 339.3949 0005506  47.7982  73.9798 15.49442155432123"

NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeElementSets:
    def __init__(self, sets):
        self.sets = list(sets)
        self.calls = []

    def fetch(self, ids):
        ids = list(ids)
        self.calls.append(ids)
        return [s for s in self.sets if s.object_id in ids]


class FakeSpaceWeather:
    def __init__(self, env):
        self.env = env

    def fetch_current(self):
        return self.env


def leo_state(timestamp, altitude=400_000.0, speed=7660.0):
    return OrbitState(np.array([RE + altitude, 0.0, 0.0]), np.array([0.0, speed, 0.0]), timestamp)


@pytest.fixture
def env():
    return EnvironmentalData(solar_flux=140.0, kp_index=2.0, ap_index=7.0)


@pytest.fixture
def iss_element_set():
    return ElementSet("25544", "ISS (ZARYA)", ISS_LINE1, ISS_LINE2, epoch_from_line1(ISS_LINE1))


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def fixed_state_source():
    """State source that seeds every object with the same LEO state stamped at epoch."""
    def source(es, at):
        return leo_state(es.epoch)
    return source


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def one_minute_old(now):
    return now - timedelta(seconds=60)
