# sattrack/estimation/kalman.py
"""
Per-object recursive state estimator.

The covariance is a 6x6 matrix kept diagonal-only: each of the six state
components [x, y, z, vx, vy, vz] gets an independent scalar gain, and
cross-axis correlations are never modelled. The propagator acts as the
process model, so predict() adopts its output instead of evolving the state.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

import numpy as np

from sattrack.config.settings import (
    INITIAL_POS_VARIANCE,
    INITIAL_VEL_VARIANCE,
    PROCESS_NOISE,
    MEASUREMENT_NOISE,
)
from sattrack.physics.state import OrbitState

logger = logging.getLogger(__name__)


@dataclass
class FilterState:
    position: np.ndarray    # (3,) m
    velocity: np.ndarray    # (3,) m/s
    covariance: np.ndarray  # (6,6) diagonal-only; m^2 then (m/s)^2

    def copy(self) -> "FilterState":
        return FilterState(self.position.copy(), self.velocity.copy(), self.covariance.copy())

    @property
    def variances(self) -> np.ndarray:
        return np.diag(self.covariance).copy()


class DiagonalKalmanFilter:
    """
    process_noise: variance added to every diagonal entry per second of predict() dt
    measurement_noise: measurement variance used by update() when the caller
        passes no uncertainty of its own
    """
    def __init__(self, initial_state: OrbitState, process_noise: float = PROCESS_NOISE,
                 measurement_noise: float = MEASUREMENT_NOISE):
        self._state = FilterState(
            position=np.array(initial_state.position, dtype=float),
            velocity=np.array(initial_state.velocity, dtype=float),
            covariance=self.initialize_covariance(),
        )
        self.process_noise = float(process_noise)
        self.measurement_noise = float(measurement_noise)

    @staticmethod
    def initialize_covariance() -> np.ndarray:
        cov = np.zeros((6, 6), dtype=float)
        cov[0:3, 0:3] = np.eye(3) * INITIAL_POS_VARIANCE
        cov[3:6, 3:6] = np.eye(3) * INITIAL_VEL_VARIANCE
        return cov

    @property
    def state(self) -> FilterState:
        return self._state.copy()

    def predict(self, dt: float, propagated_state: OrbitState) -> None:
        self._state.position = np.array(propagated_state.position, dtype=float)
        self._state.velocity = np.array(propagated_state.velocity, dtype=float)

        idx = np.arange(6)
        diag = self._state.covariance[idx, idx] + self.process_noise * float(dt)
        # backwards dt must not push a variance negative
        self._state.covariance[idx, idx] = np.maximum(diag, 0.0)

    def _kalman_gain(self, measurement_uncertainty: float) -> np.ndarray:
        p = np.diag(self._state.covariance)
        s = p + float(measurement_uncertainty)
        gain = np.zeros(6, dtype=float)
        np.divide(p, s, out=gain, where=s != 0)
        return gain

    def update(self, measurement: OrbitState,
               measurement_uncertainty: Optional[float] = None) -> OrbitState:
        if measurement_uncertainty is None:
            measurement_uncertainty = self.measurement_noise
        if measurement_uncertainty < 0:
            raise ValueError("measurement_uncertainty must be >= 0")
        x = np.hstack((self._state.position, self._state.velocity))
        z = np.hstack((measurement.position, measurement.velocity))
        innovation = z - x

        gain = self._kalman_gain(measurement_uncertainty)
        x = x + gain * innovation

        idx = np.arange(6)
        self._state.covariance[idx, idx] *= (1.0 - gain)
        self._state.position = x[:3]
        self._state.velocity = x[3:]

        return OrbitState(x[:3], x[3:], measurement.timestamp)

    def uncertainty(self) -> float:
        """Position uncertainty magnitude (m)."""
        c = self._state.covariance
        return float(np.sqrt(c[0, 0] + c[1, 1] + c[2, 2]))


class FilterRegistry:
    """
    Object-id keyed store of estimators, owned by the tracking orchestrator.
    Exactly one filter per id; each id has its own lock so an object's filter
    is never mutated by two concurrent callers.
    """
    def __init__(self, process_noise: float = PROCESS_NOISE,
                 measurement_noise: float = MEASUREMENT_NOISE):
        self.process_noise = process_noise
        self.measurement_noise = measurement_noise
        self._filters: Dict[str, DiagonalKalmanFilter] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def __contains__(self, object_id: str) -> bool:
        return object_id in self._filters

    def __len__(self) -> int:
        return len(self._filters)

    def ids(self) -> Iterator[str]:
        return iter(list(self._filters))

    def get(self, object_id: str) -> Optional[DiagonalKalmanFilter]:
        return self._filters.get(object_id)

    def get_or_create(self, object_id: str, seed: OrbitState):
        """
        Return (filter, created). A new filter is seeded from `seed`;
        an existing one is returned untouched.
        """
        with self._guard:
            kf = self._filters.get(object_id)
            if kf is not None:
                return kf, False
            kf = DiagonalKalmanFilter(seed, self.process_noise, self.measurement_noise)
            self._filters[object_id] = kf
            logger.debug("filter created for %s", object_id)
            return kf, True

    def lock_for(self, object_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(object_id)
            if lock is None:
                lock = self._locks[object_id] = threading.Lock()
            return lock

    def drop(self, object_id: str) -> bool:
        """
        Forget the filter for object_id. Its lock entry is kept so callers
        already holding or waiting on it stay serialized with later ones.
        """
        with self.lock_for(object_id), self._guard:
            return self._filters.pop(object_id, None) is not None
