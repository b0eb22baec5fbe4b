# sattrack/physics/propagator.py
"""
Enhanced propagator: point-mass gravity + atmospheric drag advanced by a
single explicit Euler step over the full time delta.

Also hosts the spherical Cartesian->geodetic conversion and the heuristic
accuracy score used for every stored position.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import numpy as np

from sattrack.config import settings
from sattrack.config.settings import RE
from sattrack.physics.forces import NewtonianGravity, AtmosphericDrag, CompositeForce
from sattrack.physics.state import OrbitState, SatelliteParameters, EnvironmentalData

logger = logging.getLogger(__name__)


class PropagationError(ValueError):
    """Propagation produced a non-finite state."""


@dataclass(frozen=True)
class Geodetic:
    latitude: float   # deg
    longitude: float  # deg
    altitude: float   # km


class EnhancedPropagator:
    """
    Stateless propagator. Given identical inputs, propagate() returns
    bit-identical output.
    """
    def __init__(self, mu: float = settings.GM, earth_radius: float = RE):
        self.mu = float(mu)
        self.earth_radius = float(earth_radius)

    def _force_model(self, params: Optional[SatelliteParameters],
                     env: Optional[EnvironmentalData]) -> CompositeForce:
        models = [NewtonianGravity(self.mu)]
        # without space weather the drag term is skipped, never guessed
        if env is not None:
            models.append(AtmosphericDrag(params, env))
        return CompositeForce(*models)

    def acceleration(self, state: OrbitState, params: Optional[SatelliteParameters],
                     env: Optional[EnvironmentalData]) -> np.ndarray:
        return self._force_model(params, env).acceleration(state)

    def propagate(
        self,
        state: OrbitState,
        target_time: datetime,
        params: Optional[SatelliteParameters],
        env: Optional[EnvironmentalData],
    ) -> OrbitState:
        dt = state.seconds_until(target_time)

        a = self.acceleration(state, params, env)
        r_next = state.position + state.velocity * dt + 0.5 * a * dt**2
        v_next = state.velocity + a * dt

        if not (np.all(np.isfinite(r_next)) and np.all(np.isfinite(v_next))):
            raise PropagationError(f"non-finite state after dt={dt:.3f}s")

        logger.debug("propagated dt=%.1fs |a|=%.6f m/s^2", dt, float(np.linalg.norm(a)))
        return OrbitState(r_next, v_next, target_time)

    def cartesian_to_geodetic(self, position) -> Geodetic:
        """
        Spherical-Earth latitude/longitude (deg) and altitude (km).
        Not an ellipsoidal WGS84 conversion.
        """
        x, y, z = (float(c) for c in position)
        r = math.sqrt(x * x + y * y + z * z)
        if r == 0.0:
            raise ValueError("cannot convert the geocentre to geodetic coordinates")
        longitude = math.degrees(math.atan2(y, x))
        latitude = math.degrees(math.asin(z / r))
        altitude = (r - self.earth_radius) / 1000.0
        return Geodetic(latitude=latitude, longitude=longitude, altitude=altitude)

    @staticmethod
    def estimate_accuracy(
        time_since_epoch: float,
        method: str,
        has_space_weather: bool,
        has_satellite_params: bool,
    ) -> float:
        """
        Heuristic position error (meters) for a propagated estimate.

        time_since_epoch: seconds between element-set epoch and estimate time
        method: propagation method tag, e.g. "enhanced" or "enhanced+kalman"
        """
        accuracy = settings.BASE_ACCURACY_M

        if method == "enhanced":
            accuracy *= settings.ENHANCED_FACTOR
        if has_space_weather:
            accuracy *= settings.SPACE_WEATHER_FACTOR
        if has_satellite_params:
            accuracy *= settings.SATELLITE_PARAMS_FACTOR
        if "kalman" in method:
            accuracy *= settings.KALMAN_FACTOR

        hours_old = time_since_epoch / 3600.0
        accuracy *= 1.0 + (hours_old / 12.0) * settings.DEGRADATION_PER_12H

        if math.isnan(accuracy):
            return settings.ACCURACY_FLOOR_M
        return max(accuracy, settings.ACCURACY_FLOOR_M)
