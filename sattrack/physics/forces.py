# sattrack/physics/forces.py
from typing import Optional

import numpy as np

from sattrack.config.settings import GM, RE, DRAG_ALTITUDE_LIMIT
from sattrack.physics.atmosphere import atmospheric_density
from sattrack.physics.state import OrbitState, SatelliteParameters, EnvironmentalData


class ForceModel:
    """
    Base force model. Acceleration is evaluated on a full OrbitState
    so velocity-dependent forces share the same signature.
    """
    def acceleration(self, state: OrbitState) -> np.ndarray:
        raise NotImplementedError


class NewtonianGravity(ForceModel):
    """Point-mass central gravity."""
    def __init__(self, mu: float = GM):
        self.mu = float(mu)

    def acceleration(self, state: OrbitState) -> np.ndarray:
        r = state.position
        norm = np.linalg.norm(r)
        if norm == 0:
            return np.zeros(3, dtype=float)
        return -(self.mu / norm**3) * r


class AtmosphericDrag(ForceModel):
    """
    Drag opposing the velocity vector. Evaluated only below DRAG_ALTITUDE_LIMIT;
    above it (or with zero speed) the acceleration is exactly zero.
    """
    def __init__(self, params: Optional[SatelliteParameters], env: EnvironmentalData):
        self.cd, self.area, self.mass = (params or SatelliteParameters()).resolved()
        self.env = env

    def acceleration(self, state: OrbitState) -> np.ndarray:
        altitude = np.linalg.norm(state.position) - RE
        if not altitude < DRAG_ALTITUDE_LIMIT:
            return np.zeros(3, dtype=float)
        velocity = state.velocity
        v = np.linalg.norm(velocity)
        if v == 0.0:
            return np.zeros(3, dtype=float)
        rho = atmospheric_density(altitude, self.env)
        a_mag = -0.5 * rho * v * self.cd * self.area / self.mass
        return a_mag * (velocity / v)


class CompositeForce(ForceModel):
    """
    Combines multiple force models.
    """
    def __init__(self, *models):
        self.models = list(models)

    def acceleration(self, state: OrbitState) -> np.ndarray:
        total_a = np.zeros(3, dtype=float)
        for model in self.models:
            total_a += model.acceleration(state)
        return total_a

    def has_drag(self) -> bool:
        return any(isinstance(m, AtmosphericDrag) for m in self.models)
