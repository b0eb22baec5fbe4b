# sattrack/physics/state.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import numpy as np

from sattrack.config.settings import (
    DEFAULT_AREA_M2,
    DEFAULT_DRAG_COEFFICIENT,
    DEFAULT_MASS_KG,
)


def as_utc(t: datetime) -> datetime:
    # accept naive -> treat as UTC
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)


def _frozen_vector(v, label: str) -> np.ndarray:
    arr = np.array(v, dtype=float)
    if arr.shape != (3,):
        raise ValueError(f"{label} must be a 3D vector, got shape {arr.shape}")
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class OrbitState:
    """
    Cartesian orbital state.
    position in meters, velocity in m/s (TEME/ECI-like frame),
    timestamp as timezone-aware UTC datetime.
    """
    position: np.ndarray
    velocity: np.ndarray
    timestamp: datetime

    def __post_init__(self):
        object.__setattr__(self, "position", _frozen_vector(self.position, "position"))
        object.__setattr__(self, "velocity", _frozen_vector(self.velocity, "velocity"))
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))

    @property
    def radius(self) -> float:
        return float(np.linalg.norm(self.position))

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def seconds_until(self, t: datetime) -> float:
        return (as_utc(t) - self.timestamp).total_seconds()


@dataclass(frozen=True)
class SatelliteParameters:
    drag_coefficient: Optional[float] = None
    cross_sectional_area: Optional[float] = None  # m^2
    mass: Optional[float] = None  # kg

    @property
    def is_complete(self) -> bool:
        return bool(self.drag_coefficient and self.cross_sectional_area and self.mass)

    def resolved(self):
        """Return (Cd, A, m) with defaults substituted for missing values."""
        cd = self.drag_coefficient or DEFAULT_DRAG_COEFFICIENT
        area = self.cross_sectional_area or DEFAULT_AREA_M2
        mass = self.mass or DEFAULT_MASS_KG
        return float(cd), float(area), float(mass)


@dataclass(frozen=True)
class EnvironmentalData:
    solar_flux: float  # F10.7
    kp_index: float
    ap_index: float
    dst_index: Optional[float] = None
