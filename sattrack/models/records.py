# sattrack/models/records.py
"""
Persisted records written by the tracking core.
All are immutable once created.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any


@dataclass(frozen=True)
class PositionRecord:
    norad_id: str
    timestamp: datetime
    latitude: float    # deg
    longitude: float   # deg
    altitude: float    # km
    velocity_x: float  # m/s
    velocity_y: float
    velocity_z: float
    accuracy_estimate: Optional[float]  # m
    method: str = "enhanced"


@dataclass(frozen=True)
class SpaceWeatherRecord:
    timestamp: datetime
    solar_flux: float
    kp_index: float
    ap_index: float
    dst_index: Optional[float] = None
    source: str = "NOAA"


@dataclass(frozen=True)
class ValidationResult:
    norad_id: str
    timestamp: datetime
    predicted_lat: float
    predicted_lon: float
    predicted_alt: float  # km
    actual_lat: float
    actual_lon: float
    actual_alt: float     # km
    error_distance: float  # m, 3-D
    method: str

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        return d
