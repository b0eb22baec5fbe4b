# sattrack/pipeline/results.py
"""
Tagged result shapes handed to the presentation layer.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from sattrack.config.settings import VALIDATION_THRESHOLD_M


@dataclass(frozen=True)
class Position:
    norad_id: str
    name: str
    latitude: float
    longitude: float
    altitude: float  # km
    velocity: tuple  # (vx, vy, vz) m/s
    accuracy: float  # m
    method: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "satellite_id": self.norad_id,
            "name": self.name,
            "position": {
                "latitude": self.latitude,
                "longitude": self.longitude,
                "altitude": self.altitude,
            },
            "velocity": dict(zip(("x", "y", "z"), self.velocity)),
            "accuracy": {
                "estimated_error": f"±{round(self.accuracy)}m",
                "method": self.method,
            },
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class Unavailable:
    norad_id: str
    reason: str


PositionResult = Union[Position, Unavailable]


@dataclass(frozen=True)
class CycleReport:
    requested: int
    tracked: int
    skipped: int
    has_space_weather: bool


@dataclass(frozen=True)
class ValidationSummary:
    validated: int
    under_threshold: int
    average_error: float  # m; 0.0 when nothing validated
    threshold: float = VALIDATION_THRESHOLD_M

    @property
    def fraction_under_threshold(self) -> float:
        return self.under_threshold / self.validated if self.validated else 0.0
