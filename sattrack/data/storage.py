# sattrack/data/storage.py
"""
In-memory persistence for satellites, positions, space weather and
validation results. The tracking core is the only writer of positions and
validation records.
"""
from __future__ import annotations

import threading
from typing import Dict, List, Optional

from sattrack.config.settings import STATS_WINDOW
from sattrack.models.records import PositionRecord, SpaceWeatherRecord, ValidationResult
from sattrack.models.satellite import TrackedSatellite


class MemoryStorage:
    def __init__(self):
        self._satellites: Dict[str, TrackedSatellite] = {}
        self._positions: Dict[str, List[PositionRecord]] = {}
        self._space_weather: List[SpaceWeatherRecord] = []
        self._validations: List[ValidationResult] = []
        self._lock = threading.Lock()

    # -----------------------
    # Satellites
    # -----------------------
    def get_satellite(self, norad_id: str) -> Optional[TrackedSatellite]:
        return self._satellites.get(norad_id)

    def get_satellites(self) -> List[TrackedSatellite]:
        return list(self._satellites.values())

    def upsert_satellite(self, sat: TrackedSatellite) -> TrackedSatellite:
        with self._lock:
            self._satellites[sat.norad_id] = sat
        return sat

    # -----------------------
    # Positions
    # -----------------------
    def get_latest_position(self, norad_id: str) -> Optional[PositionRecord]:
        history = self._positions.get(norad_id)
        if not history:
            return None
        return history[-1]

    def get_position_history(self, norad_id: str, limit: int = 100) -> List[PositionRecord]:
        history = self._positions.get(norad_id, [])
        return list(reversed(history[-int(limit):])) if limit else []

    def create_position(self, record: PositionRecord) -> PositionRecord:
        with self._lock:
            self._positions.setdefault(record.norad_id, []).append(record)
        return record

    # -----------------------
    # Space weather
    # -----------------------
    def get_latest_space_weather(self) -> Optional[SpaceWeatherRecord]:
        return self._space_weather[-1] if self._space_weather else None

    def get_space_weather_history(self, limit: int = 24) -> List[SpaceWeatherRecord]:
        return list(reversed(self._space_weather[-int(limit):])) if limit else []

    def create_space_weather(self, record: SpaceWeatherRecord) -> SpaceWeatherRecord:
        with self._lock:
            self._space_weather.append(record)
        return record

    # -----------------------
    # Validation
    # -----------------------
    def get_validation_results(self, norad_id: Optional[str] = None,
                               limit: Optional[int] = None) -> List[ValidationResult]:
        results = [v for v in self._validations if norad_id is None or v.norad_id == norad_id]
        results.reverse()
        return results[:limit] if limit is not None else results

    def create_validation_result(self, result: ValidationResult) -> ValidationResult:
        with self._lock:
            self._validations.append(result)
        return result

    # -----------------------
    # Statistics
    # -----------------------
    def get_system_stats(self) -> dict:
        recent = self._validations[-STATS_WINDOW:]
        avg = sum(v.error_distance for v in recent) / len(recent) if recent else 0.0
        return {
            "total_satellites": len(self._satellites),
            "avg_accuracy": round(avg),
            "validated_satellites": len({v.norad_id for v in self._validations}),
        }
