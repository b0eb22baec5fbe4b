# sattrack/validation/validator.py
"""
Accuracy validation against independent reference ephemerides.

The 3-D error combines a haversine surface distance on a 6371 km sphere
with the altitude difference. The sphere radius intentionally differs from
the 6378.137 km used by the propagator's geodetic conversion.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from sattrack.config.settings import VALIDATION_EARTH_RADIUS, VALIDATION_THRESHOLD_M
from sattrack.data.storage import MemoryStorage
from sattrack.models.records import ValidationResult
from sattrack.pipeline.integrity import DataIntegrityTracker, REFERENCE_EPHEMERIS
from sattrack.physics.state import as_utc
from sattrack.pipeline.results import ValidationSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferencePosition:
    latitude: float     # deg
    longitude: float    # deg
    altitude_km: float
    timestamp: datetime
    source: str


class ReferenceEphemerisProvider:
    """In-memory table of precise reference positions per object id."""
    def __init__(self):
        self._table: Dict[str, List[ReferencePosition]] = {}

    def add(self, norad_id: str, ref: ReferencePosition) -> None:
        self._table.setdefault(str(norad_id), []).append(ref)

    def latest(self, norad_id: str) -> Optional[ReferencePosition]:
        refs = self._table.get(str(norad_id))
        if not refs:
            return None
        return max(refs, key=lambda r: r.timestamp)

    def __len__(self) -> int:
        return sum(len(refs) for refs in self._table.values())

    @classmethod
    def from_records(cls, rows, default_source: str = "reference") -> "ReferenceEphemerisProvider":
        """
        Build a table from dict rows:
          {"norad_id": "25544", "latitude": 51.2, "longitude": -12.7,
           "altitude_km": 418.3, "timestamp": "2024-01-15T12:00:00Z", "source": "ILRS"}
        "source" is optional. A malformed row raises ValueError naming its index.
        """
        if not isinstance(rows, list):
            raise ValueError("reference ephemeris must be a list of records")
        provider = cls()
        for i, row in enumerate(rows):
            try:
                stamp = datetime.fromisoformat(str(row["timestamp"]).replace("Z", "+00:00"))
                ref = ReferencePosition(
                    latitude=float(row["latitude"]),
                    longitude=float(row["longitude"]),
                    altitude_km=float(row["altitude_km"]),
                    timestamp=as_utc(stamp),
                    source=str(row.get("source") or default_source),
                )
                norad_id = str(row["norad_id"])
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise ValueError(f"reference record {i} is malformed: {e!r}") from None
            provider.add(norad_id, ref)
        return provider

    @classmethod
    def from_json(cls, path: str) -> "ReferenceEphemerisProvider":
        """Load reference positions from a JSON file (see from_records for the row shape)."""
        with open(path, "r") as f:
            rows = json.load(f)
        provider = cls.from_records(rows, default_source=path)
        logger.info("Loaded %d reference positions from %s", len(provider), path)
        return provider


def haversine_3d(lat1: float, lon1: float, alt1_km: float,
                 lat2: float, lon2: float, alt2_km: float,
                 radius: float = VALIDATION_EARTH_RADIUS) -> float:
    """3-D distance (m) between two (lat deg, lon deg, alt km) points."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (math.sin(dlat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2)
    # rounding can push a slightly outside [0, 1]
    a = min(max(a, 0.0), 1.0)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    horizontal = radius * c
    dalt = (alt2_km - alt1_km) * 1000.0
    return math.sqrt(horizontal * horizontal + dalt * dalt)


class SatelliteValidator:
    def __init__(self, storage: MemoryStorage, references: ReferenceEphemerisProvider,
                 integrity: Optional[DataIntegrityTracker] = None,
                 threshold: float = VALIDATION_THRESHOLD_M,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.storage = storage
        self.references = references
        self.integrity = integrity if integrity is not None else DataIntegrityTracker()
        self.threshold = float(threshold)
        self.clock = clock

    def validate(self, norad_id: str) -> Optional[float]:
        """
        Error distance (m) between the latest stored estimate and the reference,
        or None when either is missing (nothing is written in that case).
        """
        predicted = self.storage.get_latest_position(norad_id)
        if predicted is None:
            logger.debug("No stored position for %s; not validated", norad_id)
            return None
        precise = self.references.latest(norad_id)
        if precise is None:
            logger.debug("No reference ephemeris for %s; not validated", norad_id)
            return None

        error = haversine_3d(
            predicted.latitude, predicted.longitude, predicted.altitude,
            precise.latitude, precise.longitude, precise.altitude_km,
        )

        self.storage.create_validation_result(ValidationResult(
            norad_id=norad_id,
            timestamp=self.clock(),
            predicted_lat=predicted.latitude,
            predicted_lon=predicted.longitude,
            predicted_alt=predicted.altitude,
            actual_lat=precise.latitude,
            actual_lon=precise.longitude,
            actual_alt=precise.altitude_km,
            error_distance=error,
            method=predicted.method or "enhanced",
        ))
        return error

    def run_validation(self) -> ValidationSummary:
        """Validate every tracked satellite and summarise the sub-threshold fraction."""
        errors = []
        for sat in self.storage.get_satellites():
            error = self.validate(sat.norad_id)
            if error is None:
                continue
            errors.append(error)
            logger.info("%s: +-%dm accuracy", sat.name, round(error))

        under = sum(1 for e in errors if e < self.threshold)
        summary = ValidationSummary(
            validated=len(errors),
            under_threshold=under,
            average_error=sum(errors) / len(errors) if errors else 0.0,
            threshold=self.threshold,
        )
        if errors:
            self.integrity.mark_available(REFERENCE_EPHEMERIS, f"{len(errors)} objects validated")
        else:
            self.integrity.mark_unavailable(REFERENCE_EPHEMERIS, "no object had both estimate and reference")
        logger.info("Validation complete: %d/%d satellites achieved <%dm accuracy",
                    under, len(errors), round(self.threshold))
        return summary
