# sattrack/pipeline/integrity.py
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

logger = logging.getLogger(__name__)

TLE_DATA = "TLE_DATA"
SPACE_WEATHER = "SPACE_WEATHER"
REFERENCE_EPHEMERIS = "REFERENCE_EPHEMERIS"


@dataclass(frozen=True)
class SourceStatus:
    available: bool
    source: str
    last_checked: datetime


class DataIntegrityTracker:
    """
    Records whether each kind of input came from a real source this cycle.
    Passed explicitly to the orchestrator and validator.
    """
    def __init__(self):
        self._status: Dict[str, SourceStatus] = {}

    def mark_available(self, data_type: str, source: str) -> None:
        self._status[data_type] = SourceStatus(True, source, datetime.now(timezone.utc))
        logger.info("REAL DATA: %s from %s", data_type, source)

    def mark_unavailable(self, data_type: str, reason: str) -> None:
        self._status[data_type] = SourceStatus(False, f"UNAVAILABLE: {reason}", datetime.now(timezone.utc))
        logger.warning("NO DATA: %s - %s", data_type, reason)

    def is_available(self, data_type: str) -> bool:
        s = self._status.get(data_type)
        return bool(s and s.available)

    def get(self, data_type: str) -> Optional[SourceStatus]:
        return self._status.get(data_type)

    def status(self) -> dict:
        return {
            k: {"available": v.available, "source": v.source, "last_checked": v.last_checked.isoformat()}
            for k, v in self._status.items()
        }

    def log_summary(self) -> None:
        logger.info("Data integrity check:")
        for data_type, s in self._status.items():
            logger.info("  [%s] %s: %s", "OK" if s.available else "--", data_type, s.source)
