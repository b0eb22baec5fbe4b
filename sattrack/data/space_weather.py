"""
NOAA SWPC space-weather provider.

Kp comes from the planetary K-index product, Ap is derived from Kp, and
F10.7 comes from the solar flux product. If either product cannot be read
the provider reports no data; it never falls back to typical values.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import requests

from sattrack.config import settings
from sattrack.physics.state import EnvironmentalData

logger = logging.getLogger(__name__)

# Kp (thirds) -> Ap
KP_TO_AP = {
    "0.00": 0, "0.33": 2, "0.67": 3, "1.00": 4, "1.33": 5, "1.67": 6, "2.00": 7,
    "2.33": 9, "2.67": 12, "3.00": 15, "3.33": 18, "3.67": 22, "4.00": 27,
    "4.33": 32, "4.67": 39, "5.00": 48, "5.33": 56, "5.67": 67, "6.00": 80,
    "6.33": 94, "6.67": 111, "7.00": 132, "7.33": 154, "7.67": 179, "8.00": 207,
    "8.33": 236, "8.67": 300, "9.00": 400,
}
DEFAULT_AP = 27


def kp_to_ap(kp: float) -> float:
    """Approximate Ap for a Kp value; unlisted values map to moderate activity."""
    return float(KP_TO_AP.get(f"{kp:.2f}", DEFAULT_AP))


def space_weather_status(kp: float) -> Tuple[str, str, str]:
    """(status, level, color) for a Kp value."""
    if kp < 1:
        return "Quiet", "quiet", "green"
    if kp < 2:
        return "Unsettled", "unsettled", "yellow"
    if kp < 3:
        return "Active", "active", "yellow"
    if kp < 4:
        return "Minor Storm", "minor", "orange"
    if kp < 5:
        return "Moderate Storm", "moderate", "orange"
    if kp < 6:
        return "Strong Storm", "strong", "red"
    return "Severe Storm", "severe", "red"


def _latest_row(rows, column: int) -> float:
    """
    SWPC products are a header row followed by data rows, oldest first.
    """
    if not isinstance(rows, list) or len(rows) < 2:
        raise ValueError("product has no data rows")
    return float(rows[-1][column])


class NOAASpaceWeatherProvider:
    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: float = settings.HTTP_TIMEOUT,
                 kp_url: str = settings.NOAA_KP_URL,
                 flux_url: str = settings.NOAA_F107_URL):
        self.session = session or requests.Session()
        self.timeout = float(timeout)
        self.kp_url = kp_url
        self.flux_url = flux_url

    def _get_json(self, url: str):
        resp = self.session.get(url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def fetch_current(self) -> Optional[EnvironmentalData]:
        try:
            kp = _latest_row(self._get_json(self.kp_url), 1)
        except (requests.RequestException, ValueError, IndexError, TypeError) as e:
            logger.warning("Kp index unavailable: %s", e)
            return None

        try:
            f107 = _latest_row(self._get_json(self.flux_url), 6)
        except (requests.RequestException, ValueError, IndexError, TypeError) as e:
            logger.warning("F10.7 solar flux unavailable: %s", e)
            return None

        env = EnvironmentalData(solar_flux=f107, kp_index=kp, ap_index=kp_to_ap(kp))
        status, _, _ = space_weather_status(kp)
        logger.info("Space weather: F10.7=%.1f Kp=%.2f Ap=%.0f (%s)", f107, kp, env.ap_index, status)
        return env
