"""
Element-set provider (Space-Track primary, CelesTrak fallback).

 - Space-Track is used only when credentials are configured (env vars)
 - One re-authentication attempt on an expired session (401)
 - IDs Space-Track did not return are retried individually on CelesTrak
 - Records that cannot be fetched are omitted; nothing is substituted
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

import requests

from sattrack.config import settings
from sattrack.models.satellite import MeanElements

logger = logging.getLogger(__name__)

SPACE_TRACK_LOGIN_PATH = "/ajaxauth/login"
SPACE_TRACK_GP_PATH = (
    "/basicspacedata/query/class/gp/"
    "NORAD_CAT_ID/{ids}/"
    "orderby/NORAD_CAT_ID asc/format/json"
)


@dataclass(frozen=True)
class ElementSet:
    object_id: str
    name: str
    line1: str
    line2: str
    epoch: datetime


# -----------------------
# TLE text helpers
# -----------------------
def _looks_like_html(text: str) -> bool:
    t = (text or "").lower()
    return ("<html" in t) or ("<!doctype html" in t) or ("</html>" in t)


def parse_tle_text(text: str, object_id: str) -> Tuple[str, str, str]:
    """
    Find consecutive '1 ' and '2 ' lines anywhere in the response.
    A line right before the '1' line is used as the name.
    Returns (name, line1, line2).
    """
    lines = [l.strip() for l in (text or "").splitlines() if l.strip()]
    for i in range(len(lines) - 1):
        if lines[i].startswith("1 ") and lines[i + 1].startswith("2 "):
            return f"NORAD-{object_id}", lines[i], lines[i + 1]
        if i + 2 < len(lines) and lines[i + 1].startswith("1 ") and lines[i + 2].startswith("2 "):
            return lines[i], lines[i + 1], lines[i + 2]
    raise ValueError("Invalid TLE response (no '1 '/'2 ' pair found)")


def epoch_from_line1(line1: str) -> datetime:
    """
    Decode the YYDDD.DDDDDDDD epoch field (columns 19-32) of TLE line 1.
    Two-digit years 57-99 map to 19xx, 00-56 to 20xx.
    """
    field = line1[18:32].strip()
    if len(field) < 5:
        raise ValueError(f"TLE epoch field too short: {field!r}")
    yy = int(field[:2])
    day_of_year = float(field[2:])
    year = 1900 + yy if yy >= 57 else 2000 + yy
    start = datetime(year, 1, 1, tzinfo=timezone.utc)
    return start + timedelta(days=day_of_year - 1.0)


def parse_mean_elements(line2: str) -> MeanElements:
    """Fixed-column mean elements from TLE line 2."""
    return MeanElements(
        mean_motion=float(line2[52:63]),
        eccentricity=float("0." + line2[26:33].strip()),
        inclination=float(line2[8:16]),
        raan=float(line2[17:25]),
        arg_of_perigee=float(line2[34:42]),
        mean_anomaly=float(line2[43:51]),
    )


def _parse_gp_epoch(value: str) -> datetime:
    # Space-Track: "2024-01-15T11:00:00.000000" or "2024-01-15 11:00:00"
    t = datetime.fromisoformat(value.replace(" ", "T"))
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    return t


def element_set_from_gp(record: dict) -> Optional[ElementSet]:
    """Build an ElementSet from one Space-Track GP JSON row."""
    try:
        line1 = record["TLE_LINE1"]
        line2 = record["TLE_LINE2"]
        object_id = str(record["NORAD_CAT_ID"])
    except KeyError as e:
        logger.warning("Space-Track record missing %s; skipped", e)
        return None
    name = record.get("OBJECT_NAME") or f"NORAD-{object_id}"
    try:
        epoch = _parse_gp_epoch(record["EPOCH"]) if record.get("EPOCH") else epoch_from_line1(line1)
    except ValueError:
        epoch = epoch_from_line1(line1)
    return ElementSet(object_id, name.strip(), line1.strip(), line2.strip(), epoch)


# -----------------------
# Provider
# -----------------------
class ElementSetProvider:
    """
    Fetches the latest element set per tracked object.
    """
    def __init__(self, username: Optional[str] = None, password: Optional[str] = None,
                 session: Optional[requests.Session] = None, timeout: float = settings.HTTP_TIMEOUT,
                 use_celestrak: bool = True):
        self.username = username if username is not None else settings.SPACE_TRACK_USERNAME
        self.password = password if password is not None else settings.SPACE_TRACK_PASSWORD
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": settings.USER_AGENT})
        self.timeout = float(timeout)
        self.use_celestrak = bool(use_celestrak)
        self._authenticated = False

    # Space-Track
    def authenticate(self) -> bool:
        if not (self.username and self.password):
            logger.warning("Space-Track credentials not provided")
            return False
        try:
            resp = self.session.post(
                settings.SPACE_TRACK_BASE_URL + SPACE_TRACK_LOGIN_PATH,
                data={"identity": self.username, "password": self.password},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Space-Track login network error: %s", e)
            return False

        if resp.status_code != 200 or not self.session.cookies:
            logger.warning("Space-Track login failed (HTTP %s)", resp.status_code)
            return False

        logger.info("Space-Track login succeeded.")
        self._authenticated = True
        return True

    def _get_gp(self, ids: List[str]) -> requests.Response:
        url = settings.SPACE_TRACK_BASE_URL + SPACE_TRACK_GP_PATH.format(ids=",".join(ids))
        return self.session.get(url, timeout=self.timeout)

    def _fetch_space_track(self, ids: List[str]) -> Dict[str, ElementSet]:
        if not self._authenticated and not self.authenticate():
            return {}
        try:
            resp = self._get_gp(ids)
            if resp.status_code == 401:
                logger.info("Space-Track session expired, re-authenticating")
                self._authenticated = False
                if not self.authenticate():
                    return {}
                resp = self._get_gp(ids)
        except requests.RequestException as e:
            logger.warning("Space-Track GET failed: %s", e)
            return {}

        if resp.status_code != 200:
            logger.warning("Space-Track GP query HTTP error: %s", resp.status_code)
            return {}
        if _looks_like_html(resp.text):
            logger.warning("Space-Track returned HTML (redirect/login/rate-limit?)")
            return {}

        try:
            rows = resp.json()
        except ValueError:
            logger.warning("Space-Track returned non-JSON body")
            return {}

        out: Dict[str, ElementSet] = {}
        for row in rows or []:
            es = element_set_from_gp(row)
            if es is not None:
                out[es.object_id] = es
        logger.info("Fetched %d element sets from Space-Track", len(out))
        return out

    # CelesTrak
    def _fetch_celestrak(self, object_id: str) -> Optional[ElementSet]:
        params = {"CATNR": str(object_id), "FORMAT": "TLE"}
        try:
            resp = self.session.get(settings.CELESTRAK_GP_URL, params=params, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("CelesTrak failed for NORAD %s: %s", object_id, e)
            return None

        text = resp.text or ""
        if _looks_like_html(text):
            logger.warning("CelesTrak returned non-TLE content for NORAD %s", object_id)
            return None
        try:
            name, l1, l2 = parse_tle_text(text, object_id)
            epoch = epoch_from_line1(l1)
        except ValueError as e:
            logger.warning("CelesTrak TLE for NORAD %s unusable: %s", object_id, e)
            return None
        return ElementSet(str(object_id), name, l1, l2, epoch)

    def fetch(self, object_ids: Iterable[str]) -> List[ElementSet]:
        """
        Latest element set for each id that any source could supply,
        in request order. Missing ids are simply absent.
        """
        ids = [str(i) for i in object_ids]
        if not ids:
            return []

        found = self._fetch_space_track(ids) if self.username and self.password else {}

        if self.use_celestrak:
            for object_id in ids:
                if object_id in found:
                    continue
                es = self._fetch_celestrak(object_id)
                if es is not None:
                    found[object_id] = es
                    logger.info("Fetched TLE for NORAD %s from CelesTrak", object_id)

        missing = [i for i in ids if i not in found]
        if missing:
            logger.warning("No element set available for: %s", ", ".join(missing))
        return [found[i] for i in ids if i in found]
