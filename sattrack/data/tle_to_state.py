import logging
from datetime import datetime, timezone
from typing import Optional

import numpy as np
from sgp4.api import Satrec, jday

from sattrack.data.tle_fetcher import ElementSet
from sattrack.physics.state import OrbitState

logger = logging.getLogger(__name__)


def _jday_utc(t: datetime):
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    else:
        t = t.astimezone(timezone.utc)
    return jday(
        t.year, t.month, t.day,
        t.hour, t.minute, t.second + t.microsecond * 1e-6
    )


def element_set_to_state(element_set: ElementSet, at: Optional[datetime] = None) -> Optional[OrbitState]:
    """
    Initial TEME state (meters, m/s) from an element set via SGP4.

    The state is evaluated at `at` (default: now) but stamped with the element-set
    epoch, so the enhanced propagator advances it across epoch -> target time.
    Returns None when the TLE cannot be parsed or SGP4 reports an error;
    no substitute state is produced.
    """
    try:
        sat = Satrec.twoline2rv(element_set.line1, element_set.line2)
    except (ValueError, IndexError) as e:
        logger.warning("Unparseable TLE for %s: %s", element_set.object_id, e)
        return None

    when = at if at is not None else datetime.now(timezone.utc)
    jd, fr = _jday_utc(when)

    e, r, v = sat.sgp4(jd, fr)
    if e != 0:
        logger.warning("SGP4 propagation failed for %s (code=%s)", element_set.object_id, e)
        return None

    r = np.array(r, dtype=float) * 1000.0  # km -> m
    v = np.array(v, dtype=float) * 1000.0  # km/s -> m/s
    if not (np.all(np.isfinite(r)) and np.all(np.isfinite(v))):
        logger.warning("SGP4 returned non-finite state for %s", element_set.object_id)
        return None
    return OrbitState(r, v, element_set.epoch)
