"""
Project settings (constants + small helpers).
Units: meters (m), seconds (s), kilograms (kg), meters/second (m/s).
Geodetic altitude is reported in kilometers.
"""
from __future__ import annotations

import os
from typing import Optional

# Paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
OUTPUT_DIR = os.path.join(BASE_DIR, "outputs")

# Run
VALIDATE_ON_IMPORT = False

# Earth
GM = 3.986004418e14
RE = 6378137.0
EARTH_RADIUS = RE
# Mean radius used by the haversine validator (deliberately not RE)
VALIDATION_EARTH_RADIUS = 6371000.0

# Drag
DRAG_ALTITUDE_LIMIT = 2_000_000.0  # m, drag skipped at or above this altitude
DEFAULT_DRAG_COEFFICIENT = 2.2
DEFAULT_AREA_M2 = 10.0
DEFAULT_MASS_KG = 1000.0

# Atmosphere (piecewise exponential, altitudes in km)
# (upper bound km, reference altitude km, reference density kg/m^3, scale height km)
DENSITY_BANDS = (
    (200.0, 175.0, 2.5e-11, 50.0),
    (300.0, 200.0, 1.2e-11, 60.0),
    (500.0, 300.0, 8.0e-12, 75.0),
    (float("inf"), 500.0, 3.0e-12, 100.0),
)
MIN_DENSITY = 1e-15
SOLAR_FLUX_REFERENCE = 150.0
SOLAR_FLUX_SENSITIVITY = 0.3
AP_REFERENCE = 50.0
AP_SENSITIVITY = 0.2

# Accuracy heuristic (meters)
BASE_ACCURACY_M = 2500.0
ENHANCED_FACTOR = 0.3
SPACE_WEATHER_FACTOR = 0.7
SATELLITE_PARAMS_FACTOR = 0.85
KALMAN_FACTOR = 0.8
DEGRADATION_PER_12H = 0.05
ACCURACY_FLOOR_M = 150.0

# Filter defaults
INITIAL_POS_VARIANCE = 1e6   # m^2
INITIAL_VEL_VARIANCE = 1e3   # (m/s)^2
PROCESS_NOISE = 1e-6
MEASUREMENT_NOISE = 1e-3
MEASUREMENT_UNCERTAINTY_M = 1000.0

# Tracking
PROPAGATION_METHOD = "enhanced"
STORED_METHOD = "enhanced+kalman"
UPDATE_INTERVAL_SEC = 1800.0
UPDATE_INTERVAL_ENV = "SATTRACK_UPDATE_INTERVAL_SEC"
DEFAULT_NORAD_IDS = ("25544", "28654", "33591", "39634", "43013", "48274", "49260")

# Validation
VALIDATION_THRESHOLD_M = 300.0
STATS_WINDOW = 100
# JSON list of reference positions; empty disables validation input
REFERENCE_EPHEMERIS_PATH = os.environ.get("SATTRACK_REFERENCE_EPHEMERIS", "")

# Providers
SPACE_TRACK_BASE_URL = "https://www.space-track.org"
SPACE_TRACK_USERNAME = os.environ.get("SPACETRACK_USERNAME", "")
SPACE_TRACK_PASSWORD = os.environ.get("SPACETRACK_PASSWORD", "")
CELESTRAK_GP_URL = "https://celestrak.org/NORAD/elements/gp.php"
NOAA_KP_URL = "https://services.swpc.noaa.gov/products/noaa-planetary-k-index.json"
NOAA_F107_URL = "https://services.swpc.noaa.gov/products/solar-wind/f107.json"
HTTP_TIMEOUT = 20.0
USER_AGENT = "SatTrack/1.0"


def resolve_update_interval(val: Optional[float] = None) -> float:
    """
    Explicit value, else the SATTRACK_UPDATE_INTERVAL_SEC env var, else the default.
    """
    if val is None:
        val = os.environ.get(UPDATE_INTERVAL_ENV) or UPDATE_INTERVAL_SEC
    try:
        out = float(val)
    except (TypeError, ValueError):
        raise ValueError(f"update interval must be a number, got {val!r}") from None
    if out <= 0:
        raise ValueError("update interval must be > 0")
    return out


def has_space_track_credentials() -> bool:
    return bool(SPACE_TRACK_USERNAME and SPACE_TRACK_PASSWORD)


def validate_settings() -> None:
    if GM <= 0:
        raise ValueError("GM must be > 0")
    if RE <= 0 or VALIDATION_EARTH_RADIUS <= 0:
        raise ValueError("Earth radii must be > 0")
    if DRAG_ALTITUDE_LIMIT <= 0:
        raise ValueError("DRAG_ALTITUDE_LIMIT must be > 0")
    if min(DEFAULT_DRAG_COEFFICIENT, DEFAULT_AREA_M2, DEFAULT_MASS_KG) <= 0:
        raise ValueError("default satellite parameters must be > 0")
    if MIN_DENSITY <= 0:
        raise ValueError("MIN_DENSITY must be > 0")

    uppers = [b[0] for b in DENSITY_BANDS]
    if uppers != sorted(uppers):
        raise ValueError("DENSITY_BANDS must be ordered by upper altitude")
    if any(b[2] <= 0 or b[3] <= 0 for b in DENSITY_BANDS):
        raise ValueError("DENSITY_BANDS densities and scale heights must be > 0")

    if ACCURACY_FLOOR_M <= 0:
        raise ValueError("ACCURACY_FLOOR_M must be > 0")
    for name in ("ENHANCED_FACTOR", "SPACE_WEATHER_FACTOR", "SATELLITE_PARAMS_FACTOR", "KALMAN_FACTOR"):
        val = globals()[name]
        if not 0 < val <= 1:
            raise ValueError(f"{name} must be in (0, 1]")

    if INITIAL_POS_VARIANCE < 0 or INITIAL_VEL_VARIANCE < 0:
        raise ValueError("initial variances must be >= 0")
    if PROCESS_NOISE < 0:
        raise ValueError("PROCESS_NOISE must be >= 0")
    if MEASUREMENT_UNCERTAINTY_M <= 0:
        raise ValueError("MEASUREMENT_UNCERTAINTY_M must be > 0")

    resolve_update_interval()
    if VALIDATION_THRESHOLD_M <= 0:
        raise ValueError("VALIDATION_THRESHOLD_M must be > 0")


if VALIDATE_ON_IMPORT:
    validate_settings()
