# sattrack/physics/atmosphere.py
"""
Reduced-fidelity thermosphere model.

Piecewise exponential density keyed on altitude band, scaled by F10.7 solar
flux and the Ap geomagnetic index. Not NRLMSISE-00; only meant to give drag
the right order of magnitude below 2000 km.
"""
import math

from sattrack.config.settings import (
    DENSITY_BANDS,
    MIN_DENSITY,
    SOLAR_FLUX_REFERENCE,
    SOLAR_FLUX_SENSITIVITY,
    AP_REFERENCE,
    AP_SENSITIVITY,
)
from sattrack.physics.state import EnvironmentalData


def base_density(altitude_km: float) -> float:
    """Exponential baseline density (kg/m^3) for the band containing altitude_km."""
    for upper, ref_alt, ref_rho, scale in DENSITY_BANDS:
        if altitude_km < upper:
            return ref_rho * math.exp(-(altitude_km - ref_alt) / scale)
    # NaN altitude falls through every comparison
    return MIN_DENSITY


def solar_flux_factor(f107: float) -> float:
    return 1.0 + SOLAR_FLUX_SENSITIVITY * (f107 - SOLAR_FLUX_REFERENCE) / 100.0


def geomagnetic_factor(ap: float) -> float:
    return 1.0 + AP_SENSITIVITY * ap / AP_REFERENCE


def atmospheric_density(altitude: float, env: EnvironmentalData) -> float:
    """
    Density in kg/m^3 at geocentric altitude (meters) for the given space weather.
    Always >= MIN_DENSITY and finite.
    """
    h = altitude / 1000.0
    try:
        rho = base_density(h)
    except OverflowError:
        return MIN_DENSITY
    rho *= solar_flux_factor(env.solar_flux)
    rho *= geomagnetic_factor(env.ap_index)
    if not math.isfinite(rho):
        return MIN_DENSITY
    return max(rho, MIN_DENSITY)
