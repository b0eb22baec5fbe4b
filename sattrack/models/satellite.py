# sattrack/models/satellite.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from sattrack.physics.state import SatelliteParameters


@dataclass(frozen=True)
class MeanElements:
    """Mean elements read straight from TLE line 2 (degrees, rev/day)."""
    mean_motion: float
    eccentricity: float
    inclination: float
    raan: float
    arg_of_perigee: float
    mean_anomaly: float


@dataclass(frozen=True)
class TrackedSatellite:
    """
    Tracked-object record: latest element set plus physical parameters.
    """
    norad_id: str
    name: str
    line1: str
    line2: str
    epoch: datetime
    elements: Optional[MeanElements] = None
    drag_coefficient: Optional[float] = None
    cross_sectional_area: Optional[float] = None
    mass: Optional[float] = None

    @property
    def parameters(self) -> SatelliteParameters:
        return SatelliteParameters(
            drag_coefficient=self.drag_coefficient,
            cross_sectional_area=self.cross_sectional_area,
            mass=self.mass,
        )

    def with_element_set(self, name: str, line1: str, line2: str, epoch: datetime,
                         elements: Optional[MeanElements]) -> "TrackedSatellite":
        # physical parameters survive element-set refreshes
        return replace(self, name=name, line1=line1, line2=line2, epoch=epoch, elements=elements)
