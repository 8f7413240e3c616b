"""Observer-relative position samples of a satellite, computed with skyfield's SGP4 propagator."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import numpy as np
from skyfield.api import EarthSatellite, load, wgs84

from groundpass.astrodynamics.config import AstrodynamicsConfig
from groundpass.astrodynamics.elements import OrbitalElements
from groundpass.base.errors import ElementsInvalid
from groundpass.common.utils import ensure_utc, ground_distance

logger = logging.getLogger(__name__)

TLE_LINE_LENGTH = 69


@dataclass(frozen=True)
class Sample:
    time: datetime
    visible: bool
    elevation: Optional[float] = None  # (degrees)
    range: Optional[float] = None  # ground range station -> sub-point (meters)
    latitude: Optional[float] = None  # sub-point (degrees)
    longitude: Optional[float] = None


def validate_elements(elements: OrbitalElements) -> None:
    """Reject element sets that are obviously not a two-line element set.

    Raises:
        ElementsInvalid
    """
    line1, line2 = elements.line1.strip(), elements.line2.strip()
    if len(line1) < TLE_LINE_LENGTH or len(line2) < TLE_LINE_LENGTH:
        raise ElementsInvalid(elements.name, f"TLE lines must be {TLE_LINE_LENGTH} characters")
    if not (line1.startswith("1 ") and line2.startswith("2 ")):
        raise ElementsInvalid(elements.name, "TLE lines must start with '1 ' and '2 '")
    if line1[2:7] != line2[2:7]:
        raise ElementsInvalid(elements.name, "catalog numbers of line 1 and line 2 differ")


class PositionSampler:
    def __init__(self, config: AstrodynamicsConfig):
        self.config: AstrodynamicsConfig = config

        # Astrodynamics init
        self._timescale = load.timescale()
        self._sensor = wgs84.latlon(
            latitude_degrees=config.LATITUDE,
            longitude_degrees=config.LONGITUDE,
            elevation_m=config.ALTITUDE,
        )
        self.min_el = config.MIN_ELEVATION  # minimum observational elevation (deg)

        # EarthSatellite objects cached per element set
        self.satellites: dict[OrbitalElements, EarthSatellite] = dict()

    def _get_earth_satellite(self, elements: OrbitalElements) -> EarthSatellite:
        if elements in self.satellites:
            return self.satellites[elements]

        validate_elements(elements)
        try:
            satellite = EarthSatellite(
                line1=elements.line1.strip(), line2=elements.line2.strip(), name=elements.name, ts=self._timescale
            )
        except Exception as e:
            raise ElementsInvalid(elements.name, str(e)) from e
        self.satellites[elements] = satellite
        return satellite

    def sample(self, elements: OrbitalElements, instant: datetime) -> Sample:
        """Evaluate the elements at `instant`.

        Args:
            elements: two-line element set of one satellite
            instant: evaluation time, naive values are taken as UTC

        Returns: Sample, `visible` when the satellite is at or above the minimum elevation

        Raises:
            ElementsInvalid: the elements cannot be turned into a propagator
        """
        instant = ensure_utc(instant)
        satellite = self._get_earth_satellite(elements)
        time_scale = self._timescale.from_datetime(instant)

        geocentric = satellite.at(time_scale)
        if not np.all(np.isfinite(geocentric.position.km)):
            # SGP4 flags decayed or diverged orbits with NaN positions
            return Sample(time=instant, visible=False)

        lat, lon = wgs84.latlon_of(geocentric)
        alt, _, _ = (satellite - self._sensor).at(time_scale).altaz()
        elevation = float(alt.degrees)
        range_ = ground_distance(self.config.LATITUDE, self.config.LONGITUDE, lat.degrees, lon.degrees)

        return Sample(
            time=instant,
            visible=elevation >= self.min_el,
            elevation=elevation,
            range=range_,
            latitude=float(lat.degrees),
            longitude=float(lon.degrees),
        )
