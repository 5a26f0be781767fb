"""
SBAS selection: which augmentation system serves a location.
"""

import logging
from functools import lru_cache
from importlib.resources import files
from pathlib import Path
from typing import NamedTuple, Optional, Union

from astropy.coordinates import EarthLocation

from rinex_pipeline.config import SBAS_REGION_FILE
from rinex_pipeline.errors import InvalidCoordinateError, NotCoveredError, SbasError
from rinex_pipeline.rinex_header import Header

logger = logging.getLogger(__name__)


class SbasRegion(NamedTuple):
    """Service area of one SBAS, a latitude / longitude box in degrees."""

    system: str
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.lat_min <= latitude <= self.lat_max
            and self.lon_min <= longitude <= self.lon_max
        )


def _parse_regions(text: str, source: str) -> tuple[SbasRegion, ...]:
    regions = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        parts = line.split()
        try:
            system = parts[0]
            lat_min, lat_max, lon_min, lon_max = map(float, parts[1:5])
        except (ValueError, IndexError) as e:
            raise SbasError(f"{source}:{line_number}: invalid SBAS region: {e}") from e
        regions.append(SbasRegion(system, lat_min, lat_max, lon_min, lon_max))
    return tuple(regions)


@lru_cache(maxsize=1)
def _packaged_regions() -> tuple[SbasRegion, ...]:
    resource = files("rinex_pipeline.data").joinpath(SBAS_REGION_FILE)
    return _parse_regions(resource.read_text(), SBAS_REGION_FILE)


def load_sbas_regions(path: Optional[Union[str, Path]] = None) -> tuple[SbasRegion, ...]:
    """
    Load an SBAS region table.

    Parameters
    ----------
    path : str | Path, optional
        Whitespace separated table (system lat_min lat_max lon_min lon_max),
        one region per line in priority order. Defaults to the packaged table.

    Returns
    -------
    tuple[SbasRegion, ...]
        Regions in priority order
    """
    if path is None:
        return _packaged_regions()
    path = Path(path)
    return _parse_regions(path.read_text(), path.name)


def parse_coordinates(text: str) -> tuple[float, float]:
    """Parse 'lat, lon' in decimal degrees."""
    parts = [part.strip() for part in text.split(",")]
    if len(parts) != 2:
        raise InvalidCoordinateError(f"Expected 'lat, lon', got {text!r}")
    try:
        return float(parts[0]), float(parts[1])
    except ValueError as e:
        raise InvalidCoordinateError(f"Invalid coordinates {text!r}: {e}") from e


def select_sbas(
    latitude: float, longitude: float, regions: Optional[tuple[SbasRegion, ...]] = None
) -> str:
    """
    Select the SBAS serving a location.

    Parameters
    ----------
    latitude : float
        Decimal degrees, -90 to 90
    longitude : float
        Decimal degrees, -180 to 180
    regions : tuple[SbasRegion, ...], optional
        Region table in priority order, defaults to the packaged table

    Returns
    -------
    str
        System identifier of the first region containing the location

    Raises
    ------
    InvalidCoordinateError
        If latitude or longitude is out of range
    NotCoveredError
        If no region contains the location

    Examples
    --------
    >>> select_sbas(-45.113525, 169.864842)
    'SPAN'
    """
    if not -90.0 <= latitude <= 90.0:
        raise InvalidCoordinateError(f"Latitude out of range [-90, 90]: {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise InvalidCoordinateError(f"Longitude out of range [-180, 180]: {longitude}")
    if regions is None:
        regions = load_sbas_regions()
    for region in regions:
        if region.contains(latitude, longitude):
            logger.debug("(%f, %f) is served by %s", latitude, longitude, region.system)
            return region.system
    raise NotCoveredError(f"No SBAS covers ({latitude}, {longitude})")


def select_sbas_for_location(
    location: EarthLocation, regions: Optional[tuple[SbasRegion, ...]] = None
) -> str:
    return select_sbas(float(location.lat.deg), float(location.lon.deg), regions)


def select_sbas_for_header(header: Header, regions: Optional[tuple[SbasRegion, ...]] = None) -> str:
    """SBAS serving the approximate receiver position of a file."""
    location = header.approx_location
    if location is None:
        raise SbasError("header carries no approximate position")
    return select_sbas_for_location(location, regions)
