"""
RINEX header: file level metadata and its parser.
"""

import logging
from enum import Enum
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional

import astropy.units as u
from astropy.coordinates import EarthLocation

from rinex_pipeline.config import MERGE_COMMENT_MARKER
from rinex_pipeline.constellation import Constellation
from rinex_pipeline.errors import HeaderError

logger = logging.getLogger(__name__)

HEADER_END_MARKER = "END OF HEADER"


class RinexType(Enum):
    """Kind of RINEX file, valued by its header type letter."""

    OBSERVATION = "O"
    NAVIGATION = "N"
    METEO = "M"
    CLOCK = "C"

    @classmethod
    def from_letter(cls, letter: str) -> tuple["RinexType", Optional[Constellation]]:
        """
        Identify the file type from the RINEX VERSION / TYPE letter.

        RINEX2 navigation files encode their constellation in the type
        letter ('N' GPS, 'G' GLONASS, 'H' geostationary).

        Returns
        -------
        tuple[RinexType, Constellation | None]
            File type and the constellation implied by the letter, if any
        """
        implied = {"G": Constellation.GLONASS, "H": Constellation.SBAS}
        if letter in implied:
            return cls.NAVIGATION, implied[letter]
        return cls(letter), None


class Header(NamedTuple):
    """RINEX header fields used by the transforms."""

    version: str
    rinex_type: RinexType
    constellation: Constellation = Constellation.MIXED
    program: str = ""
    run_by: str = ""
    date: str = ""
    marker_name: str = ""
    observer: str = ""
    agency: str = ""
    approx_position: Optional[tuple[float, float, float]] = None
    """Approximate receiver position, ECEF (m)"""
    sampling_interval: Optional[float] = None
    """Sampling interval (s)"""
    leap_seconds: Optional[int] = None
    rcvr_clock_offset_applied: Optional[bool] = None
    obs_codes: Mapping[Constellation, tuple[str, ...]] = MappingProxyType({})
    """Observation codes per constellation"""
    meteo_codes: tuple[str, ...] = ()
    clock_codes: tuple[str, ...] = ()
    comments: tuple[str, ...] = ()
    merge_notes: tuple[str, ...] = ()
    """Header fields whose value was chosen first-wins during a merge"""

    @property
    def version_major(self) -> int:
        return int(float(self.version))

    @property
    def observables(self) -> list[str]:
        """All codes declared by this header, sorted."""
        codes = set(self.meteo_codes) | set(self.clock_codes)
        for constellation_codes in self.obs_codes.values():
            codes.update(constellation_codes)
        return sorted(codes)

    def codes_for(self, constellation: Constellation) -> tuple[str, ...]:
        """Observation codes declared for one constellation."""
        return self.obs_codes.get(constellation, ())

    @property
    def is_merged(self) -> bool:
        """Whether a comment records an earlier FILE MERGE."""
        return any(MERGE_COMMENT_MARKER in comment for comment in self.comments)

    @property
    def approx_location(self) -> Optional[EarthLocation]:
        """Approximate receiver position as an EarthLocation."""
        if self.approx_position is None:
            return None
        return EarthLocation.from_geocentric(*self.approx_position, unit=u.m)


class MergePolicy(Enum):
    """How a header field is combined when two files are merged."""

    UNION = "union"
    FIRST_WINS = "first_wins"
    REJECT_ON_CONFLICT = "reject_on_conflict"


HEADER_MERGE_POLICY = {
    "version": MergePolicy.FIRST_WINS,
    "rinex_type": MergePolicy.REJECT_ON_CONFLICT,
    "constellation": MergePolicy.UNION,
    "program": MergePolicy.FIRST_WINS,
    "run_by": MergePolicy.FIRST_WINS,
    "date": MergePolicy.FIRST_WINS,
    "marker_name": MergePolicy.FIRST_WINS,
    "observer": MergePolicy.FIRST_WINS,
    "agency": MergePolicy.FIRST_WINS,
    "approx_position": MergePolicy.FIRST_WINS,
    "sampling_interval": MergePolicy.FIRST_WINS,
    "leap_seconds": MergePolicy.FIRST_WINS,
    "rcvr_clock_offset_applied": MergePolicy.FIRST_WINS,
    "obs_codes": MergePolicy.UNION,
    "meteo_codes": MergePolicy.UNION,
    "clock_codes": MergePolicy.UNION,
    "comments": MergePolicy.UNION,
    "merge_notes": MergePolicy.UNION,
}


def _label(line: str) -> str:
    return line[60:].strip()


def _parse_version_type(line: str) -> tuple[str, RinexType, Constellation]:
    version = line[:9].strip()
    float(version)  # raises ValueError when malformed
    rinex_type, implied = RinexType.from_letter(line[20:21])
    if implied is not None:
        return version, rinex_type, implied
    letter = line[40:41].strip()
    if not letter and rinex_type is RinexType.OBSERVATION:
        # RINEX2: blank system means GPS
        return version, rinex_type, Constellation.GPS
    if not letter:
        if rinex_type is RinexType.NAVIGATION and float(version) < 3:
            return version, rinex_type, Constellation.GPS
        return version, rinex_type, Constellation.MIXED
    return version, rinex_type, Constellation.from_str(letter)


def _rinex2_obs_constellations(scope: Constellation) -> list[Constellation]:
    """RINEX2 observation codes are shared by every system of the file."""
    if scope is Constellation.MIXED:
        return [c for c in Constellation if c is not Constellation.MIXED]
    return [scope]


def parse_header(lines: list[str], source: Optional[str] = None) -> tuple[Header, int]:
    """
    Parse the header section of a RINEX file.

    Parameters
    ----------
    lines : list[str]
        All lines of the file
    source : str, optional
        File label used in error messages

    Returns
    -------
    tuple[Header, int]
        Parsed header and index of the first body line

    Raises
    ------
    HeaderError
        If a mandatory field is missing or a field is malformed
    """
    fields = {}
    obs_codes: dict[Constellation, list[str]] = {}
    types_of_observ: list[str] = []
    clock_codes: list[str] = []
    comments: list[str] = []
    current_system: Optional[Constellation] = None
    version_seen = False

    for index, line in enumerate(lines):
        line_number = index + 1
        label = _label(line)
        if not line.strip():
            continue
        if label.startswith("CRINEX"):
            continue
        try:
            if not version_seen:
                if label != "RINEX VERSION / TYPE":
                    raise HeaderError(
                        "first header line must be RINEX VERSION / TYPE", source, line_number
                    )
                version, rinex_type, constellation = _parse_version_type(line)
                fields.update(version=version, rinex_type=rinex_type, constellation=constellation)
                version_seen = True
            elif label == HEADER_END_MARKER:
                return _build_header(
                    fields, obs_codes, types_of_observ, clock_codes, comments, source, line_number
                ), index + 1
            elif label == "COMMENT":
                comments.append(line[:60].rstrip())
            elif label == "PGM / RUN BY / DATE":
                fields.update(
                    program=line[:20].strip(), run_by=line[20:40].strip(), date=line[40:60].strip()
                )
            elif label == "MARKER NAME":
                fields["marker_name"] = line[:60].strip()
            elif label == "OBSERVER / AGENCY":
                fields.update(observer=line[:20].strip(), agency=line[20:60].strip())
            elif label == "APPROX POSITION XYZ":
                x, y, z = (float(v) for v in line[:60].split()[:3])
                fields["approx_position"] = (x, y, z)
            elif label == "INTERVAL":
                fields["sampling_interval"] = float(line[:10])
            elif label == "LEAP SECONDS":
                fields["leap_seconds"] = int(line[:6])
            elif label == "RCV CLOCK OFFS APPL":
                fields["rcvr_clock_offset_applied"] = int(line[:6]) == 1
            elif label == "SYS / # / OBS TYPES":
                if line[0] != " ":
                    current_system = Constellation.from_str(line[0])
                    int(line[3:6])
                    obs_codes[current_system] = []
                if current_system is None:
                    raise HeaderError("observation types continuation without system", source, line_number)
                obs_codes[current_system] += line[7:60].split()
            elif label == "# / TYPES OF OBSERV":
                if line[:6].strip():
                    int(line[:6])
                types_of_observ += line[6:60].split()
            elif label == "# / TYPES OF DATA":
                if line[:6].strip():
                    int(line[:6])
                clock_codes += line[6:60].split()
            else:
                logger.debug("Ignoring header label %r", label)
        except HeaderError:
            raise
        except (ValueError, IndexError) as e:
            raise HeaderError(f"invalid {label or 'header'} field: {e}", source, line_number) from e

    if not version_seen:
        raise HeaderError("empty header", source, 1)
    raise HeaderError(f"missing {HEADER_END_MARKER}", source, len(lines))


def _build_header(
    fields: dict,
    obs_codes: dict[Constellation, list[str]],
    types_of_observ: list[str],
    clock_codes: list[str],
    comments: list[str],
    source: Optional[str],
    line_number: int,
) -> Header:
    rinex_type = fields["rinex_type"]
    if rinex_type is RinexType.OBSERVATION:
        if types_of_observ and not obs_codes:
            obs_codes = {
                c: list(types_of_observ)
                for c in _rinex2_obs_constellations(fields["constellation"])
            }
        if not obs_codes:
            raise HeaderError("observation file declares no observable codes", source, line_number)
        fields["obs_codes"] = {c: tuple(codes) for c, codes in obs_codes.items()}
    elif rinex_type is RinexType.METEO:
        if not types_of_observ:
            raise HeaderError("meteo file declares no observable codes", source, line_number)
        fields["meteo_codes"] = tuple(types_of_observ)
    elif rinex_type is RinexType.CLOCK:
        fields["clock_codes"] = tuple(clock_codes)
    fields["comments"] = tuple(comments)
    return Header(**fields)
