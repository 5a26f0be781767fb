"""
GNSS constellations and satellite vehicle identifiers.
"""

from enum import Enum
from typing import NamedTuple

from rinex_pipeline.config import CONSTELLATION_ALIASES, CONSTELLATION_NAMES


class Constellation(Enum):
    """GNSS constellation, valued by its RINEX one letter code."""

    GPS = "G"
    GLONASS = "R"
    GALILEO = "E"
    BEIDOU = "C"
    QZSS = "J"
    IRNSS = "I"
    SBAS = "S"
    MIXED = "M"

    @classmethod
    def from_str(cls, code: str) -> "Constellation":
        """
        Identify a constellation from its letter code or its name.

        Parameters
        ----------
        code : str
            'G', 'GPS', 'Glonass', 'gal', ...

        Returns
        -------
        Constellation

        Raises
        ------
        ValueError
            If the code does not name a constellation
        """
        token = code.strip().upper()
        if not token:
            # RINEX2 convention: blank system identifier means GPS
            return cls.GPS
        token = CONSTELLATION_ALIASES.get(token, token)
        if token not in CONSTELLATION_NAMES:
            raise ValueError(f"Unknown constellation: {code!r}")
        return cls(token)

    @property
    def full_name(self) -> str:
        return CONSTELLATION_NAMES[self.value]

    def __lt__(self, other):
        if not isinstance(other, Constellation):
            return NotImplemented
        return self.value < other.value

    def accepts(self, other: "Constellation") -> bool:
        """Whether data of `other` is valid in a file scoped to self."""
        return self is Constellation.MIXED or self is other


class Sv(NamedTuple):
    """Satellite vehicle: constellation and PRN number."""

    constellation: Constellation
    prn: int

    @classmethod
    def from_str(cls, text: str) -> "Sv":
        """
        Parse a satellite identifier.

        Accepts 'G01', 'G 1', 'E5' and the RINEX2 GPS form ' 1'.

        Raises
        ------
        ValueError
            If the identifier is malformed
        """
        token = text.strip()
        if not token:
            raise ValueError("Empty satellite identifier")
        if token[0].isdigit():
            constellation = Constellation.GPS
            number = token
        else:
            constellation = Constellation.from_str(token[0])
            number = token[1:].strip()
        if constellation is Constellation.MIXED or not number.isdigit():
            raise ValueError(f"Invalid satellite identifier: {text!r}")
        return cls(constellation, int(number))

    def __str__(self) -> str:
        return f"{self.constellation.value}{self.prn:02d}"
