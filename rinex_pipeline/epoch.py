"""
Epochs: sampling instants and their status flags.
"""

import re
from datetime import datetime, timedelta
from enum import IntEnum
from typing import NamedTuple, Optional

from rinex_pipeline.config import EPOCH_FLAG_DESCRIPTIONS, EVENT_RECORD_FLAGS

EPOCH_TEXT_FORMAT = "%Y-%m-%d %H:%M:%S"

_DURATION_PATTERN = re.compile(r"^\s*(\d+):([0-5]?\d):([0-5]?\d(?:\.\d*)?)\s*$")


class EpochFlag(IntEnum):
    """RINEX epoch flag."""

    OK = 0
    POWER_FAILURE = 1
    ANTENNA_BEING_MOVED = 2
    NEW_SITE_OCCUPATION = 3
    HEADER_INFORMATION_FOLLOWS = 4
    EXTERNAL_EVENT = 5
    CYCLE_SLIP = 6

    @classmethod
    def from_str(cls, text: str) -> "EpochFlag":
        """
        Parse a flag from its numeric value or its name.

        'Ok', 'ok', '0', 'PowerFailure', 'power_failure' and 'POWER_FAILURE'
        are all accepted.

        Raises
        ------
        ValueError
            If the text does not name an epoch flag
        """
        token = text.strip()
        if token.isdigit():
            return cls(int(token))
        normalized = token.replace("_", "").replace("-", "").lower()
        for value, description in EPOCH_FLAG_DESCRIPTIONS.items():
            if description.lower() == normalized:
                return cls(value)
        raise ValueError(f"Unknown epoch flag: {text!r}")

    @property
    def is_ok(self) -> bool:
        return self is EpochFlag.OK

    @property
    def has_special_records(self) -> bool:
        """Epoch line is followed by header/comment records instead of data."""
        return self.value in EVENT_RECORD_FLAGS

    def __str__(self) -> str:
        return EPOCH_FLAG_DESCRIPTIONS[self.value]


class Epoch(NamedTuple):
    """Sampling instant: timestamp and flag. Orders by timestamp, then flag."""

    timestamp: datetime
    flag: EpochFlag = EpochFlag.OK

    def __str__(self) -> str:
        return f"{self.timestamp.isoformat(sep=' ')} {self.flag}"


def make_timestamp(year: int, month: int, day: int, hour: int, minute: int, second: float) -> datetime:
    """
    Build a timestamp from RINEX date fields with fractional seconds.

    Two digit years are mapped to 1980-2079.
    """
    if year < 100:
        year += 2000 if year < 80 else 1900
    whole = int(second)
    return datetime(year, month, day, hour, minute, whole) + timedelta(
        microseconds=round((second - whole) * 1e6)
    )


def parse_timestamp(text: str) -> datetime:
    """Parse '%Y-%m-%d %H:%M:%S' (fractional seconds allowed)."""
    text = text.strip()
    if "." in text:
        return datetime.strptime(text, EPOCH_TEXT_FORMAT + ".%f")
    return datetime.strptime(text, EPOCH_TEXT_FORMAT)


def parse_epoch(text: str) -> tuple[datetime, Optional[EpochFlag]]:
    """
    Parse an epoch argument: a timestamp, optionally followed by a flag.

    Parameters
    ----------
    text : str
        "2022-01-01 12:00:00" or "2022-01-01 12:00:00 Ok"

    Returns
    -------
    tuple[datetime, EpochFlag | None]

    Raises
    ------
    ValueError
        If the timestamp or the flag cannot be parsed
    """
    parts = text.split()
    if len(parts) == 2:
        return parse_timestamp(text), None
    if len(parts) == 3:
        return parse_timestamp(" ".join(parts[:2])), EpochFlag.from_str(parts[2])
    raise ValueError(f"Invalid epoch {text!r}, expected '%Y-%m-%d %H:%M:%S [flag]'")


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration in HH:MM:SS format.

    Hours may exceed 24: '72:00:00' is three days.

    Raises
    ------
    ValueError
        If the text is not a valid duration
    """
    match = _DURATION_PATTERN.match(text)
    if match is None:
        raise ValueError(f"Invalid duration {text!r}, expected HH:MM:SS")
    hours, minutes, seconds = match.groups()
    return timedelta(hours=int(hours), minutes=int(minutes), seconds=float(seconds))
