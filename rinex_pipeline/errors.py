"""
Exception hierarchy of rinex_pipeline.

Parse and merge errors are reported per file by the pipeline, configuration
errors abort an invocation before any data is processed.
"""

from typing import Optional


class RinexError(Exception):
    """Base class of all errors raised by this package."""


class ParseError(RinexError):
    """Malformed RINEX content.

    Parameters
    ----------
    message : str
        Description of the problem
    source : str, optional
        File name (or other label) of the parsed content
    line : int, optional
        1-based line number where parsing failed
    """

    def __init__(self, message: str, source: Optional[str] = None, line: Optional[int] = None):
        self.message = message
        self.source = source
        self.line = line
        super().__init__(str(self))

    def __str__(self) -> str:
        location = self.source or "<text>"
        if self.line is not None:
            location = f"{location}:{self.line}"
        return f"{location}: {self.message}"


class HeaderError(ParseError):
    """Malformed header field."""


class BodyError(ParseError):
    """Malformed epoch or data line."""


class ConfigurationError(RinexError, ValueError):
    """Invalid command parameter."""


class FilterError(ConfigurationError):
    """Unrecognized code or identifier in a filter argument."""


class MergeError(RinexError):
    """Two records could not be merged."""


class IncompatibleError(MergeError):
    """Headers declare conflicting file types or observable code styles."""


class DataConflictError(MergeError):
    """Same (epoch, satellite, observable) carries different values."""


class SplitError(RinexError):
    """A record could not be split."""


class EpochNotFoundError(SplitError):
    """The requested boundary epoch does not exist in the record."""


class SbasError(RinexError):
    """SBAS selection failed."""


class InvalidCoordinateError(SbasError, ValueError):
    """Latitude or longitude out of range."""


class NotCoveredError(SbasError):
    """No SBAS region contains the coordinate."""
