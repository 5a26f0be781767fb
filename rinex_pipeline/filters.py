"""
Record filters and the parsers of their text arguments.

Every filter returns a new record; order of the retained epochs never
changes and applying a filter twice gives the same result as once.
"""

import logging
from typing import Iterable

from rinex_pipeline.config import LLI_LOCK_LOSS, MAX_LLI, MAX_SSI
from rinex_pipeline.constellation import Constellation, Sv
from rinex_pipeline.epoch import EpochFlag
from rinex_pipeline.errors import FilterError
from rinex_pipeline.record import ObservationData, Record
from rinex_pipeline.rinex_header import RinexType

logger = logging.getLogger(__name__)


def _split_list(text: str) -> list[str]:
    return [token.strip() for token in text.split(",") if token.strip()]


def parse_constellations(text: str) -> list[Constellation]:
    """
    Parse a comma separated constellation list, e.g. 'GPS,GAL' or 'G,E'.

    Raises
    ------
    FilterError
        If an item does not name a constellation
    """
    constellations = []
    for token in _split_list(text):
        try:
            constellation = Constellation.from_str(token)
        except ValueError as e:
            raise FilterError(str(e)) from e
        if constellation is Constellation.MIXED:
            raise FilterError("'Mixed' is not a constellation filter")
        constellations.append(constellation)
    if not constellations:
        raise FilterError(f"Empty constellation list: {text!r}")
    return constellations


def parse_svs(text: str) -> list[Sv]:
    """Parse a comma separated satellite list, e.g. 'G01,E06'."""
    svs = []
    for token in _split_list(text):
        try:
            svs.append(Sv.from_str(token))
        except ValueError as e:
            raise FilterError(str(e)) from e
    if not svs:
        raise FilterError(f"Empty satellite list: {text!r}")
    return svs


def parse_observables(text: str) -> list[str]:
    """Parse a comma separated code list, e.g. 'C1C,L1C' or 'PR,TD'."""
    codes = _split_list(text)
    if not codes:
        raise FilterError(f"Empty observable list: {text!r}")
    for code in codes:
        if not code.isalnum():
            raise FilterError(f"Invalid observable code: {code!r}")
    return codes


def parse_lli_mask(text: str) -> int:
    """Parse an LLI bitmask, 0 to 7."""
    try:
        mask = int(text.strip())
    except ValueError as e:
        raise FilterError(f"Invalid LLI mask: {text!r}") from e
    if not 0 <= mask <= MAX_LLI:
        raise FilterError(f"LLI mask out of range 0-{MAX_LLI}: {mask}")
    return mask


def parse_ssi(text: str) -> int:
    """Parse an SSI threshold, 0 to 9."""
    try:
        ssi = int(text.strip())
    except ValueError as e:
        raise FilterError(f"Invalid SSI value: {text!r}") from e
    if not 0 <= ssi <= MAX_SSI:
        raise FilterError(f"SSI out of range 0-{MAX_SSI}: {ssi}")
    return ssi


def parse_epoch_flag(text: str) -> EpochFlag:
    try:
        return EpochFlag.from_str(text)
    except ValueError as e:
        raise FilterError(str(e)) from e


def filter_constellations(record: Record, constellations: Iterable[Constellation]) -> Record:
    """Keep satellites of the given constellations. Meteo records pass through."""
    if record.kind is RinexType.METEO:
        return record
    wanted = set(constellations)
    return record.filter_entries(
        lambda epoch, key, code, value: (isinstance(key, Sv) and key.constellation in wanted)
        or (record.kind is RinexType.CLOCK and not isinstance(key, Sv))
    )


def filter_svs(record: Record, svs: Iterable[Sv]) -> Record:
    """Keep the given satellites. Meteo records and station clocks pass through."""
    if record.kind is RinexType.METEO:
        return record
    wanted = set(svs)
    return record.filter_entries(
        lambda epoch, key, code, value: key in wanted
        or (record.kind is RinexType.CLOCK and not isinstance(key, Sv))
    )


def filter_observables(record: Record, codes: Iterable[str]) -> Record:
    """
    Keep the given codes.

    Codes are observable codes for observation records, sensor codes for
    meteo records, message types for navigation records and clock data
    types for clock records.
    """
    wanted = set(codes)
    return record.filter_entries(lambda epoch, key, code, value: code in wanted)


def filter_lli(record: Record, mask: int) -> Record:
    """
    Keep observations whose LLI has every bit of `mask` set.

    Observations without LLI are kept. Only observation records are affected.
    """
    if record.kind is not RinexType.OBSERVATION:
        return record

    def keep(epoch, key, code, value):
        if not isinstance(value, ObservationData) or value.lli is None:
            return True
        return value.lli & mask == mask

    return record.filter_entries(keep)


def filter_lock_loss(record: Record) -> Record:
    """Drop observations whose LLI declares a loss of lock."""
    if record.kind is not RinexType.OBSERVATION:
        return record

    def keep(epoch, key, code, value):
        if not isinstance(value, ObservationData) or value.lli is None:
            return True
        return not value.lli & LLI_LOCK_LOSS

    return record.filter_entries(keep)


def filter_ssi(record: Record, threshold: int) -> Record:
    """
    Keep observations with an SSI strictly greater than `threshold`.

    Observations without SSI are dropped. Only observation records are affected.
    """
    if record.kind is not RinexType.OBSERVATION:
        return record

    def keep(epoch, key, code, value):
        return isinstance(value, ObservationData) and value.ssi is not None and value.ssi > threshold

    return record.filter_entries(keep)


def filter_epoch_ok(record: Record) -> Record:
    return record.filter_epochs(lambda epoch, data: epoch.flag.is_ok)


def filter_epoch_nok(record: Record) -> Record:
    return record.filter_epochs(lambda epoch, data: not epoch.flag.is_ok)


def filter_event(record: Record, flag: EpochFlag) -> Record:
    """Keep epochs carrying exactly `flag`."""
    return record.filter_epochs(lambda epoch, data: epoch.flag is flag)
