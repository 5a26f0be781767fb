"""
Pseudorange to distance conversion.
"""

import logging
from datetime import datetime
from typing import Mapping, NamedTuple, Optional, Union

from rinex_pipeline.config import PSEUDORANGE_PREFIXES, SPEED_OF_LIGHT
from rinex_pipeline.epoch import Epoch
from rinex_pipeline.record import EpochData, ObservationData, Record
from rinex_pipeline.rinex_header import RinexType

logger = logging.getLogger(__name__)

ClockOffsets = Union[float, Mapping[Union[Epoch, datetime], float], None]


class ConversionSkip(NamedTuple):
    """Epoch left unconverted, reported as a warning."""

    epoch: Epoch
    reason: str


def is_pseudorange_code(code: str) -> bool:
    return code.startswith(PSEUDORANGE_PREFIXES)


def _offset_for(epoch: Epoch, epoch_data: EpochData, clock_offset: ClockOffsets) -> Optional[float]:
    if clock_offset is None:
        return epoch_data.clock_offset
    if isinstance(clock_offset, Mapping):
        if epoch in clock_offset:
            return clock_offset[epoch]
        return clock_offset.get(epoch.timestamp)
    return float(clock_offset)


def pseudorange_to_distance(
    record: Record, clock_offset: ClockOffsets = None
) -> tuple[Record, list[ConversionSkip]]:
    """
    Convert pseudoranges to distances: distance = pseudorange - c * offset.

    Parameters
    ----------
    record : Record
        Observation record, other kinds are returned unchanged
    clock_offset : float | Mapping | None
        Clock offset in seconds: a constant, a mapping of Epoch (or
        timestamp) to offset, or None to use the receiver clock offset
        recorded with each epoch

    Returns
    -------
    tuple[Record, list[ConversionSkip]]
        Converted record and the epochs that had no clock offset available
    """
    if record.kind is not RinexType.OBSERVATION:
        return record, []

    converted = {}
    skipped = []
    for epoch, epoch_data in record.items():
        offset = _offset_for(epoch, epoch_data, clock_offset)
        if offset is None:
            if epoch_data.data:
                skipped.append(ConversionSkip(epoch, "no clock offset available"))
            converted[epoch] = epoch_data
            continue
        correction = SPEED_OF_LIGHT * offset
        data = {
            sv: {
                code: obs._replace(value=obs.value - correction)
                if is_pseudorange_code(code) and isinstance(obs, ObservationData)
                else obs
                for code, obs in codes.items()
            }
            for sv, codes in epoch_data.data.items()
        }
        converted[epoch] = EpochData(epoch_data.clock_offset, data)

    for skip in skipped:
        logger.warning("Pseudorange conversion skipped at %s: %s", skip.epoch, skip.reason)
    return record.derive(converted), skipped
