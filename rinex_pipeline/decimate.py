"""Epoch decimation by ratio or by minimum interval."""

import logging
from datetime import timedelta
from typing import Union

import astropy.units as u

from rinex_pipeline.record import Record

logger = logging.getLogger(__name__)


def decimate_ratio(record: Record, ratio: int) -> Record:
    """
    Keep one epoch out of `ratio`, starting with the first.

    Parameters
    ----------
    record : Record
        Input record
    ratio : int
        Decimation ratio, at least 1

    Returns
    -------
    Record
        Epochs at positions 0, ratio, 2 * ratio, ...

    Raises
    ------
    ValueError
        If ratio is smaller than 1

    Examples
    --------
    >>> [e.timestamp.minute for e in decimate_ratio(record, 2)]  # 6 epochs, one per minute
    [0, 2, 4]
    """
    if ratio < 1:
        raise ValueError(f"Decimation ratio must be at least 1, got {ratio}")
    kept = {epoch: record[epoch] for epoch in record.epochs()[::ratio]}
    logger.debug("Ratio %d decimation kept %d of %d epochs", ratio, len(kept), len(record))
    return record.derive(kept)


def _as_timedelta(interval: Union[timedelta, u.Quantity]) -> timedelta:
    if isinstance(interval, u.Quantity):
        return timedelta(seconds=float(interval.to_value(u.s)))
    return interval


def decimate_interval(record: Record, interval: Union[timedelta, u.Quantity]) -> Record:
    """
    Keep an epoch only if `interval` elapsed since the last kept epoch.

    The first epoch is always kept, so consecutive retained epochs are at
    least `interval` apart.

    Parameters
    ----------
    record : Record
        Input record
    interval : timedelta | astropy.units.Quantity
        Minimum spacing, a Quantity must have time units

    Returns
    -------
    Record
    """
    interval = _as_timedelta(interval)
    if interval <= timedelta(0):
        raise ValueError(f"Decimation interval must be positive, got {interval}")
    kept = {}
    last = None
    for epoch, epoch_data in record.items():
        if last is None or epoch.timestamp - last >= interval:
            kept[epoch] = epoch_data
            last = epoch.timestamp
    logger.debug("Interval %s decimation kept %d of %d epochs", interval, len(kept), len(record))
    return record.derive(kept)
