"""Splitting records apart and extracting time intervals."""

import logging
from bisect import bisect_right
from datetime import datetime
from typing import Optional

from rinex_pipeline.epoch import Epoch, EpochFlag
from rinex_pipeline.errors import EpochNotFoundError, SplitError
from rinex_pipeline.record import Record
from rinex_pipeline.rinex_header import Header

logger = logging.getLogger(__name__)


def split(record: Record, header: Optional[Header] = None) -> tuple[Record, Record]:
    """
    Reverse the last merge of a merged record.

    Parameters
    ----------
    record : Record
        Record produced by `merge.merge_records`
    header : Header, optional
        Header of the record, used to report a file that was merged by
        another tool and lost its provenance

    Returns
    -------
    tuple[Record, Record]
        The two merged operands. Each keeps its own provenance, rebased,
        so a record merged several times can be split again.

    Raises
    ------
    SplitError
        If the record was not produced by a merge
    """
    if not record.merge_boundaries:
        if header is not None and header.is_merged:
            raise SplitError(
                "header reports a FILE MERGE but the record carries no merge boundary, "
                "use a split epoch instead"
            )
        raise SplitError("record carries no merge boundary")
    boundary = record.merge_boundaries[-1]
    earlier = record.merge_boundaries[:-1]
    tags = {epoch: record.sources.get(epoch, 0) for epoch in record}

    left = {e: record[e] for e in record if tags[e] < boundary}
    right = {e: record[e] for e in record if tags[e] >= boundary}
    left_record = Record(
        record.kind,
        left,
        {e: tags[e] for e in left},
        tuple(b for b in earlier if b < boundary),
    )
    right_record = Record(
        record.kind,
        right,
        {e: tags[e] - boundary for e in right},
        tuple(b - boundary for b in earlier if b > boundary),
    )
    logger.debug("Split merged record into %d and %d epochs", len(left_record), len(right_record))
    return left_record, right_record


def split_at(
    record: Record, timestamp: datetime, flag: Optional[EpochFlag] = None
) -> tuple[Record, Record]:
    """
    Partition a record at an existing epoch.

    Parameters
    ----------
    record : Record
        Input record
    timestamp : datetime
        Boundary, must be the timestamp of an epoch of the record
    flag : EpochFlag, optional
        When given, the boundary is the epoch (timestamp, flag)

    Returns
    -------
    tuple[Record, Record]
        Epochs up to and including the boundary, and the epochs after it

    Raises
    ------
    EpochNotFoundError
        If no epoch matches the boundary exactly
    """
    if flag is not None:
        if Epoch(timestamp, flag) not in record:
            raise EpochNotFoundError(f"no epoch {Epoch(timestamp, flag)} in record")
        boundary = Epoch(timestamp, flag)
    else:
        matches = record.at(timestamp)
        if not matches:
            raise EpochNotFoundError(f"no epoch at {timestamp} in record")
        boundary = matches[-1][0]

    epochs = record.epochs()
    index = bisect_right(epochs, boundary)
    before = record.derive({e: record[e] for e in epochs[:index]})
    after = record.derive({e: record[e] for e in epochs[index:]})
    return before, after


def splice(record: Record, start: datetime, end: datetime) -> Record:
    """
    Epochs with start <= timestamp <= end.

    The result is empty when the interval does not intersect the record.
    """
    if end < start:
        raise ValueError(f"Splice interval ends before it starts: {start} > {end}")
    return record.between(start, end)
