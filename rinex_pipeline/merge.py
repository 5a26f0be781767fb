"""
Merging of RINEX files.

The merged record remembers where each epoch came from: every epoch carries
a source id, and each merge appends the first id of its right operand to
`merge_boundaries` so the merge can be reversed by `split.split`.
"""

import logging
from datetime import datetime, timezone
from functools import reduce
from typing import Any, Iterable, Optional

from rinex_pipeline.config import MERGE_COMMENT_MARKER, PROGRAM_NAME
from rinex_pipeline.constellation import Constellation
from rinex_pipeline.epoch import Epoch
from rinex_pipeline.errors import IncompatibleError
from rinex_pipeline.record import Record, union_epoch_data
from rinex_pipeline.rinex_header import HEADER_MERGE_POLICY, Header, MergePolicy, RinexType

logger = logging.getLogger(__name__)


def _union_value(field: str, first: Any, second: Any) -> Any:
    if field == "constellation":
        return first if first is second else Constellation.MIXED
    if field == "obs_codes":
        merged = {c: list(codes) for c, codes in first.items()}
        for constellation, codes in second.items():
            target = merged.setdefault(constellation, [])
            target += [code for code in codes if code not in target]
        return {c: tuple(codes) for c, codes in merged.items()}
    return tuple(first) + tuple(value for value in second if value not in first)


def _is_unset(value: Any) -> bool:
    return value is None or value == ""


def merge_headers(first: Header, second: Header) -> Header:
    """
    Combine two headers field by field following HEADER_MERGE_POLICY.

    First-wins conflicts are recorded in `merge_notes`.

    Raises
    ------
    IncompatibleError
        If the file types differ, RINEX2 and RINEX3 observable codes would
        be mixed, or RINEX2 navigation files of two constellations are given
    """
    if first.rinex_type is not second.rinex_type:
        raise IncompatibleError(
            f"cannot merge {first.rinex_type.name} and {second.rinex_type.name} files"
        )
    if first.version_major != second.version_major:
        raise IncompatibleError(
            f"cannot merge RINEX{first.version_major} and RINEX{second.version_major} observable codes"
        )
    if (
        first.rinex_type is RinexType.NAVIGATION
        and first.version_major < 3
        and first.constellation is not second.constellation
    ):
        # RINEX2 navigation files hold a single constellation
        raise IncompatibleError(
            f"cannot merge RINEX2 {first.constellation.full_name} and "
            f"{second.constellation.full_name} navigation files"
        )

    fields = {}
    notes = []
    for field, policy in HEADER_MERGE_POLICY.items():
        a, b = getattr(first, field), getattr(second, field)
        if policy is MergePolicy.UNION:
            fields[field] = _union_value(field, a, b)
        elif policy is MergePolicy.REJECT_ON_CONFLICT:
            if a != b:
                raise IncompatibleError(f"conflicting {field}: {a} != {b}")
            fields[field] = a
        elif _is_unset(a):
            fields[field] = b
        else:
            fields[field] = a
            if not _is_unset(b) and a != b:
                notes.append(f"{field}: kept {a}, dropped {b}")

    for note in notes:
        logger.warning("Header merge conflict resolved first-wins, %s", note)
    fields["merge_notes"] = fields["merge_notes"] + tuple(notes)
    return Header(**fields)


def _source_tags(record: Record) -> dict[Epoch, int]:
    """Source id of each epoch, 0 for records that never went through a merge."""
    return {epoch: record.sources.get(epoch, 0) for epoch in record}


def merge_records(first: Record, second: Record) -> Record:
    """
    Epoch-wise union of two records, in ascending epoch order.

    Epochs present in both records are unioned per key and code; epochs
    only in `second` get its source ids shifted past those of `first`.

    Raises
    ------
    IncompatibleError
        If the records are of different kinds
    DataConflictError
        If an epoch, key and code carries different values in both records
    """
    if first.kind is not second.kind:
        raise IncompatibleError(f"cannot merge {first.kind.name} and {second.kind.name} records")

    left_tags = _source_tags(first)
    right_tags = _source_tags(second)
    shift = max(left_tags.values(), default=0) + 1

    epochs = dict(first.items())
    sources = dict(left_tags)
    for epoch, epoch_data in second.items():
        if epoch in epochs:
            epochs[epoch] = union_epoch_data(epochs[epoch], epoch_data, epoch)
        else:
            epochs[epoch] = epoch_data
            sources[epoch] = right_tags[epoch] + shift

    boundaries = (
        first.merge_boundaries
        + tuple(boundary + shift for boundary in second.merge_boundaries)
        + (shift,)
    )
    return Record(first.kind, epochs, sources, boundaries)


def merge_comment(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{PROGRAM_NAME:<20} {MERGE_COMMENT_MARKER:<19} {now:%Y%m%d %H%M%S} UTC"


def merge(
    first: tuple[Header, Record], second: tuple[Header, Record]
) -> tuple[Header, Record]:
    """
    Merge two parsed files.

    Parameters
    ----------
    first, second : tuple[Header, Record]
        Parsed files; `first` wins scalar header conflicts

    Returns
    -------
    tuple[Header, Record]
        Merged header, with a FILE MERGE comment, and merged record
    """
    header = merge_headers(first[0], second[0])
    record = merge_records(first[1], second[1])
    header = header._replace(comments=header.comments + (merge_comment(),))
    logger.info(
        "Merged %d and %d epochs into %d", len(first[1]), len(second[1]), len(record)
    )
    return header, record


def merge_all(files: Iterable[tuple[Header, Record]]) -> tuple[Header, Record]:
    """Left fold of `merge` over files, in the given order."""
    files = list(files)
    if not files:
        raise ValueError("Nothing to merge")
    return reduce(merge, files)
