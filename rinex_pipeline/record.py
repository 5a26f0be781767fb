"""
Epoch indexed record model shared by the observation, navigation, meteo and
clock file types.
"""

from bisect import bisect_left, bisect_right
from datetime import datetime, timedelta
from typing import Any, Callable, Hashable, Iterator, Mapping, NamedTuple, Optional, Union

import numpy as np
from astropy.time import Time

from rinex_pipeline.config import LLI_LOCK_LOSS
from rinex_pipeline.constellation import Constellation, Sv
from rinex_pipeline.epoch import Epoch, EpochFlag
from rinex_pipeline.errors import DataConflictError
from rinex_pipeline.rinex_header import RinexType


class ObservationData(NamedTuple):
    """Single observation of one satellite and code."""

    value: float
    lli: Optional[int] = None
    """Loss of lock indicator, bitmask 0-7"""
    ssi: Optional[int] = None
    """Signal strength indicator, 0-9"""


class NavFrame(NamedTuple):
    """Broadcast ephemeris frame of one satellite."""

    clock_bias: float
    """SV clock bias (s)"""
    clock_drift: float
    """SV clock drift (s/s)"""
    clock_drift_rate: float
    """SV clock drift rate (s/s^2)"""
    orbits: dict[str, float]


class ClockData(NamedTuple):
    """Clock product of one satellite or station."""

    bias: float
    bias_sigma: Optional[float] = None
    rate: Optional[float] = None
    rate_sigma: Optional[float] = None
    accel: Optional[float] = None
    accel_sigma: Optional[float] = None


class EpochData(NamedTuple):
    """Content of one epoch: receiver clock offset and keyed entries.

    `data` maps a key (Sv, station name or None for meteo) to a
    {code: value} dict.
    """

    clock_offset: Optional[float]
    data: dict[Hashable, dict[str, Any]]


Key = Union[Sv, str, None]
EntryPredicate = Callable[[Epoch, Key, str, Any], bool]


def union_epoch_data(left: EpochData, right: EpochData, epoch: Optional[Epoch] = None) -> EpochData:
    """
    Union of two contents of the same epoch.

    Raises
    ------
    DataConflictError
        If both sides carry a different value for the same key and code,
        or a different receiver clock offset
    """
    where = f" at {epoch}" if epoch is not None else ""
    if (
        left.clock_offset is not None
        and right.clock_offset is not None
        and left.clock_offset != right.clock_offset
    ):
        raise DataConflictError(
            f"receiver clock offset{where}: {left.clock_offset} != {right.clock_offset}"
        )
    clock_offset = left.clock_offset if left.clock_offset is not None else right.clock_offset
    data = {key: dict(codes) for key, codes in left.data.items()}
    for key, codes in right.data.items():
        target = data.setdefault(key, {})
        for code, value in codes.items():
            if code in target and target[code] != value:
                raise DataConflictError(f"{key} {code}{where}: {target[code]} != {value}")
            target[code] = value
    return EpochData(clock_offset, data)


class Record:
    """
    Ordered mapping of epochs to their content.

    Epochs are kept sorted in a list so lookups and interval queries are
    bisections. Records are never mutated by the transforms, every operation
    returns a new Record.

    Parameters
    ----------
    kind : RinexType
        Type of the file this record was read from
    epochs : Mapping[Epoch, EpochData], optional
        Record content, in any order
    sources : Mapping[Epoch, int], optional
        Source file id of each epoch, set by merges
    merge_boundaries : tuple[int, ...]
        First source id contributed by the right operand of each merge
    """

    def __init__(
        self,
        kind: RinexType,
        epochs: Optional[Mapping[Epoch, EpochData]] = None,
        sources: Optional[Mapping[Epoch, int]] = None,
        merge_boundaries: tuple[int, ...] = (),
    ):
        self.kind = kind
        items = sorted((epochs or {}).items(), key=lambda item: item[0])
        self._epochs = [epoch for epoch, _ in items]
        self._data = dict(items)
        self.sources = {e: s for e, s in (sources or {}).items() if e in self._data}
        self.merge_boundaries = tuple(merge_boundaries)

    def __len__(self) -> int:
        return len(self._epochs)

    def __iter__(self) -> Iterator[Epoch]:
        return iter(self._epochs)

    def __contains__(self, epoch) -> bool:
        return epoch in self._data

    def __getitem__(self, epoch: Epoch) -> EpochData:
        return self._data[epoch]

    def __eq__(self, other) -> bool:
        # provenance is bookkeeping and does not take part in equality
        if not isinstance(other, Record):
            return NotImplemented
        return self.kind is other.kind and self._data == other._data

    __hash__ = None

    def __repr__(self) -> str:
        if self.is_empty:
            return f"Record({self.kind.name}, empty)"
        return (
            f"Record({self.kind.name}, {len(self)} epochs, "
            f"{self.first_epoch.timestamp} .. {self.last_epoch.timestamp})"
        )

    def epochs(self) -> list[Epoch]:
        return list(self._epochs)

    def items(self) -> Iterator[tuple[Epoch, EpochData]]:
        for epoch in self._epochs:
            yield epoch, self._data[epoch]

    def get(self, epoch: Epoch, default=None) -> Optional[EpochData]:
        return self._data.get(epoch, default)

    @property
    def is_empty(self) -> bool:
        return not self._epochs

    @property
    def first_epoch(self) -> Optional[Epoch]:
        return self._epochs[0] if self._epochs else None

    @property
    def last_epoch(self) -> Optional[Epoch]:
        return self._epochs[-1] if self._epochs else None

    def _index_range(self, start: datetime, end: datetime) -> tuple[int, int]:
        low = bisect_left(self._epochs, Epoch(start, min(EpochFlag)))
        high = bisect_right(self._epochs, Epoch(end, max(EpochFlag)))
        return low, high

    def at(self, timestamp: datetime) -> list[tuple[Epoch, EpochData]]:
        """All epochs sampled at `timestamp`, whatever their flag."""
        low, high = self._index_range(timestamp, timestamp)
        return [(e, self._data[e]) for e in self._epochs[low:high]]

    def between(self, start: datetime, end: datetime) -> "Record":
        """Sub-record of the epochs with start <= timestamp <= end."""
        low, high = self._index_range(start, end)
        return self.derive({e: self._data[e] for e in self._epochs[low:high]})

    def derive(self, epochs: Mapping[Epoch, EpochData]) -> "Record":
        """New record of the same kind, keeping provenance of retained epochs."""
        return Record(self.kind, epochs, self.sources, self.merge_boundaries)

    def filter_epochs(self, predicate: Callable[[Epoch, EpochData], bool]) -> "Record":
        return self.derive({e: d for e, d in self.items() if predicate(e, d)})

    def filter_entries(self, predicate: EntryPredicate) -> "Record":
        """
        Keep the entries for which predicate(epoch, key, code, value) holds.

        Keys left without codes are dropped, as are epochs that held data
        and have none left. Epochs that were already empty (event epochs)
        are kept.
        """
        kept = {}
        for epoch, epoch_data in self.items():
            data = {}
            for key, codes in epoch_data.data.items():
                retained = {
                    code: value for code, value in codes.items() if predicate(epoch, key, code, value)
                }
                if retained:
                    data[key] = retained
            if data or not epoch_data.data:
                kept[epoch] = EpochData(epoch_data.clock_offset, data)
        return self.derive(kept)

    def epochs_with_sv(self, sv: Sv) -> list[Epoch]:
        return [e for e, d in self.items() if sv in d.data]

    def epochs_with_constellation(self, constellation: Constellation) -> list[Epoch]:
        return [
            e
            for e, d in self.items()
            if any(isinstance(key, Sv) and key.constellation is constellation for key in d.data)
        ]

    def observables(self) -> list[str]:
        """Sorted codes present in the record."""
        codes = set()
        for epoch_data in self._data.values():
            for key_codes in epoch_data.data.values():
                codes.update(key_codes)
        return sorted(codes)

    def satellites(self) -> list[Sv]:
        svs = set()
        for epoch_data in self._data.values():
            svs.update(key for key in epoch_data.data if isinstance(key, Sv))
        return sorted(svs)

    def constellations(self) -> list[Constellation]:
        return sorted({sv.constellation for sv in self.satellites()})

    def clock_offsets(self) -> dict[Epoch, float]:
        """Receiver clock offset (s) of each epoch that carries one."""
        return {e: d.clock_offset for e, d in self.items() if d.clock_offset is not None}

    def sv_clock_offsets(self) -> dict[Sv, dict[Epoch, float]]:
        """Satellite clock bias (s) from navigation frames or clock products."""
        offsets: dict[Sv, dict[Epoch, float]] = {}
        for epoch, epoch_data in self.items():
            for key, codes in epoch_data.data.items():
                if not isinstance(key, Sv):
                    continue
                for value in codes.values():
                    if isinstance(value, (NavFrame, ClockData)):
                        bias = value.clock_bias if isinstance(value, NavFrame) else value.bias
                        offsets.setdefault(key, {})[epoch] = bias
                        break
        return offsets

    def events(self, flag: Optional[EpochFlag] = None) -> list[Epoch]:
        """Epochs whose flag is not OK, or exactly `flag` when given."""
        if flag is None:
            return [e for e in self._epochs if not e.flag.is_ok]
        return [e for e in self._epochs if e.flag is flag]

    def lock_loss_events(self) -> list[Epoch]:
        """Epochs where an observation declares a loss of lock."""
        return [
            epoch
            for epoch, epoch_data in self.items()
            if any(
                isinstance(value, ObservationData)
                and value.lli is not None
                and value.lli & LLI_LOCK_LOSS
                for codes in epoch_data.data.values()
                for value in codes.values()
            )
        ]

    @property
    def average_epoch_duration(self) -> timedelta:
        """Mean spacing between successive epochs, zero for fewer than two."""
        if len(self._epochs) < 2:
            return timedelta(0)
        span = self._epochs[-1].timestamp - self._epochs[0].timestamp
        return span / (len(self._epochs) - 1)

    def data_gap(self, interval: Union[timedelta, float]) -> list[tuple[Epoch, timedelta]]:
        """
        Epochs following a gap in the data.

        Parameters
        ----------
        interval : timedelta | float
            Expected sampling interval, seconds when given as a number

        Returns
        -------
        list[tuple[Epoch, timedelta]]
            Each epoch that comes more than `interval` after the previous one,
            with the duration of the gap
        """
        if not isinstance(interval, timedelta):
            interval = timedelta(seconds=interval)
        gaps = []
        for previous, epoch in zip(self._epochs, self._epochs[1:]):
            duration = epoch.timestamp - previous.timestamp
            if duration > interval:
                gaps.append((epoch, duration))
        return gaps

    @property
    def times(self) -> Time:
        """Timestamps of all epochs."""
        if not self._epochs:
            return Time(np.array([]), format="mjd")
        return Time([e.timestamp for e in self._epochs], format="datetime")

    def observation_arrays(self, codes: list[str]) -> tuple[Time, dict[Sv, np.ndarray]]:
        """
        Observation values as dense arrays.

        Parameters
        ----------
        codes : list[str]
            Observable codes, one array column each

        Returns
        -------
        tuple[Time, dict[Sv, np.ndarray]]
            Epoch times and, per satellite, an array of shape
            [n_epochs, len(codes)] with NaN where nothing was observed
        """
        column = {code: index for index, code in enumerate(codes)}
        arrays: dict[Sv, np.ndarray] = {}
        for row, (_, epoch_data) in enumerate(self.items()):
            for key, key_codes in epoch_data.data.items():
                if not isinstance(key, Sv):
                    continue
                for code, value in key_codes.items():
                    if code not in column or not isinstance(value, ObservationData):
                        continue
                    if key not in arrays:
                        arrays[key] = np.full((len(self), len(codes)), np.nan)
                    arrays[key][row, column[code]] = value.value
        return self.times, arrays
