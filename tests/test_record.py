"""
Tests for the epoch indexed record model.
"""

from datetime import timedelta

import numpy as np
import pytest

from rinex_pipeline.constellation import Constellation, Sv
from rinex_pipeline.epoch import Epoch, EpochFlag
from rinex_pipeline.errors import DataConflictError
from rinex_pipeline.parse_rinex import parse_rinex
from rinex_pipeline.record import EpochData, ObservationData, Record, union_epoch_data
from rinex_pipeline.rinex_header import RinexType

from conftest import BASE_TIME

G01 = Sv(Constellation.GPS, 1)
E05 = Sv(Constellation.GALILEO, 5)


class TestOrdering:
    """Test epoch ordering and iteration."""

    def test_sorted_whatever_the_input_order(self, record_factory):
        record = record_factory({60: {"G01": {"C1C": 1.0}}, 0: {"G01": {"C1C": 2.0}}, 30: {"G01": {"C1C": 3.0}}})
        timestamps = [epoch.timestamp for epoch in record]
        assert timestamps == sorted(timestamps)

    def test_iteration_is_restartable(self, six_epoch_record):
        assert list(six_epoch_record) == list(six_epoch_record)
        assert len(six_epoch_record) == 6

    def test_empty(self):
        record = Record(RinexType.OBSERVATION)
        assert record.is_empty
        assert record.first_epoch is None
        assert len(record.times) == 0


class TestLookup:
    """Test epoch lookups."""

    def test_at_returns_every_flag(self, record_factory):
        record = record_factory(
            {0: {"G01": {"C1C": 1.0}}, (0, EpochFlag.CYCLE_SLIP): {"G01": {"L1C": 2.0}}, 30: {"G01": {"C1C": 3.0}}}
        )
        found = record.at(BASE_TIME)
        assert [epoch.flag for epoch, _ in found] == [EpochFlag.OK, EpochFlag.CYCLE_SLIP]
        assert record.at(BASE_TIME + timedelta(seconds=1)) == []

    def test_between_is_inclusive(self, six_epoch_record):
        sub = six_epoch_record.between(BASE_TIME + timedelta(seconds=30), BASE_TIME + timedelta(seconds=90))
        assert [e.timestamp for e in sub] == [BASE_TIME + timedelta(seconds=s) for s in (30, 60, 90)]

    def test_epochs_with_sv(self, record_factory):
        record = record_factory({0: {"G01": {"C1C": 1.0}}, 30: {"E05": {"C1C": 2.0}}})
        assert record.epochs_with_sv(E05) == [Epoch(BASE_TIME + timedelta(seconds=30))]
        assert record.epochs_with_constellation(Constellation.GPS) == [Epoch(BASE_TIME)]

    def test_get_missing(self, six_epoch_record):
        assert six_epoch_record.get(Epoch(BASE_TIME + timedelta(days=1))) is None


class TestSummaries:
    """Test record summaries."""

    def test_observables_and_satellites(self, six_epoch_record):
        assert six_epoch_record.observables() == ["C1C", "L1C"]
        assert six_epoch_record.satellites() == [E05, G01]
        assert six_epoch_record.constellations() == [Constellation.GALILEO, Constellation.GPS]

    def test_clock_offsets_and_events(self, obs_v3_text):
        _, record = parse_rinex(obs_v3_text)
        assert record.clock_offsets() == {Epoch(BASE_TIME): 0.001}
        assert [e.flag for e in record.events()] == [
            EpochFlag.HEADER_INFORMATION_FOLLOWS,
            EpochFlag.CYCLE_SLIP,
        ]
        assert len(record.events(EpochFlag.CYCLE_SLIP)) == 1

    def test_observation_arrays(self, obs_v3_text):
        _, record = parse_rinex(obs_v3_text)
        times, arrays = record.observation_arrays(["C1C", "L1C"])
        assert len(times) == len(record)
        assert arrays[G01].shape == (4, 2)
        assert arrays[G01][0, 0] == 20000000.0
        assert np.isnan(arrays[G01][2]).all()
        assert arrays[E05][3, 0] == 23000200.0
        assert np.isnan(arrays[E05][3, 1])


class TestTimeline:
    """Test lock loss events, data gaps and epoch spacing."""

    def test_lock_loss_events(self, obs_v3_text):
        """LLI 1 and LLI 3 both carry the lock loss bit, LLI 0 does not."""
        _, record = parse_rinex(obs_v3_text)
        assert record.lock_loss_events() == [Epoch(BASE_TIME), Epoch(BASE_TIME + timedelta(seconds=30))]

    def test_no_lock_loss_without_lli(self, record_factory):
        record = record_factory({0: {"G01": {"C1C": 1.0, "L1C": (2.0, 0b10)}}})
        assert record.lock_loss_events() == []

    def test_data_gap(self, record_factory):
        record = record_factory({s: {"G01": {"C1C": float(s)}} for s in (0, 30, 60, 180, 210)})
        gaps = record.data_gap(30)
        assert gaps == [(Epoch(BASE_TIME + timedelta(seconds=180)), timedelta(seconds=120))]
        assert record.data_gap(timedelta(minutes=5)) == []

    def test_data_gap_short_records(self, record_factory):
        assert Record(RinexType.OBSERVATION).data_gap(30) == []
        assert record_factory({0: {"G01": {"C1C": 1.0}}}).data_gap(30) == []

    def test_average_epoch_duration(self, record_factory, six_epoch_record):
        assert six_epoch_record.average_epoch_duration == timedelta(seconds=30)
        record = record_factory({s: {"G01": {"C1C": float(s)}} for s in (0, 30, 90)})
        assert record.average_epoch_duration == timedelta(seconds=45)

    def test_average_epoch_duration_needs_two_epochs(self, record_factory):
        assert Record(RinexType.OBSERVATION).average_epoch_duration == timedelta(0)
        assert record_factory({0: {"G01": {"C1C": 1.0}}}).average_epoch_duration == timedelta(0)


class TestEquality:
    """Test record equality."""

    def test_provenance_does_not_take_part(self, six_epoch_record):
        tagged = Record(
            six_epoch_record.kind,
            dict(six_epoch_record.items()),
            {epoch: 3 for epoch in six_epoch_record},
            (3,),
        )
        assert tagged == six_epoch_record

    def test_kind_takes_part(self, six_epoch_record):
        assert Record(RinexType.METEO, dict(six_epoch_record.items())) != six_epoch_record


class TestUnionEpochData:
    """Test the union of two contents of the same epoch."""

    def test_union(self):
        left = EpochData(0.1, {G01: {"C1C": ObservationData(1.0)}})
        right = EpochData(None, {G01: {"L1C": ObservationData(2.0)}, E05: {"C1C": ObservationData(3.0)}})
        merged = union_epoch_data(left, right)
        assert merged.clock_offset == 0.1
        assert set(merged.data[G01]) == {"C1C", "L1C"}
        assert E05 in merged.data

    def test_inputs_untouched(self):
        left = EpochData(None, {G01: {"C1C": ObservationData(1.0)}})
        union_epoch_data(left, EpochData(None, {G01: {"L1C": ObservationData(2.0)}}))
        assert set(left.data[G01]) == {"C1C"}

    def test_value_conflict(self):
        left = EpochData(None, {G01: {"C1C": ObservationData(1.0)}})
        right = EpochData(None, {G01: {"C1C": ObservationData(1.5)}})
        with pytest.raises(DataConflictError):
            union_epoch_data(left, right)

    def test_clock_offset_conflict(self):
        with pytest.raises(DataConflictError, match="clock offset"):
            union_epoch_data(EpochData(0.1, {}), EpochData(0.2, {}))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
