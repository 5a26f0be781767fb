"""
Tests for constellation and satellite identifiers.
"""

import pytest

from rinex_pipeline.constellation import Constellation, Sv


class TestConstellation:
    """Test Constellation parsing."""

    @pytest.mark.parametrize(
        "code, expected",
        [
            ("G", Constellation.GPS),
            ("gps", Constellation.GPS),
            ("GAL", Constellation.GALILEO),
            ("Glonass", Constellation.GLONASS),
            ("C", Constellation.BEIDOU),
            ("M", Constellation.MIXED),
        ],
    )
    def test_from_str(self, code, expected):
        assert Constellation.from_str(code) is expected

    def test_blank_means_gps(self):
        """RINEX2 files leave the system blank for GPS."""
        assert Constellation.from_str(" ") is Constellation.GPS

    def test_unknown(self):
        with pytest.raises(ValueError):
            Constellation.from_str("X")

    def test_mixed_accepts_everything(self):
        assert Constellation.MIXED.accepts(Constellation.GALILEO)
        assert Constellation.GPS.accepts(Constellation.GPS)
        assert not Constellation.GPS.accepts(Constellation.GLONASS)

    def test_full_name(self):
        assert Constellation.BEIDOU.full_name == "BeiDou"


class TestSv:
    """Test satellite identifiers."""

    @pytest.mark.parametrize("text", ["G01", "G 1", "G1", " 1", "1"])
    def test_gps_forms(self, text):
        assert Sv.from_str(text) == Sv(Constellation.GPS, 1)

    def test_str(self):
        assert str(Sv(Constellation.GALILEO, 5)) == "E05"

    @pytest.mark.parametrize("text", ["", "GXX", "M01", "Q01"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            Sv.from_str(text)

    def test_sorting(self):
        """Satellites sort by constellation letter, then PRN."""
        svs = [Sv.from_str(t) for t in ["R02", "G10", "E01", "G02"]]
        assert [str(sv) for sv in sorted(svs)] == ["E01", "G02", "G10", "R02"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
