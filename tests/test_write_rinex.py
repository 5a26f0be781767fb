"""
Tests for RINEX text output: everything written must parse back unchanged.
"""

import pytest

from rinex_pipeline.parse_rinex import parse_rinex, read_rinex_file
from rinex_pipeline.rinex_header import RinexType
from rinex_pipeline.write_rinex import format_header, format_rinex, write_rinex_file


class TestFormatHeader:
    """Test header lines."""

    def test_labels_at_column_60(self, obs_v3_text):
        header, _ = parse_rinex(obs_v3_text)
        for line in format_header(header):
            assert len(line[:60]) == 60
            assert line[60:].strip()

    def test_ends_with_end_of_header(self, obs_v3_text):
        header, _ = parse_rinex(obs_v3_text)
        assert format_header(header)[-1].endswith("END OF HEADER")


class TestReparse:
    """Test that written files parse back to the same content."""

    @pytest.mark.parametrize(
        "fixture",
        [
            "obs_v3_text",
            "obs_v2_text",
            "nav_v3_text",
            "nav_305_text",
            "nav_v2_text",
            "meteo_text",
            "clock_text",
        ],
    )
    def test_reparse(self, fixture, request):
        header, record = parse_rinex(request.getfixturevalue(fixture))
        header2, record2 = parse_rinex(format_rinex(header, record))
        assert record2 == record
        assert header2.rinex_type is header.rinex_type
        assert header2.constellation is header.constellation
        assert header2.observables == header.observables
        assert header2.comments == header.comments

    def test_glonass_305_frame_lines(self, nav_305_text):
        """A 3.05 GLONASS frame is written with its fourth orbit line."""
        header, record = parse_rinex(nav_305_text)
        lines = format_rinex(header, record).splitlines()
        start = next(i for i, line in enumerate(lines) if line.startswith("R05"))
        assert lines[start + 5].startswith("G01")

    def test_header_fields_survive(self, obs_v3_text):
        header, record = parse_rinex(obs_v3_text)
        header2, _ = parse_rinex(format_rinex(header, record))
        assert header2.marker_name == header.marker_name
        assert header2.approx_position == pytest.approx(header.approx_position)
        assert header2.sampling_interval == header.sampling_interval
        assert header2.leap_seconds == header.leap_seconds
        assert header2.obs_codes == header.obs_codes


class TestWriteFile:
    """Test writing to disk."""

    def test_write_and_read(self, tmp_path, meteo_text):
        header, record = parse_rinex(meteo_text)
        path = write_rinex_file(tmp_path / "out.22m", header, record)
        header2, record2 = read_rinex_file(path)
        assert header2.rinex_type is RinexType.METEO
        assert record2 == record


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
