"""
Pytest configuration and fixtures for rinex_pipeline tests.

RINEX fixtures are built line by line so every fixed width column sits
where the format expects it.
"""

from datetime import datetime, timedelta

import pytest

from rinex_pipeline.constellation import Sv
from rinex_pipeline.epoch import Epoch, EpochFlag
from rinex_pipeline.record import EpochData, ObservationData, Record
from rinex_pipeline.rinex_header import RinexType

BASE_TIME = datetime(2022, 1, 1, 0, 0, 0)


def header_line(content: str, label: str) -> str:
    return f"{content:<60}{label}"


def version_line(version: str, file_type: str, system: str = "") -> str:
    return header_line(f"{version:>9}{'':11}{file_type:<20}{system:<20}", "RINEX VERSION / TYPE")


def obs_field(value=None, lli=None, ssi=None) -> str:
    if value is None:
        return " " * 16
    lli_text = "" if lli is None else str(lli)
    ssi_text = "" if ssi is None else str(ssi)
    return f"{value:14.3f}{lli_text:1}{ssi_text:1}"


def nav_values(values, exponent="E") -> str:
    return "".join(f"{v:19.12E}".replace("E", exponent) for v in values)


def v3_nav_lines(sv: str, ts: datetime, clock, orbits, exponent="E") -> list:
    """Lines of one RINEX3 broadcast ephemeris frame, 4 orbit values per line."""
    lines = [
        f"{sv} {ts.year:4d} {ts.month:02d} {ts.day:02d} {ts.hour:02d} {ts.minute:02d} {ts.second:02d}"
        + nav_values(clock, exponent)
    ]
    for row in range(0, len(orbits), 4):
        lines.append("    " + nav_values(orbits[row : row + 4], exponent))
    return lines


def v3_epoch_line(ts: datetime, flag: int, n: int, clock=None) -> str:
    line = (
        f"> {ts.year:4d} {ts.month:02d} {ts.day:02d} {ts.hour:02d} {ts.minute:02d}"
        f"{ts.second + ts.microsecond / 1e6:11.7f}  {flag:1d}{n:3d}"
    )
    if clock is not None:
        line += f"{'':6}{clock:15.12f}"
    return line


def v2_epoch_line(ts: datetime, flag: int, svs: list, clock=None) -> list:
    head = (
        f" {ts.year % 100:02d} {ts.month:2d} {ts.day:2d} {ts.hour:2d} {ts.minute:2d}"
        f"{ts.second:11.7f}  {flag:1d}{len(svs):3d}"
    )
    lines = [head + f"{''.join(svs[:12]):<36}" + ("" if clock is None else f"{clock:12.9f}")]
    for start in range(12, len(svs), 12):
        lines.append(" " * 32 + "".join(svs[start : start + 12]))
    return lines


# Orbit values of the broadcast ephemeris fixtures
GPS_CLOCK = [-1.234567890123e-04, -5.456968210637e-12, 0.0]
GPS_ORBITS = [float(i + 1) * 1.5 for i in range(28)]
GLONASS_CLOCK = [2.345678901234e-05, 9.094947017729e-13, 0.0]
GLONASS_ORBITS = [float(i + 1) * 1000.25 for i in range(12)]


@pytest.fixture
def obs_v3_text():
    """Mixed RINEX3 observation file: 4 epochs, one event and one cycle slip."""
    lines = [
        version_line("3.04", "O", "M"),
        header_line(f"{'sbf2rin-13.4.5':<20}{'RUNBY':<20}{'20220101 000000 UTC':<20}", "PGM / RUN BY / DATE"),
        header_line("Test observation file", "COMMENT"),
        header_line("ESBC00DNK", "MARKER NAME"),
        header_line(f"{'OBSERVER':<20}AGENCY", "OBSERVER / AGENCY"),
        header_line(f"{3582105.2910:14.4f}{532589.7313:14.4f}{5232754.8054:14.4f}", "APPROX POSITION XYZ"),
        header_line(f"G  {4:3d} C1C L1C D1C S1C", "SYS / # / OBS TYPES"),
        header_line(f"E  {2:3d} C1C L1C", "SYS / # / OBS TYPES"),
        header_line(f"{30.0:10.3f}", "INTERVAL"),
        header_line(f"{18:6d}", "LEAP SECONDS"),
        header_line("", "END OF HEADER"),
        v3_epoch_line(BASE_TIME, 0, 2, clock=0.001),
        "G01"
        + obs_field(20000000.0, None, 7)
        + obs_field(105000000.123, 1, 7)
        + obs_field(-1234.567)
        + obs_field(45.0),
        "E05" + obs_field(23000000.5, None, 6) + obs_field(120000000.25, 0, 6),
        v3_epoch_line(BASE_TIME + timedelta(seconds=30), 0, 1),
        "G01" + obs_field(20000100.0, None, 5) + obs_field(105000500.0, 3, 5),
        "",
        v3_epoch_line(BASE_TIME + timedelta(seconds=45), 4, 1),
        header_line("ANTENNA CHANGED", "COMMENT"),
        v3_epoch_line(BASE_TIME + timedelta(seconds=60), 6, 1),
        "E05" + obs_field(23000200.0, None, 4),
    ]
    return "\n".join(lines) + "\n"


@pytest.fixture
def obs_v2_text():
    """RINEX2 observation file, 6 codes (2 lines per satellite), 13 satellites in epoch 2."""
    codes = ["C1", "L1", "L2", "P2", "S1", "S2"]
    lines = [
        version_line("2.11", "O", "M"),
        header_line(f"{'teqc':<20}{'RUNBY':<20}{'20220101':<20}", "PGM / RUN BY / DATE"),
        header_line("ALGO", "MARKER NAME"),
        header_line(f"{918129.0:14.4f}{-4346071.0:14.4f}{4561977.0:14.4f}", "APPROX POSITION XYZ"),
        header_line(f"{len(codes):6d}" + "".join(f"    {c}" for c in codes), "# / TYPES OF OBSERV"),
        header_line("", "END OF HEADER"),
    ]
    lines += v2_epoch_line(BASE_TIME, 0, ["G01", "R05"], clock=0.000123456)
    lines += [
        obs_field(21000000.0, None, 8)
        + obs_field(110000000.5, 1, 8)
        + obs_field(85000000.25, 0, 6)
        + obs_field(21000003.0)
        + obs_field(48.0),
        obs_field(42.0),
        obs_field(22000000.0, None, 7) + obs_field(117000000.75, None, 7),
        "",
    ]
    svs = [f"G{prn:02d}" for prn in range(1, 14)]
    lines += v2_epoch_line(BASE_TIME + timedelta(seconds=30), 0, svs)
    for prn in range(1, 14):
        lines += [obs_field(20000000.0 + prn), ""]
    return "\n".join(lines) + "\n"


@pytest.fixture
def nav_v3_text():
    """Mixed RINEX3 navigation file with a GPS and a GLONASS frame."""
    lines = [
        version_line("3.04", "N", "M"),
        header_line(f"{'BCEmerge':<20}{'IGS':<20}{'20220102 000000 UTC':<20}", "PGM / RUN BY / DATE"),
        header_line("", "END OF HEADER"),
        "G01 2022 01 01 00 00 00" + nav_values(GPS_CLOCK, "D"),
    ]
    for row in range(7):
        lines.append("    " + nav_values(GPS_ORBITS[row * 4 : row * 4 + 4], "D"))
    lines.append("R05 2022 01 01 00 15 00" + nav_values(GLONASS_CLOCK))
    for row in range(3):
        lines.append("    " + nav_values(GLONASS_ORBITS[row * 4 : row * 4 + 4]))
    return "\n".join(lines) + "\n"


# RINEX 3.05 GLONASS frames carry a fourth orbit line
GLONASS_305_ORBITS = GLONASS_ORBITS + [3.0, -2.793967723846e-09, 2.0, 0.0]


@pytest.fixture
def nav_305_text():
    """Mixed RINEX 3.05 navigation file: a 4 line GLONASS frame, then a GPS frame."""
    lines = [
        version_line("3.05", "N", "M"),
        header_line(f"{'BCEmerge':<20}{'IGS':<20}{'20220102 000000 UTC':<20}", "PGM / RUN BY / DATE"),
        header_line("", "END OF HEADER"),
    ]
    lines += v3_nav_lines("R05", BASE_TIME, GLONASS_CLOCK, GLONASS_305_ORBITS)
    lines += v3_nav_lines("G01", BASE_TIME + timedelta(minutes=15), GPS_CLOCK, GPS_ORBITS, "D")
    return "\n".join(lines) + "\n"


@pytest.fixture
def nav_v2_text():
    """RINEX2 GPS navigation file with one frame."""
    lines = [
        version_line("2.10", "N"),
        header_line(f"{'CCRINEXN':<20}{'NASA':<20}{'01-JAN-22 00:00':<20}", "PGM / RUN BY / DATE"),
        header_line("", "END OF HEADER"),
        f"{1:2d} {22:02d} {1:2d} {1:2d} {2:2d} {0:2d}{0.0:5.1f}" + nav_values(GPS_CLOCK, "D"),
    ]
    for row in range(7):
        lines.append("   " + nav_values(GPS_ORBITS[row * 4 : row * 4 + 4], "D"))
    return "\n".join(lines) + "\n"


@pytest.fixture
def meteo_text():
    """RINEX2 meteo file, 2 epochs."""
    lines = [
        version_line("2.11", "M"),
        header_line(f"{'teqc':<20}{'RUNBY':<20}{'20220101':<20}", "PGM / RUN BY / DATE"),
        header_line("ALGO", "MARKER NAME"),
        header_line(f"{3:6d}    PR    TD    HR", "# / TYPES OF OBSERV"),
        header_line("", "END OF HEADER"),
        f" {22:02d} {1:2d} {1:2d} {0:2d} {0:2d} {0:2d}" + f"{1013.2:7.1f}{12.5:7.1f}{80.1:7.1f}",
        f" {22:02d} {1:2d} {1:2d} {0:2d} {5:2d} {0:2d}" + f"{1013.0:7.1f}{12.7:7.1f}",
    ]
    return "\n".join(lines) + "\n"


@pytest.fixture
def clock_text():
    """RINEX3 clock file with a receiver, a satellite and an undeclared data type."""
    lines = [
        version_line("3.00", "C", "G"),
        header_line(f"{'CCLOCK':<20}{'IGS':<20}{'20220101':<20}", "PGM / RUN BY / DATE"),
        header_line(f"{2:6d}    AR    AS", "# / TYPES OF DATA"),
        header_line("", "END OF HEADER"),
        "AR ALGO 2022 01 01 00 00  0.000000  2   1.234567890123E-06 1.000000000000E-10",
        "AS G01  2022 01 01 00 00  0.000000  1  -2.345678901234E-04",
        "DR ALGO 2022 01 01 00 00 30.000000  1   5.000000000000E-06",
    ]
    return "\n".join(lines) + "\n"


def make_obs_record(epochs, kind=RinexType.OBSERVATION):
    """
    Build an observation record.

    `epochs` maps a time offset in seconds, or an (offset, flag) pair, to
    {sv: {code: value or (value, lli, ssi)}}.
    """
    content = {}
    for key, data in epochs.items():
        offset, flag = key if isinstance(key, tuple) else (key, EpochFlag.OK)
        epoch = Epoch(BASE_TIME + timedelta(seconds=offset), flag)
        entries = {}
        for sv, codes in data.items():
            entries[Sv.from_str(sv)] = {
                code: ObservationData(*value) if isinstance(value, tuple) else ObservationData(value)
                for code, value in codes.items()
            }
        content[epoch] = EpochData(None, entries)
    return Record(kind, content)


@pytest.fixture
def record_factory():
    """Factory building observation records from nested dicts."""
    return make_obs_record


@pytest.fixture
def six_epoch_record():
    """Epochs a..f, 30 s apart, G01 and E05 observed at each."""
    return make_obs_record(
        {
            30 * i: {
                "G01": {"C1C": 20000000.0 + i, "L1C": (105000000.0 + i, i % 4, 5 + i % 3)},
                "E05": {"C1C": 23000000.0 + i},
            }
            for i in range(6)
        }
    )
