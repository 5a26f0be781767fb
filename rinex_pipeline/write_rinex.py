"""
RINEX text output of (Header, Record) pairs.

Everything written here is read back by `parse_rinex` unchanged, apart from
the fixed output precision of each field type.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from rinex_pipeline.config import (
    METEO_VALUES_PER_LINE,
    OBS_FIELD_WIDTH,
    RINEX2_OBS_PER_LINE,
    RINEX2_SV_PER_LINE,
    nav_orbit_fields,
)
from rinex_pipeline.constellation import Constellation
from rinex_pipeline.epoch import Epoch
from rinex_pipeline.record import ClockData, EpochData, NavFrame, ObservationData, Record
from rinex_pipeline.rinex_header import HEADER_END_MARKER, Header, RinexType

logger = logging.getLogger(__name__)

SYS_OBS_TYPES_PER_LINE = 13
TYPES_OF_OBSERV_PER_LINE = 9


def _header_line(content: str, label: str) -> str:
    return f"{content[:60]:<60}{label}"


def _seconds(timestamp: datetime) -> float:
    return timestamp.second + timestamp.microsecond / 1e6


def format_rinex_version_type(header: Header) -> str:
    letter = header.rinex_type.value
    system = header.constellation.value
    if header.rinex_type is RinexType.NAVIGATION and header.version_major < 3:
        letter = {Constellation.GLONASS: "G", Constellation.SBAS: "H"}.get(header.constellation, "N")
        system = ""
    elif header.rinex_type in (RinexType.METEO, RinexType.CLOCK) and header.version_major < 3:
        system = ""
    return _header_line(f"{header.version:>9}{'':11}{letter:<20}{system:<20}", "RINEX VERSION / TYPE")


def format_program_run_by_date(header: Header) -> str:
    return _header_line(
        f"{header.program[:20]:<20}{header.run_by[:20]:<20}{header.date[:20]:<20}",
        "PGM / RUN BY / DATE",
    )


def format_approx_position_xyz(x: float, y: float, z: float) -> str:
    return _header_line(f"{x:14.4f}{y:14.4f}{z:14.4f}", "APPROX POSITION XYZ")


def _code_lines(codes: list[str], first: str, per_line: int, code_width: int, label: str) -> list[str]:
    lines = []
    for start in range(0, max(len(codes), 1), per_line):
        chunk = "".join(f" {code:>{code_width}}" for code in codes[start : start + per_line])
        prefix = first if start == 0 else " " * len(first)
        lines.append(_header_line(prefix + chunk, label))
    return lines


def format_sys_obs_types(obs_codes: dict[Constellation, tuple[str, ...]]) -> list[str]:
    lines = []
    for constellation in sorted(obs_codes):
        codes = list(obs_codes[constellation])
        first = f"{constellation.value}  {len(codes):3d}"
        lines += _code_lines(codes, first, SYS_OBS_TYPES_PER_LINE, 3, "SYS / # / OBS TYPES")
    return lines


def format_types_of_observ(codes: list[str], label: str = "# / TYPES OF OBSERV") -> list[str]:
    return _code_lines(codes, f"{len(codes):6d}", TYPES_OF_OBSERV_PER_LINE, 5, label)


def _rinex2_obs_codes(header: Header) -> list[str]:
    """Shared RINEX2 code list: every code of every constellation, in order."""
    codes = []
    for constellation in sorted(header.obs_codes):
        codes += [code for code in header.obs_codes[constellation] if code not in codes]
    return codes


def format_header(header: Header) -> list[str]:
    """Header lines, END OF HEADER included."""
    lines = [format_rinex_version_type(header), format_program_run_by_date(header)]
    lines += [_header_line(comment, "COMMENT") for comment in header.comments]
    if header.marker_name:
        lines.append(_header_line(header.marker_name, "MARKER NAME"))
    if header.observer or header.agency:
        lines.append(
            _header_line(f"{header.observer[:20]:<20}{header.agency[:40]}", "OBSERVER / AGENCY")
        )
    if header.approx_position is not None:
        lines.append(format_approx_position_xyz(*header.approx_position))
    if header.rinex_type is RinexType.OBSERVATION:
        if header.version_major >= 3:
            lines += format_sys_obs_types(header.obs_codes)
        else:
            lines += format_types_of_observ(_rinex2_obs_codes(header))
    elif header.rinex_type is RinexType.METEO:
        lines += format_types_of_observ(list(header.meteo_codes))
    elif header.rinex_type is RinexType.CLOCK:
        lines += format_types_of_observ(list(header.clock_codes), "# / TYPES OF DATA")
    if header.sampling_interval is not None:
        lines.append(_header_line(f"{header.sampling_interval:10.3f}", "INTERVAL"))
    if header.leap_seconds is not None:
        lines.append(_header_line(f"{header.leap_seconds:6d}", "LEAP SECONDS"))
    if header.rcvr_clock_offset_applied is not None:
        lines.append(_header_line(f"{int(header.rcvr_clock_offset_applied):6d}", "RCV CLOCK OFFS APPL"))
    lines.append(_header_line("", HEADER_END_MARKER))
    return lines


def format_observation_fields(observations: dict[str, ObservationData], codes: tuple[str, ...]) -> str:
    fields = []
    for code in codes:
        observation = observations.get(code)
        if observation is None:
            fields.append(" " * OBS_FIELD_WIDTH)
            continue
        lli = "" if observation.lli is None else str(observation.lli)
        ssi = "" if observation.ssi is None else str(observation.ssi)
        fields.append(f"{observation.value:14.3f}{lli:1}{ssi:1}")
    return "".join(fields)


def _format_observation_v3(header: Header, epoch: Epoch, epoch_data: EpochData) -> list[str]:
    ts = epoch.timestamp
    line = (
        f"> {ts.year:4d} {ts.month:02d} {ts.day:02d} {ts.hour:02d} {ts.minute:02d}"
        f"{_seconds(ts):11.7f}  {int(epoch.flag):1d}{len(epoch_data.data):3d}"
    )
    if epoch_data.clock_offset is not None:
        line += f"{'':6}{epoch_data.clock_offset:15.12f}"
    lines = [line]
    for sv in sorted(epoch_data.data):
        fields = format_observation_fields(epoch_data.data[sv], header.codes_for(sv.constellation))
        lines.append(f"{sv}{fields}".rstrip())
    return lines


def _format_observation_v2(header: Header, epoch: Epoch, epoch_data: EpochData) -> list[str]:
    ts = epoch.timestamp
    satellites = sorted(epoch_data.data)
    sv_fields = [str(sv) for sv in satellites]
    head = (
        f" {ts.year % 100:02d} {ts.month:2d} {ts.day:2d} {ts.hour:2d} {ts.minute:2d}"
        f"{_seconds(ts):11.7f}  {int(epoch.flag):1d}{len(satellites):3d}"
    )
    first = "".join(sv_fields[:RINEX2_SV_PER_LINE])
    line = f"{head}{first:<36}"
    if epoch_data.clock_offset is not None:
        line += f"{epoch_data.clock_offset:12.9f}"
    lines = [line.rstrip()]
    for start in range(RINEX2_SV_PER_LINE, len(sv_fields), RINEX2_SV_PER_LINE):
        lines.append(f"{'':32}" + "".join(sv_fields[start : start + RINEX2_SV_PER_LINE]))

    codes = tuple(_rinex2_obs_codes(header))
    width = RINEX2_OBS_PER_LINE * OBS_FIELD_WIDTH
    for sv in satellites:
        fields = format_observation_fields(epoch_data.data[sv], codes)
        for start in range(0, len(fields), width):
            lines.append(fields[start : start + width].rstrip())
    return lines


def _nav_value(value: Optional[float]) -> str:
    return " " * 19 if value is None else f"{value:19.12E}"


def _format_navigation(header: Header, epoch: Epoch, epoch_data: EpochData) -> list[str]:
    ts = epoch.timestamp
    lines = []
    rinex3 = header.version_major >= 3
    for sv in sorted(epoch_data.data):
        for frame in epoch_data.data[sv].values():
            if not isinstance(frame, NavFrame):
                continue
            if rinex3:
                head = (
                    f"{sv} {ts.year:4d} {ts.month:02d} {ts.day:02d} {ts.hour:02d} "
                    f"{ts.minute:02d} {ts.second:02d}"
                )
            else:
                head = (
                    f"{sv.prn:2d} {ts.year % 100:02d} {ts.month:2d} {ts.day:2d} {ts.hour:2d} "
                    f"{ts.minute:2d}{_seconds(ts):5.1f}"
                )
            clock = (frame.clock_bias, frame.clock_drift, frame.clock_drift_rate)
            lines.append(head + "".join(_nav_value(v) for v in clock))
            names = nav_orbit_fields(sv.constellation.value, header.version)
            indent = "    " if rinex3 else "   "
            for row in range(len(names) // 4):
                values = [frame.orbits.get(name) for name in names[row * 4 : row * 4 + 4]]
                lines.append((indent + "".join(_nav_value(v) for v in values)).rstrip())
    return lines


def _format_meteo(header: Header, epoch: Epoch, epoch_data: EpochData) -> list[str]:
    ts = epoch.timestamp
    if header.version_major >= 3:
        head = f" {ts.year:4d}"
    else:
        head = f" {ts.year % 100:02d}"
    head += f" {ts.month:2d} {ts.day:2d} {ts.hour:2d} {ts.minute:2d} {ts.second:2d}"
    values = epoch_data.data.get(None, {})
    fields = [
        f"{values[code]:7.1f}" if code in values else " " * 7 for code in header.meteo_codes
    ]
    lines = [head + "".join(fields[:METEO_VALUES_PER_LINE])]
    for start in range(METEO_VALUES_PER_LINE, len(fields), METEO_VALUES_PER_LINE):
        lines.append("    " + "".join(fields[start : start + METEO_VALUES_PER_LINE]))
    return [line.rstrip() for line in lines]


def _format_clock(header: Header, epoch: Epoch, epoch_data: EpochData) -> list[str]:
    ts = epoch.timestamp
    date = (
        f"{ts.year:4d} {ts.month:02d} {ts.day:02d} {ts.hour:02d} {ts.minute:02d}"
        f"{_seconds(ts):10.6f}"
    )
    lines = []
    for key in sorted(epoch_data.data, key=str):
        for data_type, clock in epoch_data.data[key].items():
            if not isinstance(clock, ClockData):
                continue
            values = list(clock)
            while values and values[-1] is None:
                values.pop()
            values = [0.0 if v is None else v for v in values]
            text = [f"{v:19.12E}" for v in values]
            lines.append(f"{data_type:<2} {str(key):<4} {date} {len(values):2d}   " + " ".join(text[:2]))
            if len(text) > 2:
                lines.append(" ".join(text[2:]))
    return lines


_BODY_FORMATTERS = {
    RinexType.NAVIGATION: _format_navigation,
    RinexType.METEO: _format_meteo,
    RinexType.CLOCK: _format_clock,
}


def format_body(header: Header, record: Record) -> list[str]:
    if header.rinex_type is RinexType.OBSERVATION:
        formatter = _format_observation_v3 if header.version_major >= 3 else _format_observation_v2
    else:
        formatter = _BODY_FORMATTERS[header.rinex_type]
    lines = []
    for epoch, epoch_data in record.items():
        lines += formatter(header, epoch, epoch_data)
    return lines


def format_rinex(header: Header, record: Record) -> str:
    """Complete RINEX file content."""
    return "\n".join(format_header(header) + format_body(header, record)) + "\n"


def write_rinex_file(fname: Union[str, Path], header: Header, record: Record) -> Path:
    """
    Write a (Header, Record) pair as a plain RINEX file.

    Returns
    -------
    Path
        The written file
    """
    fname = Path(fname)
    fname.write_text(format_rinex(header, record))
    logger.info("Wrote %d epochs to %s", len(record), fname)
    return fname
