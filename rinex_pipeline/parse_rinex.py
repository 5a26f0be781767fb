"""
RINEX parser: observation, navigation, meteo and clock files, versions 2 and 3.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import hatanaka

from rinex_pipeline.config import (
    NAV_FIELD_WIDTH,
    NAV_MESSAGE_TYPES,
    NAV_ORBIT_FIELDS,
    METEO_FIELD_WIDTH,
    METEO_VALUES_PER_LINE,
    OBS_FIELD_WIDTH,
    OBS_VALUE_WIDTH,
    RINEX2_OBS_PER_LINE,
    nav_orbit_fields,
)
from rinex_pipeline.constellation import Sv
from rinex_pipeline.epoch import Epoch, EpochFlag, make_timestamp
from rinex_pipeline.errors import BodyError, DataConflictError
from rinex_pipeline.record import (
    ClockData,
    EpochData,
    NavFrame,
    ObservationData,
    Record,
    union_epoch_data,
)
from rinex_pipeline.rinex_header import Header, RinexType, parse_header

logger = logging.getLogger(__name__)


class _Body:
    """Body lines of a file, collected epochs and comments."""

    def __init__(self, lines: list[str], start: int, source: Optional[str]):
        self.lines = lines
        self.index = start
        self.source = source
        self.epochs: dict[Epoch, EpochData] = {}
        self.comments: list[str] = []

    @property
    def line_number(self) -> int:
        return self.index + 1

    def error(self, message: str, line_number: Optional[int] = None) -> BodyError:
        return BodyError(message, self.source, line_number or self.line_number)

    def next_line(self) -> str:
        if self.index >= len(self.lines):
            raise self.error("unexpected end of file", len(self.lines))
        line = self.lines[self.index]
        self.index += 1
        return line

    def skip_blank_and_comments(self) -> bool:
        """Advance to the next content line, returns False at end of file."""
        while self.index < len(self.lines):
            line = self.lines[self.index]
            if not line.strip():
                self.index += 1
            elif line[60:].strip() == "COMMENT":
                self.comments.append(line[:60].rstrip())
                self.index += 1
            else:
                return True
        return False

    def add(self, epoch: Epoch, epoch_data: EpochData, line_number: int):
        """Store an epoch, coalescing a duplicate of an earlier one."""
        if epoch in self.epochs:
            try:
                epoch_data = union_epoch_data(self.epochs[epoch], epoch_data, epoch)
            except DataConflictError as e:
                raise self.error(f"duplicate epoch with conflicting data: {e}", line_number) from e
        self.epochs[epoch] = epoch_data


def _float(text: str) -> float:
    """Parse a Fortran style float ('D' exponent allowed)."""
    return float(text.strip().replace("D", "E").replace("d", "e"))


def _optional_digit(text: str) -> Optional[int]:
    text = text.strip()
    return int(text) if text else None


def _parse_obs_fields(text: str, codes: tuple[str, ...]) -> dict[str, ObservationData]:
    """
    Parse consecutive observation fields.

    Each field is 16 characters: a 14 character value, then the LLI and SSI
    digits. Blank values are missing observations.
    """
    observations = {}
    for index, code in enumerate(codes):
        start = index * OBS_FIELD_WIDTH
        field = text[start : start + OBS_FIELD_WIDTH]
        value = field[:OBS_VALUE_WIDTH].strip()
        if not value:
            continue
        observations[code] = ObservationData(
            value=float(value),
            lli=_optional_digit(field[OBS_VALUE_WIDTH : OBS_VALUE_WIDTH + 1]),
            ssi=_optional_digit(field[OBS_VALUE_WIDTH + 1 : OBS_FIELD_WIDTH]),
        )
    return observations


def _observation_codes(header: Header, sv: Sv, body: _Body, line_number: int) -> tuple[str, ...]:
    if not header.constellation.accepts(sv.constellation):
        raise body.error(
            f"satellite {sv} outside of the {header.constellation.full_name} file scope", line_number
        )
    codes = header.codes_for(sv.constellation)
    if not codes:
        raise body.error(f"no observable codes declared for {sv.constellation.full_name}", line_number)
    return codes


def _skip_special_records(body: _Body, count: int):
    for _ in range(count):
        body.next_line()


def _parse_observation_v3(header: Header, body: _Body):
    while body.skip_blank_and_comments():
        epoch_line_number = body.line_number
        line = body.next_line()
        if not line.startswith(">"):
            raise body.error(f"expected epoch line, got {line.strip()[:20]!r}", epoch_line_number)
        try:
            parts = line[1:].split()
            yr, mo, dy, hr, mi = map(int, parts[0:5])
            timestamp = make_timestamp(yr, mo, dy, hr, mi, float(parts[5]))
            flag = EpochFlag(int(parts[6]))
            n_records = int(parts[7])
            clock_offset = float(parts[8]) if len(parts) > 8 else None
        except (ValueError, IndexError) as e:
            raise body.error(f"invalid epoch line: {e}", epoch_line_number) from e

        epoch = Epoch(timestamp, flag)
        if flag.has_special_records:
            _skip_special_records(body, n_records)
            body.add(epoch, EpochData(clock_offset, {}), epoch_line_number)
            continue

        data = {}
        for _ in range(n_records):
            line_number = body.line_number
            line = body.next_line()
            try:
                sv = Sv.from_str(line[:3])
                codes = _observation_codes(header, sv, body, line_number)
                observations = _parse_obs_fields(line[3:], codes)
            except ValueError as e:
                raise body.error(f"invalid observation line: {e}", line_number) from e
            if observations:
                data[sv] = observations
        body.add(epoch, EpochData(clock_offset, data), epoch_line_number)


def _rinex2_satellites(first_line: str, n_sats: int, body: _Body) -> list[Sv]:
    """Satellite list of a RINEX2 epoch, 12 per line with continuation lines."""
    fields = []
    line = first_line
    while True:
        block = line[32:68]
        fields += [block[i : i + 3] for i in range(0, len(block), 3) if block[i : i + 3].strip()]
        if len(fields) >= n_sats:
            break
        line = body.next_line()
    return [Sv.from_str(field) for field in fields[:n_sats]]


def _parse_observation_v2(header: Header, body: _Body):
    while body.skip_blank_and_comments():
        epoch_line_number = body.line_number
        line = body.next_line()
        try:
            timestamp = make_timestamp(
                int(line[0:3]),
                int(line[3:6]),
                int(line[6:9]),
                int(line[9:12]),
                int(line[12:15]),
                float(line[15:26]),
            )
            flag = EpochFlag(int(line[26:29]))
            n_records = int(line[29:32])
            clock_text = line[68:80].strip()
            clock_offset = float(clock_text) if clock_text else None
        except (ValueError, IndexError) as e:
            raise body.error(f"invalid epoch line: {e}", epoch_line_number) from e

        epoch = Epoch(timestamp, flag)
        if flag.has_special_records:
            _skip_special_records(body, n_records)
            body.add(epoch, EpochData(clock_offset, {}), epoch_line_number)
            continue

        try:
            satellites = _rinex2_satellites(line, n_records, body)
        except ValueError as e:
            raise body.error(f"invalid satellite list: {e}", epoch_line_number) from e

        data = {}
        for sv in satellites:
            line_number = body.line_number
            codes = _observation_codes(header, sv, body, line_number)
            n_lines = -(-len(codes) // RINEX2_OBS_PER_LINE)
            width = RINEX2_OBS_PER_LINE * OBS_FIELD_WIDTH
            text = "".join(body.next_line()[:width].ljust(width) for _ in range(n_lines))
            try:
                observations = _parse_obs_fields(text, codes)
            except ValueError as e:
                raise body.error(f"invalid observation of {sv}: {e}", line_number) from e
            if observations:
                data[sv] = observations
        body.add(epoch, EpochData(clock_offset, data), epoch_line_number)


def _nav_values(line: str, start: int, count: int) -> list[Optional[float]]:
    values = []
    for i in range(count):
        field = line[start + i * NAV_FIELD_WIDTH : start + (i + 1) * NAV_FIELD_WIDTH]
        values.append(_float(field) if field.strip() else None)
    return values


def _nav_frame(names: list[str], clock: list[Optional[float]], orbit_values: list[Optional[float]]) -> NavFrame:
    orbits = {name: value for name, value in zip(names, orbit_values) if value is not None}
    bias, drift, drift_rate = (value if value is not None else 0.0 for value in clock)
    return NavFrame(bias, drift, drift_rate, orbits)


def _parse_navigation(header: Header, body: _Body):
    """
    Broadcast ephemeris frames.

    RINEX3 lines carry the satellite identifier and a 4 digit year, RINEX2
    lines a bare PRN of the header constellation and a 2 digit year.
    A satellite broadcasting the same message twice for one time of clock
    keeps its first frame; later retransmissions are dropped.
    """
    rinex3 = header.version_major >= 3
    orbit_start = 4 if rinex3 else 3
    clock_start = 23 if rinex3 else 22
    while body.skip_blank_and_comments():
        epoch_line_number = body.line_number
        line = body.next_line()
        try:
            if rinex3:
                sv = Sv.from_str(line[0:3])
                date_fields = line[4:23].split()
            else:
                sv = Sv(header.constellation, int(line[0:2]))
                date_fields = line[2:22].split()
            yr, mo, dy, hr, mi = map(int, date_fields[0:5])
            timestamp = make_timestamp(yr, mo, dy, hr, mi, float(date_fields[5]))
            clock = _nav_values(line, clock_start, 3)
        except (ValueError, IndexError) as e:
            raise body.error(f"invalid ephemeris line: {e}", epoch_line_number) from e

        letter = sv.constellation.value
        if letter not in NAV_ORBIT_FIELDS:
            raise body.error(f"unsupported constellation {letter!r}", epoch_line_number)
        if not header.constellation.accepts(sv.constellation):
            raise body.error(
                f"satellite {sv} outside of the {header.constellation.full_name} file scope",
                epoch_line_number,
            )
        names = nav_orbit_fields(letter, header.version)
        orbit_values = []
        for _ in range(len(names) // 4):
            line_number = body.line_number
            try:
                orbit_values += _nav_values(body.next_line(), orbit_start, 4)
            except ValueError as e:
                raise body.error(f"invalid broadcast orbit line: {e}", line_number) from e

        epoch = Epoch(timestamp)
        message = NAV_MESSAGE_TYPES[letter]
        known = body.epochs.get(epoch)
        if known is not None and message in known.data.get(sv, {}):
            logger.debug("Dropping repeated %s frame of %s at %s", message, sv, timestamp)
            continue
        frame = _nav_frame(names, clock, orbit_values)
        body.add(epoch, EpochData(None, {sv: {message: frame}}), epoch_line_number)


def _parse_meteo(header: Header, body: _Body):
    # date prefix: 6(1X,I2) in RINEX2, 1X,I4,5(1X,I2) in RINEX3
    prefix = 20 if header.version_major >= 3 else 18
    width = METEO_VALUES_PER_LINE * METEO_FIELD_WIDTH
    codes = header.meteo_codes
    while body.skip_blank_and_comments():
        line_number = body.line_number
        line = body.next_line()
        try:
            date_fields = line[:prefix].split()
            yr, mo, dy, hr, mi = map(int, date_fields[0:5])
            timestamp = make_timestamp(yr, mo, dy, hr, mi, float(date_fields[5]))
            text = line[prefix:][:width].ljust(width)
            # continuation lines: 4X, then up to 8 more values
            while len(text) // METEO_FIELD_WIDTH < len(codes):
                text += body.next_line()[4:][:width].ljust(width)
            values = {}
            for index, code in enumerate(codes):
                field = text[index * METEO_FIELD_WIDTH : (index + 1) * METEO_FIELD_WIDTH]
                if field.strip():
                    values[code] = float(field)
        except (ValueError, IndexError) as e:
            raise body.error(f"invalid meteo line: {e}", line_number) from e
        body.add(Epoch(timestamp), EpochData(None, {None: values}), line_number)


def _clock_key(data_type: str, name: str):
    """Satellite clocks are keyed by Sv, receiver clocks by station name."""
    if data_type == "AS":
        try:
            return Sv.from_str(name)
        except ValueError:
            return name
    return name


def _parse_clock(header: Header, body: _Body):
    while body.skip_blank_and_comments():
        line_number = body.line_number
        line = body.next_line()
        try:
            parts = line.split()
            data_type, name = parts[0], parts[1]
            yr, mo, dy, hr, mi = map(int, parts[2:7])
            timestamp = make_timestamp(yr, mo, dy, hr, mi, float(parts[7]))
            n_values = int(parts[8])
            if not 1 <= n_values <= 6:
                raise ValueError(f"expected 1 to 6 values, got {n_values}")
            values = [_float(v) for v in parts[9:]]
            while len(values) < n_values:
                values += [_float(v) for v in body.next_line().split()]
        except (ValueError, IndexError) as e:
            raise body.error(f"invalid clock line: {e}", line_number) from e
        key = _clock_key(data_type, name)
        if isinstance(key, Sv) and not header.constellation.accepts(key.constellation):
            raise body.error(
                f"satellite {key} outside of the {header.constellation.full_name} file scope",
                line_number,
            )
        body.add(
            Epoch(timestamp),
            EpochData(None, {key: {data_type: ClockData(*values[:n_values])}}),
            line_number,
        )


def _complete_header(header: Header, record: Record, comments: list[str]) -> Header:
    """Body comments and clock types the header did not declare."""
    if comments:
        header = header._replace(comments=header.comments + tuple(comments))
    if header.rinex_type is RinexType.CLOCK:
        undeclared = [code for code in record.observables() if code not in header.clock_codes]
        if undeclared:
            logger.debug("Clock types %s not declared in header", undeclared)
            header = header._replace(clock_codes=header.clock_codes + tuple(undeclared))
    return header


def parse_rinex(text: str, source: Optional[str] = None) -> tuple[Header, Record]:
    """
    Parse the content of a RINEX file.

    Parameters
    ----------
    text : str
        Decompressed file content
    source : str, optional
        File label used in error messages

    Returns
    -------
    tuple[Header, Record]
        Parsed header and record

    Raises
    ------
    HeaderError
        If the header is malformed
    BodyError
        If an epoch or data line is malformed
    """
    lines = text.splitlines()
    header, body_start = parse_header(lines, source)
    body = _Body(lines, body_start, source)

    if header.rinex_type is RinexType.OBSERVATION:
        if header.version_major >= 3:
            _parse_observation_v3(header, body)
        else:
            _parse_observation_v2(header, body)
    elif header.rinex_type is RinexType.NAVIGATION:
        _parse_navigation(header, body)
    elif header.rinex_type is RinexType.METEO:
        _parse_meteo(header, body)
    else:
        _parse_clock(header, body)

    record = Record(header.rinex_type, body.epochs)
    header = _complete_header(header, record, body.comments)
    logger.debug(
        "Parsed %s RINEX %s: %d epochs", source or "<text>", header.rinex_type.name, len(record)
    )
    return header, record


def read_rinex_file(fname: Union[str, Path]) -> tuple[Header, Record]:
    """
    Read and parse a RINEX file.

    Parameters
    ----------
    fname : str | Path
        Path to the file, plain or compressed (Hatanaka, gzip, .Z, bz2)

    Returns
    -------
    tuple[Header, Record]
    """
    fname = Path(fname)
    rinex_text = hatanaka.decompress(fname).decode()
    return parse_rinex(rinex_text, source=fname.name)
