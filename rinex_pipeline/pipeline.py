"""
Batch processing of RINEX files.

Each input file is parsed and transformed in its own worker thread; the
per-file results are then merged in the order the files were given, split
or spliced, and written out.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Mapping, NamedTuple, Optional, Union

from rinex_pipeline.config import MAX_WORKERS
from rinex_pipeline.constellation import Constellation, Sv
from rinex_pipeline.decimate import decimate_interval, decimate_ratio
from rinex_pipeline.distance import ClockOffsets, ConversionSkip, pseudorange_to_distance
from rinex_pipeline.epoch import Epoch, EpochFlag, parse_duration, parse_epoch, parse_timestamp
from rinex_pipeline.errors import ConfigurationError, FilterError, MergeError, RinexError
from rinex_pipeline.filters import (
    filter_constellations,
    filter_epoch_nok,
    filter_epoch_ok,
    filter_event,
    filter_lli,
    filter_lock_loss,
    filter_observables,
    filter_ssi,
    filter_svs,
    parse_constellations,
    parse_epoch_flag,
    parse_lli_mask,
    parse_observables,
    parse_ssi,
    parse_svs,
)
from rinex_pipeline.merge import merge
from rinex_pipeline.parse_rinex import read_rinex_file
from rinex_pipeline.record import Record
from rinex_pipeline.rinex_header import Header, RinexType
from rinex_pipeline.sbas import parse_coordinates, select_sbas
from rinex_pipeline.split import split, split_at, splice
from rinex_pipeline.write_rinex import write_rinex_file

logger = logging.getLogger(__name__)

# Per-file transforms, applied in this order unless the options say otherwise
TRANSFORMS = (
    "epoch_ok",
    "epoch_nok",
    "event_filter",
    "constellations",
    "svs",
    "codes",
    "lli",
    "lock_loss",
    "ssi",
    "decim_ratio",
    "decim_interval",
    "distance",
)


class PipelineOptions(NamedTuple):
    """What to do with the input files."""

    filepaths: tuple[Path, ...] = ()
    outputs: tuple[Path, ...] = ()
    """Destinations of the produced files, in production order"""
    header: bool = False
    decim_ratio: Optional[int] = None
    decim_interval: Optional[timedelta] = None
    epoch_ok: bool = False
    epoch_nok: bool = False
    epoch: bool = False
    """List the epochs"""
    obscodes: bool = False
    """List the observable codes"""
    clock_offsets: bool = False
    """List the receiver clock offsets"""
    constellations: Optional[tuple[Constellation, ...]] = None
    svs: Optional[tuple[Sv, ...]] = None
    codes: Optional[tuple[str, ...]] = None
    lli: Optional[int] = None
    lock_loss: bool = False
    """Drop observations declaring a loss of lock"""
    ssi: Optional[int] = None
    distance: Union[bool, float, Mapping[Union[Epoch, datetime], float]] = False
    """True converts with the receiver clock offsets of the file itself"""
    events: bool = False
    """List the epochs that are not OK, and those declaring a loss of lock"""
    gaps: bool = False
    """List the epochs following a data gap"""
    event_filter: Optional[EpochFlag] = None
    merge: bool = False
    split: Union[bool, tuple[datetime, Optional[EpochFlag]]] = False
    """True splits a merged record, (timestamp, flag) splits at an epoch"""
    splice: Optional[tuple[datetime, datetime]] = None
    sbas: Optional[tuple[float, float]] = None
    order: tuple[str, ...] = TRANSFORMS
    max_workers: int = MAX_WORKERS

    @classmethod
    def from_arguments(cls, **arguments: Union[str, bool, None]) -> "PipelineOptions":
        """
        Build options from raw text arguments.

        Keyword names follow the option names ('decim_interval',
        'constellation', 'sv', ...). Flags take booleans, everything else
        takes text. Transforms are applied in the order the keywords are
        given.

        Raises
        ------
        ConfigurationError
            If an argument is unknown or cannot be parsed

        Examples
        --------
        >>> PipelineOptions.from_arguments(
        ...     filepath="a.rnx, b.rnx", merge=True, decim_interval="00:01:00"
        ... )
        """
        options = {}
        order = []
        for name, value in arguments.items():
            if value is None or value is False:
                continue
            try:
                field, parsed = _parse_argument(name, value)
            except ConfigurationError:
                raise
            except ValueError as e:
                raise ConfigurationError(f"Invalid --{name.replace('_', '-')}: {e}") from e
            options[field] = parsed
            if field in TRANSFORMS:
                order.append(field)
        options["order"] = tuple(order) + tuple(t for t in TRANSFORMS if t not in order)
        return cls(**options)


def _split_paths(text: str) -> tuple[Path, ...]:
    return tuple(Path(item.strip()) for item in text.split(",") if item.strip())


def _parse_split(value: Union[str, bool]) -> Union[bool, tuple[datetime, Optional[EpochFlag]]]:
    if value is True or not str(value).strip():
        return True
    return parse_epoch(value)


def _parse_splice(text: str) -> tuple[datetime, datetime]:
    parts = text.split(",")
    if len(parts) != 2:
        raise ValueError(f"expected 'start, end', got {text!r}")
    return parse_timestamp(parts[0]), parse_timestamp(parts[1])


def _parse_distance(value: Union[str, bool]) -> Union[bool, float]:
    if value is True or not str(value).strip():
        return True
    return float(value)


_FLAGS = (
    "header",
    "epoch_ok",
    "epoch_nok",
    "epoch",
    "obscodes",
    "clock_offsets",
    "events",
    "gaps",
    "lock_loss",
    "merge",
)

_ARGUMENT_PARSERS = {
    "filepath": ("filepaths", _split_paths),
    "output": ("outputs", _split_paths),
    "decim_ratio": ("decim_ratio", int),
    "decim_interval": ("decim_interval", parse_duration),
    "constellation": ("constellations", lambda text: tuple(parse_constellations(text))),
    "sv": ("svs", lambda text: tuple(parse_svs(text))),
    "codes": ("codes", lambda text: tuple(parse_observables(text))),
    "lli": ("lli", parse_lli_mask),
    "ssi": ("ssi", parse_ssi),
    "distance": ("distance", _parse_distance),
    "event_filter": ("event_filter", parse_epoch_flag),
    "split": ("split", _parse_split),
    "splice": ("splice", _parse_splice),
    "sbas": ("sbas", parse_coordinates),
}


def _parse_argument(name: str, value: Union[str, bool]) -> tuple[str, Any]:
    key = name.replace("-", "_")
    if key in _FLAGS:
        if not isinstance(value, bool):
            raise ValueError(f"expects a flag, got {value!r}")
        return key, value
    if key not in _ARGUMENT_PARSERS:
        raise ConfigurationError(f"Unknown option: {name!r}")
    field, parser = _ARGUMENT_PARSERS[key]
    if key in ("split", "distance"):
        return field, parser(value)
    if not isinstance(value, str):
        raise ValueError(f"expects a text value, got {value!r}")
    return field, parser(value)


def validate_options(options: PipelineOptions):
    """
    Check the options before any file is touched.

    Raises
    ------
    ConfigurationError
        If the options are inconsistent or out of range
    FilterError
        If a filter argument is out of range
    """
    if options.sbas is not None:
        return
    if not options.filepaths:
        raise ConfigurationError("No input file given")
    if options.decim_ratio is not None and options.decim_ratio < 1:
        raise ConfigurationError(f"Decimation ratio must be at least 1, got {options.decim_ratio}")
    if options.decim_interval is not None and options.decim_interval <= timedelta(0):
        raise ConfigurationError(f"Decimation interval must be positive, got {options.decim_interval}")
    if options.epoch_ok and options.epoch_nok:
        raise ConfigurationError("epoch_ok and epoch_nok are mutually exclusive")
    if options.lli is not None:
        parse_lli_mask(str(options.lli))
    if options.ssi is not None:
        parse_ssi(str(options.ssi))
    if options.constellations is not None and Constellation.MIXED in options.constellations:
        raise FilterError("'Mixed' is not a constellation filter")
    if options.splice is not None and options.splice[1] < options.splice[0]:
        raise ConfigurationError(f"Splice interval ends before it starts: {options.splice}")
    unknown = set(options.order) - set(TRANSFORMS)
    if unknown:
        raise ConfigurationError(f"Unknown transforms in order: {sorted(unknown)}")
    if options.max_workers < 1:
        raise ConfigurationError(f"max_workers must be at least 1, got {options.max_workers}")


class FileResult(NamedTuple):
    """Outcome of processing one input file."""

    path: Path
    header: Optional[Header]
    record: Optional[Record]
    skipped: tuple[ConversionSkip, ...]
    """Epochs left unconverted by the distance conversion"""
    is_valid: bool
    """Whether the file was parsed and transformed"""
    error: Optional[str]


def dummy_file_result(path: Path, error: str) -> FileResult:
    """FileResult of a file that failed."""
    return FileResult(path=path, header=None, record=None, skipped=(), is_valid=False, error=error)


class PipelineResult(NamedTuple):
    files: tuple[FileResult, ...] = ()
    outputs: tuple[tuple[Header, Record], ...] = ()
    written: tuple[Path, ...] = ()
    listings: tuple[dict[str, Any], ...] = ()
    sbas: Optional[str] = None
    warnings: tuple[str, ...] = ()

    @property
    def failures(self) -> list[FileResult]:
        return [result for result in self.files if not result.is_valid]


def _restrict_codes(header: Header, codes: tuple[str, ...]) -> Header:
    wanted = set(codes)
    if header.rinex_type is RinexType.OBSERVATION:
        return header._replace(
            obs_codes={
                c: tuple(code for code in declared if code in wanted)
                for c, declared in header.obs_codes.items()
            }
        )
    if header.rinex_type is RinexType.METEO:
        return header._replace(meteo_codes=tuple(c for c in header.meteo_codes if c in wanted))
    if header.rinex_type is RinexType.CLOCK:
        return header._replace(clock_codes=tuple(c for c in header.clock_codes if c in wanted))
    return header


def apply_transforms(
    header: Header, record: Record, options: PipelineOptions
) -> tuple[Header, Record, list[ConversionSkip]]:
    """Apply the per-file transforms requested by `options`, in `options.order`."""
    skipped: list[ConversionSkip] = []
    for name in options.order:
        if name == "epoch_ok" and options.epoch_ok:
            record = filter_epoch_ok(record)
        elif name == "epoch_nok" and options.epoch_nok:
            record = filter_epoch_nok(record)
        elif name == "event_filter" and options.event_filter is not None:
            record = filter_event(record, options.event_filter)
        elif name == "constellations" and options.constellations is not None:
            record = filter_constellations(record, options.constellations)
            if header.rinex_type is RinexType.OBSERVATION:
                header = header._replace(
                    obs_codes={
                        c: codes
                        for c, codes in header.obs_codes.items()
                        if c in options.constellations
                    }
                )
        elif name == "svs" and options.svs is not None:
            record = filter_svs(record, options.svs)
        elif name == "codes" and options.codes is not None:
            record = filter_observables(record, options.codes)
            header = _restrict_codes(header, options.codes)
        elif name == "lli" and options.lli is not None:
            record = filter_lli(record, options.lli)
        elif name == "lock_loss" and options.lock_loss:
            record = filter_lock_loss(record)
        elif name == "ssi" and options.ssi is not None:
            record = filter_ssi(record, options.ssi)
        elif name == "decim_ratio" and options.decim_ratio is not None:
            record = decimate_ratio(record, options.decim_ratio)
            if header.sampling_interval is not None:
                header = header._replace(sampling_interval=header.sampling_interval * options.decim_ratio)
        elif name == "decim_interval" and options.decim_interval is not None:
            record = decimate_interval(record, options.decim_interval)
            header = header._replace(sampling_interval=options.decim_interval.total_seconds())
        elif name == "distance" and options.distance is not False:
            clock_offset: ClockOffsets = None if options.distance is True else options.distance
            record, skips = pseudorange_to_distance(record, clock_offset)
            skipped += skips
    return header, record, skipped


def process_file(path: Path, options: PipelineOptions) -> FileResult:
    """Parse one file and apply the per-file transforms."""
    try:
        header, record = read_rinex_file(path)
        header, record, skipped = apply_transforms(header, record, options)
    except (RinexError, OSError, ValueError) as e:
        logger.warning("Failed to process %s: %s", path, e)
        return dummy_file_result(path, str(e))
    logger.info("Processed %s: %d epochs", path, len(record))
    return FileResult(
        path=path, header=header, record=record, skipped=tuple(skipped), is_valid=True, error=None
    )


def process_files(options: PipelineOptions) -> list[FileResult]:
    """
    Process the input files in parallel worker threads.

    Returns
    -------
    list[FileResult]
        One result per input file, in input order
    """
    paths = list(options.filepaths)
    results: list[Optional[FileResult]] = [None] * len(paths)
    max_workers = max(1, min(options.max_workers, len(paths)))
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_index = {
            executor.submit(process_file, path, options): index for index, path in enumerate(paths)
        }
        for future in as_completed(future_to_index):
            index = future_to_index[future]
            try:
                results[index] = future.result()
            except Exception as e:
                logger.exception("Unexpected failure processing %s", paths[index])
                results[index] = dummy_file_result(paths[index], f"{type(e).__name__}: {e}")
    return results


def merge_results(results: list[FileResult]) -> tuple[Optional[tuple[Header, Record]], list[FileResult]]:
    """
    Merge valid file results in order.

    A file whose merge fails is marked invalid and left out; the fold
    continues with the next file.

    Returns
    -------
    tuple
        Merged (Header, Record), None if no file was valid, and the updated
        file results
    """
    merged = None
    updated = []
    for result in results:
        if not result.is_valid:
            updated.append(result)
            continue
        if merged is None:
            merged = (result.header, result.record)
            updated.append(result)
            continue
        try:
            merged = merge(merged, (result.header, result.record))
        except MergeError as e:
            logger.warning("Failed to merge %s: %s", result.path, e)
            result = result._replace(is_valid=False, error=f"merge failed: {e}")
        updated.append(result)
    return merged, updated


def describe(header: Header, record: Record, options: PipelineOptions) -> dict[str, Any]:
    """Listings requested by the options for one produced file."""
    listing: dict[str, Any] = {}
    if options.header:
        listing["header"] = header
    if options.epoch:
        listing["epochs"] = record.epochs()
    if options.obscodes:
        listing["observables"] = record.observables()
    if options.clock_offsets:
        listing["clock_offsets"] = record.clock_offsets()
    if options.events:
        listing["events"] = record.events()
        listing["lock_loss"] = record.lock_loss_events()
    if options.gaps:
        interval = header.sampling_interval or record.average_epoch_duration
        listing["gaps"] = record.data_gap(interval)
    return listing


def _split_output(
    header: Header, record: Record, options: PipelineOptions
) -> list[tuple[Header, Record]]:
    if options.splice is not None:
        record = splice(record, *options.splice)
    if options.split is False:
        return [(header, record)]
    if options.split is True:
        first, second = split(record, header)
    else:
        first, second = split_at(record, *options.split)
    return [(header, first), (header, second)]


def run(options: PipelineOptions) -> PipelineResult:
    """
    Run a complete invocation.

    Parameters
    ----------
    options : PipelineOptions
        What to do

    Returns
    -------
    PipelineResult
        Per-file results, produced files, listings and warnings

    Raises
    ------
    ConfigurationError
        If the options are invalid, before any file is read
    SbasError
        If the SBAS lookup fails
    SplitError
        If the produced record cannot be split as requested
    """
    validate_options(options)
    if options.sbas is not None:
        return PipelineResult(sbas=select_sbas(*options.sbas))

    files = process_files(options)
    warnings = [f"{r.path}: {r.error}" for r in files if not r.is_valid]
    warnings += [f"{r.path}: {skip.epoch}: {skip.reason}" for r in files for skip in r.skipped]

    if options.merge:
        merged, files = merge_results(files)
        warnings += [
            f"{r.path}: {r.error}" for r in files if not r.is_valid and r.error.startswith("merge")
        ]
        produced = [merged] if merged is not None else []
    else:
        produced = [(r.header, r.record) for r in files if r.is_valid]

    outputs = []
    for header, record in produced:
        outputs += _split_output(header, record, options)

    if options.outputs and len(options.outputs) != len(outputs):
        message = f"{len(outputs)} files produced for {len(options.outputs)} outputs"
        logger.warning(message)
        warnings.append(message)
    written = [
        write_rinex_file(path, header, record)
        for path, (header, record) in zip(options.outputs, outputs)
    ]
    listings = [describe(header, record, options) for header, record in outputs]
    return PipelineResult(
        files=tuple(files),
        outputs=tuple(outputs),
        written=tuple(written),
        listings=tuple(listings),
        warnings=tuple(warnings),
    )
