"""
rinex_pipeline - RINEX GNSS file processing

Parses observation, navigation, meteo and clock RINEX files into one epoch
indexed record model and transforms them: filtering, decimation, merging,
splitting, splicing, pseudorange to distance conversion. Also selects the
SBAS serving a location.

Main Functions
--------------
read_rinex_file : Read and parse a (compressed) RINEX file
parse_rinex : Parse RINEX text
run : Run a complete invocation described by PipelineOptions
merge : Merge two parsed files
split, split_at, splice : Cut records apart
pseudorange_to_distance : Convert pseudoranges to distances
select_sbas : SBAS serving a latitude / longitude
setup_logger : Configure console and file logging of the package
get_logger : Logger under the package namespace
"""

import logging

__version__ = "1.0.0"

# Model
from rinex_pipeline.constellation import Constellation, Sv
from rinex_pipeline.epoch import Epoch, EpochFlag
from rinex_pipeline.rinex_header import Header, RinexType
from rinex_pipeline.record import ClockData, EpochData, NavFrame, ObservationData, Record

# Reading and writing
from rinex_pipeline.parse_rinex import parse_rinex, read_rinex_file
from rinex_pipeline.write_rinex import format_rinex, write_rinex_file

# Transforms
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
)
from rinex_pipeline.decimate import decimate_interval, decimate_ratio
from rinex_pipeline.merge import merge, merge_all, merge_headers, merge_records
from rinex_pipeline.split import split, split_at, splice
from rinex_pipeline.distance import ConversionSkip, pseudorange_to_distance
from rinex_pipeline.sbas import SbasRegion, load_sbas_regions, select_sbas

# Pipeline
from rinex_pipeline.pipeline import PipelineOptions, PipelineResult, FileResult, run

# Logging
from rinex_pipeline.logger import get_logger, setup_logger

# Errors
from rinex_pipeline.errors import (
    RinexError,
    ParseError,
    HeaderError,
    BodyError,
    ConfigurationError,
    FilterError,
    MergeError,
    IncompatibleError,
    DataConflictError,
    SplitError,
    EpochNotFoundError,
    SbasError,
    InvalidCoordinateError,
    NotCoveredError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Constellation",
    "Sv",
    "Epoch",
    "EpochFlag",
    "Header",
    "RinexType",
    "ClockData",
    "EpochData",
    "NavFrame",
    "ObservationData",
    "Record",
    "parse_rinex",
    "read_rinex_file",
    "format_rinex",
    "write_rinex_file",
    "filter_constellations",
    "filter_epoch_nok",
    "filter_epoch_ok",
    "filter_event",
    "filter_lli",
    "filter_lock_loss",
    "filter_observables",
    "filter_ssi",
    "filter_svs",
    "decimate_interval",
    "decimate_ratio",
    "merge",
    "merge_all",
    "merge_headers",
    "merge_records",
    "split",
    "split_at",
    "splice",
    "ConversionSkip",
    "pseudorange_to_distance",
    "SbasRegion",
    "load_sbas_regions",
    "select_sbas",
    "PipelineOptions",
    "PipelineResult",
    "FileResult",
    "run",
    "setup_logger",
    "get_logger",
    "RinexError",
    "ParseError",
    "HeaderError",
    "BodyError",
    "ConfigurationError",
    "FilterError",
    "MergeError",
    "IncompatibleError",
    "DataConflictError",
    "SplitError",
    "EpochNotFoundError",
    "SbasError",
    "InvalidCoordinateError",
    "NotCoveredError",
]
