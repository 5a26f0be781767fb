"""
Configuration and constants for rinex_pipeline module.

This module centralizes all magic numbers, configuration values, and constants
used throughout the package.
"""

from astropy.constants import c as speed_light

# ============================================================================
# Constellations
# ============================================================================

# RINEX one letter system identifier -> constellation name
CONSTELLATION_NAMES = {
    "G": "GPS",
    "R": "GLONASS",
    "E": "Galileo",
    "C": "BeiDou",
    "J": "QZSS",
    "I": "IRNSS",
    "S": "SBAS",
    "M": "Mixed",
}

# Alternative spellings accepted in filter arguments
CONSTELLATION_ALIASES = {
    "GPS": "G",
    "GLO": "R",
    "GLONASS": "R",
    "GAL": "E",
    "GALILEO": "E",
    "BDS": "C",
    "BEIDOU": "C",
    "QZS": "J",
    "QZSS": "J",
    "IRN": "I",
    "IRNSS": "I",
    "NAVIC": "I",
    "SBS": "S",
    "SBAS": "S",
    "GEO": "S",
    "MIXED": "M",
}

# ============================================================================
# Epoch flags
# ============================================================================

EPOCH_FLAG_DESCRIPTIONS = {
    0: "Ok",
    1: "PowerFailure",
    2: "AntennaBeingMoved",
    3: "NewSiteOccupation",
    4: "HeaderInformationFollows",
    5: "ExternalEvent",
    6: "CycleSlip",
}

# Flags whose epoch line is followed by special records instead of data
EVENT_RECORD_FLAGS = (2, 3, 4, 5)

# ============================================================================
# Observation record layout
# ============================================================================

# Observation field: F14.3 value, I1 LLI, I1 SSI
OBS_FIELD_WIDTH = 16
OBS_VALUE_WIDTH = 14

# RINEX2 holds 5 observations per line and 12 satellites per epoch line
RINEX2_OBS_PER_LINE = 5
RINEX2_SV_PER_LINE = 12

MAX_LLI = 7
# LLI bit set when the receiver lost lock on the signal
LLI_LOCK_LOSS = 0x01
MAX_SSI = 9

# Observable codes starting with these letters are pseudo ranges
PSEUDORANGE_PREFIXES = ("C", "P")

OBSERVABLE_PREFIXES = ("C", "L", "D", "S", "P")

# ============================================================================
# Navigation record layout
# ============================================================================

NAV_FIELD_WIDTH = 19

# Message type attached to legacy broadcast ephemeris frames
NAV_MESSAGE_TYPES = {
    "G": "LNAV",
    "E": "INAV",
    "C": "LNAV",
    "J": "LNAV",
    "I": "LNAV",
    "R": "FDMA",
    "S": "SBAS",
}

KEPLERIAN_ORBIT_FIELDS = [
    "iode", "crs", "delta_n", "m0",
    "cuc", "e", "cus", "sqrt_a",
    "toe", "cic", "omega0", "cis",
    "i0", "crc", "omega", "omega_dot",
    "idot", "l2_codes", "week", "l2p_flag",
    "sv_accuracy", "sv_health", "tgd", "iodc",
    "t_tm", "fit_interval", "spare1", "spare2",
]

STATE_VECTOR_ORBIT_FIELDS = [
    "x", "vel_x", "accel_x", "health",
    "y", "vel_y", "accel_y", "channel",
    "z", "vel_z", "accel_z", "age_op",
]

# RINEX 3.05 and later add a fourth broadcast orbit line to GLONASS frames
GLONASS_305_ORBIT_FIELDS = STATE_VECTOR_ORBIT_FIELDS + [
    "status_flags", "group_delay_diff", "urai", "health_flags",
]

GLONASS_EXTENDED_ORBIT_VERSION = 3.05

NAV_ORBIT_FIELDS = {
    "G": KEPLERIAN_ORBIT_FIELDS,
    "E": KEPLERIAN_ORBIT_FIELDS,
    "C": KEPLERIAN_ORBIT_FIELDS,
    "J": KEPLERIAN_ORBIT_FIELDS,
    "I": KEPLERIAN_ORBIT_FIELDS,
    "R": STATE_VECTOR_ORBIT_FIELDS,
    "S": STATE_VECTOR_ORBIT_FIELDS,
}


def nav_orbit_fields(letter: str, version: str) -> list[str]:
    """
    Broadcast orbit field names of one navigation frame, four per line.

    Parameters
    ----------
    letter : str
        Constellation letter of the satellite
    version : str
        RINEX VERSION of the file

    Returns
    -------
    list[str]
        Field names in file order
    """
    if letter == "R" and float(version) >= GLONASS_EXTENDED_ORBIT_VERSION:
        return GLONASS_305_ORBIT_FIELDS
    return NAV_ORBIT_FIELDS[letter]


# ============================================================================
# Meteo and clock records
# ============================================================================

METEO_CODES = ("PR", "TD", "HR", "ZW", "ZD", "ZT", "WD", "WS", "RI", "HI")

METEO_FIELD_WIDTH = 7
METEO_VALUES_PER_LINE = 8

CLOCK_DATA_TYPES = ("AR", "AS", "CR", "DR", "MS")

# ============================================================================
# Physical constants
# ============================================================================

SPEED_OF_LIGHT = speed_light.value  # m/s

# ============================================================================
# Merge
# ============================================================================

# Comment recorded in the header of a merged file
MERGE_COMMENT_MARKER = "FILE MERGE"

PROGRAM_NAME = "rinex_pipeline"

# ============================================================================
# SBAS
# ============================================================================

SBAS_REGION_FILE = "sbas_regions.txt"

# ============================================================================
# Parallel Processing Configuration
# ============================================================================

# Maximum number of worker threads for per-file processing
MAX_WORKERS = 8

# ============================================================================
# Logging
# ============================================================================

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
