"""
Tests for rinex_pipeline.config module.

Tests configuration constants and the logging helpers built on them.
"""

import logging

import numpy as np
import pytest

import rinex_pipeline
from rinex_pipeline.config import (
    CONSTELLATION_ALIASES,
    CONSTELLATION_NAMES,
    EPOCH_FLAG_DESCRIPTIONS,
    EVENT_RECORD_FLAGS,
    KEPLERIAN_ORBIT_FIELDS,
    NAV_MESSAGE_TYPES,
    NAV_ORBIT_FIELDS,
    SPEED_OF_LIGHT,
    STATE_VECTOR_ORBIT_FIELDS,
    nav_orbit_fields,
)
from rinex_pipeline.logger import get_logger, setup_logger


class TestConstellationTables:
    """Test constellation letter tables."""

    def test_aliases_resolve_to_known_letters(self):
        """Every alias points at a known constellation letter."""
        for alias, letter in CONSTELLATION_ALIASES.items():
            assert letter in CONSTELLATION_NAMES, alias

    def test_gps_name(self):
        assert CONSTELLATION_NAMES["G"] == "GPS"


class TestEpochFlags:
    """Test epoch flag tables."""

    def test_seven_flags(self):
        assert sorted(EPOCH_FLAG_DESCRIPTIONS) == list(range(7))

    def test_event_flags(self):
        """Flags 2-5 carry special records, 6 (cycle slip) carries data."""
        assert EVENT_RECORD_FLAGS == (2, 3, 4, 5)


class TestNavigationLayout:
    """Test broadcast orbit layout tables."""

    def test_orbit_fields_fill_orbit_lines(self):
        """Each constellation has 4 field names per broadcast orbit line."""
        for letter in NAV_ORBIT_FIELDS:
            for version in ("2.11", "3.04", "3.05", "4.00"):
                assert len(nav_orbit_fields(letter, version)) % 4 == 0

    def test_glonass_layout_grows_from_305(self):
        """GLONASS frames have 3 orbit lines before RINEX 3.05 and 4 from it on."""
        assert len(nav_orbit_fields("R", "3.04")) == 12
        assert len(nav_orbit_fields("R", "3.05")) == 16
        assert len(nav_orbit_fields("R", "4.00")) == 16
        assert nav_orbit_fields("R", "3.05")[:12] == STATE_VECTOR_ORBIT_FIELDS

    def test_other_layouts_do_not_depend_on_version(self):
        assert nav_orbit_fields("G", "3.05") == KEPLERIAN_ORBIT_FIELDS
        assert nav_orbit_fields("S", "3.05") == STATE_VECTOR_ORBIT_FIELDS

    def test_field_sets(self):
        assert len(KEPLERIAN_ORBIT_FIELDS) == 28
        assert len(STATE_VECTOR_ORBIT_FIELDS) == 12

    def test_message_types(self):
        assert NAV_MESSAGE_TYPES["G"] == "LNAV"
        assert NAV_MESSAGE_TYPES["R"] == "FDMA"

    def test_galileo_frames_are_inav(self):
        """Galileo legacy frames are I/NAV messages, not GPS LNAV."""
        assert NAV_MESSAGE_TYPES["E"] == "INAV"


class TestPhysicalConstants:
    """Test physical constants."""

    def test_speed_of_light(self):
        assert np.isclose(SPEED_OF_LIGHT, 299792458.0)


class TestLogger:
    """Test logger setup."""

    def test_setup_logger_level_and_handlers(self, tmp_path):
        log_file = tmp_path / "run.log"
        logger = setup_logger("DEBUG", log_file=str(log_file), console=False, name="rinex_pipeline.test")
        assert logger.level == logging.DEBUG
        assert any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in log_file.read_text()
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)

    def test_setup_logger_replaces_handlers(self):
        name = "rinex_pipeline.test_replace"
        setup_logger("INFO", name=name)
        logger = setup_logger("INFO", name=name)
        stream_handlers = [h for h in logger.handlers if isinstance(h, logging.StreamHandler)]
        assert len(stream_handlers) == 1
        logger.removeHandler(stream_handlers[0])

    def test_get_logger_is_child_of_package(self):
        assert get_logger("custom").name == "rinex_pipeline.custom"
        assert get_logger("rinex_pipeline.merge").name == "rinex_pipeline.merge"

    def test_logger_helpers_exported_by_package(self):
        """The logging helpers are importable from the package itself."""
        assert rinex_pipeline.setup_logger is setup_logger
        assert rinex_pipeline.get_logger is get_logger
        assert "setup_logger" in rinex_pipeline.__all__
        assert "get_logger" in rinex_pipeline.__all__


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
