"""Tests for verbosity levels of engine log output."""

import logging
from datetime import date
from io import StringIO

from planline.engine.layout import layout_rows
from planline.logger import (
    CHANGES_LEVEL,
    CHECKS_LEVEL,
    changes_enabled,
    checks_enabled,
    get_logger,
    level_for_verbosity,
    reset_logger,
    setup_logger,
)
from planline.models import Project


def projects() -> list[Project]:
    return [
        Project("a", "A", date(2025, 1, 1), date(2025, 1, 10), group_id="web"),
        Project("b", "B", date(2025, 1, 5), date(2025, 1, 15), group_id="web"),
    ]


def test_verbosity_0_silent():
    """Test that verbosity 0 produces no output."""
    output_stream = StringIO()
    setup_logger(0, stream=output_stream)

    try:
        layout_rows(projects())
        output = output_stream.getvalue()
    finally:
        reset_logger()

    assert output == ""


def test_verbosity_1_shows_changes_only():
    output_stream = StringIO()
    setup_logger(1, stream=output_stream)

    try:
        assert changes_enabled()
        assert not checks_enabled()
        logger = get_logger()
        logger.changes("Moved holiday 'h2'")
        logger.checks("Holiday 'h2' passed")
        output = output_stream.getvalue()
    finally:
        reset_logger()

    assert output == "Moved holiday 'h2'\n"


def test_verbosity_2_shows_row_assignments():
    """Test that verbosity 2 shows every row decision."""
    output_stream = StringIO()
    setup_logger(2, stream=output_stream)

    try:
        layout_rows(projects())
        output = output_stream.getvalue()
    finally:
        reset_logger()

    assert "web: a -> row 0" in output
    assert "web: b -> row 1" in output


def test_verbosity_3_enables_debug():
    output_stream = StringIO()
    setup_logger(3, stream=output_stream)

    try:
        get_logger().debug("details")
        output = output_stream.getvalue()
    finally:
        reset_logger()

    assert "details" in output


def test_reset_logger():
    setup_logger(2, stream=StringIO())
    reset_logger()
    assert not changes_enabled()
    assert get_logger().handlers == []


def test_level_for_verbosity():
    assert level_for_verbosity(0) == logging.ERROR
    assert level_for_verbosity(1) == CHANGES_LEVEL
    assert level_for_verbosity(2) == CHECKS_LEVEL
    assert level_for_verbosity(5) == logging.DEBUG
