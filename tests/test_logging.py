"""Tests for the codeintel logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from codeintel.logging import configure_logging, get_logger


def test_get_logger_nests_under_codeintel() -> None:
    assert get_logger("coordinator").name == "codeintel.coordinator"
    assert get_logger().name == "codeintel"


@pytest.mark.parametrize(
    ("verbose", "quiet", "expected"),
    [
        (False, False, logging.INFO),
        (True, False, logging.DEBUG),
        (False, True, logging.WARNING),
        (True, True, logging.DEBUG),
    ],
)
def test_console_level_follows_flags(verbose: bool, quiet: bool, expected: int) -> None:
    logger = configure_logging(verbose=verbose, quiet=quiet)

    assert [handler.level for handler in logger.handlers] == [expected]
    assert logger.propagate is False


def test_console_output_goes_to_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging()

    get_logger("pipeline").info("Discovered %d files", 3)

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "[codeintel] INFO Discovered 3 files" in captured.err


def test_reconfiguring_replaces_handlers() -> None:
    configure_logging()
    logger = configure_logging(quiet=True)

    assert len(logger.handlers) == 1


def test_log_file_receives_debug_even_when_console_is_quiet(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    log_file = tmp_path / "logs" / "codeintel.log"
    logger = configure_logging(quiet=True, log_file=log_file)

    get_logger("coordinator").debug("regex parser failed for a.js")
    for handler in logger.handlers:
        handler.flush()

    assert "regex parser failed for a.js" in log_file.read_text(encoding="utf-8")
    assert "regex parser failed" not in capsys.readouterr().err
