import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from common.core_utils import SymbolFormatter, parse_log_level, setup_logging


@pytest.fixture
def mock_root_logger(mocker):
    """
    Fixture to mock the root logger.

    pytest's own log capture also talks to the root logger, so tests assert
    the specific handlers rather than call counts.
    """
    mock_logger = MagicMock()
    mocker.patch("logging.getLogger", return_value=mock_logger)
    mock_logger.handlers = []
    return mock_logger


def test_setup_logging_with_file_and_console(mocker, mock_root_logger, tmp_path):
    """Test setup_logging when both log_file and log_to_console are provided."""
    mock_file_handler = mocker.patch("logging.FileHandler")
    mock_stream_handler = mocker.patch("logging.StreamHandler")
    mock_formatter = mocker.patch("common.core_utils.SymbolFormatter")

    log_file_path = str(tmp_path / "logs" / "harness.log")

    setup_logging(log_file=log_file_path, log_to_console=True)

    mock_file_handler.assert_called_once_with(Path(log_file_path), mode="a")
    mock_stream_handler.assert_called_once_with(sys.stdout)
    assert mock_formatter.call_count == 1
    mock_root_logger.addHandler.assert_any_call(mock_file_handler.return_value)
    mock_root_logger.addHandler.assert_any_call(mock_stream_handler.return_value)
    assert (tmp_path / "logs").is_dir()


def test_setup_logging_without_handlers(mocker, mock_root_logger):
    """A console handler is installed even when none is requested."""
    mock_stream_handler = mocker.patch("logging.StreamHandler")
    mocker.patch("common.core_utils.SymbolFormatter")

    setup_logging(log_to_console=False, log_file=None)

    mock_stream_handler.assert_called_once_with(sys.stdout)
    mock_root_logger.addHandler.assert_any_call(mock_stream_handler.return_value)


def test_setup_logging_with_custom_format(mocker, mock_root_logger):
    mock_formatter = mocker.patch("common.core_utils.SymbolFormatter")

    custom_format = "{log_prefix}%(asctime)s - %(levelname)s - %(message)s"
    custom_prefix = "[BC-TDD]"
    symbols = {"info": "i"}

    setup_logging(
        log_format_str=custom_format, log_prefix=custom_prefix, symbols=symbols
    )

    mock_formatter.assert_called_once_with(
        fmt=custom_format.format(log_prefix=custom_prefix + " "),
        datefmt="%Y-%m-%d %H:%M:%S",
        symbols=symbols,
    )


def test_setup_logging_level_by_name(mock_root_logger):
    setup_logging(log_level="debug")

    mock_root_logger.setLevel.assert_any_call(logging.DEBUG)


def test_setup_logging_replaces_existing_handlers(mock_root_logger):
    old_handler = MagicMock()
    mock_root_logger.handlers = [old_handler]

    setup_logging()

    mock_root_logger.removeHandler.assert_any_call(old_handler)


def test_setup_logging_warning_on_file_handler_failure(capsys, mocker, mock_root_logger):
    mocker.patch("logging.FileHandler", side_effect=OSError("read-only"))

    setup_logging(log_file="invalid/path.log")
    captured = capsys.readouterr()

    assert "Warning: Could not create file handler for log file" in captured.err


@pytest.mark.parametrize(
    "value, expected",
    [
        ("DEBUG", logging.DEBUG),
        ("warning", logging.WARNING),
        (logging.ERROR, logging.ERROR),
        (None, logging.INFO),
        ("nonsense", logging.INFO),
    ],
)
def test_parse_log_level(value, expected):
    assert parse_log_level(value) == expected


def _record(level):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="",
        lineno=0,
        msg="message",
        args=(),
        exc_info=None,
    )


def test_symbol_formatter_uses_default_symbols():
    formatter = SymbolFormatter(fmt="%(symbol)s %(message)s")

    assert "🐛" in formatter.format(_record(logging.DEBUG))
    assert "❌" in formatter.format(_record(logging.ERROR))
    assert "🔥" in formatter.format(_record(logging.CRITICAL))


def test_symbol_formatter_uses_configured_symbols():
    formatter = SymbolFormatter(
        fmt="%(symbol)s %(message)s", symbols={"warning": "W"}
    )

    assert formatter.format(_record(logging.WARNING)) == "W message"
