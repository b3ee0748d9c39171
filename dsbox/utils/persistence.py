"""dsbox data directories and logging setup."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

import click

from dsbox.config import Config, get_config

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_HANDLER_ATTR = "_dsbox_handler"


def _is_writable_directory(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    test_file = path / ".dsbox_write_test"
    try:
        test_file.write_text("", encoding="utf-8")
        test_file.unlink()
        return True
    except OSError:
        return False


def get_data_dir(config: Config | None = None) -> Path:
    """Get the data directory from config, falling back to the temp dir."""
    config = config or get_config()
    data_dir = config.paths.data_dir
    if data_dir is not None and _is_writable_directory(data_dir):
        return data_dir
    return Path(tempfile.gettempdir()) / "dsbox"


def get_logs_dir(config: Config | None = None) -> Path:
    """Get the logs directory, or the data directory if logs is not writable."""
    config = config or get_config()
    log_dir = config.paths.log_dir
    if log_dir is not None and _is_writable_directory(log_dir):
        return log_dir
    return get_data_dir(config)


def get_log_path(config: Config | None = None) -> Path:
    return get_logs_dir(config) / "dsbox.log"


class ConsoleHandler(logging.Handler):
    """Render log records with the launcher's colored status prefixes."""

    STYLES = {
        logging.DEBUG: ("[DEBUG]", "white"),
        logging.INFO: ("[INFO]", "blue"),
        logging.WARNING: ("[WARNING]", "yellow"),
        logging.ERROR: ("[ERROR]", "red"),
    }

    def emit(self, record: logging.LogRecord) -> None:
        try:
            levels = [lvl for lvl in self.STYLES if lvl <= record.levelno]
            prefix, color = self.STYLES[max(levels, default=logging.DEBUG)]
            click.secho(prefix, fg=color, nl=False, err=True)
            click.echo(f" {record.getMessage()}", err=True)
        except Exception:
            self.handleError(record)


def setup_logging(config: Config | None = None, verbose: bool = False) -> Path | None:
    """Attach file and console handlers to the ``dsbox`` logger.

    Handlers from a previous call are replaced. Returns the log file path, or
    None when no log file could be opened.
    """
    config = config or get_config()
    logger = logging.getLogger("dsbox")
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            logger.removeHandler(handler)
            handler.close()

    level = logging.getLevelName(config.logging.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console = ConsoleHandler()
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    setattr(console, _HANDLER_ATTR, True)
    logger.addHandler(console)

    log_path: Path | None = get_log_path(config)
    try:
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    except OSError:
        log_path = None
    else:
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        setattr(file_handler, _HANDLER_ATTR, True)
        logger.addHandler(file_handler)

    return log_path


__all__ = [
    "ConsoleHandler",
    "get_data_dir",
    "get_log_path",
    "get_logs_dir",
    "setup_logging",
]
