"""Logging for py_agile.

Every component logs through the `py_agile` logger. The console handler writes to stderr,
so event records written to stdout are never interleaved with log messages. The console
and an optional log file have separate thresholds: `agile-runmc -q --log-file run.log`
keeps the terminal quiet while the file receives the full DEBUG trace of the native
calls.

Examples:
    ```python
    import logging

    from py_agile.logger import enable_file_logging, logger, set_console_level

    set_console_level(logging.WARNING)
    enable_file_logging("fpythia.log")
    logger.debug("PYINIT(CMS, p+, p+, 14000.0)")
    ```
"""
import logging
import sys
from typing import Optional

__all__ = ('logger',
           'set_console_level',
           'enable_file_logging',
           'disable_file_logging',
)

console_handler = logging.StreamHandler(sys.stderr)
console_handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))

logger: logging.Logger = logging.getLogger('py_agile')
logger.addHandler(console_handler)
logger.setLevel(logging.INFO)

file_handler: Optional[logging.FileHandler] = None


def _update_logger_level() -> None:
    # The logger passes everything either handler wants
    levels = [console_handler.level or logging.INFO]
    if file_handler is not None:
        levels.append(file_handler.level)
    logger.setLevel(min(levels))


def set_console_level(level: int) -> None:
    """Set the threshold of console output."""
    console_handler.setLevel(level)
    _update_logger_level()


def enable_file_logging(filename: str = "agile.log", level: int = logging.DEBUG) -> logging.FileHandler:
    """Also log to `filename` (append mode), replacing any previous log file."""
    global file_handler
    disable_file_logging()
    file_handler = logging.FileHandler(filename)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter("%(asctime)s:%(levelname)s:%(name)s:%(message)s"))
    logger.addHandler(file_handler)
    _update_logger_level()
    return file_handler


def disable_file_logging() -> None:
    global file_handler
    if file_handler is not None:
        logger.removeHandler(file_handler)
        file_handler.close()
        file_handler = None
        _update_logger_level()
