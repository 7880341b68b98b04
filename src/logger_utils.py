import logging
import os
import sys
import time
from typing import Dict, Optional


class ColoredFormatter(logging.Formatter):
    """Level-colored single line format: `<utc time> <LEVEL> <logger> = <message>`"""

    COLORS = {
        'DEBUG': '\033[36m',    # cyan
        'INFO': '\033[32m',     # green
        'WARNING': '\033[33m',  # yellow
        'ERROR': '\033[31m',    # red
        'CRITICAL': '\033[35m', # magenta
    }
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[90m'

    converter = time.gmtime

    def __init__(self, use_colors=True, stream=None):
        super().__init__()
        self.use_colors = use_colors and self._supports_color(stream or sys.stderr)

    @staticmethod
    def _supports_color(stream):
        return (
            hasattr(stream, "isatty") and stream.isatty() and
            os.environ.get('TERM') != 'dumb' and
            os.environ.get('NO_COLOR') is None
        )

    def format(self, record):
        timestamp = self.formatTime(record, '%Y-%m-%d %H:%M:%S UTC')
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        if self.use_colors:
            level_color = self.COLORS.get(record.levelname, '')
            level_name = f"{level_color}{self.BOLD}{record.levelname:<8}{self.RESET}"
            return f"{self.DIM}{timestamp}{self.RESET} {level_name} {record.name} = {message}"
        return f"{timestamp} - {record.levelname:<8} {record.name} = {message}"


def setup_logging(verbose=False, no_color=False, loggers: Optional[Dict[str, str]] = None):
    """Install one stderr handler on the root logger.

    `loggers` maps logger names to level names, e.g. {"web3": "warning"}.
    Library loggers that are chatty at debug level are capped at WARNING unless
    configured explicitly.
    """
    logger = logging.getLogger()

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter(use_colors=not no_color))

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    overrides = {"web3": "warning", "urllib3": "warning"}
    overrides.update(loggers or {})
    for name, level_name in overrides.items():
        logging.getLogger(name).setLevel(getattr(logging, level_name.upper()))

    return logger
