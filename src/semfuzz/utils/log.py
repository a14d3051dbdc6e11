"""
Logging configuration module with colored output.

Library modules only create loggers with ``logging.getLogger(__name__)``;
applications call ``config()`` once to get readable console output.
"""
import datetime
import logging
import os
import sys

# ----------------------------------------------------------------------------
# env helpers


def getenv(key: str, default: bool = False) -> bool:
    """Convert '0','1' env values to bool {True, False}"""
    return bool(int(os.getenv(key, default)))


# ----------------------------------------------------------------------------
# constants

PY_VER_MINOR = sys.version_info.minor
DEBUG = getenv("SEMFUZZ_DEBUG", default=False)
COLOR = getenv("SEMFUZZ_COLOR", default=True)

END = "\033[0m"
COLORS = {
    logging.DEBUG: "\033[90m",  # grey
    logging.INFO: "\033[32m",  # green
    logging.WARNING: "\033[33m",  # yellow
    logging.ERROR: "\033[31m",  # red
    logging.CRITICAL: "\033[1;31m",  # bold red
}


def use_color(stream=None) -> bool:
    """True when the stream is a terminal and NO_COLOR is unset."""
    stream = stream or sys.stderr
    if os.getenv("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


# ----------------------------------------------------------------------------
# logging config


class CustomFormatter(logging.Formatter):
    """Formatter prefixing each record with the time since logging started."""

    fmt = "%(delta)s - %(levelname)s - %(name)s.%(funcName)s - %(message)s"

    def __init__(self, use_color_flag=COLOR, stream=None):
        super().__init__(self.fmt)
        self.use_color_flag = use_color_flag and use_color(stream)
        self._build_formats()

    def _build_formats(self):
        """Build format strings for each log level."""
        if self.use_color_flag:
            self.formats = {
                level: (
                    "%(delta)s - "
                    f"{code}%(levelname)s{END}"
                    " - %(name)s.%(funcName)s - %(message)s"
                )
                for level, code in COLORS.items()
            }
        else:
            self.formats = {level: self.fmt for level in COLORS}

    def format(self, record):
        """Custom logger formatting method"""
        if PY_VER_MINOR > 10:
            duration = datetime.datetime.fromtimestamp(
                record.relativeCreated / 1000, datetime.UTC
            )
        else:
            duration = datetime.datetime.fromtimestamp(
                record.relativeCreated / 1000, datetime.timezone.utc
            )
        record.delta = duration.strftime("%H:%M:%S")

        log_fmt = self.formats.get(record.levelno, self.fmt)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


def config(name: str) -> logging.Logger:
    """Configure and return a logger with custom formatting.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    strm_handler = logging.StreamHandler()
    strm_handler.setFormatter(CustomFormatter(stream=strm_handler.stream))
    logging.basicConfig(
        level=logging.DEBUG if DEBUG else logging.INFO,
        handlers=[strm_handler],
    )
    return logging.getLogger(name)
