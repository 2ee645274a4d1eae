from datetime import datetime
from pytz import timezone
import logging.config
import logging
import os
from logging import Logger


debug_mode = os.getenv("LOG_LEVEL", "info").lower() == "debug"
loglevel = logging.INFO if not debug_mode else logging.DEBUG

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_ANSI_RESET = "\033[0m"
_ANSI_COLORS: dict[str, str] = {
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "white": "\033[37m",
}

_LEVEL_PREFIX: dict[int, str] = {
    logging.CRITICAL: "⛔ ",
    logging.ERROR: "⛔ ",
    logging.WARNING: "⚠️ ",
}

# third party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "pypdf", "PIL", "multipart")


class PdfNoiseFilter(logging.Filter):
    """Drop pypdf's per-object parse warnings, broken PDFs already end up as placeholder text."""

    def filter(self, record: logging.LogRecord) -> bool:
        return not (record.name.startswith("pypdf") and record.levelno < logging.ERROR)


class CustomFormatter(logging.Formatter):
    """Timezone aware timestamps and an emoji prefix on warnings and errors."""

    def __init__(self, tz_name: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, self.tz)
        return stamp.strftime(datefmt) if datefmt else stamp.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # mismatched %-args, log the raw template instead of crashing the handler
            message = str(record.msg)
        record.msg = _LEVEL_PREFIX.get(record.levelno, "") + message
        record.args = ()
        return super().format(record)


class ColoredFormatter(CustomFormatter):
    """Console formatter, colours a line when the record carries a ``color`` attribute."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _ANSI_COLORS.get(getattr(record, "color", None) or "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi and line else line


class ColorLogger:
    """Wrapper around :class:`logging.Logger` adding an optional ``color=`` keyword.

    Usage::

        logger.info("Compile finished: %d chunks", count, color="green")

    Colours only reach the console handler; the file handler writes plain text.
    Anything else (``setLevel``, ``handlers``, ...) is forwarded to the wrapped logger.
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs):
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        # stacklevel 3 points the record at the caller, not at this wrapper
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg, *args, **kwargs):
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self.log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg, *args, **kwargs):
        self.log(logging.CRITICAL, msg, *args, **kwargs)

    def exception(self, msg, *args, **kwargs):
        kwargs.setdefault("exc_info", True)
        self.log(logging.ERROR, msg, *args, **kwargs)

    def __getattr__(self, name):
        return getattr(self._logger, name)


def _handler(handler_class: str, formatter: str, **options) -> dict:
    return {"class": handler_class, "formatter": formatter, "level": loglevel, "filters": ["pdf_noise"], **options}


def setup_logging(name: str = "docchat") -> ColorLogger:
    """Configure console + file logging and return the application logger.

    The log file lives in ``$ROOT_DIR/logs/app.log`` (ROOT_DIR defaults to the
    working directory). Timestamps use ``$TIMEZONE`` (default Europe/Berlin).
    """
    log_dir = os.path.join(os.environ.get("ROOT_DIR", os.getcwd()), "logs")
    os.makedirs(log_dir, exist_ok=True)
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")

    formatter_options = {"format": LOG_FORMAT, "datefmt": LOG_DATEFMT, "tz_name": tz_name}
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"pdf_noise": {"()": PdfNoiseFilter}},
        "formatters": {
            "standard": {"()": CustomFormatter, **formatter_options},
            "colored": {"()": ColoredFormatter, **formatter_options},
        },
        "handlers": {
            "console": _handler("logging.StreamHandler", "colored", stream="ext://sys.stdout"),
            "file": _handler("logging.FileHandler", "standard", filename=os.path.join(log_dir, "app.log"), encoding="utf-8"),
        },
        "root": {"handlers": ["console", "file"], "level": loglevel},
    })

    for noisy in _QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.DEBUG if debug_mode else logging.WARNING)

    return ColorLogger(logging.getLogger(name))
