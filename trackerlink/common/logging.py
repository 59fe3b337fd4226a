import datetime as dt
import json
from typing import override
import logging
import logging.config
import atexit
from pathlib import Path

DEFAULT_LOG_DIR = Path("data") / "logs"
LOG_FILE_MAX_BYTES = 5_000_000
LOG_FILE_BACKUPS = 5

# attributes every LogRecord carries; anything else came in through extra=
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", (), None))
) | {"message", "asctime"}

# output key -> LogRecord attribute
RECORD_FIELDS = (
    ("level", "levelname"),
    ("logger", "name"),
    ("module", "module"),
    ("function", "funcName"),
    ("line", "lineno"),
    ("task", "taskName"),
)


class JSONLogFormatter(logging.Formatter):
    """One JSON object per record.

    ``fields`` picks which record attributes are written and under what
    key. Values given through ``extra=`` are nested under ``"context"``
    so they never shadow a record field.
    """

    def __init__(self, *, fields=RECORD_FIELDS):
        super().__init__()
        self.fields = tuple(fields)

    @override
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(self.to_dict(record), default=str)

    def to_dict(self, record: logging.LogRecord) -> dict:
        entry = {
            "timestamp": dt.datetime.fromtimestamp(
                record.created, tz=dt.timezone.utc
            ).isoformat(),
            "message": record.getMessage(),
        }
        for key, attr in self.fields:
            value = getattr(record, attr, None)
            if value is not None:
                entry[key] = value

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS
        }
        if context:
            entry["context"] = context
        return entry


def _level_name(level: int | str) -> str:
    return logging.getLevelName(level) if isinstance(level, int) else level.upper()


def build_logging_config(
    log_path: Path,
    level: int | str = logging.INFO,
    console_level: int | str = logging.WARNING,
) -> dict:
    """dictConfig schema: records go through a queue to stderr and a rotating JSON file."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
                "datefmt": "%H:%M:%S",
            },
            "json": {"()": JSONLogFormatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": _level_name(console_level),
                "formatter": "console",
                "stream": "ext://sys.stderr",
            },
            "file_json": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": "DEBUG",
                "formatter": "json",
                "filename": str(log_path),
                "maxBytes": LOG_FILE_MAX_BYTES,
                "backupCount": LOG_FILE_BACKUPS,
            },
            "queue_handler": {
                "class": "logging.handlers.QueueHandler",
                "handlers": ["console", "file_json"],
                "respect_handler_level": True,
            },
        },
        "root": {"level": _level_name(level), "handlers": ["queue_handler"]},
    }


def config_logging(
    file_name: str,
    log_dir: Path = DEFAULT_LOG_DIR,
    level: int | str = logging.INFO,
) -> Path:
    log_path = Path(log_dir) / file_name
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(log_path, level))

    # the queue listener runs on its own thread until interpreter exit
    listener = logging.getHandlerByName("queue_handler").listener
    listener.start()
    atexit.register(listener.stop)
    return log_path
