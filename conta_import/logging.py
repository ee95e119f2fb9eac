"""Logging setup for conta-import.

Import runs log one line per lot and per revocation failure. Those lines
carry structured context (``source``, ``lot_size``, ``conta_id``,
``topic``...) passed through ``extra=``; the JSON format emits it as
top-level keys so lot metrics can be filtered without parsing messages.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any, MutableMapping

# Libraries whose INFO/DEBUG output drowns the per-lot lines
NOISY_LOGGERS = ("confluent_kafka", "psycopg", "faker")

STANDARD_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"

_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}


def setup_logging(
    level: str = "INFO",
    format_type: str = "standard",
    stream: IO[str] | None = None,
) -> None:
    """Install a single root handler for import runs.

    Parameters
    ----------
    level : str
        Log level name; unknown names fall back to INFO.
    format_type : str
        ``"standard"`` (pipe-delimited, with the thread name so pooled
        emission workers are visible) or ``"json"``.
    stream : IO[str] | None
        Destination; defaults to stdout.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=STANDARD_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logging.getLogger("conta_import").setLevel(log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        log_data.update(structured_fields(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def structured_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the attributes added to ``record`` through ``extra=``."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class ImportLogAdapter(logging.LoggerAdapter):
    """Attach fixed context (source, lot size...) to every record.

    Unlike the stdlib adapter, per-call ``extra=`` is merged with the
    adapter context instead of being discarded.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs
