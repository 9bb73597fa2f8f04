"""Logging helpers.

The demo runs several participants in one process, so records can carry a
`participant` attribute (see `participant_logger`) that both formatters show.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOG_FILE_NAME = "livesharing.log"
CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(participant)s] %(message)s"


class JsonLogFormatter(logging.Formatter):
    """Structured JSON formatter for log file output."""

    _reserved = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "participant",
    }

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "participant": getattr(record, "participant", "-"),
            "message": record.getMessage(),
        }
        extras = {
            key: _json_safe(value)
            for key, value in record.__dict__.items()
            if key not in self._reserved and not key.startswith("_")
        }
        if extras:
            payload["context"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


class ParticipantFilter(logging.Filter):
    """Default the `participant` attribute so formatters can always use it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "participant"):
            record.participant = "-"
        return True


class ParticipantAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Logger adapter stamping every record with a participant id."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("participant", (self.extra or {}).get("participant", "-"))
        kwargs["extra"] = extra
        return msg, kwargs


def participant_logger(name: str, participant_id: str) -> ParticipantAdapter:
    return ParticipantAdapter(logging.getLogger(name), {"participant": participant_id})


def _json_safe(value: object) -> object:
    if isinstance(value, enum.Enum):
        return _json_safe(value.value)
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if is_dataclass(value) and not isinstance(value, type):
        return {
            "type": type(value).__name__,
            **{str(key): _json_safe(val) for key, val in asdict(value).items()},
        }
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _json_safe(val) for key, val in value.items()}
    return repr(value)


def setup_logging(
    log_dir: Path,
    level: str | int = "INFO",
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    log_file: Path | None = None,
) -> None:
    """Configure rotating JSON file logging plus console logging."""
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if isinstance(numeric, str):
            numeric = logging.INFO
    else:
        numeric = level

    if log_file is None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / LOG_FILE_NAME
    else:
        log_path = log_file
        log_path.parent.mkdir(parents=True, exist_ok=True)

    participant_filter = ParticipantFilter()
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(JsonLogFormatter())
    file_handler.addFilter(participant_filter)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    stream_handler.addFilter(participant_filter)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric)
    root_logger.handlers.clear()
    root_logger.addHandler(file_handler)
    root_logger.addHandler(stream_handler)
