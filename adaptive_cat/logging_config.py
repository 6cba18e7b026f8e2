"""
Optional log formatting for hosts embedding the engine.

Engine modules only create loggers with ``logging.getLogger(__name__)`` and
never install handlers. A host that has no logging setup of its own can call
:func:`setup_logging` once to get plain-text or one-JSON-object-per-line
output for the ``adaptive_cat`` logger tree.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from adaptive_cat.config import engine_config

# Identifier of the session being scored. Hosts set it around engine calls so
# every line logged for one attempt can be grouped.
session_id_context: ContextVar[Optional[str]] = ContextVar("session_id", default=None)

# Record attributes copied into JSON output when passed through ``extra=``
ENGINE_FIELDS = ("item_id", "theta", "standard_error", "item_count")

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the session id when one is set."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        session_id = session_id_context.get()
        if session_id:
            entry["session_id"] = session_id

        entry.update(
            {name: getattr(record, name) for name in ENGINE_FIELDS if hasattr(record, name)}
        )

        if record.levelno >= logging.ERROR:
            entry["source"] = f"{record.pathname}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _handler_config(level: int, use_json: bool) -> Dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": "json" if use_json else "text",
        "stream": sys.stdout,
    }


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Install a stdout handler on the ``adaptive_cat`` logger.

    Loggers outside the ``adaptive_cat`` tree are left alone.

    Args:
        level: Level name such as ``"DEBUG"``. Defaults to
            ``engine_config.LOG_LEVEL``; unknown names fall back to INFO.
        log_format: ``"json"`` or ``"text"``. Defaults to
            ``engine_config.LOG_FORMAT``.
    """
    level_name = (level or engine_config.LOG_LEVEL).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    use_json = (log_format or engine_config.LOG_FORMAT) == "json"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "text": {"format": TEXT_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
                "json": {"()": JSONFormatter},
            },
            "handlers": {"engine": _handler_config(numeric_level, use_json)},
            "loggers": {
                "adaptive_cat": {
                    "level": numeric_level,
                    "handlers": ["engine"],
                    "propagate": False,
                },
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``, normally a module's ``__name__``."""
    return logging.getLogger(name)
