"""JSON-lines logging for ThinkForge commands.

Each command logs to ``<workspace>/logs/<command>.log`` through a rotating
file handler. ``--verbose`` additionally mirrors records to stderr in a short
human-readable form.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

__all__ = [
    "JsonLogFormatter",
    "configure_logger",
]

_FILE_HANDLER = "thinkforge-file"
_CONSOLE_HANDLER = "thinkforge-console"

_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}


class JsonLogFormatter(logging.Formatter):
    """Render records as one JSON object per line.

    Attributes passed through ``extra=`` are grouped under ``"extra"``;
    values JSON cannot encode are written with ``str()``.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS
        }
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logger(
    name: str,
    *,
    log_dir: Path,
    level: str = "INFO",
    verbose: bool = False,
    max_bytes: int = 2 * 1024 * 1024,
    backup_count: int = 3,
) -> tuple[logging.Logger, Path]:
    """Return ``name``'s logger and the JSON log file it writes to.

    The file is named after the last dotted segment of ``name``. Calling
    this again for the same logger adjusts levels on the existing handlers.
    """

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    file_handler = _find_handler(logger, _FILE_HANDLER)
    if file_handler is None:
        log_dir.mkdir(parents=True, exist_ok=True)
        path = log_dir / f"{name.rsplit('.', 1)[-1]}.log"
        path.touch(mode=0o600, exist_ok=True)
        file_handler = RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.set_name(_FILE_HANDLER)
        file_handler.setFormatter(JsonLogFormatter())
        logger.addHandler(file_handler)
    file_handler.setLevel(logging.DEBUG if verbose else _level_number(level))

    console = _find_handler(logger, _CONSOLE_HANDLER)
    if verbose and console is None:
        console = logging.StreamHandler(sys.stderr)
        console.set_name(_CONSOLE_HANDLER)
        console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(console)
    elif not verbose and console is not None:
        logger.removeHandler(console)
        console.close()

    return logger, Path(file_handler.baseFilename)


def _find_handler(
    logger: logging.Logger, handler_name: str
) -> Optional[Any]:
    for handler in logger.handlers:
        if handler.get_name() == handler_name:
            return handler
    return None


def _level_number(level: str) -> int:
    return logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
