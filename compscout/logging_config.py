"""Structured logging for the API and the offline crawl scripts.

Console output stays human-readable. Each process also writes one JSON
record per line to ``logs/<log_name>.log`` and mirrors errors to
``logs/error.log``. Records emitted through :func:`get_logger` carry the
brand/family they belong to, so a single family's crawl can be filtered
out of a batch run.
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

from compscout.config import settings

CONTEXT_FIELDS = ("brand", "family", "item_id", "query")

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "PIL", "aiosqlite")


class CrawlJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps time, level, origin and crawl context."""

    def __init__(self, *args, service: str = "compscout", **kwargs):
        super().__init__(*args, **kwargs)
        self.service = service

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['timestamp'] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['service'] = self.service
        log_record['origin'] = f"{record.module}.{record.funcName}:{record.lineno}"
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_record[field] = value


class ContextConsoleFormatter(logging.Formatter):
    """Plain formatter that appends ``[Brand Family]`` when a record has one."""

    def format(self, record):
        line = super().format(record)
        brand = getattr(record, "brand", None)
        family = getattr(record, "family", None)
        if brand and family:
            line = f"{line} [{brand} {family}]"
        return line


def setup_logging(
    log_name: str = "compscout",
    base_dir: str | Path | None = None,
    level: Optional[str] = None,
) -> logging.Logger:
    """Install console and JSON file handlers on the root logger.

    Args:
        log_name: Stem of the JSON log file; also recorded as ``service``.
        base_dir: Directory that holds ``logs/``. Defaults to the cwd.
        level: Overrides ``settings.log_level``.
    """
    logs_dir = Path(base_dir or Path.cwd()) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ContextConsoleFormatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s"))
    root.addHandler(console)

    json_formatter = CrawlJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s", service=log_name)
    for filename, handler_level in ((f"{log_name}.log", logging.DEBUG), ("error.log", logging.ERROR)):
        handler = logging.FileHandler(logs_dir / filename, encoding="utf-8")
        handler.setLevel(handler_level)
        handler.setFormatter(json_formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


class FamilyLoggerAdapter(logging.LoggerAdapter):
    """Adds bound context fields to ``extra`` without clobbering per-call ones."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs


def get_logger(name: str, **context) -> FamilyLoggerAdapter:
    """Logger bound to crawl context, e.g. ``get_logger(__name__, brand="Seiko", family="Prospex")``."""
    return FamilyLoggerAdapter(logging.getLogger(name), context)
