"""Structured logging configuration.

Deal view logs carry ``product_id`` and ``data_source`` context so a
degraded fetch can be traced back to the product and row set it hit.
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from pythonjsonlogger import jsonlogger

from dealengine.config import settings

CONTEXT_FIELDS = ("product_id", "data_source")


class DealJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with UTC timestamp, level, code location and context."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['location'] = f"{record.filename}:{record.lineno}:{record.funcName}"
        # Always present so log queries can filter on them
        for name in CONTEXT_FIELDS:
            log_record.setdefault(name, getattr(record, name, None))


def setup_logging(base_dir: str | Path | None = None):
    """Configure console, JSON and error-file logging.

    Args:
        base_dir: Directory for the logs/ folder. Falls back to
                  ``settings.log_dir``, then the current working directory.
    """
    base = base_dir or settings.log_dir or None
    logs_dir = (Path(base) if base else Path.cwd()) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(console_handler)

    json_formatter = DealJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    for filename, level in (("deals.log", logging.DEBUG), ("error.log", logging.ERROR)):
        handler = logging.FileHandler(logs_dir / filename)
        handler.setLevel(level)
        handler.setFormatter(json_formatter)
        root_logger.addHandler(handler)

    return root_logger


class ContextAdapter(logging.LoggerAdapter):
    """Adds fixed context to every record; per-call ``extra`` wins on clashes."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs


def get_logger(name: str, **context) -> ContextAdapter:
    """
    Get a logger that tags records with deal view context.

    Args:
        name: Logger name (usually __name__)
        **context: Context fields, e.g. product_id='p1', data_source='coupons'
    """
    return ContextAdapter(logging.getLogger(name), context)
