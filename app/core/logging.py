"""
JSON log output.

Every record carries a UTC timestamp, its level, the service name and, inside
a request, the correlation id set by CorrelationIdMiddleware.
"""
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from app.core.config import settings

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


class LedgerJsonFormatter(jsonlogger.JsonFormatter):
    def __init__(self, *args, service: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self.service = service

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["level"] = record.levelname
        if self.service:
            log_record["service"] = self.service
        request_id = request_id_var.get()
        if request_id:
            log_record["request_id"] = request_id


def setup_logging(level: Optional[str] = None) -> None:
    root = logging.getLogger()
    # Importing the app twice (tests, reload) must not duplicate output
    if not any(isinstance(h.formatter, LedgerJsonFormatter) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(
            LedgerJsonFormatter("%(timestamp) %(level) %(name) %(message)", service=settings.app_name)
        )
        root.addHandler(handler)
    root.setLevel((level or settings.log_level).upper())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
