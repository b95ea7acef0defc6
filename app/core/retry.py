"""
Caller-side retry for transient storage failures.

Only lock timeouts and dropped connections are retried; business-rule errors
(AppException subclasses) and integrity violations are final.
"""
import logging

from sqlalchemy.exc import DBAPIError, OperationalError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential, before_sleep_log

from app.core.config import settings

logger = logging.getLogger(__name__)


def is_transient_storage_error(exc: BaseException) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and bool(getattr(exc, "connection_invalidated", False))


storage_retry = retry(
    stop=stop_after_attempt(settings.storage_retry_attempts),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    retry=retry_if_exception(is_transient_storage_error),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True
)
