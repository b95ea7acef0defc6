"""
Exception -> HTTP response mapping.

Every error body has the shape {"success": false, "errors": [...]}; each error
carries `msg` and, for domain errors, `code` and optional `details`.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import AppException

logger = logging.getLogger(__name__)


def _error_response(status_code: int, errors: list) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "errors": errors})


async def handle_request_validation(request: Request, exc: RequestValidationError):
    errors = [
        {"field": str(error["loc"][-1]) if error["loc"] else "unknown", "msg": error["msg"]}
        for error in exc.errors()
    ]
    logger.warning(f"Rejected malformed request to {request.url.path}: {errors}")
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, errors)


async def handle_app_exception(request: Request, exc: AppException):
    # Business outcomes (insufficient balance, finalized run, ...) are expected; no traceback
    logger.warning(
        f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code}
    )
    error = {"msg": exc.message, "code": exc.error_code}
    if exc.details:
        error["details"] = exc.details
    return _error_response(exc.status_code, [error])


async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    msg = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error_response(exc.status_code, [{"msg": msg}])


async def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled server error", extra={"path": request.url.path})
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, [{"msg": "An unexpected server error occurred."}]
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
