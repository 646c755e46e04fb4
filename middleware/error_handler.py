"""
Request tracing and error responses for the txreflex API.

Every response carries an ``X-Correlation-ID`` header; every error body has
the shape ``{"error": {"code", "message", "correlation_id", "timestamp"}}``.
"""

import logging
import time
import uuid
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from errors.exceptions import PoolExhausted, ReflexError, RefillFailure

logger = logging.getLogger(__name__)

# Errors not listed here map to 500
STATUS_CODE_MAP = {
    "INITIALIZATION_FAILURE": 503,
    "NOT_READY": 503,
    "LEDGER_ERROR": 503,
    "POOL_EXHAUSTED": 409,
    "BROADCAST_FAILURE": 502,
}


def status_for(code: str) -> int:
    return STATUS_CODE_MAP.get(code, 500)


async def add_correlation_id_middleware(request: Request, call_next):
    """Tag the request with a correlation ID and log how long it took"""
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    request.state.correlation_id = correlation_id
    started = time.perf_counter()

    response = await call_next(request)

    response.headers["X-Correlation-ID"] = correlation_id
    logger.debug(
        f"{request.method} {request.url.path} -> {response.status_code}",
        extra={
            "correlation_id": correlation_id,
            "method": request.method,
            "endpoint": request.url.path,
            "status_code": response.status_code,
            "duration": time.perf_counter() - started,
        }
    )
    return response


def create_error_response(
    error_code: str,
    message: str,
    status_code: int = 400,
    correlation_id: str = None,
    details: dict = None
) -> JSONResponse:
    body = {
        "error": {
            "code": error_code,
            "message": message,
            "correlation_id": correlation_id,
            "timestamp": int(time.time() * 1000)
        }
    }
    if details:
        body["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def error_details(exc: ReflexError) -> dict:
    """Pool position attached to pool errors so clients can tell what ran out"""
    if isinstance(exc, PoolExhausted):
        return {"cursor": exc.cursor, "size": exc.size}
    if isinstance(exc, RefillFailure):
        return {"start_sequence": exc.start_sequence, "count": exc.count}
    return None


async def reflex_error_handler(request: Request, exc: ReflexError) -> JSONResponse:
    correlation_id = getattr(request.state, "correlation_id", None)
    status_code = status_for(exc.code)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"{exc.code}: {exc.message}",
        extra={
            "error_code": exc.code,
            "correlation_id": correlation_id,
            "endpoint": request.url.path,
            "status_code": status_code,
        }
    )

    return create_error_response(
        error_code=exc.code,
        message=exc.message,
        status_code=status_code,
        correlation_id=correlation_id,
        details=error_details(exc)
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    correlation_id = getattr(request.state, "correlation_id", None)
    errors = exc.errors()

    logger.warning(
        "Request validation failed",
        extra={"correlation_id": correlation_id, "endpoint": request.url.path}
    )

    return create_error_response(
        error_code="VALIDATION_ERROR",
        message="Request validation failed",
        status_code=422,
        correlation_id=correlation_id,
        details={"validation_errors": errors}
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    correlation_id = getattr(request.state, "correlation_id", None)
    return create_error_response(
        error_code="HTTP_ERROR",
        message=str(exc.detail),
        status_code=exc.status_code,
        correlation_id=correlation_id
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    correlation_id = getattr(request.state, "correlation_id", None)

    logger.error(
        f"Unhandled {type(exc).__name__}: {exc}",
        exc_info=exc,
        extra={"correlation_id": correlation_id, "endpoint": request.url.path}
    )

    # Internal details only leak at debug level
    message = "Internal server error"
    if logger.isEnabledFor(logging.DEBUG):
        message = f"Internal error: {exc}"

    return create_error_response(
        error_code="INTERNAL_ERROR",
        message=message,
        status_code=500,
        correlation_id=correlation_id
    )


def setup_error_handlers(app):
    app.middleware("http")(add_correlation_id_middleware)

    app.add_exception_handler(ReflexError, reflex_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
