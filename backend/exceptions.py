"""Exception handlers. Clients get a generic body and a request id, details stay in the log."""
import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from fastapi import Request, HTTPException, FastAPI
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from backend.models.verification import InvalidVerificationUpdate

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An error occurred while processing your request"


def _error_response(
    status_code: int,
    request_id: str,
    error: Any,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any
) -> JSONResponse:
    content = {"error": error, "request_id": request_id}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _server_error(status_code: int, request_id: str) -> JSONResponse:
    return _error_response(
        status_code,
        request_id,
        GENERIC_ERROR,
        timestamp=datetime.now(timezone.utc).isoformat()
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = str(uuid.uuid4())
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path} [{request_id}]",
        exc_info=exc
    )
    return _server_error(500, request_id)


async def store_exception_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    """Nothing was written. A redelivered webhook event is safe to apply."""
    request_id = str(uuid.uuid4())
    logger.error(
        f"Store failure ({type(exc).__name__}) on {request.method} {request.url.path} [{request_id}]",
        exc_info=exc
    )
    return _server_error(500, request_id)


async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    request_id = str(uuid.uuid4())
    logger.warning(f"Validation error on {request.method} {request.url.path} [{request_id}]")
    return _error_response(
        422,
        request_id,
        "Validation failed",
        details=exc.errors(include_url=False, include_context=False)
    )


async def invalid_update_handler(request: Request, exc: InvalidVerificationUpdate) -> JSONResponse:
    request_id = str(uuid.uuid4())
    logger.warning(f"Rejected verification edit on {request.url.path} [{request_id}]: {exc}")
    return _error_response(409, request_id, str(exc))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """4xx keep their detail, 5xx are replaced with the generic message."""
    request_id = str(uuid.uuid4())

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code} on {request.method} {request.url.path} [{request_id}]: {exc.detail}")
        return _server_error(exc.status_code, request_id)

    return _error_response(exc.status_code, request_id, exc.detail, headers=exc.headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.add_exception_handler(PyMongoError, store_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(InvalidVerificationUpdate, invalid_update_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
