from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from push_fanout.notifications.errors import PushPipelineError

logger = logging.getLogger(__name__)

_MISSING_ERROR_TYPES = {"missing", "string_too_short"}


def _field_name(loc: tuple) -> str:
    parts = [str(part) for part in loc if part != "body"]
    return ".".join(parts) if parts else "body"


def describe_validation_errors(errors: list[dict]) -> str:
    missing: list[str] = []
    invalid: list[str] = []
    for error in errors:
        name = _field_name(tuple(error.get("loc", ())))
        target = missing if error.get("type") in _MISSING_ERROR_TYPES else invalid
        if name not in target:
            target.append(name)
    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    return f"Invalid request fields: {', '.join(invalid)}"


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = describe_validation_errors(exc.errors())
    logger.info("Rejected request", extra={"path": request.url.path, "error": message})
    return JSONResponse(status_code=400, content={"error": message})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc.detail)})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


async def pipeline_exception_handler(request: Request, exc: PushPipelineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            extra={"path": request.url.path, "error_type": type(exc).__name__, "failed_state": exc.failed_state},
            exc_info=exc,
        )
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error", extra={"path": request.url.path, "error_type": type(exc).__name__}, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc) or type(exc).__name__})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    # Starlette's class covers routing errors such as 405 as well as FastAPI's subclass.
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(PushPipelineError, pipeline_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
