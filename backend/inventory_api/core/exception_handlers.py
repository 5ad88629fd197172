"""
Exception handlers that give every error response the same body shape:
``{detail, errors?, request_id?}``.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from inventory_shared.config.logging import get_logger
from inventory_shared.utils.exceptions import AppException

logger = get_logger(__name__)


def _field_path(loc: tuple) -> str:
    # Drop the request part ("body", "query", ...) from the location
    parts = [str(part) for part in loc[1:]] if len(loc) > 1 else [str(part) for part in loc]
    return ".".join(parts)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Rewrite pydantic errors into ``{field: [messages]}`` keyed by dotted path."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        errors.setdefault(_field_path(tuple(error.get("loc", ()))), []).append(error.get("msg", "Invalid value"))

    logger.info("Request validation failed", path=request.url.path, fields=sorted(errors))
    return JSONResponse(
        status_code=422,
        content={"detail": "The given data was invalid.", "errors": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Generic 500. The exception text is logged, never returned."""
    request_id = getattr(request.state, "request_id", None)
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        error_type=type(exc).__name__,
        request_id=request_id,
        exc_info=exc,
    )
    content = {"detail": "Internal server error"}
    if request_id:
        content["request_id"] = request_id
    return JSONResponse(status_code=500, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
