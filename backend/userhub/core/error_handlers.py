# userhub/core/error_handlers.py
import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from userhub.core.error_messages import DownstreamError

logger = logging.getLogger(__name__)


def _field_name(loc) -> str:
    # ("body", "email") -> "email"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header", "form")]
    return ".".join(parts) or "body"


def format_validation_errors(errors) -> list:
    """Turn pydantic error dicts into `[{"field", "message"}]`."""
    formatted = []
    for err in errors:
        field = _field_name(err.get("loc", ()))
        if err.get("type") == "missing":
            message = f"Missing required field {field}"
        else:
            message = f"{field}: {err.get('msg')}"
        formatted.append({"field": field, "message": message})
    return formatted


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc, DownstreamError):
        logger.error(
            "%s %s failed: %s (%s)",
            request.method,
            request.url.path,
            exc.detail,
            getattr(exc, "internal", None),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = format_validation_errors(exc.errors())
    message = errors[0]["message"] if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": message, "errors": errors},
    )


async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal Server Error"},
    )
