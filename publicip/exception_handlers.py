from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from publicip.logger import get_logger

logger = get_logger(__name__)

# Query parameters with a dedicated error code and message.
FIELD_ERRORS: dict[str, tuple[str, str]] = {
    "source_ip": ("invalid_source_ip", "The supplied source IP is not a valid IPv4 or IPv6 address."),
    "ip_version": ("invalid_ip_version", "The supplied ip_version must be either 'v4' or 'v6'."),
}


def _normalize_pydantic_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Make sure Pydantic error dicts are JSON-serializable."""
    normalized: list[dict[str, Any]] = []
    for error in errors:
        e = dict(error)
        ctx = e.get("ctx")
        if isinstance(ctx, dict):
            e["ctx"] = {k: str(v) for k, v in ctx.items()}
        normalized.append(e)
    return normalized


def _build_validation_error_payload(exc: ValidationError | RequestValidationError) -> dict:
    """Normalize validation errors into a `code`/`message` payload.

    Internal validation details are not exposed to clients.
    """
    code = "invalid_request"
    message = "Invalid request parameters"

    for error in _normalize_pydantic_errors(exc.errors()):
        loc = error.get("loc", ())
        if len(loc) >= 1 and loc[-1] in FIELD_ERRORS:
            code, message = FIELD_ERRORS[loc[-1]]
            break

    return {
        "code": code,
        "message": message,
    }


async def pydantic_validation_exception_handler(
    request: Request,
    exc: ValidationError | RequestValidationError,
) -> JSONResponse:
    """Handle validation errors of query parameters and of models built during dependency resolution.

    FastAPI validates typed query parameters (e.g. the `ip_version` enum) itself and raises
    RequestValidationError; validators of the request model raise a plain ValidationError.
    Both are answered with the same 400 payload.
    """
    logger.info(
        "Pydantic validation error during request handling "
        f"path={request.url.path} method={request.method} errors={exc.errors()}"
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_build_validation_error_payload(exc))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected errors to return a structured 500 response."""
    logger.exception(
        f"Unhandled exception while processing request: {repr(exc)} path={request.url.path} method={request.method}"
    )
    content: dict[str, Any] = {
        "code": "internal_error",
        "message": "An unexpected error occurred while processing the request.",
    }
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
    )
