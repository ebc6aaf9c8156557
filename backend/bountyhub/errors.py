"""Error types and the JSON error envelope shared by every route."""
import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

_DEFAULT_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "unprocessable",
    500: "internal_error",
    502: "upstream_error",
}


class ConfigurationError(RuntimeError):
    """Required configuration is absent or still a placeholder."""


def api_error(status_code: int, code: str, message: str, details: Any = None) -> HTTPException:
    """Build an HTTPException whose detail renders as the standard envelope."""
    return HTTPException(
        status_code=status_code,
        detail={"code": code, "message": message, "details": details},
    )


def error_body(code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {"error": {"code": code, "message": message, "details": details}}


def _envelope_from_detail(status_code: int, detail: Any) -> dict[str, Any]:
    default_code = _DEFAULT_CODES.get(status_code, "error")
    if isinstance(detail, dict) and "message" in detail:
        return error_body(detail.get("code") or default_code, detail["message"], detail.get("details"))
    if isinstance(detail, str):
        return error_body(default_code, detail)
    return error_body(default_code, "Request failed", detail)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope_from_detail(exc.status_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=error_body("validation_error", "Request validation failed", details),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("internal_error", "Internal server error"),
    )


def register_exception_handlers(app: FastAPI, *, include_fallback: bool = True) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    if include_fallback:
        app.add_exception_handler(Exception, unhandled_exception_handler)
