from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from outlier.core.errors import DomainError
from outlier.core.logging import get_correlation_id, get_logger
from outlier.core.metrics import inc_counter

logger = get_logger("outlier.routers.exceptions", component="http")


def error_payload(message: str, kind: str) -> dict[str, Any]:
    payload: dict[str, Any] = {"error": message, "kind": kind}
    correlation_id = get_correlation_id()
    if correlation_id:
        payload["correlation_id"] = correlation_id
    return payload


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid value")
    if location:
        return f"Invalid request body: {location}: {message}"
    return f"Invalid request body: {message}"


def register_exception_handlers(app: FastAPI) -> None:
    """Register shared HTTP translators for domain-layer exceptions."""

    @app.exception_handler(DomainError)
    async def _handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
        inc_counter(f"outlier.errors.{exc.error_code}")
        logger.info(
            "request_rejected",
            extra={"structured_data": {"path": request.url.path, "error_code": exc.error_code}},
        )
        status_code = getattr(exc, "status_code", 400)
        message = exc.message if status_code < 500 else exc.default_message
        return JSONResponse(status_code=status_code, content=error_payload(message, exc.error_code))

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        inc_counter("outlier.errors.invalid_request")
        return JSONResponse(
            status_code=400,
            content=error_payload(_describe_validation_error(exc), "invalid_request"),
        )
