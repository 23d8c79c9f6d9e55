from typing import List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from outlier import __version__
from outlier.core.config import Settings, get_settings
from outlier.core.logging import configure_logging, correlation_context, get_logger
from outlier.core.metrics import inc_counter
from outlier.routers.calculate import router as calculate_router
from outlier.routers.exceptions import error_payload, register_exception_handlers
from outlier.schemas.calculate import HealthResponse

REQUEST_ID_HEADER = "X-Request-ID"

logger = get_logger("outlier.main", component="app")


def _content_length(scope: Scope) -> Optional[int]:
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


class BodyLimitMiddleware:
    """Reject request bodies larger than ``max_body_bytes`` before a route decodes them.

    A declared ``Content-Length`` is checked up front. Bodies without one
    (chunked transfer) are buffered up to the ceiling and then replayed to the
    application, so the limit holds whether or not the client declares a size.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = _content_length(scope)
        if length is not None:
            if length > self.max_body_bytes:
                await self._reject(scope, receive, send)
                return
            await self.app(scope, receive, send)
            return

        buffered: List[Message] = []
        received = 0
        while True:
            message = await receive()
            buffered.append(message)
            if message["type"] != "http.request":
                break
            received += len(message.get("body", b""))
            if received > self.max_body_bytes:
                await self._reject(scope, receive, send)
                return
            if not message.get("more_body", False):
                break

        async def replay() -> Message:
            if buffered:
                return buffered.pop(0)
            return await receive()

        await self.app(scope, replay, send)

    async def _reject(self, scope: Scope, receive: Receive, send: Send) -> None:
        inc_counter("outlier.errors.payload_too_large")
        response = JSONResponse(
            status_code=413,
            content=error_payload(
                f"Request body exceeds the limit of {self.max_body_bytes} bytes",
                "payload_too_large",
            ),
        )
        await response(scope, receive, send)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(
        level=settings.logging.level,
        fmt=settings.logging.format,
        output=settings.logging.output,
    )

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Calculate percentiles from numerical datasets via REST API",
    )
    app.dependency_overrides[get_settings] = lambda: settings
    register_exception_handlers(app)

    app.add_middleware(BodyLimitMiddleware, max_body_bytes=settings.limits.max_body_bytes)

    @app.middleware("http")
    async def _request_context(request: Request, call_next):
        with correlation_context(request.headers.get(REQUEST_ID_HEADER)) as cid:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = cid
            return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(calculate_router)

    @app.get("/health", response_model=HealthResponse, tags=["outlier"])
    def health() -> HealthResponse:
        """Liveness check; does not touch the computation pipeline."""
        return HealthResponse(status="healthy", service="outlier", version=__version__)

    return app


def serve(settings: Settings) -> None:
    """Run the API with uvicorn on the configured host and port."""

    app = create_app(settings)
    logger.info(
        "server_starting",
        extra={"structured_data": {"host": settings.server.host, "port": settings.server.port}},
    )
    logger.info(
        "api_docs_available",
        extra={"structured_data": {"url": f"http://{settings.server.host}:{settings.server.port}/docs"}},
    )
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )
