"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from formrelay.config import RelayConfig, load_config
from formrelay.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from formrelay.observability.logging import set_log_level
from formrelay.relay.decoder import MethodNotAllowedError
from formrelay.relay.service import FormRelay

from .routers import public
from .routes import form_webhook


def create_app(config: RelayConfig | None = None, relay: FormRelay | None = None) -> FastAPI:
    """Create the FastAPI app.

    Args:
        config: Explicit configuration. If None, read from environment.
        relay: Prebuilt relay pipeline (tests). Built from config if None.

    Returns:
        Configured FastAPI application.
    """
    if relay is None:
        relay = FormRelay(config or load_config())

    set_log_level(relay.config.log_level)

    app = FastAPI(
        title="Form Relay",
        docs_url=None,
        redoc_url=None,
    )
    app.state.relay = relay

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    # Methods the router does not know (TRACE, PROPFIND...) still get a plain-text 405
    @app.exception_handler(StarletteHTTPException)
    async def plain_text_405_handler(request: Request, exc: StarletteHTTPException) -> Response:
        if exc.status_code == MethodNotAllowedError.status_code:
            return PlainTextResponse(MethodNotAllowedError.detail, status_code=exc.status_code)
        return await http_exception_handler(request, exc)

    app.include_router(public.router)
    app.include_router(form_webhook.router)

    return app
