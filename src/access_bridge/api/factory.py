"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response

from access_bridge.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .routes import access_whatsapp, openings


def create_app() -> FastAPI:
    """Create the FastAPI app with the access routes mounted."""
    app = FastAPI(
        title="Access Bridge",
        docs_url=None,
        redoc_url=None,
    )

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

    app.include_router(access_whatsapp.router)
    app.include_router(openings.router)

    return app
