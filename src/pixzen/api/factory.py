"""FastAPI application factory."""

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from pixzen.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .routers import public
from .routes import admin, webhooks


def create_app() -> FastAPI:
    """Create the FastAPI app with every route mounted.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="PixZen WhatsApp AI",
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

    # Error bodies use {"error": ...} like the rest of the API
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    app.include_router(public.router)
    app.include_router(webhooks.router)
    app.include_router(admin.router)

    return app
