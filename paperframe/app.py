"""
FastAPI application entry point for the paperframe backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from paperframe.config import Settings, get_settings
from paperframe.errors import PaperframeError
from paperframe.routes import router

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Authorization, Content-Type",
    "Access-Control-Max-Age": "86400",
}


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(PaperframeError)
    async def paperframe_error(request: Request, exc: PaperframeError):
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc
            )
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
            status_code=400,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        # A known path with an unsupported method is still an unmatched route.
        if exc.status_code in (404, 405):
            return PlainTextResponse("Route not found", status_code=404)
        return JSONResponse(
            {"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Paperframe Backend", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    app.dependency_overrides[get_settings] = lambda: settings
    _install_error_handlers(app)

    logout_path = f"{settings.api_prefix}/auth/logout"
    challenge = f'Basic realm="{settings.auth_realm}"'

    @app.middleware("http")
    async def cors_and_realm(request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        if request.url.path != logout_path:
            response.headers["WWW-Authenticate"] = challenge
        return response

    return app


app = create_app()
