"""FastAPI application factory.

Run with ``uvicorn --factory ticketdesk.main:create_app``.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .container import Container, build_container
from .core.config import Settings, get_settings
from .core.errors import AuthError, DeskError, ValidationError
from .core.logging_config import configure_logging
from .routers import admin_users, auth, health, statistics, tickets

logger = logging.getLogger(__name__)


def _desk_error_response(exc: DeskError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    if exc.status_code >= 500:
        # the store already logged the cause
        body = {"detail": "Internal server error", "code": exc.code}
    else:
        body = exc.to_dict()
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DeskError)
    async def desk_error_handler(request: Request, exc: DeskError):
        return _desk_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = ValidationError.message
        if errors:
            loc = ".".join(str(p) for p in errors[0].get("loc", ()) if p != "body")
            message = f"{loc}: {errors[0].get('msg')}" if loc else str(errors[0].get("msg"))
        return JSONResponse(status_code=400, content={"detail": message, "code": ValidationError.code})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error", "code": "INTERNAL_ERROR"})


def create_app(settings: Settings | None = None, container: Container | None = None) -> FastAPI:
    settings = settings or (container.settings if container else get_settings())
    configure_logging(settings.LOG_LEVEL)
    container = container or build_container(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        container.bootstrap(create_schema=settings.AUTO_DB_BOOTSTRAP)
        yield
        container.close()

    app = FastAPI(title="Ticket Desk API", lifespan=lifespan)
    app.state.container = container
    register_exception_handlers(app)

    for module in (health, auth, tickets, statistics, admin_users):
        app.include_router(module.router, prefix="/api")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app
