"""FastAPI application factory and configuration"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, settings as default_settings
from .database import create_engine, create_session_factory, create_db_and_tables
from .logging import setup_logging
from .exception import AgoraException
from .mail import MailTransport
from .oauth import GoogleOAuthClient
from .schema.response import ErrorResponse
from .security import configure_hashing
from .websocket import BroadcastHub
from .api import auth_router, conversation_router, message_router, websocket_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    instance_path: Optional[Path] = None,
    mailer: Optional[MailTransport] = None,
    oauth_http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Create and configure FastAPI application instance

    Initializes logging (when an instance path is given), the database
    engine, the mail transport, the OAuth client and the broadcast hub,
    stores them in ``app.state``, then registers middleware, exception
    handlers and routers.

    Args:
        settings: Configuration, defaults to the global settings
        instance_path: Agora instance directory (enables file logging)
        mailer: Mail transport override
        oauth_http_client: httpx client for the OAuth provider

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or default_settings

    if instance_path is not None:
        setup_logging(instance_path)

    configure_hashing(settings)
    engine = create_engine(settings.database_url, echo=settings.debug)
    hub = BroadcastHub()
    oauth = GoogleOAuthClient(settings, oauth_http_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await create_db_and_tables(engine)
        logger.info(f"{settings.app_name} started")
        try:
            yield
        finally:
            await hub.disconnect_all()
            await oauth.aclose()
            await engine.dispose()
            logger.info(f"{settings.app_name} stopped")

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Social messaging backend",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # ==================== Shared State ====================

    app.state.settings = settings
    app.state.engine = engine
    app.state.async_session_factory = create_session_factory(engine)
    app.state.hub = hub
    app.state.mailer = mailer or MailTransport(settings)
    app.state.oauth = oauth
    app.state.instance_path = instance_path

    # ==================== CORS Configuration ====================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==================== Exception Handlers ====================

    @app.exception_handler(AgoraException)
    async def agora_exception_handler(request: Request, exc: AgoraException) -> JSONResponse:
        """Map business exceptions to their status and a unified ErrorResponse"""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                message=exc.message,
                error={"code": exc.code}
            ).model_dump()
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Map request validation errors to ErrorResponse"""
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                message="Invalid input format",
                error={
                    "code": "VALIDATION_ERROR",
                    "details": jsonable_errors(exc),
                }
            ).model_dump()
        )

    # ==================== Router Registration ====================

    app.include_router(auth_router, prefix="/api")
    app.include_router(conversation_router, prefix="/api")
    app.include_router(message_router, prefix="/api")
    app.include_router(websocket_router)

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation error details without non-serializable context objects"""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
