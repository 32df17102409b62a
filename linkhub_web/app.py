"""FastAPI application for the linkhub connection API"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from linkhub import __version__
from linkhub.core.config import Settings, load_settings
from linkhub.services import LinkhubServices, build_services
from linkhub.utils.exceptions import LinkhubError
from linkhub.utils.logger import get_logger, setup_logger

from .connection_routes import router as connection_router
from .errors import linkhub_exception_handler
from .user_routes import router as user_router
from .webhook_routes import router as webhook_router


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[LinkhubServices] = None,
) -> FastAPI:
    """Build the app; settings come from the environment unless given."""
    settings = settings or (services.settings if services else load_settings())
    setup_logger(
        log_level=settings.log_level,
        log_format=settings.log_format,
        file_path=settings.log_file,
    )
    logger = get_logger(__name__)

    app = FastAPI(
        title="linkhub",
        description="Link Facebook Pages and WhatsApp Business numbers to user profiles",
        version=__version__,
    )
    app.state.services = services or build_services(settings)

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie="linkhub_session",
        same_site="lax",
        https_only=settings.is_production,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LinkhubError, linkhub_exception_handler)

    # Webhook routes first: GET /{provider}/webhook must not be shadowed
    app.include_router(webhook_router)
    app.include_router(connection_router)
    app.include_router(user_router)

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "ok"}

    logger.info(
        "linkhub app initialized",
        environment=settings.environment,
        providers=sorted(app.state.services.lifecycle.adapters),
    )
    return app
