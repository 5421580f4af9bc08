from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quickqr_notify.application.use_cases.notifications import NotificationRouter
from quickqr_notify.config import get_settings
from quickqr_notify.infrastructure.database import initialize_database
from quickqr_notify.infrastructure.notifications import ConnectionRegistry
from quickqr_notify.interfaces.api.errors import register_exception_handlers
from quickqr_notify.interfaces.api.routes import register_routes
from quickqr_notify.logging_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the database tables when the application starts."""

    initialize_database()
    yield


def create_app() -> FastAPI:
    """Build the FastAPI application with its own connection registry."""

    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="QuickQR notifications", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    registry = ConnectionRegistry(send_timeout=settings.send_timeout_seconds)
    app.state.connection_registry = registry
    app.state.notification_router = NotificationRouter(
        registry, retention=settings.notification_retention
    )

    register_exception_handlers(app)
    register_routes(app)
    return app
