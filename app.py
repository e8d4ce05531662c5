"""
app.py - FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the lifecycle services, registers routers, and prepares the
document store on startup.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from resort.controllers.booking_controller import router as booking_router
from resort.controllers.console_controller import router as console_router
from resort.controllers.order_controller import router as order_router
from resort.controllers.telegram_controller import router as telegram_router
from resort.repository.data_repository import DataRepository
from resort.services.auth_service import AuthService
from resort.services.availability_service import AvailabilityService
from resort.services.booking_service import BookingService
from resort.services.messaging_gateway import GatewayFactory, telegram_gateway_factory
from resort.services.notification_service import NotificationService
from resort.services.order_service import OrderService
from resort.services.pricing_service import PricingService
from resort.utils.config import Settings, get_settings
from resort.utils.logger import configure_logging, get_logger


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    gateway_factory: Optional[GatewayFactory] = None,
) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every collaborator is created here and exposed through app.state; tests
    pass their own settings and a recording gateway factory.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    gateway_factory = gateway_factory or telegram_gateway_factory(settings)

    # --- Repository (SQLite document store) ---
    repository = DataRepository(settings)

    # --- Services ---
    notification_service = NotificationService(
        repository=repository,
        gateway_factory=gateway_factory,
    )
    booking_service = BookingService(
        repository=repository,
        notifier=notification_service,
        settings=settings,
        availability=AvailabilityService(repository),
    )
    order_service = OrderService(
        repository=repository,
        notifier=notification_service,
    )
    pricing_service = PricingService(repository=repository, settings=settings)
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield
        close_gateways = getattr(gateway_factory, "close", None)
        if close_gateways is not None:
            close_gateways()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(console_router)
    app.include_router(booking_router)
    app.include_router(order_router)
    app.include_router(telegram_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.settings = settings
    app.state.repository = repository
    app.state.gateway_factory = gateway_factory
    app.state.notification_service = notification_service
    app.state.booking_service = booking_service
    app.state.order_service = order_service
    app.state.pricing_service = pricing_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema comes first; demo houses and menu are only written into an empty
    store; the settings record is seeded from the environment when missing.
    """
    repository: DataRepository = app.state.repository
    settings: Settings = app.state.settings

    logger.info("Startup: initializing document store")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo houses and menu (skipped if houses exist)")
        repository.seed_demo_data()

    resort = repository.ensure_resort_settings()
    logger.info(
        "Startup complete (telegram bot %s)",
        "active" if resort.telegram.is_active else "inactive",
    )


# Module-level app object for uvicorn
app = create_app()
