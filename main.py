"""
Application entry point.

    uvicorn main:create_app --factory

The store handle and the gateway client are built here and hung on
app.state; routers reach them through dependencies, never through globals.
"""
from typing import Optional

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shared.config.database import Database
from shared.config.settings import Settings
from shared.errors import register_exception_handlers
from shared.observability import setup_observability
from shared.security import configure_limiter

# IMPORTANT: import models so they register with Base
from services.auth_service import models as auth_models  # noqa: F401
from services.inventory_service import models as inventory_models  # noqa: F401
from services.order_service import models as order_models  # noqa: F401

from services.auth_service.router import router as auth_router
from services.dispatch_service.router import router as dispatch_router
from services.inventory_service.router import router as inventory_router
from services.order_service.router import router as order_router
from services.payment_service.gateway import MercadoPagoGateway, PaymentGateway
from services.payment_service.router import router as payment_router


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()

    app = FastAPI(title="Orders & Payments Service", version="1.0.0")

    app.state.settings = settings
    app.state.db = database or Database(settings.database_url, echo=settings.db_echo)
    app.state.gateway = gateway or MercadoPagoGateway.from_settings(settings)

    # --- OBSERVABILITY BOOTSTRAP ---
    setup_observability(app, "orders_service", settings)

    # --- SECURITY SETUP ---
    # Per-route limits are read from app.state.settings on every request
    app.state.limiter = configure_limiter(enabled=settings.rate_limit_enabled)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)

    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(dispatch_router)
    app.include_router(inventory_router)
    app.include_router(auth_router)

    @app.get("/health", include_in_schema=False)
    async def health_check():
        return {"service": "orders", "status": "running"}

    @app.on_event("startup")
    async def startup_event():
        await app.state.db.connect()

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.gateway.aclose()
        await app.state.db.close()

    return app
