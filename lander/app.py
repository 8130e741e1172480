"""FastAPI application factory — entry point for the API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lander.config import get_settings
from lander.db.session import Database
from lander.routers import auth, landings, payments, promo, votings, webhooks
from lander.services.yookassa import GatewayError, GatewayRejected, YooKassaClient
from lander.utils import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle: the store and gateway clients live exactly this long."""
    settings = get_settings()
    setup_logging(verbose=settings.debug)

    database = Database(settings.database_url, echo=settings.debug)
    # Auto-create tables for SQLite (dev mode); PostgreSQL uses Alembic
    if settings.database_url.startswith("sqlite"):
        await database.create_all()

    if settings.resend_api_key:
        import resend
        resend.api_key = settings.resend_api_key

    gateway = YooKassaClient.from_settings(settings)
    app.state.database = database
    app.state.gateway = gateway
    logger.info("%s API started", settings.app_name)

    yield

    await gateway.aclose()
    await database.dispose()
    logger.info("%s API shut down", settings.app_name)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Error handlers ---
    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if isinstance(exc, GatewayRejected):
            return JSONResponse({"success": False, "detail": exc.message}, status_code=400)
        return JSONResponse(
            {"success": False, "detail": "Payment gateway is unavailable, please try again later"},
            status_code=502,
        )

    @app.exception_handler(500)
    async def server_error_handler(request: Request, exc):
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse({"success": False, "detail": "Internal server error"}, status_code=500)

    # --- Routers ---
    app.include_router(auth.router)
    app.include_router(payments.router)
    app.include_router(webhooks.router)
    app.include_router(promo.router)
    app.include_router(votings.router)
    app.include_router(landings.router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": settings.app_name}

    return app


app = create_app()
