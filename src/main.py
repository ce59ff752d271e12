import logging
import uvicorn
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.core.exceptions.base import register_exception_handlers
from src.api.core.middleware.logging import logging_middleware
from src.api.core.middleware.security import SecurityHeadersMiddleware
from src.api.router import api_router
from src.database.connection import build_async_engine, build_session_factory
from src.utils.settings.app import AppSettings
from src.utils.settings.auth import AuthSettings
from src.utils.logger import setup_logging


app_settings = AppSettings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger = setup_logging(
        app_settings.is_production,
        log_level=logging.getLevelName(app_settings.LOG_LEVEL.upper()),
    )
    app_settings.validate_prod()
    if app_settings.is_production:
        AuthSettings().validate_prod()
    logger.info(
        "Starting Upblock API",
        environment=app_settings.ENVIRONMENT,
        version=app_settings.API_VERSION,
    )

    engine = build_async_engine()
    app.state.session_factory = build_session_factory(engine)

    yield

    await engine.dispose()
    logger.info("Upblock API stopped")


app = FastAPI(
    title="Upblock API",
    description="Credit ledger for property audits",
    version=app_settings.API_VERSION,
    lifespan=lifespan,
    docs_url=None if app_settings.is_production else "/docs",
    redoc_url=None if app_settings.is_production else "/redoc",
    openapi_url=None if app_settings.is_production else "/openapi.json",
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.CORS_ORIGINS,
    allow_origin_regex=app_settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.add_middleware(SecurityHeadersMiddleware, is_production=app_settings.is_production)
app.middleware("http")(logging_middleware)

app.include_router(api_router)


def run_dev_server():
    """Run development server with auto-reload."""
    uvicorn.run(
        "src.main:app",
        host=app_settings.HOST,
        port=app_settings.PORT,
        reload=True,
        access_log=False,
    )


def run_prod_server():
    """Run production server."""
    uvicorn.run(
        "src.main:app",
        host=app_settings.HOST,
        port=app_settings.PORT,
        reload=False,
        access_log=False,
    )
