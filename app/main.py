"""
FastAPI entrypoint for the prompt run engine.

Mounts the prompt-run and visibility routers under /api/v1, plus /health and
the Prometheus /metrics endpoint.
"""

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware

from app.api.v1 import prompt_runs as prompt_run_routes
from app.api.v1 import visibility as visibility_routes
from app.core.config import settings
from app.core.platform_settings import get_all_platform_names
from app.utils.error_handler import register_error_handlers
from app.utils.logger import configure_logging, get_logger
from app.utils.middleware import CorrelationIdMiddleware

API_PREFIX = "/api/v1"

configure_logging()
logger = get_logger(__name__)


def _init_sentry(app: FastAPI) -> None:
    if not settings.SENTRY_DSN:
        logger.info("Sentry disabled, SENTRY_DSN not set")
        return
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.APP_ENV,
        traces_sample_rate=0.1,
    )
    app.add_middleware(SentryAsgiMiddleware)
    logger.info("Sentry enabled", environment=settings.APP_ENV)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Runs tracked prompts against LLM providers and measures how visible "
            "a brand is in their answers"
        ),
        version="1.0.0",
    )

    _init_sentry(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS or ["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Outermost middleware
    app.add_middleware(CorrelationIdMiddleware)

    register_error_handlers(app)
    app.include_router(prompt_run_routes.router, prefix=API_PREFIX)
    app.include_router(visibility_routes.router, prefix=API_PREFIX)

    Instrumentator(
        should_group_status_codes=False,
        excluded_handlers=["/metrics", "/health"],
    ).instrument(app).expose(app)

    return app


app = create_app()


@app.on_event("startup")
async def startup_event():
    logger.info(
        "Prompt run engine started",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        providers=get_all_platform_names(),
        sentry_enabled=bool(settings.SENTRY_DSN),
    )


@app.get("/health")
async def health_check() -> dict:
    return {"status": "ok"}
