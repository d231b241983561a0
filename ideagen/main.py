import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware

# Load env from the package directory's .env (skipped under pytest)
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from ideagen.api import generate, health
from ideagen.core.clerk_auth import TokenVerifier, build_token_verifier
from ideagen.core.config import Settings, settings, validate_config
from ideagen.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from ideagen.core.logging import configure_logging
from ideagen.core.middleware.request_id import RequestIdMiddleware
from ideagen.core.validation import validate_env
from ideagen.features.plans.service import ModelPolicy
from ideagen.features.streaming.provider import CompletionProvider, GroqCompletionProvider
from ideagen.features.streaming.relay import CompletionRelay

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("ideagen")
    logger.info("Starting idea stream relay...")
    try:
        yield
    finally:
        logging.getLogger("ideagen").info("Stopping idea stream relay...")


def create_app(
    cfg: Optional[Settings] = None,
    *,
    token_verifier: Optional[TokenVerifier] = None,
    provider: Optional[CompletionProvider] = None,
) -> FastAPI:
    """Build the app and the per-process collaborators it shares read-only."""
    cfg = cfg or settings
    app = FastAPI(title="Idea Stream Relay", lifespan=lifespan)

    app.state.settings = cfg
    app.state.token_verifier = token_verifier or build_token_verifier(cfg)
    app.state.model_policy = ModelPolicy.from_settings(cfg)
    app.state.completion_relay = CompletionRelay(
        provider or GroqCompletionProvider(cfg.GROQ_API_KEY, timeout=cfg.GROQ_TIMEOUT_SECONDS),
        framing=cfg.SSE_FRAMING,
    )

    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # CORS (adjust origins in production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["Authorization", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
    )

    app.include_router(generate.router)
    app.include_router(health.root_router, tags=["health"])
    return app


app = create_app()
