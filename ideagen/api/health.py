"""
Health and readiness endpoints.

Lightweight checks for operational monitoring without exposing secrets.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("ideagen")

root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz(request: Request):
    """Readiness check: provider key and a way to verify tokens are configured."""
    cfg = request.app.state.settings
    checks = {
        "provider": bool(request.app.state.completion_relay.configured),
        "auth": (not cfg.AUTH_REQUIRED) or bool(request.app.state.token_verifier.configured),
    }
    if not all(checks.values()):
        missing = [name for name, ok in checks.items() if not ok]
        logger.warning(f"[readyz] not configured: {', '.join(missing)}")
        return JSONResponse(status_code=503, content={"status": "error", "checks": checks})
    return {"status": "ok", "checks": checks}
