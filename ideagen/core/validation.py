"""
Environment validation utilities.

Ensures the relay fails fast on misconfiguration while
remaining bypassable for tests via SKIP_ENV_VALIDATION.
"""

import os
from typing import Optional, Iterable
from urllib.parse import urlparse

from ideagen.core.config import settings


class EnvValidationError(RuntimeError):
    """Raised when environment validation fails."""


def _is_https_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme == "https" and bool(parsed.netloc)


def _require(vars_required: Iterable[str], source: object) -> None:
    for var in vars_required:
        if not getattr(source, var, None):
            raise EnvValidationError(f"{var} is required in production")


def validate_env(env: Optional[str] = None, settings_obj=None) -> bool:
    """Validate environment configuration.

    Args:
        env: Override environment name (defaults to settings.ENV)
        settings_obj: Override settings object (defaults to ideagen.core.config.settings)

    Returns:
        True if validation passes.

    Raises:
        EnvValidationError when a rule is violated.
    """
    if os.getenv("SKIP_ENV_VALIDATION") == "1":
        return True

    cfg = settings_obj or settings
    mode = (env or getattr(cfg, "ENV", "development") or "development").lower()
    jwks_url = getattr(cfg, "CLERK_JWKS_URL", None)
    issuer = getattr(cfg, "CLERK_ISSUER", None)
    framing = (getattr(cfg, "SSE_FRAMING", "marker") or "marker").lower()

    if framing not in {"marker", "multiline"}:
        raise EnvValidationError("SSE_FRAMING must be 'marker' or 'multiline'")

    if mode == "production":
        _require(["GROQ_API_KEY"], cfg)

        if getattr(cfg, "AUTH_REQUIRED", True):
            if not (getattr(cfg, "CLERK_SECRET_KEY", None) or issuer or jwks_url):
                raise EnvValidationError(
                    "CLERK_SECRET_KEY, CLERK_ISSUER or CLERK_JWKS_URL is required when AUTH_REQUIRED is set"
                )

        # Signing keys must not be fetched over plain http
        for name, url in (("CLERK_JWKS_URL", jwks_url), ("CLERK_ISSUER", issuer)):
            if url and not _is_https_url(url):
                raise EnvValidationError(f"{name} must be an https URL in production")

    return True
