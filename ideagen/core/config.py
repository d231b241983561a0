import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Generative text provider
    GROQ_API_KEY: Optional[str] = None
    GROQ_TIMEOUT_SECONDS: float = 60.0

    # Model selection per plan tier
    MODEL_PREMIUM: str = "llama-3.3-70b-versatile"
    MODEL_DEFAULT: str = "llama-3.1-8b-instant"
    PLAN_CLAIM: str = "pla"

    # Clerk Auth
    AUTH_REQUIRED: bool = True  # False = landing-page variant, anonymous users get the default model
    CLERK_SECRET_KEY: Optional[str] = None  # HS256 verification (dev/test)
    CLERK_ISSUER: Optional[str] = None  # e.g. https://your-instance.clerk.accounts.dev
    CLERK_AUDIENCE: Optional[str] = None
    CLERK_JWKS_URL: Optional[str] = None  # e.g. https://your-instance.clerk.accounts.dev/.well-known/jwks.json
    CLERK_AUTHORIZED_PARTIES: str = ""  # comma-separated azp allow-list
    JWKS_TIMEOUT_SECONDS: float = 5.0
    JWKS_CACHE_TTL_SECONDS: int = 3600

    # Streaming
    SSE_FRAMING: str = "marker"  # marker | multiline

    # App
    CORS_ORIGINS: str = "http://localhost:3000"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def authorized_parties(self) -> List[str]:
        return [p.strip() for p in self.CLERK_AUTHORIZED_PARTIES.split(",") if p.strip()]

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def has_verification_source(self) -> bool:
        return bool(self.CLERK_SECRET_KEY or self.CLERK_ISSUER or self.CLERK_JWKS_URL)


settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("ideagen")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    missing = []
    if not getattr(cfg, "GROQ_API_KEY", None):
        missing.append("GROQ_API_KEY")
    if getattr(cfg, "AUTH_REQUIRED", True) and not (
        getattr(cfg, "CLERK_SECRET_KEY", None)
        or getattr(cfg, "CLERK_ISSUER", None)
        or getattr(cfg, "CLERK_JWKS_URL", None)
    ):
        missing.append("CLERK_SECRET_KEY|CLERK_ISSUER|CLERK_JWKS_URL")

    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
