"""
Clerk JWT verification.

Handles:
- Bearer header parsing
- JWT signature verification (HS256 secret or RS256 against the published JWKS)
- Issuer/audience/authorized-party validation
- A JWKS cache that is read without locking and refreshed under a lock

Every failure surfaces as AuthError so the endpoint can reject the request
before any provider call is made. A verifier with nothing to verify against
raises ConfigError instead.

Testing:
- Use create_test_jwt() to create test tokens
- Inject a fetcher into JwksCache (no network)
"""
import asyncio
import json
import time
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Tuple

import httpx
import jwt
from jwt.algorithms import RSAAlgorithm

from ideagen.core.errors import AuthError, ConfigError

JwksFetcher = Callable[[str, float], Awaitable[Dict[str, Any]]]

# Unknown kids trigger a refresh at most this often
MIN_FORCED_REFRESH_SECONDS = 10.0


async def _default_fetch_jwks(jwks_url: str, timeout: float) -> Dict[str, Any]:
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.get(jwks_url)
        response.raise_for_status()
        return response.json()


class JwksCache:
    """Published signing keys for one issuer.

    Readers look at an immutable snapshot and never take the lock; only
    refresh() does, so concurrent requests share one fetch.
    """

    def __init__(
        self,
        jwks_url: str,
        *,
        timeout: float = 5.0,
        ttl_seconds: float = 3600,
        fetcher: Optional[JwksFetcher] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.jwks_url = jwks_url
        self.timeout = timeout
        self.ttl_seconds = ttl_seconds
        self._fetcher = fetcher or _default_fetch_jwks
        self._clock = clock
        self._lock = asyncio.Lock()
        # (kid -> jwk, fetched_at); replaced wholesale, never mutated
        self._snapshot: Tuple[Mapping[str, Dict[str, Any]], Optional[float]] = (MappingProxyType({}), None)
        self._last_forced: Optional[float] = None

    @property
    def is_stale(self) -> bool:
        fetched_at = self._snapshot[1]
        return fetched_at is None or (self._clock() - fetched_at) >= self.ttl_seconds

    def get_key(self, kid: str) -> Optional[Dict[str, Any]]:
        return self._snapshot[0].get(kid)

    async def refresh(self, want_kid: Optional[str] = None) -> None:
        async with self._lock:
            # Another request may have refreshed while we waited
            if want_kid is not None:
                if self.get_key(want_kid) is not None:
                    return
                now = self._clock()
                if self._last_forced is not None and now - self._last_forced < MIN_FORCED_REFRESH_SECONDS:
                    return
                self._last_forced = now
            elif not self.is_stale:
                return

            try:
                document = await asyncio.wait_for(self._fetcher(self.jwks_url, self.timeout), timeout=self.timeout)
            except asyncio.TimeoutError:
                raise AuthError("Timed out fetching signing keys")
            except httpx.HTTPError as e:
                raise AuthError(f"Unable to fetch signing keys: {e.__class__.__name__}")
            except ValueError:
                raise AuthError("Signing key set is not valid JSON")

            keys = document.get("keys") if isinstance(document, dict) else None
            if not isinstance(keys, list):
                raise AuthError("Signing key set has no 'keys' list")

            by_kid = {key["kid"]: key for key in keys if isinstance(key, dict) and key.get("kid")}
            self._snapshot = (MappingProxyType(by_kid), self._clock())

    async def key_for(self, kid: str) -> Optional[Dict[str, Any]]:
        if self.is_stale:
            await self.refresh()
        key = self.get_key(kid)
        if key is None:
            # Key rotation: the issuer may have published a new kid
            await self.refresh(want_kid=kid)
            key = self.get_key(kid)
        return key


class TokenVerifier:
    """Verifies Clerk session tokens and returns read-only claims."""

    def __init__(
        self,
        *,
        secret_key: Optional[str] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        jwks: Optional[JwksCache] = None,
        authorized_parties: Iterable[str] = (),
        leeway: int = 0,
    ):
        self.secret_key = secret_key
        self.issuer = issuer
        self.audience = audience
        self.jwks = jwks
        self.authorized_parties = tuple(authorized_parties)
        self.leeway = leeway

    @property
    def configured(self) -> bool:
        return bool(self.secret_key or self.jwks)

    def _decode_options(self) -> Dict[str, Any]:
        return {
            "verify_signature": True,
            "verify_exp": True,
            "verify_aud": bool(self.audience),
            "require": ["exp", "sub"],
        }

    async def _signing_key(self, token: str):
        header = jwt.get_unverified_header(token)
        kid = header.get("kid")
        if not kid:
            raise AuthError("Token missing 'kid' in header")

        matching_key = await self.jwks.key_for(kid)
        if not matching_key:
            raise AuthError(f"Key ID '{kid}' not found in JWKS")

        return RSAAlgorithm.from_jwk(json.dumps(matching_key))

    async def verify(self, token: Optional[str]) -> Mapping[str, Any]:
        """
        Verify a Clerk JWT and return its claims.

        Args:
            token: Raw JWT string (without "Bearer " prefix)

        Returns:
            Read-only mapping of claims (sub, exp, pla, ...)

        Raises:
            AuthError: token absent, malformed, expired, badly signed, or keys unavailable
            ConfigError: no secret and no JWKS configured
        """
        if not token:
            raise AuthError("Missing bearer token")
        if not self.configured:
            raise ConfigError("Token verification is not configured")

        try:
            if self.secret_key:
                key, algorithms = self.secret_key, ["HS256"]
            else:
                key, algorithms = await self._signing_key(token), ["RS256"]

            claims = jwt.decode(
                token,
                key,
                algorithms=algorithms,
                audience=self.audience,
                issuer=self.issuer,
                leeway=self.leeway,
                options=self._decode_options(),
            )
        except jwt.ExpiredSignatureError:
            raise AuthError("Token expired")
        except jwt.PyJWTError as e:
            raise AuthError(f"Invalid token: {e}")

        if self.authorized_parties:
            azp = claims.get("azp")
            if azp and azp not in self.authorized_parties:
                raise AuthError("Token issued for an unauthorized party")

        return MappingProxyType(claims)


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    """Return the credential from an Authorization header, or None when absent."""
    if authorization is None or not authorization.strip():
        return None
    scheme, _, credential = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not credential.strip():
        raise AuthError("Malformed Authorization header")
    return credential.strip()


def resolve_jwks_url(issuer: Optional[str], jwks_url: Optional[str]) -> Optional[str]:
    if jwks_url:
        return jwks_url
    if issuer:
        return f"{issuer.rstrip('/')}/.well-known/jwks.json"
    return None


def build_token_verifier(cfg, fetcher: Optional[JwksFetcher] = None) -> TokenVerifier:
    """Construct the verifier from settings once, at app creation."""
    jwks = None
    url = resolve_jwks_url(cfg.CLERK_ISSUER, cfg.CLERK_JWKS_URL)
    if url and not cfg.CLERK_SECRET_KEY:
        jwks = JwksCache(
            url,
            timeout=cfg.JWKS_TIMEOUT_SECONDS,
            ttl_seconds=cfg.JWKS_CACHE_TTL_SECONDS,
            fetcher=fetcher,
        )
    return TokenVerifier(
        secret_key=cfg.CLERK_SECRET_KEY,
        issuer=cfg.CLERK_ISSUER,
        audience=cfg.CLERK_AUDIENCE,
        jwks=jwks,
        authorized_parties=cfg.authorized_parties,
    )


# ============================================================================
# Test Helpers (deterministic, no network)
# ============================================================================

def create_test_jwt(
    sub: str = "test_user_123",
    plan: Optional[str] = None,
    exp_minutes: int = 60,
    secret: str = "test-secret-key-for-ideagen-relay-suite",
    algorithm: str = "HS256",
    private_key: Optional[str] = None,
    kid: Optional[str] = None,
    issuer: Optional[str] = None,
    audience: Optional[str] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a test JWT for unit testing.
    Supports HS256 (default) and RS256 (for JWKS-based tests).

    Args:
        sub: User ID (subject)
        plan: Value for the `pla` claim (e.g. "u:premium_subscription")
        exp_minutes: Expiration time in minutes from now (negative = expired)
        secret: Secret key for signing (HS256)
        algorithm: Signing algorithm ("HS256" or "RS256")
        private_key: PEM-encoded private key for RS256
        kid: Optional key ID for RS256 header

    Returns:
        Signed JWT string
    """
    now = int(time.time())
    payload: Dict[str, Any] = {
        "sub": sub,
        "iat": now,
        "exp": now + (exp_minutes * 60),
    }
    if issuer:
        payload["iss"] = issuer
    if audience:
        payload["aud"] = audience
    if plan is not None:
        payload["pla"] = plan
    if extra_claims:
        payload.update(extra_claims)

    headers = {"kid": kid} if kid else None
    key = private_key if algorithm == "RS256" and private_key else secret
    return jwt.encode(payload, key, algorithm=algorithm, headers=headers)
