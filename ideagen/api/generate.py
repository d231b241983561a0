"""Idea stream API.

GET /api/generate streams one generated business idea as text/event-stream.
Authentication and plan resolution finish before the provider is called, so
a rejected request never costs a completion.
"""

import logging
from types import MappingProxyType
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import StreamingResponse

from ideagen.core.clerk_auth import TokenVerifier, parse_bearer
from ideagen.core.config import Settings
from ideagen.core.errors import AuthError, ConfigError
from ideagen.core.logging import get_request_id
from ideagen.features.plans.service import ModelPolicy, resolve_plan
from ideagen.features.streaming.relay import CompletionRelay
from ideagen.features.streaming.sse import SSE_HEADERS

logger = logging.getLogger("ideagen")

router = APIRouter(prefix="/api", tags=["generate"])


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_verifier(request: Request) -> TokenVerifier:
    return request.app.state.token_verifier


def get_completion_relay(request: Request) -> CompletionRelay:
    return request.app.state.completion_relay


def get_model_policy(request: Request) -> ModelPolicy:
    return request.app.state.model_policy


@router.get("/generate")
async def generate_stream(
    request: Request,
    authorization: Optional[str] = Header(None),
    cfg: Settings = Depends(get_app_settings),
    verifier: TokenVerifier = Depends(get_token_verifier),
    relay: CompletionRelay = Depends(get_completion_relay),
    policy: ModelPolicy = Depends(get_model_policy),
):
    rid = getattr(request.state, "request_id", None) or get_request_id()

    token = parse_bearer(authorization)
    if token is None:
        if cfg.AUTH_REQUIRED:
            raise AuthError("Missing bearer token", request_id=rid)
        claims = MappingProxyType({})
    else:
        claims = await verifier.verify(token)

    selection = resolve_plan(claims, policy, claim=cfg.PLAN_CLAIM)

    if not relay.configured:
        raise ConfigError("Completion provider is not configured", request_id=rid)

    logger.info(
        "generate.accepted",
        extra={"request_id": rid, "user_id": claims.get("sub"), "plan": selection.label, "model": selection.model},
    )

    return StreamingResponse(
        relay.stream(selection, claims, is_disconnected=request.is_disconnected, request_id=rid),
        media_type="text/event-stream",
        headers=dict(SSE_HEADERS),
    )
