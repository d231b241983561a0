"""
Completion stream relay.

Turns one provider stream into the event-stream body sent to one client:

1. a header event naming the model, the plan and the verified claims
2. the provider's deltas, framed in arrival order
3. nothing else on success, or exactly one `**Error:**` event on failure

The relay holds no state between connections. It stops reading upstream as
soon as the provider reports a finish reason, the client goes away, or the
response generator is closed.
"""

import json
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Optional, Sequence

from ideagen.core.errors import AppError, TransportError
from ideagen.core.logging import get_request_id, log_event
from ideagen.features.streaming.prompts import IDEA_MESSAGES
from ideagen.features.streaming.provider import CompletionProvider, Messages
from ideagen.features.streaming.sse import FRAMING_MARKER, encode_delta, error_event
from ideagen.models.plan import PlanSelection

DisconnectProbe = Callable[[], Awaitable[bool]]


def _claim_value(value: Any) -> str:
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def format_header(selection: PlanSelection, claims: Optional[Mapping[str, Any]]) -> str:
    """Markdown block shown above the idea: who asked and which model answers."""
    lines = [
        f"**Model:** {selection.model}",
        f"**Plan:** {selection.label}",
        "",
        "**Claims:**",
    ]
    if claims:
        lines.extend(f"{name}: {_claim_value(value)}" for name, value in claims.items())
    else:
        lines.append("(anonymous)")
    lines.extend(["", "---", "", ""])
    return "\n".join(lines)


class CompletionRelay:
    def __init__(
        self,
        provider: CompletionProvider,
        *,
        messages: Messages = IDEA_MESSAGES,
        framing: str = FRAMING_MARKER,
    ):
        self.provider = provider
        self.messages: Sequence = messages
        self.framing = framing

    @property
    def configured(self) -> bool:
        return getattr(self.provider, "configured", True)

    async def stream(
        self,
        selection: PlanSelection,
        claims: Optional[Mapping[str, Any]],
        *,
        is_disconnected: Optional[DisconnectProbe] = None,
        request_id: Optional[str] = None,
    ) -> AsyncIterator[str]:
        rid = request_id or get_request_id()
        user_id = claims.get("sub") if claims else None
        meta = {"model": selection.model, "plan": selection.label}

        log_event("info", "stream.open", request_id=rid, user_id=user_id, event_type="stream", extra=meta)
        yield encode_delta(format_header(selection, claims), self.framing)

        frames = 0
        upstream = self.provider.open_stream(selection.model, self.messages)
        try:
            async for frame in upstream:
                if is_disconnected is not None and await is_disconnected():
                    raise TransportError("Client disconnected")
                if frame.delta:
                    frames += 1
                    yield encode_delta(frame.delta, self.framing)
                if frame.is_final:
                    break
            log_event(
                "info",
                "stream.complete",
                request_id=rid,
                user_id=user_id,
                event_type="stream",
                extra={**meta, "frames": frames},
            )
        except TransportError:
            log_event(
                "info",
                "stream.client_disconnected",
                request_id=rid,
                user_id=user_id,
                event_type="stream",
                error_code=TransportError.code,
                extra={**meta, "frames": frames},
            )
        except AppError as e:
            log_event(
                "warning",
                "stream.failed",
                request_id=rid,
                user_id=user_id,
                event_type="stream",
                error_code=e.code,
                extra={**meta, "frames": frames, "error_message": e.message},
            )
            yield error_event(e.message)
        except Exception:
            log_event(
                "error",
                "stream.unexpected_error",
                request_id=rid,
                user_id=user_id,
                event_type="stream",
                error_code="internal_error",
                extra={**meta, "frames": frames},
                exc_info=True,
            )
            yield error_event("Unexpected error while streaming")
        finally:
            aclose = getattr(upstream, "aclose", None)
            if aclose is not None:
                await aclose()
