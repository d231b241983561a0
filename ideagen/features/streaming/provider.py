"""
Generative text provider adapters.

A provider turns (model, messages) into an async iterator of StreamFrame.
The iterator suspends only while waiting for the next upstream chunk and
closes the upstream stream when it is exhausted, fails or is closed early.
"""

import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional, Protocol, Sequence

import groq
import httpx

from ideagen.core.errors import ConfigError, ProviderError
from ideagen.models.stream import StreamFrame

logger = logging.getLogger("ideagen")

Messages = Sequence[Dict[str, Any]]


class CompletionProvider(Protocol):
    def open_stream(self, model: str, messages: Messages) -> AsyncIterator[StreamFrame]:
        ...


class GroqCompletionProvider:
    """Streams chat completions from Groq."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        timeout: float = 60.0,
        client_factory: Optional[Callable[..., Any]] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._client_factory = client_factory or groq.AsyncGroq

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def open_stream(self, model: str, messages: Messages) -> AsyncIterator[StreamFrame]:
        if not self.api_key:
            raise ConfigError("GROQ_API_KEY is not configured")

        client = self._client_factory(api_key=self.api_key, timeout=self.timeout)
        stream = None
        try:
            try:
                stream = await client.chat.completions.create(
                    model=model,
                    messages=list(messages),
                    stream=True,
                )
            except (groq.APIError, httpx.HTTPError) as e:
                raise ProviderError(f"Provider connection failed: {e}")

            try:
                async for chunk in stream:
                    choices = getattr(chunk, "choices", None)
                    if not choices:
                        continue
                    choice = choices[0]
                    delta = getattr(choice, "delta", None)
                    content = getattr(delta, "content", None) or ""
                    if not isinstance(content, str):
                        raise ProviderError("Provider sent a malformed chunk")
                    yield StreamFrame(delta=content, finish_reason=getattr(choice, "finish_reason", None))
            except (groq.APIError, httpx.HTTPError) as e:
                raise ProviderError(f"Provider stream interrupted: {e}")
        finally:
            if stream is not None:
                await stream.close()
            await client.close()
