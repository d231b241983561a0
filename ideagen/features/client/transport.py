"""
Event-stream transport for the idea client.

Opens the stream with httpx, decodes SSE lines and drives a
StreamReassembler. The reassembler's abort signal cancels an in-flight read,
so nothing is processed after abort() returns.
"""

import asyncio
import contextlib
import logging
from typing import Optional

import httpx

from ideagen.features.client.reassembler import ClientState, StreamReassembler
from ideagen.features.streaming.sse import SSEDecoder

logger = logging.getLogger("ideagen")


class EventStreamClient:
    def __init__(
        self,
        url: str,
        *,
        token: Optional[str] = None,
        reassembler: Optional[StreamReassembler] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url
        self.token = token
        self.reassembler = reassembler or StreamReassembler()
        self._client = client
        self.timeout = timeout

    def _headers(self) -> dict:
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @contextlib.asynccontextmanager
    async def _http(self):
        if self._client is not None:
            yield self._client
            return
        # Reads may legitimately idle while the model thinks
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, connect=10.0)) as client:
            yield client

    async def _consume(self) -> None:
        r = self.reassembler
        async with self._http() as client:
            async with client.stream("GET", self.url, headers=self._headers()) as response:
                r.on_open(response.status_code)
                if r.state is not ClientState.STREAMING:
                    return
                decoder = SSEDecoder()
                async for line in response.aiter_lines():
                    if r.signal.aborted:
                        return
                    payload = decoder.decode(line)
                    if payload is not None:
                        r.on_message(payload)
        if not r.signal.aborted:
            r.on_close()

    async def run(self) -> StreamReassembler:
        """Stream once. Returns the reassembler in a terminal (or aborted) state."""
        r = self.reassembler
        if r.signal.aborted:
            return r

        consume = asyncio.ensure_future(self._consume())
        aborted = asyncio.ensure_future(r.signal.wait())
        try:
            await asyncio.wait({consume, aborted}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not consume.done():
                consume.cancel()
            aborted.cancel()

        try:
            await consume
        except asyncio.CancelledError:
            if not r.signal.aborted:
                raise
            logger.info("client.aborted", extra={"status": r.state.value})
        except httpx.HTTPError as e:
            logger.warning(f"client.transport_error: {e.__class__.__name__}")
            r.on_error(e)
        return r

    def abort(self) -> None:
        self.reassembler.signal.abort("teardown")

    async def reconnect(self) -> StreamReassembler:
        """Manual reload after a failure: reset everything and stream again."""
        self.reassembler.reset()
        return await self.run()
