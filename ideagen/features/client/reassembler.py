"""
Client-side reassembly of the idea stream.

StreamReassembler is an explicit state machine with one handler per
transition:

    connecting --on_open(2xx)--> streaming --on_close()--> closed
    connecting --on_open(non-2xx)/on_error()--> failed
    streaming  --on_error()--> failed

Every message appends to the render buffer and re-renders the whole buffer.
Errors are fatal: the abort signal fires and nothing reconnects on its own.
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

import markdown2

from ideagen.features.streaming.sse import LINE_BREAK_MARKER

CONNECTION_ERROR_MESSAGE = "Error: Connection failed. Please refresh the page."

# Closest markdown2 equivalent of GFM with hard line breaks
MARKDOWN_EXTRAS = [
    "break-on-newline",
    "fenced-code-blocks",
    "tables",
    "cuddled-lists",
    "strike",
]


class ClientState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSED = "closed"
    FAILED = "failed"


TERMINAL_STATES = {ClientState.CLOSED, ClientState.FAILED}


class StreamOpenError(Exception):
    """The server answered the stream request with a non-2xx status."""

    def __init__(self, status_code: int):
        super().__init__(f"Server returned {status_code}")
        self.status_code = status_code


def render_markdown(text: str) -> str:
    return markdown2.markdown(text, extras=MARKDOWN_EXTRAS)


class AbortSignal:
    """Cancellation token shared by the reassembler and the transport."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: str = "aborted") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class StreamReassembler:
    def __init__(
        self,
        *,
        renderer: Callable[[str], str] = render_markdown,
        on_render: Optional[Callable[["StreamReassembler"], None]] = None,
        signal: Optional[AbortSignal] = None,
    ):
        self._renderer = renderer
        self._on_render = on_render
        self._init_state(signal)

    def _init_state(self, signal: Optional[AbortSignal] = None) -> None:
        self.state = ClientState.CONNECTING
        self.buffer = ""
        self.html = ""
        self.loading_visible = True
        self.content_visible = False
        self.error_message: Optional[str] = None
        self.error: Optional[BaseException] = None
        self.signal = signal or AbortSignal()

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def reset(self) -> None:
        """Manual reload: fresh buffer, fresh abort signal, back to connecting."""
        self._init_state()

    def on_open(self, status_code: int) -> None:
        if self.state is not ClientState.CONNECTING:
            return
        if not 200 <= status_code < 300:
            self.on_error(StreamOpenError(status_code))
            return
        self.loading_visible = False
        self.content_visible = True
        self.state = ClientState.STREAMING

    def on_message(self, payload: str) -> None:
        if self.state is not ClientState.STREAMING or self.signal.aborted:
            return
        self.buffer += "\n" if payload == LINE_BREAK_MARKER else payload
        self.html = self._renderer(self.buffer)
        if self._on_render is not None:
            self._on_render(self)

    def on_error(self, exc: BaseException) -> None:
        if self.finished:
            return
        self.state = ClientState.FAILED
        self.error = exc
        self.error_message = CONNECTION_ERROR_MESSAGE
        self.loading_visible = True
        self.signal.abort("error")

    def on_close(self) -> None:
        if self.state is ClientState.STREAMING:
            self.state = ClientState.CLOSED
