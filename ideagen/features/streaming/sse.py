"""
Server-sent event framing for streamed completions.

Provider deltas can contain any number of newlines, but a newline inside a
`data:` line would end the line early. Two framings are supported:

- marker (default): every newline boundary ends an event and is followed by
  a marker event whose payload is a single space. The client collapses the
  marker back into a line break, so "A\\nB" travels as ["A", " ", "B"].
- multiline: one event per delta, each line carrying its own `data: `
  prefix. Standard SSE parsers join those lines with "\\n".

The decoder at the bottom is the client half of the same contract.
"""

import html
from typing import Iterable, Iterator, List, Optional

DATA_PREFIX = "data: "
LINE_BREAK_MARKER = " "
ERROR_MARKER = "**Error:**"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # disable nginx proxy buffering
}

FRAMING_MARKER = "marker"
FRAMING_MULTILINE = "multiline"


def _normalize_newlines(text: str) -> str:
    # A bare CR is a line terminator on the wire too
    return text.replace("\r\n", "\n").replace("\r", "\n")


def frame_delta(text: str) -> List[str]:
    """Split a delta into event payloads using the line-break marker scheme.

    An empty delta yields nothing. A delta with k newlines yields k + 1
    content payloads with a marker after each of the first k; the last
    segment is always emitted, even when empty.
    """
    if not text:
        return []
    segments = _normalize_newlines(text).split("\n")
    payloads: List[str] = []
    for segment in segments[:-1]:
        payloads.append(segment)
        payloads.append(LINE_BREAK_MARKER)
    payloads.append(segments[-1])
    return payloads


def frame_delta_multiline(text: str) -> List[str]:
    """Single payload per delta; encode_event spreads it over data lines."""
    if not text:
        return []
    return [_normalize_newlines(text)]


def framer_for(framing: str):
    if (framing or FRAMING_MARKER).lower() == FRAMING_MULTILINE:
        return frame_delta_multiline
    return frame_delta


def encode_event(payload: str) -> str:
    """Render one wire event: a data line per payload line, then a blank line."""
    lines = _normalize_newlines(payload).split("\n")
    return "".join(f"{DATA_PREFIX}{line}\n" for line in lines) + "\n"


def encode_delta(text: str, framing: str = FRAMING_MARKER) -> str:
    return "".join(encode_event(payload) for payload in framer_for(framing)(text))


def error_event(message: str) -> str:
    """The terminal error frame. Always a single escaped line."""
    flat = " ".join(_normalize_newlines(str(message)).split("\n")).strip()
    return encode_event(f"{ERROR_MARKER} {html.escape(flat)}")


class SSEDecoder:
    """Incremental text/event-stream decoder.

    Feed it lines without their terminators; it returns an event payload each
    time a blank line completes an event. Only `data` fields are used; comment
    lines and other fields are ignored.
    """

    def __init__(self):
        self._data: List[str] = []

    def decode(self, line: str) -> Optional[str]:
        if line == "":
            if not self._data:
                return None
            payload = "\n".join(self._data)
            self._data = []
            return payload

        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if not sep:
            value = ""
        elif value.startswith(" "):
            value = value[1:]

        if field == "data":
            self._data.append(value)
        return None


def iter_payloads(lines: Iterable[str]) -> Iterator[str]:
    decoder = SSEDecoder()
    for line in lines:
        payload = decoder.decode(line)
        if payload is not None:
            yield payload


def split_wire_text(text: str) -> List[str]:
    """Split raw event-stream text into lines, accepting CRLF, LF or CR."""
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
