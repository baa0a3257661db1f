"""
Server-Sent Events framing.

Decodes ``text/event-stream`` bodies into discrete events. Used both for
the MCP tool server channel (read incrementally from an aiohttp stream)
and for streamed model completions (parsed from a complete body).
"""

import codecs
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

import aiohttp


@dataclass(frozen=True)
class SSEEvent:
    """A dispatched SSE event."""
    event: str
    data: str
    id: Optional[str] = None


class SSEDecoder:
    """Incremental line-oriented SSE decoder."""

    def __init__(self):
        self._event_name = ""
        self._data_lines: List[str] = []
        self._last_id: Optional[str] = None

    def feed(self, line: str) -> Optional[SSEEvent]:
        """Process one line and return an event when a blank line completes one."""
        line = line.rstrip("\r\n")

        if not line:
            return self._dispatch()

        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event_name = value
        elif field == "data":
            self._data_lines.append(value)
        elif field == "id":
            self._last_id = value
        # "retry" and unknown fields are ignored

        return None

    def flush(self) -> Optional[SSEEvent]:
        """Dispatch a trailing event that was not followed by a blank line."""
        return self._dispatch()

    def _dispatch(self) -> Optional[SSEEvent]:
        if not self._data_lines:
            self._event_name = ""
            return None

        event = SSEEvent(
            event=self._event_name or "message",
            data="\n".join(self._data_lines),
            id=self._last_id,
        )
        self._event_name = ""
        self._data_lines = []
        return event


def parse_sse_text(text: str) -> List[SSEEvent]:
    """Parse a complete event-stream body."""
    decoder = SSEDecoder()
    events = []
    for line in text.splitlines():
        event = decoder.feed(line)
        if event is not None:
            events.append(event)

    trailing = decoder.flush()
    if trailing is not None:
        events.append(trailing)
    return events


async def iter_sse_events(stream: aiohttp.StreamReader) -> AsyncIterator[SSEEvent]:
    """Yield events from an aiohttp response body as they arrive.

    Chunks are split on newlines here rather than with ``readline`` so a
    single large ``data:`` line is not limited by the reader's buffer size.
    """
    decoder = SSEDecoder()
    text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""

    async for chunk in stream.iter_any():
        pending += text_decoder.decode(chunk)
        *lines, pending = pending.split("\n")
        for line in lines:
            event = decoder.feed(line)
            if event is not None:
                yield event

    pending += text_decoder.decode(b"", final=True)
    if pending:
        event = decoder.feed(pending)
        if event is not None:
            yield event

    trailing = decoder.flush()
    if trailing is not None:
        yield trailing
