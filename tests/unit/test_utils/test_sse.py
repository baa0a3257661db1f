"""
Unit tests for SSE framing.
"""

import asyncio
from unittest.mock import Mock

import pytest
from aiohttp import StreamReader

from secguard.utils.sse import SSEDecoder, iter_sse_events, parse_sse_text


def _stream(limit: int) -> StreamReader:
    return StreamReader(Mock(_reading_paused=False), limit, loop=asyncio.get_running_loop())


class TestSSEDecoder:
    """Test line-by-line decoding."""

    def test_named_event_dispatched_on_blank_line(self):
        decoder = SSEDecoder()

        assert decoder.feed("event: endpoint") is None
        assert decoder.feed("data: /messages?session_id=1") is None
        event = decoder.feed("")

        assert event.event == "endpoint"
        assert event.data == "/messages?session_id=1"

    def test_default_event_name_is_message(self):
        decoder = SSEDecoder()
        decoder.feed("data: {}")

        assert decoder.feed("").event == "message"

    def test_multiline_data_joined_with_newline(self):
        decoder = SSEDecoder()
        decoder.feed("data: first")
        decoder.feed("data:second")

        assert decoder.feed("").data == "first\nsecond"

    def test_comments_and_unknown_fields_ignored(self):
        decoder = SSEDecoder()
        decoder.feed(": keep-alive")
        decoder.feed("retry: 1000")
        decoder.feed("id: 7")
        decoder.feed("data: x")
        event = decoder.feed("")

        assert event.data == "x"
        assert event.id == "7"

    def test_blank_line_without_data_dispatches_nothing(self):
        decoder = SSEDecoder()
        decoder.feed("event: ping")

        assert decoder.feed("") is None
        decoder.feed("data: y")
        assert decoder.feed("").event == "message"


class TestParseSSEText:
    """Test parsing of complete bodies."""

    def test_trailing_event_without_blank_line_is_flushed(self):
        events = parse_sse_text("data: one\n\ndata: [DONE]")

        assert [event.data for event in events] == ["one", "[DONE]"]

    def test_crlf_line_endings(self):
        events = parse_sse_text("event: endpoint\r\ndata: /m\r\n\r\n")

        assert events[0].event == "endpoint"
        assert events[0].data == "/m"


class TestIterSSEEvents:
    """Test incremental decoding from an aiohttp stream."""

    @pytest.mark.asyncio
    async def test_events_split_across_chunks(self):
        stream = _stream(limit=2 ** 16)
        stream.feed_data(b"event: endp")
        stream.feed_data(b"oint\ndata: /messages\n\nda")
        stream.feed_data("ta: café\n\n".encode()[:-3])
        stream.feed_data("ta: café\n\n".encode()[-3:])
        stream.feed_eof()

        events = [event async for event in iter_sse_events(stream)]

        assert [(event.event, event.data) for event in events] == [
            ("endpoint", "/messages"),
            ("message", "café"),
        ]

    @pytest.mark.asyncio
    async def test_large_data_line(self):
        payload = "x" * 200000
        stream = _stream(limit=16)
        stream.feed_data(f"data: {payload}\n\n".encode())
        stream.feed_eof()

        events = [event async for event in iter_sse_events(stream)]

        assert events[0].data == payload
