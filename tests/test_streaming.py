"""
Tests for SSE framing and the streamed reply reader.
"""

import pytest

from errors import AIServiceError
from services.streaming import format_sse, iter_sse_events, collect_stream


def test_format_sse():
    assert format_sse({"type": "chunk", "text": "hi"}) == 'data: {"type": "chunk", "text": "hi"}\n\n'


def test_iter_events_from_one_body():
    body = format_sse({"type": "chunk", "text": "Hel"}) + format_sse({"type": "chunk", "text": "lo"})
    assert list(iter_sse_events([body])) == [
        {"type": "chunk", "text": "Hel"},
        {"type": "chunk", "text": "lo"},
    ]


def test_iter_events_skips_noise():
    lines = [
        b": keep-alive",
        b"",
        b'data: {"type": "heartbeat"}',
        b"",
        b"data: not json",
        b"",
        b'data: {"type": "chunk",',
        b'data:  "text": "x"}',
        b"",
    ]
    assert list(iter_sse_events(lines)) == [{"type": "chunk", "text": "x"}]


def test_trailing_event_without_blank_line():
    assert list(iter_sse_events(['data: {"type": "done"}'])) == [{"type": "done"}]


def test_collect_stream_joins_chunks_until_done():
    events = [
        {"type": "chunk", "text": "Photo"},
        {"type": "chunk", "text": "synthesis"},
        {"type": "done"},
        {"type": "chunk", "text": "ignored"},
    ]
    assert collect_stream(events) == "Photosynthesis"


def test_collect_stream_raises_on_error_event():
    with pytest.raises(AIServiceError, match="quota"):
        collect_stream([{"type": "chunk", "text": "a"}, {"type": "error", "error": "quota"}])
