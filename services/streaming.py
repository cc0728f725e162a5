"""
Server-sent event framing and a reader for streamed chat replies.
"""

import json
import logging
from typing import Dict, Iterable, Iterator, Union

from config import log_event
from errors import AIServiceError


def format_sse(payload: Dict) -> str:
    """Frame one payload as an SSE message."""
    return f"data: {json.dumps(payload)}\n\n"


def iter_sse_events(lines: Iterable[Union[str, bytes]]) -> Iterator[Dict]:
    """
    Parse an SSE line stream into payload dicts.
    Multi-line data fields are joined; comments, heartbeats and
    undecodable payloads are skipped.
    """
    data_lines = []

    def dispatch():
        if not data_lines:
            return None
        raw = "\n".join(data_lines)
        data_lines.clear()
        try:
            payload = json.loads(raw)
        except ValueError:
            log_event(logging.DEBUG, "sse_bad_payload", preview=raw[:80])
            return None
        if not isinstance(payload, dict) or payload.get("type") == "heartbeat":
            return None
        return payload

    for line in lines:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        for part in line.split("\n"):
            part = part.rstrip("\r")
            if part == "":
                payload = dispatch()
                if payload is not None:
                    yield payload
            elif part.startswith(":"):
                continue
            elif part.startswith("data:"):
                value = part[5:]
                data_lines.append(value[1:] if value.startswith(" ") else value)

    payload = dispatch()
    if payload is not None:
        yield payload


def collect_stream(events: Iterable[Dict]) -> str:
    """Accumulate chunk events into the full reply text."""
    parts = []
    for event in events:
        kind = event.get("type")
        if kind == "chunk":
            parts.append(event.get("text", ""))
        elif kind == "error":
            raise AIServiceError(event.get("error") or "Stream failed")
        elif kind == "done":
            break
    return "".join(parts)
