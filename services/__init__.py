"""Services package for Inkwell."""

from services.commands import (
    filter_commands,
    detect_slash_query,
    apply_text_command,
)

from services.parsers import (
    parse_quiz,
    parse_flashcards,
)

from services.blocks import (
    load_document,
    dump_document,
    to_plain_text,
    word_count,
)

from services.ai import (
    detect_request_kind,
    generate_reply,
    stream_reply,
)

from services.autosave import (
    schedule_save,
    flush,
    flush_all,
)

from services.streaming import (
    format_sse,
    iter_sse_events,
    collect_stream,
)

from services.chats import send_message

from services.vectordb import find_related_journals

__all__ = [
    # Commands
    "filter_commands",
    "detect_slash_query",
    "apply_text_command",
    # Parsers
    "parse_quiz",
    "parse_flashcards",
    # Blocks
    "load_document",
    "dump_document",
    "to_plain_text",
    "word_count",
    # AI
    "detect_request_kind",
    "generate_reply",
    "stream_reply",
    # Autosave
    "schedule_save",
    "flush",
    "flush_all",
    # Streaming
    "format_sse",
    "iter_sse_events",
    "collect_stream",
    # Chat
    "send_message",
    # Search
    "find_related_journals",
]
