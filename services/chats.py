"""
Per-journal chat threads and the chat turn itself.
"""

import logging
from dataclasses import asdict
from datetime import timedelta
from typing import Optional, List, Dict

from config import log_event
from db import session_scope, utcnow, Chat, ChatMessage
from errors import ValidationError
from services import ai
from services.autosave import load_journal_document, save_document
from services.blocks import quiz_block, flashcards_block, to_plain_text
from services.journals import get_journal
from services.parsers import parse_quiz, parse_flashcards

MESSAGE_ROLES = ("user", "assistant", "system")
REQUEST_KINDS = ("chat", "quiz", "flashcards")


def greeting(journal_title: Optional[str] = None) -> str:
    title = f' "{journal_title}"' if journal_title else ""
    return (
        f"Hi! I'm your AI assistant for this journal{title}. Ask me anything about your writing, "
        "get help organizing your thoughts, or request summaries and insights. "
        'Say "quiz me on ..." or "flashcards on ..." to study.'
    )


def _chat_for(session, journal_id: str) -> Chat:
    chat = session.query(Chat).filter(Chat.journal_id == journal_id).one_or_none()
    if chat is None:
        chat = Chat(journal_id=journal_id)
        session.add(chat)
        session.flush()
        log_event(logging.INFO, "chat_created", journal_id=journal_id, chat_id=chat.id)
    return chat


def get_or_create_chat(user_id: str, journal_id: str) -> Dict:
    get_journal(user_id, journal_id)
    with session_scope() as session:
        chat = _chat_for(session, journal_id)
        return {"id": chat.id, "journal_id": chat.journal_id}


def list_messages(user_id: str, journal_id: str) -> List[Dict]:
    get_journal(user_id, journal_id)
    with session_scope() as session:
        chat = session.query(Chat).filter(Chat.journal_id == journal_id).one_or_none()
        if chat is None:
            return []
        return [message.to_dict() for message in chat.messages]


def append_message(journal_id: str, role: str, content: str, files: Optional[List[Dict]] = None,
                   created_at=None) -> Dict:
    if role not in MESSAGE_ROLES:
        raise ValidationError(f"Invalid message role: {role}")
    if not isinstance(content, str):
        raise ValidationError("Message content must be a string")
    with session_scope() as session:
        chat = _chat_for(session, journal_id)
        message = ChatMessage(chat_id=chat.id, role=role, content=content, files=files or None,
                              created_at=created_at or utcnow())
        session.add(message)
        session.flush()
        return message.to_dict()


def clear_chat(user_id: str, journal_id: str) -> int:
    get_journal(user_id, journal_id)
    with session_scope() as session:
        chat = session.query(Chat).filter(Chat.journal_id == journal_id).one_or_none()
        if chat is None:
            return 0
        count = len(chat.messages)
        session.delete(chat)
    log_event(logging.INFO, "chat_cleared", journal_id=journal_id, messages=count)
    return count


# --- CHAT TURNS ---

def prepare_turn(user_id: str, journal_id: str, message: str, files=None,
                 kind: Optional[str] = None, include_notes: Optional[bool] = None) -> Dict:
    """Validate a turn and build everything the model call needs."""
    message = (message or "").strip()
    attached = [asdict(f) for f in ai.validate_files(files)]
    if not message and not attached:
        raise ValidationError("Message cannot be empty")

    journal = get_journal(user_id, journal_id)
    detected, topic = ai.detect_request_kind(message)
    if kind is None:
        kind = detected
    elif kind not in REQUEST_KINDS:
        raise ValidationError(f"Unknown request kind: {kind}")
    if kind != detected:
        topic = message

    if include_notes is None:
        include_notes = kind != "chat"
    notes = None
    if include_notes:
        notes = to_plain_text(load_journal_document(user_id, journal_id)).strip() or None

    history = list_messages(user_id, journal_id)
    return {
        "journal_id": journal_id,
        "kind": kind,
        "topic": topic,
        "message": message,
        "files": attached,
        "system_prompt": ai.build_system_prompt(kind, topic, journal_id, journal["title"]),
        "contents": ai.build_contents(history, message, attached, notes=notes),
    }


def complete_turn(user_id: str, turn: Dict, reply: str, insert_into_journal: bool = False) -> Dict:
    """Persist both sides of a turn and attach any parsed study artifact."""
    journal_id = turn["journal_id"]
    # Explicit timestamps keep the pair ordered even within one clock tick
    sent_at = utcnow()
    user_message = append_message(journal_id, "user", turn["message"], turn["files"], created_at=sent_at)
    assistant_message = append_message(journal_id, "assistant", reply,
                                       created_at=sent_at + timedelta(microseconds=1))

    result = {
        "kind": turn["kind"],
        "user_message": user_message,
        "message": assistant_message,
        "quiz": None,
        "flashcards": None,
        "block": None,
    }

    block = None
    if turn["kind"] == "quiz":
        quiz = parse_quiz(ai.strip_code_fences(reply))
        if quiz:
            result["quiz"] = asdict(quiz)
            block = quiz_block(quiz)
    elif turn["kind"] == "flashcards":
        flashcards = parse_flashcards(ai.strip_code_fences(reply))
        if flashcards:
            result["flashcards"] = asdict(flashcards)
            block = flashcards_block(flashcards)

    if block is not None and insert_into_journal:
        doc = load_journal_document(user_id, journal_id)
        only_empty = len(doc.blocks) == 1 and doc.blocks[0].type == "paragraph" and not doc.blocks[0].content
        if only_empty:
            doc.blocks = [block]
        else:
            doc.blocks.append(block)
        save_document(user_id, journal_id, doc, immediate=True)
        result["block"] = asdict(block)
        log_event(logging.INFO, "study_block_inserted", journal_id=journal_id, type=block.type)

    log_event(logging.INFO, "chat_turn_complete", journal_id=journal_id, kind=turn["kind"],
              parsed=bool(result["quiz"] or result["flashcards"]))
    return result


def send_message(user_id: str, journal_id: str, message: str, files=None, kind: Optional[str] = None,
                 insert_into_journal: bool = False, include_notes: Optional[bool] = None) -> Dict:
    turn = prepare_turn(user_id, journal_id, message, files, kind, include_notes)
    reply = ai.generate_reply(turn["system_prompt"], turn["contents"])
    return complete_turn(user_id, turn, reply, insert_into_journal)
