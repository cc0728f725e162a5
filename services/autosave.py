"""
Debounced persistence for journal content.
Each journal has at most one pending write; new edits restart its timer so
only the last content inside the debounce window reaches the database.
"""

import uuid
import logging
import threading
from datetime import datetime
from typing import Dict, Optional

from config import log_event, AUTOSAVE_DELAY_SECONDS
from errors import NotFoundError, TrashedError
from models import BlockDocument
from state import PENDING_SAVES, SAVE_TIMERS, SAVE_LOCK, WRITE_LOCKS
from services.blocks import load_document, dump_document
from services.journals import get_journal, update_journal


def schedule_save(journal_id: str, content: str, user_id: str, delay: Optional[float] = None) -> Dict:
    """Queue content for saving after `delay` seconds of quiet."""
    delay = AUTOSAVE_DELAY_SECONDS if delay is None else delay
    token = str(uuid.uuid4())[:8]

    with SAVE_LOCK:
        previous = SAVE_TIMERS.pop(journal_id, None)
        if previous is not None:
            previous.cancel()

        PENDING_SAVES[journal_id] = {
            "content": content,
            "user_id": user_id,
            "token": token,
            "scheduled_at": datetime.now().isoformat(),
        }
        timer = threading.Timer(delay, _on_timer, args=(journal_id, token))
        timer.daemon = True
        SAVE_TIMERS[journal_id] = timer
        timer.start()

    log_event(logging.DEBUG, "autosave_scheduled", journal_id=journal_id, delay=delay,
              debounced=previous is not None, bytes=len(content))
    return {"status": "scheduled", "delay": delay}


def _on_timer(journal_id: str, token: str):
    with SAVE_LOCK:
        pending = PENDING_SAVES.get(journal_id)
        # A newer edit replaced this one; its own timer will save it
        if pending is None or pending["token"] != token:
            return
    flush(journal_id)


def get_pending(journal_id: str) -> Optional[str]:
    """Unsaved content for a journal, if any."""
    with SAVE_LOCK:
        pending = PENDING_SAVES.get(journal_id)
        return pending["content"] if pending else None


def write_lock(journal_id: str):
    """The lock serializing content writes for one journal."""
    with SAVE_LOCK:
        lock = WRITE_LOCKS.get(journal_id)
        if lock is None:
            lock = WRITE_LOCKS[journal_id] = threading.RLock()
        return lock


def flush(journal_id: str) -> bool:
    """Write pending content now. Returns True when something was saved."""
    with write_lock(journal_id):
        with SAVE_LOCK:
            timer = SAVE_TIMERS.pop(journal_id, None)
            if timer is not None:
                timer.cancel()
            pending = PENDING_SAVES.get(journal_id)

        if pending is None:
            return False

        try:
            update_journal(pending["user_id"], journal_id, content=pending["content"])
        except (NotFoundError, TrashedError) as e:
            log_event(logging.WARNING, "autosave_dropped", journal_id=journal_id, error=e.message)
            with SAVE_LOCK:
                if PENDING_SAVES.get(journal_id) is pending:
                    del PENDING_SAVES[journal_id]
            return False
        except Exception as e:
            # Stays pending; the next edit or flush retries it
            log_event(logging.ERROR, "autosave_failed", journal_id=journal_id, error=str(e))
            return False

        with SAVE_LOCK:
            if PENDING_SAVES.get(journal_id) is pending:
                del PENDING_SAVES[journal_id]

    log_event(logging.INFO, "autosave_flushed", journal_id=journal_id, bytes=len(pending["content"]))
    return True


def cancel(journal_id: str):
    """Forget pending content without saving it."""
    with SAVE_LOCK:
        timer = SAVE_TIMERS.pop(journal_id, None)
        if timer is not None:
            timer.cancel()
        dropped = PENDING_SAVES.pop(journal_id, None)
    if dropped:
        log_event(logging.INFO, "autosave_cancelled", journal_id=journal_id)


def flush_all() -> int:
    """Save everything still pending (used at shutdown)."""
    with SAVE_LOCK:
        journal_ids = list(PENDING_SAVES.keys())
    saved = sum(1 for journal_id in journal_ids if flush(journal_id))
    log_event(logging.INFO, "autosave_flush_all", pending=len(journal_ids), saved=saved)
    return saved


def pending_count() -> int:
    with SAVE_LOCK:
        return len(PENDING_SAVES)


# --- DOCUMENT HELPERS ---

def current_content(user_id: str, journal_id: str) -> str:
    """Latest content for a journal: unsaved edits first, then the stored row."""
    journal = get_journal(user_id, journal_id)
    with SAVE_LOCK:
        pending = PENDING_SAVES.get(journal_id)
        if pending and pending["user_id"] == user_id:
            return pending["content"]
    return journal["content"]


def load_journal_document(user_id: str, journal_id: str) -> BlockDocument:
    """
    The journal's document. Content that isn't canonical block JSON is
    written back so block ids stay stable between loads.
    """
    content = current_content(user_id, journal_id)
    doc = load_document(content)
    if dump_document(doc) != content:
        save_document(user_id, journal_id, doc)
    return doc


def write_now(user_id: str, journal_id: str, content: str) -> Dict:
    """Replace the stored content immediately; unsaved edits are superseded."""
    with write_lock(journal_id):
        get_journal(user_id, journal_id)
        cancel(journal_id)
        return update_journal(user_id, journal_id, content=content)


def save_document(user_id: str, journal_id: str, doc: BlockDocument, immediate: bool = False) -> Dict:
    """Persist a document, debounced unless `immediate`."""
    content = dump_document(doc)
    if immediate:
        write_now(user_id, journal_id, content)
        return {"status": "saved"}
    return schedule_save(journal_id, content, user_id)
