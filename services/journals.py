"""
Journal storage: CRUD, title search and the trash lifecycle.
"""

import logging
from datetime import timedelta
from typing import Optional, List, Dict

from config import log_event, DEFAULT_JOURNAL_TITLE, TRASH_RETENTION_DAYS
from db import session_scope, utcnow, Journal, Folder
from errors import NotFoundError, TrashedError, ValidationError

SORT_OPTIONS = {
    "updated_desc": (Journal.updated_at, False),
    "updated_asc": (Journal.updated_at, True),
    "title_desc": (Journal.title, False),
    "title_asc": (Journal.title, True),
}

_UNSET = object()


def _owned_journal(session, user_id: str, journal_id: str, allow_trashed: bool = False) -> Journal:
    journal = session.get(Journal, journal_id)
    if journal is None or journal.user_id != user_id:
        raise NotFoundError("Journal not found")
    if journal.trashed_at is not None and not allow_trashed:
        raise TrashedError("That journal is in Trash.")
    return journal


def _owned_folder(session, user_id: str, folder_id: str) -> Folder:
    folder = session.get(Folder, folder_id)
    if folder is None or folder.user_id != user_id:
        raise NotFoundError("Folder not found")
    return folder


def clean_title(title) -> str:
    if not isinstance(title, str):
        raise ValidationError("Title must be a string")
    title = title.strip()
    if not title:
        raise ValidationError("Title cannot be empty")
    return title


def check_content(content):
    if content is not None and not isinstance(content, str):
        raise ValidationError("Content must be a string")


def create_journal(user_id: str, title: Optional[str] = None, folder_id: Optional[str] = None,
                   content: str = "") -> Dict:
    if title is None or (isinstance(title, str) and not title.strip()):
        title = DEFAULT_JOURNAL_TITLE
    else:
        title = clean_title(title)
    check_content(content)
    with session_scope() as session:
        if folder_id:
            _owned_folder(session, user_id, folder_id)
        journal = Journal(
            user_id=user_id,
            title=title,
            folder_id=folder_id,
            content=content,
        )
        session.add(journal)
        session.flush()
        log_event(logging.INFO, "journal_created", journal_id=journal.id, user_id=user_id)
        return journal.to_dict()


def get_journal(user_id: str, journal_id: str) -> Dict:
    with session_scope() as session:
        return _owned_journal(session, user_id, journal_id).to_dict()


def list_journals(user_id: str, folder_id: Optional[str] = None, sort: str = "updated_desc") -> List[Dict]:
    if sort not in SORT_OPTIONS:
        raise ValidationError(f"Unknown sort: {sort}")
    column, ascending = SORT_OPTIONS[sort]

    with session_scope() as session:
        query = session.query(Journal).filter(
            Journal.user_id == user_id,
            Journal.trashed_at.is_(None),
        )
        if folder_id:
            _owned_folder(session, user_id, folder_id)
            query = query.filter(Journal.folder_id == folder_id)
        query = query.order_by(column.asc() if ascending else column.desc())
        return [journal.to_dict(include_content=False) for journal in query.all()]


def update_journal(user_id: str, journal_id: str, title: Optional[str] = None,
                   content: Optional[str] = None, folder_id=_UNSET) -> Dict:
    """Update title, content and/or folder. folder_id=None unfiles the journal."""
    check_content(content)
    with session_scope() as session:
        journal = _owned_journal(session, user_id, journal_id)
        if title is not None:
            title = clean_title(title)
            journal.title = title
        if content is not None:
            journal.content = content
        if folder_id is not _UNSET:
            if folder_id is not None:
                _owned_folder(session, user_id, folder_id)
            journal.folder_id = folder_id
        session.flush()
        log_event(
            logging.INFO,
            "journal_updated",
            journal_id=journal_id,
            title=title is not None,
            content_bytes=len(content) if content is not None else None,
        )
        return journal.to_dict()


def search_journals(user_id: str, query: str) -> List[Dict]:
    """Title search; most recently updated first, then alphabetical."""
    needle = (query or "").strip().lower()
    with session_scope() as session:
        journals = session.query(Journal).filter(
            Journal.user_id == user_id,
            Journal.trashed_at.is_(None),
        ).all()
        matches = [j for j in journals if needle in j.title.lower()]
        matches.sort(key=lambda j: j.title.lower())
        matches.sort(key=lambda j: j.updated_at, reverse=True)
        return [journal.to_dict(include_content=False) for journal in matches]


# --- TRASH ---

def move_to_trash(user_id: str, journal_id: str) -> Dict:
    with session_scope() as session:
        journal = _owned_journal(session, user_id, journal_id)
        journal.trashed_at = utcnow()
        session.flush()
        log_event(logging.INFO, "journal_trashed", journal_id=journal_id)
        return journal.to_dict(include_content=False)


def restore_journal(user_id: str, journal_id: str) -> Dict:
    with session_scope() as session:
        journal = _owned_journal(session, user_id, journal_id, allow_trashed=True)
        journal.trashed_at = None
        session.flush()
        log_event(logging.INFO, "journal_restored", journal_id=journal_id)
        return journal.to_dict(include_content=False)


def delete_permanently(user_id: str, journal_id: str):
    with session_scope() as session:
        journal = _owned_journal(session, user_id, journal_id, allow_trashed=True)
        session.delete(journal)
    log_event(logging.INFO, "journal_deleted", journal_id=journal_id)


def purge_expired(user_id: Optional[str] = None, now=None) -> int:
    """Delete journals that have been in the trash longer than the retention period."""
    cutoff = (now or utcnow()) - timedelta(days=TRASH_RETENTION_DAYS)
    with session_scope() as session:
        query = session.query(Journal).filter(
            Journal.trashed_at.isnot(None),
            Journal.trashed_at < cutoff,
        )
        if user_id:
            query = query.filter(Journal.user_id == user_id)
        expired = query.all()
        for journal in expired:
            session.delete(journal)
    if expired:
        log_event(logging.INFO, "trash_purged", user_id=user_id, count=len(expired))
    return len(expired)


def list_trash(user_id: str) -> List[Dict]:
    purge_expired(user_id)
    with session_scope() as session:
        journals = session.query(Journal).filter(
            Journal.user_id == user_id,
            Journal.trashed_at.isnot(None),
        ).order_by(Journal.trashed_at.desc()).all()
        return [journal.to_dict(include_content=False) for journal in journals]
