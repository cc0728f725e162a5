"""
Journal sharing: share settings and access through a share link.
"""

import re
import logging
from typing import Optional, List, Dict

from config import log_event, PUBLIC_BASE_URL
from db import session_scope, Journal, JournalShare
from errors import NotFoundError, PermissionDeniedError, ValidationError
from services.autosave import get_pending, cancel, write_lock
from services.journals import _owned_journal, clean_title, check_content

SHARE_TYPES = ("anyone", "specific_users")
PERMISSION_TYPES = ("view", "edit")
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def share_link(journal_id: str) -> str:
    return f"{PUBLIC_BASE_URL}/shared/{journal_id}"


def normalize_emails(emails) -> List[str]:
    """Lower-case, validate and de-duplicate, keeping first-seen order."""
    if emails is None:
        return []
    if not isinstance(emails, list):
        raise ValidationError("allowed_emails must be a list")
    normalized = []
    for email in emails:
        email = str(email).strip().lower()
        if not email:
            continue
        if not EMAIL_RE.match(email):
            raise ValidationError(f"Invalid email address: {email}")
        if email not in normalized:
            normalized.append(email)
    return normalized


def get_share(user_id: str, journal_id: str) -> Optional[Dict]:
    with session_scope() as session:
        _owned_journal(session, user_id, journal_id)
        share = session.query(JournalShare).filter(
            JournalShare.journal_id == journal_id,
            JournalShare.created_by == user_id,
        ).one_or_none()
        return share.to_dict() if share else None


def save_share(user_id: str, journal_id: str, share_type: str, permission_type: str,
               allowed_emails=None) -> Dict:
    """Create or update the journal's single share row."""
    if share_type not in SHARE_TYPES:
        raise ValidationError(f"Unknown share type: {share_type}")
    if permission_type not in PERMISSION_TYPES:
        raise ValidationError(f"Unknown permission type: {permission_type}")
    emails = normalize_emails(allowed_emails) if share_type == "specific_users" else []
    if share_type == "specific_users" and not emails:
        raise ValidationError("Add at least one email address")

    with session_scope() as session:
        _owned_journal(session, user_id, journal_id)
        share = session.query(JournalShare).filter(JournalShare.journal_id == journal_id).one_or_none()
        created = share is None
        if created:
            share = JournalShare(journal_id=journal_id, created_by=user_id)
            session.add(share)
        share.share_type = share_type
        share.permission_type = permission_type
        share.allowed_emails = emails
        session.flush()
        log_event(logging.INFO, "share_saved", journal_id=journal_id, created=created,
                  share_type=share_type, permission=permission_type, emails=len(emails))
        return share.to_dict()


def delete_share(user_id: str, journal_id: str) -> bool:
    with session_scope() as session:
        _owned_journal(session, user_id, journal_id, allow_trashed=True)
        share = session.query(JournalShare).filter(JournalShare.journal_id == journal_id).one_or_none()
        if share is None:
            return False
        session.delete(share)
    log_event(logging.INFO, "share_deleted", journal_id=journal_id)
    return True


def _shared_journal(session, journal_id: str, email: Optional[str]):
    journal = session.get(Journal, journal_id)
    if journal is None or journal.trashed_at is not None:
        raise NotFoundError("This shared journal may have been removed or the link is invalid.")

    share = journal.share
    if share is None:
        raise PermissionDeniedError("This journal is not shared or sharing has been disabled.")

    if share.share_type == "specific_users":
        email = str(email or "").strip().lower()
        if not email:
            raise PermissionDeniedError("Email required")
        if email not in (share.allowed_emails or []):
            raise PermissionDeniedError("This email address is not authorized to view this journal")
    return journal, share


def open_shared_journal(journal_id: str, email: Optional[str] = None) -> Dict:
    """Journal contents as seen through its share link, including the owner's unsaved edits."""
    with session_scope() as session:
        journal, share = _shared_journal(session, journal_id, email)
        log_event(logging.INFO, "shared_journal_opened", journal_id=journal_id,
                  share_type=share.share_type)
        data = journal.to_dict()
        data.pop("user_id", None)
        data.pop("folder_id", None)
        data["permission_type"] = share.permission_type
        data["share_type"] = share.share_type
        data["read_only"] = share.permission_type != "edit"

    pending = get_pending(journal_id)
    if pending is not None:
        data["content"] = pending
    return data


def save_shared_journal(journal_id: str, email: Optional[str] = None, title: Optional[str] = None,
                        content: Optional[str] = None) -> Dict:
    """
    Save edits made through a share link with edit permission.
    Saved content is the latest write, so the owner's pending edit is dropped.
    """
    if title is not None:
        title = clean_title(title)
    check_content(content)

    with write_lock(journal_id):
        with session_scope() as session:
            journal, share = _shared_journal(session, journal_id, email)
            if share.permission_type != "edit":
                raise PermissionDeniedError("This journal is shared read-only")
            if title is not None:
                journal.title = title
            if content is not None:
                journal.content = content
            session.flush()
            result = {"id": journal.id, "title": journal.title, "updated_at": journal.updated_at.isoformat()}
        if content is not None:
            cancel(journal_id)

    log_event(logging.INFO, "shared_journal_saved", journal_id=journal_id)
    return result
