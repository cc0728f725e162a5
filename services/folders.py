"""
Folder management.
"""

import logging
from typing import List, Dict

from config import log_event
from db import session_scope, Folder, Journal
from errors import NotFoundError, ValidationError
from services.journals import _owned_folder, _owned_journal


def _clean_name(name: str) -> str:
    if name is not None and not isinstance(name, str):
        raise ValidationError("Folder name must be a string")
    name = (name or "").strip()
    if not name:
        raise ValidationError("Folder name cannot be empty")
    return name


def create_folder(user_id: str, name: str) -> Dict:
    with session_scope() as session:
        folder = Folder(user_id=user_id, name=_clean_name(name))
        session.add(folder)
        session.flush()
        log_event(logging.INFO, "folder_created", folder_id=folder.id, user_id=user_id)
        return folder.to_dict()


def get_folder(user_id: str, folder_id: str) -> Dict:
    with session_scope() as session:
        return _owned_folder(session, user_id, folder_id).to_dict()


def list_folders(user_id: str) -> List[Dict]:
    with session_scope() as session:
        folders = session.query(Folder).filter(Folder.user_id == user_id).order_by(Folder.created_at).all()
        return [folder.to_dict() for folder in folders]


def rename_folder(user_id: str, folder_id: str, name: str) -> Dict:
    with session_scope() as session:
        folder = _owned_folder(session, user_id, folder_id)
        folder.name = _clean_name(name)
        session.flush()
        log_event(logging.INFO, "folder_renamed", folder_id=folder_id)
        return folder.to_dict()


def delete_folder(user_id: str, folder_id: str):
    """Delete a folder; its journals stay, unfiled."""
    with session_scope() as session:
        folder = _owned_folder(session, user_id, folder_id)
        unfiled = session.query(Journal).filter(Journal.folder_id == folder_id).update(
            {Journal.folder_id: None}, synchronize_session=False
        )
        session.delete(folder)
    log_event(logging.INFO, "folder_deleted", folder_id=folder_id, unfiled=unfiled)


def add_journals_to_folder(user_id: str, folder_id: str, journal_ids: List[str]) -> int:
    if not isinstance(journal_ids, list) or not journal_ids:
        raise ValidationError("No journals selected")
    with session_scope() as session:
        _owned_folder(session, user_id, folder_id)
        for journal_id in journal_ids:
            journal = _owned_journal(session, user_id, journal_id)
            journal.folder_id = folder_id
    log_event(logging.INFO, "folder_journals_added", folder_id=folder_id, count=len(journal_ids))
    return len(journal_ids)


def remove_journal_from_folder(user_id: str, folder_id: str, journal_id: str):
    with session_scope() as session:
        _owned_folder(session, user_id, folder_id)
        journal = _owned_journal(session, user_id, journal_id)
        if journal.folder_id != folder_id:
            raise NotFoundError("Journal is not in this folder")
        journal.folder_id = None
    log_event(logging.INFO, "folder_journal_removed", folder_id=folder_id, journal_id=journal_id)
