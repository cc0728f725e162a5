"""
Per-user preferences.
"""

import logging
from typing import Dict

from config import log_event
from db import session_scope, Profile
from errors import ValidationError

THEMES = ("light", "dark")


def get_profile(user_id: str) -> Dict:
    with session_scope() as session:
        profile = session.query(Profile).filter(Profile.user_id == user_id).one_or_none()
        if profile is None:
            return {"user_id": user_id, "theme": "light"}
        return profile.to_dict()


def set_theme(user_id: str, theme: str) -> Dict:
    if theme not in THEMES:
        raise ValidationError(f"Theme must be one of: {', '.join(THEMES)}")
    with session_scope() as session:
        profile = session.query(Profile).filter(Profile.user_id == user_id).one_or_none()
        if profile is None:
            profile = Profile(user_id=user_id)
            session.add(profile)
        profile.theme = theme
        session.flush()
        log_event(logging.INFO, "profile_theme_set", user_id=user_id, theme=theme)
        return profile.to_dict()
