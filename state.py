"""
Application state management.
In-process state for debounced saves and cached search collections.
"""

from threading import Lock, RLock, Timer
from typing import Dict

# --- AUTOSAVE ---

# Latest unsaved content per journal: {"content", "user_id", "token", "scheduled_at"}
PENDING_SAVES: Dict[str, Dict] = {}

# Running debounce timer per journal
SAVE_TIMERS: Dict[str, Timer] = {}

# Guards PENDING_SAVES and SAVE_TIMERS
SAVE_LOCK: Lock = Lock()

# One writer per journal; held across the database write
WRITE_LOCKS: Dict[str, object] = {}

# --- SEARCH ---

# Cached ChromaDB collections per user
CHROMA_COLLECTIONS: Dict[str, object] = {}
