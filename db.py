"""
Relational storage: SQLAlchemy engine, session handling and tables.
"""

import uuid
import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    create_engine,
    Column,
    String,
    Text,
    DateTime,
    ForeignKey,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from config import log_event, DATABASE_URL, DATA_DIR, DEFAULT_JOURNAL_TITLE

Base = declarative_base()
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)
engine = None


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo anyway)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


# --- MODELS ---

class Folder(Base):
    __tablename__ = "folders"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    journals = relationship("Journal", back_populates="folder")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Journal(Base):
    __tablename__ = "journals"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), index=True, nullable=False)
    folder_id = Column(String(36), ForeignKey("folders.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False, default=DEFAULT_JOURNAL_TITLE)
    content = Column(Text, default="")
    trashed_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    folder = relationship("Folder", back_populates="journals")
    share = relationship("JournalShare", back_populates="journal", uselist=False,
                         cascade="all, delete-orphan")
    chat = relationship("Chat", back_populates="journal", uselist=False,
                        cascade="all, delete-orphan")

    def to_dict(self, include_content: bool = True):
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "folder_id": self.folder_id,
            "title": self.title,
            "trashed_at": _iso(self.trashed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_content:
            data["content"] = self.content or ""
        return data


class JournalShare(Base):
    __tablename__ = "journal_shares"
    id = Column(String(36), primary_key=True, default=new_id)
    journal_id = Column(String(36), ForeignKey("journals.id", ondelete="CASCADE"),
                        unique=True, nullable=False)
    created_by = Column(String(64), index=True, nullable=False)
    share_type = Column(String(20), nullable=False)  # "anyone" | "specific_users"
    permission_type = Column(String(10), nullable=False)  # "view" | "edit"
    allowed_emails = Column(JSON, default=list)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    journal = relationship("Journal", back_populates="share")

    def to_dict(self):
        return {
            "id": self.id,
            "journal_id": self.journal_id,
            "created_by": self.created_by,
            "share_type": self.share_type,
            "permission_type": self.permission_type,
            "allowed_emails": list(self.allowed_emails or []),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Chat(Base):
    """One isolated chat thread per journal."""
    __tablename__ = "chats"
    id = Column(String(36), primary_key=True, default=new_id)
    journal_id = Column(String(36), ForeignKey("journals.id", ondelete="CASCADE"),
                        unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    journal = relationship("Journal", back_populates="chat")
    messages = relationship("ChatMessage", back_populates="chat", cascade="all, delete-orphan",
                            order_by="ChatMessage.created_at")


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    id = Column(String(36), primary_key=True, default=new_id)
    chat_id = Column(String(36), ForeignKey("chats.id", ondelete="CASCADE"), index=True, nullable=False)
    role = Column(String(16), nullable=False)  # "user" | "assistant" | "system"
    content = Column(Text, nullable=False)
    files = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    chat = relationship("Chat", back_populates="messages")

    def to_dict(self):
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "files": self.files or [],
            "created_at": _iso(self.created_at),
        }


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (UniqueConstraint("user_id"),)
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False)
    theme = Column(String(10), nullable=False, default="light")
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self):
        return {"user_id": self.user_id, "theme": self.theme}


# --- ENGINE / SESSIONS ---

def init_db(database_url: str = None):
    """Create the engine, bind the session factory and create missing tables."""
    global engine
    url = database_url or DATABASE_URL
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if url == f"sqlite:///{DATA_DIR / 'inkwell.db'}":
            DATA_DIR.mkdir(parents=True, exist_ok=True)

    if engine is not None:
        engine.dispose()
    engine = create_engine(url, pool_pre_ping=True, future=True, connect_args=connect_args)
    SessionLocal.configure(bind=engine)
    Base.metadata.create_all(engine)
    log_event(logging.INFO, "database_ready", url=engine.url.render_as_string(hide_password=True))
    return engine


@contextmanager
def session_scope():
    """Transactional scope: commit on success, roll back on error."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
