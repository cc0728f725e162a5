"""
Configuration, constants, and service initialization.
"""

import os
import logging
from pathlib import Path

from dotenv import load_dotenv
import chromadb
import google.generativeai as genai

# --- LOAD ENV ---
load_dotenv()

# --- LOGGING ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("inkwell")


def log_event(level: int, message: str, **data):
    """Lightweight structured logging helper."""
    try:
        serialized = " | ".join(f"{k}={v}" for k, v in data.items())
        logger.log(level, f"{message}{' | ' + serialized if serialized else ''}")
    except Exception:
        logger.log(level, message)


# --- PATHS ---
DATA_DIR = Path(os.getenv("INKWELL_DATA_DIR", Path(__file__).parent / "data"))
DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{DATA_DIR / 'inkwell.db'}"

# --- CONSTANTS ---
DEFAULT_JOURNAL_TITLE = "New Journal"
AUTOSAVE_DELAY_SECONDS = float(os.getenv("AUTOSAVE_DELAY_SECONDS", "1.0"))
TRASH_RETENTION_DAYS = int(os.getenv("TRASH_RETENTION_DAYS", "30"))
SEARCH_SIMILARITY_THRESHOLD = float(os.getenv("SEARCH_SIMILARITY_THRESHOLD", "0.5"))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5050").rstrip("/")

QUIZ_QUESTION_COUNT = 5
FLASHCARD_COUNT = 8
MAX_OUTPUT_TOKENS = 1500
TEMPERATURE = 0.7

# --- API KEYS ---
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

# --- INITIALIZE SERVICES ---

# Gemini for chat, quiz and flashcard generation
gemini_model = None
if GEMINI_API_KEY:
    genai.configure(api_key=GEMINI_API_KEY)
    gemini_model = genai.GenerativeModel(GEMINI_MODEL)

# ChromaDB client
chroma_client = chromadb.Client()

# FastEmbed model, loaded on first search
_embed_model = None


def get_embed_model():
    """Return the shared FastEmbed model, loading it on first use."""
    global _embed_model
    if _embed_model is None:
        from fastembed import TextEmbedding
        _embed_model = TextEmbedding(model_name="BAAI/bge-small-en-v1.5")
        log_event(logging.INFO, "embed_model_loaded", model="BAAI/bge-small-en-v1.5")
    return _embed_model
