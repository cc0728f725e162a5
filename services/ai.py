"""
AI operations: Gemini chat, quiz and flashcard generation.
"""

import re
import logging
from typing import Optional, Tuple, List, Dict, Iterator

import google.generativeai as genai

from config import (
    log_event,
    gemini_model,
    GEMINI_MODEL,
    MAX_OUTPUT_TOKENS,
    TEMPERATURE,
    QUIZ_QUESTION_COUNT,
    FLASHCARD_COUNT,
)
from errors import AIServiceError, ValidationError
from models import AttachedFile

GENERATION_CONFIG = {"max_output_tokens": MAX_OUTPUT_TOKENS, "temperature": TEMPERATURE}

TEXT_FILE_TYPES = {
    "text/plain",
    "text/markdown",
    "text/javascript",
    "text/typescript",
    "application/json",
    "text/css",
    "text/html",
    "application/xml",
    "text/xml",
}
TEXT_FILE_EXTENSIONS = (".txt", ".md", ".js", ".ts", ".json", ".css", ".html", ".xml")


# --- INTENT DETECTION ---

REQUEST_PATTERNS = [
    (r'^\s*quiz\s+me\s+(?:on|about)\s*', "quiz"),
    (r'^\s*(?:make|create|generate|give\s+me)\s+(?:a\s+)?quiz\s+(?:on|about)\s*', "quiz"),
    (r'^\s*(?:make|create|generate)\s+flashcards\s+(?:on|about|for)\s*', "flashcards"),
    (r'^\s*flashcards\s+(?:on|about|for)\s*', "flashcards"),
]


def detect_request_kind(message: str) -> Tuple[str, str]:
    """
    Classify a chat message.
    Returns (kind, topic) where kind is "quiz", "flashcards" or "chat".
    """
    for pattern, kind in REQUEST_PATTERNS:
        match = re.match(pattern, message, re.IGNORECASE)
        if match:
            topic = message[match.end():].strip()
            log_event(logging.INFO, "study_request_detected", kind=kind, topic=topic[:60])
            return kind, topic
    return "chat", message.strip()


# --- PROMPTS ---

def build_system_prompt(kind: str, topic: str, journal_id: str, journal_title: Optional[str] = None) -> str:
    if kind == "quiz":
        return f"""You are a quiz generator for a journal application. The user wants a quiz on: "{topic}". Generate a quiz with exactly {QUIZ_QUESTION_COUNT} multiple-choice questions. Each question must have exactly 4 options (A, B, C, D). Format your response as:

QUIZ_TITLE: [Brief title for the quiz]

QUESTION 1: [Question text]
A) [Option 1]
B) [Option 2]
C) [Option 3]
D) [Option 4]
CORRECT: [Letter of correct answer]

QUESTION 2: [etc.]

Use the provided files and journal notes if any to make questions more relevant and accurate."""

    if kind == "flashcards":
        return f"""You are a flashcard generator for a journal application. The user wants flashcards on: "{topic}". Generate exactly {FLASHCARD_COUNT} flashcards that cover the key concepts. Format your response as:

FLASHCARDS_TITLE: [Brief title for the flashcards]

CARD 1:
FRONT: [Question or term]
BACK: [Answer or definition]

CARD 2:
FRONT: [Question or term]
BACK: [Answer or definition]

[etc. for {FLASHCARD_COUNT} cards]

Use the provided files and journal notes if any to make flashcards more relevant and accurate."""

    return f"""You are a helpful AI assistant for a journal/note-taking application. The user is currently working on a journal titled "{journal_title or 'Untitled'}". Provide helpful, relevant responses to their questions about journaling, writing, organization, or any other topics they bring up. When files are provided, analyze their contents and use that information to provide more relevant and informed responses. Be concise but informative.

IMPORTANT: This is an isolated conversation for journal ID: {journal_id}. Do not reference or recall information from any other journals or conversations. This conversation is completely separate and independent."""


# --- FILES ---

def validate_files(files) -> List[AttachedFile]:
    """Accept text attachments only."""
    if not files:
        return []
    if not isinstance(files, list):
        raise ValidationError("files must be a list")

    attached = []
    for item in files:
        if not isinstance(item, dict) or not isinstance(item.get("content"), str):
            raise ValidationError("Each file needs a name and text content")
        name = str(item.get("name") or "").strip()
        if not name:
            raise ValidationError("Each file needs a name and text content")
        file_type = str(item.get("type") or "text/plain")
        if file_type not in TEXT_FILE_TYPES and not name.lower().endswith(TEXT_FILE_EXTENSIONS):
            raise ValidationError(f'File "{name}" is not a supported text file type')
        attached.append(AttachedFile(name=name, content=item["content"], type=file_type))
    return attached


def format_files(files: List[Dict]) -> str:
    if not files:
        return ""
    rendered = "\n".join(
        f"## File: {f['name']}\n```\n{f['content']}\n```" for f in files
    )
    return f"\n\n--- Attached Files ---\n{rendered}"


def build_contents(history: List[Dict], user_message: str, files: Optional[List[Dict]] = None,
                   notes: Optional[str] = None) -> List[Dict]:
    """Map stored chat history plus the new message onto Gemini's content list."""
    contents = []
    for message in history:
        if message["role"] not in ("user", "assistant"):
            continue
        contents.append({
            "role": "model" if message["role"] == "assistant" else "user",
            "parts": [message["content"] + format_files(message.get("files") or [])],
        })

    text = user_message + format_files(files or [])
    if notes:
        text += f"\n\n--- Journal Notes ---\n{notes}"
    contents.append({"role": "user", "parts": [text]})
    return contents


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


# --- GEMINI OPERATIONS ---

def _model_for(system_prompt: str):
    """A Gemini model carrying the system prompt, or None when no key is configured."""
    if gemini_model is None:
        return None
    return genai.GenerativeModel(GEMINI_MODEL, system_instruction=system_prompt)


def generate_reply(system_prompt: str, contents: List[Dict]) -> str:
    model = _model_for(system_prompt)
    if model is None:
        log_event(logging.WARNING, "gemini_unavailable")
        raise AIServiceError("AI service not configured")

    try:
        log_event(logging.INFO, "gemini_request", turns=len(contents))
        response = model.generate_content(contents, generation_config=GENERATION_CONFIG)
        text = response.text
    except Exception as e:
        log_event(logging.ERROR, "gemini_error", error=str(e))
        raise AIServiceError("AI service temporarily unavailable") from e

    if not text or not text.strip():
        raise AIServiceError("No response from AI service")
    log_event(logging.INFO, "gemini_reply", chars=len(text))
    return text.strip()


def stream_reply(system_prompt: str, contents: List[Dict]) -> Iterator[str]:
    """Yield reply text as Gemini streams it."""
    model = _model_for(system_prompt)
    if model is None:
        log_event(logging.WARNING, "gemini_unavailable")
        raise AIServiceError("AI service not configured")

    try:
        log_event(logging.INFO, "gemini_stream_request", turns=len(contents))
        response = model.generate_content(contents, generation_config=GENERATION_CONFIG, stream=True)
        for chunk in response:
            try:
                text = chunk.text
            except ValueError:
                # Chunk without text parts (e.g. safety metadata)
                continue
            if text:
                yield text
    except AIServiceError:
        raise
    except Exception as e:
        log_event(logging.ERROR, "gemini_stream_error", error=str(e))
        raise AIServiceError("AI service temporarily unavailable") from e
