"""
Line scanners for model-generated quizzes and flashcards.

Both parsers read the plain-text layout the generation prompts ask for and
return None when nothing usable comes back.
"""

import re
import logging
from typing import Optional, List

from config import log_event
from models import Quiz, QuizQuestion, Flashcard, FlashcardSet, OPTION_LETTERS

QUIZ_TITLE_RE = re.compile(r'^QUIZ[_ ]TITLE\s*:\s*(.+)$', re.IGNORECASE)
QUESTION_RE = re.compile(r'^QUESTION\s*\d*\s*[:.)]\s*(.+)$', re.IGNORECASE)
OPTION_RE = re.compile(r'^([A-D])\s*[).:]\s*(.+)$')
CORRECT_RE = re.compile(r'^CORRECT(?:\s+ANSWER)?\s*:\s*\(?([A-D])\b', re.IGNORECASE)

FLASHCARDS_TITLE_RE = re.compile(r'^FLASHCARDS?[_ ]TITLE\s*:\s*(.+)$', re.IGNORECASE)
CARD_RE = re.compile(r'^CARD\s*\d*\s*:?\s*$', re.IGNORECASE)
FRONT_RE = re.compile(r'^FRONT\s*:\s*(.*)$', re.IGNORECASE)
BACK_RE = re.compile(r'^BACK\s*:\s*(.*)$', re.IGNORECASE)


def _clean_line(line: str) -> str:
    """Drop markdown emphasis and heading marks models like to add."""
    line = re.sub(r'(\*\*|__)', '', line)
    return line.strip().lstrip('#').strip()


def _finish_question(draft: Optional[dict], questions: List[QuizQuestion]):
    if not draft:
        return
    options = draft["options"]
    letters = [letter for letter, _ in options]
    if (
        draft["question"]
        and letters == list(OPTION_LETTERS)
        and draft["correct"] in OPTION_LETTERS
    ):
        questions.append(QuizQuestion(
            question=draft["question"],
            options=[text for _, text in options],
            correct=OPTION_LETTERS.index(draft["correct"]),
        ))
    else:
        log_event(logging.DEBUG, "quiz_question_dropped", question=draft["question"][:60])


def parse_quiz(text: str) -> Optional[Quiz]:
    """Parse QUIZ_TITLE / QUESTION n / A)-D) / CORRECT lines into a Quiz."""
    if not text:
        return None

    title = None
    questions: List[QuizQuestion] = []
    draft = None

    for raw_line in text.splitlines():
        line = _clean_line(raw_line)
        if not line:
            continue

        match = QUIZ_TITLE_RE.match(line)
        if match:
            title = match.group(1).strip()
            continue

        match = QUESTION_RE.match(line)
        if match:
            _finish_question(draft, questions)
            draft = {"question": match.group(1).strip(), "options": [], "correct": None}
            continue

        if draft is None:
            continue

        match = CORRECT_RE.match(line)
        if match:
            draft["correct"] = match.group(1).upper()
            continue

        match = OPTION_RE.match(line)
        if match:
            draft["options"].append((match.group(1), match.group(2).strip()))

    _finish_question(draft, questions)

    if not questions:
        log_event(logging.INFO, "quiz_parse_empty", chars=len(text))
        return None

    log_event(logging.INFO, "quiz_parsed", questions=len(questions))
    return Quiz(title=title or "Quiz", questions=questions)


def parse_flashcards(text: str) -> Optional[FlashcardSet]:
    """Parse FLASHCARDS_TITLE / CARD n / FRONT / BACK lines into a FlashcardSet."""
    if not text:
        return None

    title = None
    cards: List[Flashcard] = []
    front = None
    back = None
    last_field = None

    def finish():
        if front and back:
            cards.append(Flashcard(front=front, back=back))

    for raw_line in text.splitlines():
        line = _clean_line(raw_line)
        if not line:
            continue

        match = FLASHCARDS_TITLE_RE.match(line)
        if match:
            title = match.group(1).strip()
            continue

        if CARD_RE.match(line):
            finish()
            front, back, last_field = None, None, None
            continue

        match = FRONT_RE.match(line)
        if match:
            # A second FRONT without a CARD header starts the next card
            if front is not None:
                finish()
                back = None
            front = match.group(1).strip()
            last_field = "front"
            continue

        match = BACK_RE.match(line)
        if match:
            back = match.group(1).strip()
            last_field = "back"
            continue

        # Continuation of a multi-line side
        if last_field == "front" and front is not None:
            front = f"{front} {line}".strip()
        elif last_field == "back" and back is not None:
            back = f"{back} {line}".strip()

    finish()

    if not cards:
        log_event(logging.INFO, "flashcards_parse_empty", chars=len(text))
        return None

    log_event(logging.INFO, "flashcards_parsed", cards=len(cards))
    return FlashcardSet(title=title or "Flashcards", cards=cards)
