"""
Data structures (dataclasses) for Inkwell.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

BLOCK_TYPES = (
    "paragraph",
    "heading1",
    "heading2",
    "heading3",
    "bulleted_list",
    "numbered_list",
    "toggle",
    "quote",
    "divider",
    "image",
    "code",
    "quiz",
    "flashcards",
)

OPTION_LETTERS = ("A", "B", "C", "D")


@dataclass
class Block:
    """A single typed block in a journal document."""
    id: str
    type: str
    content: str = ""
    data: Dict = field(default_factory=dict)


@dataclass
class BlockDocument:
    """Ordered sequence of blocks; list order is document order."""
    blocks: List[Block] = field(default_factory=list)
    version: int = 1


@dataclass
class QuizQuestion:
    """Multiple-choice question with four options."""
    question: str
    options: List[str]
    correct: int  # index into options


@dataclass
class Quiz:
    title: str
    questions: List[QuizQuestion] = field(default_factory=list)


@dataclass
class Flashcard:
    front: str
    back: str


@dataclass
class FlashcardSet:
    title: str
    cards: List[Flashcard] = field(default_factory=list)


@dataclass
class AttachedFile:
    """Text file attached to a chat message."""
    name: str
    content: str
    type: str = "text/plain"


@dataclass
class SlashCommand:
    """Entry of the slash command menu."""
    value: str
    label: str
    keywords: List[str]
    kind: str  # "block", "inline" or "artifact"
    block_type: Optional[str] = None
    snippet: str = ""
