"""
Block document model for the journal editor.

A journal's content column holds either the JSON block format
({"version": 1, "blocks": [...]}) or legacy plain text written by the old
textarea editor. load_document() reconciles both into a BlockDocument; every
save writes the JSON format back.
"""

import re
import json
import uuid
import logging
from dataclasses import asdict
from typing import Optional, List, Dict, Union

from config import log_event
from errors import NotFoundError, ValidationError
from models import (
    Block,
    BlockDocument,
    Quiz,
    FlashcardSet,
    BLOCK_TYPES,
    OPTION_LETTERS,
)
from services.commands import get_command

DOCUMENT_VERSION = 1
TEXT_BLOCK_TYPES = (
    "paragraph", "heading1", "heading2", "heading3",
    "bulleted_list", "numbered_list", "toggle", "quote", "code",
)

IMAGE_RE = re.compile(r'^!\[(.*?)\]\((.*?)\)\s*$')
NUMBERED_RE = re.compile(r'^\d+[.)]\s+(.*)$')
DIVIDER_RE = re.compile(r'^(-{3,}|\*{3,}|_{3,})$')


def new_block_id() -> str:
    return str(uuid.uuid4())[:8]


def make_block(block_type: str, content: str = "", data: Optional[Dict] = None) -> Block:
    if block_type not in BLOCK_TYPES:
        raise ValidationError(f"Unknown block type: {block_type}")
    if data is None:
        data = _default_data(block_type)
    return Block(id=new_block_id(), type=block_type, content=content, data=data)


def empty_document() -> BlockDocument:
    return BlockDocument(blocks=[make_block("paragraph")])


def _default_data(block_type: str, title: Optional[str] = None) -> Dict:
    if block_type == "quiz":
        return {"title": title or "Quiz", "questions": []}
    if block_type == "flashcards":
        return {"title": title or "Flashcards", "cards": []}
    if block_type == "image":
        return {"url": ""}
    return {}


# --- STUDY ARTIFACT NORMALIZATION ---

def _coerce_correct(value) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value if 0 <= value < len(OPTION_LETTERS) else 0
    if isinstance(value, str) and value.strip().upper() in OPTION_LETTERS:
        return OPTION_LETTERS.index(value.strip().upper())
    return 0


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _normalize_quiz_data(data: Dict) -> Dict:
    questions = []
    for item in _as_list(data.get("questions")):
        if not isinstance(item, dict):
            continue
        options = [str(o) for o in _as_list(item.get("options"))][:len(OPTION_LETTERS)]
        options += [""] * (len(OPTION_LETTERS) - len(options))
        questions.append({
            "question": str(item.get("question") or ""),
            "options": options,
            "correct": _coerce_correct(item.get("correct")),
        })
    return {"title": str(data.get("title") or "Quiz"), "questions": questions}


def _normalize_flashcards_data(data: Dict) -> Dict:
    cards = [
        {"front": str(item.get("front") or ""), "back": str(item.get("back") or "")}
        for item in _as_list(data.get("cards"))
        if isinstance(item, dict)
    ]
    return {"title": str(data.get("title") or "Flashcards"), "cards": cards}


# --- LOAD / DUMP ---

def _block_from_dict(item, seen_ids: set) -> Block:
    if not isinstance(item, dict):
        return make_block("paragraph", "" if item is None else str(item))

    block_type = item.get("type")
    if block_type not in BLOCK_TYPES:
        block_type = "paragraph"

    block_id = item.get("id")
    if not isinstance(block_id, str) or not block_id or block_id in seen_ids:
        block_id = new_block_id()

    content = item.get("content")
    content = "" if content is None else str(content)

    data = item.get("data") if isinstance(item.get("data"), dict) else {}
    if block_type == "quiz":
        data = _normalize_quiz_data(data)
    elif block_type == "flashcards":
        data = _normalize_flashcards_data(data)
    elif block_type == "image":
        data = {"url": str(data.get("url") or "")}

    return Block(id=block_id, type=block_type, content=content, data=data)


def _legacy_to_blocks(text: str) -> List[Block]:
    """Convert the old markdown-ish textarea content, one block per line."""
    blocks = []
    code_lines = None

    for line in text.splitlines():
        stripped = line.strip()

        if code_lines is not None:
            if stripped.startswith("```"):
                blocks.append(make_block("code", "\n".join(code_lines)))
                code_lines = None
            else:
                code_lines.append(line)
            continue

        if not stripped:
            continue
        if stripped.startswith("```"):
            code_lines = []
            continue

        if DIVIDER_RE.match(stripped):
            blocks.append(make_block("divider"))
        elif stripped.startswith("### "):
            blocks.append(make_block("heading3", stripped[4:].strip()))
        elif stripped.startswith("## "):
            blocks.append(make_block("heading2", stripped[3:].strip()))
        elif stripped.startswith("# "):
            blocks.append(make_block("heading1", stripped[2:].strip()))
        elif stripped.startswith(("- ", "* ")):
            blocks.append(make_block("bulleted_list", stripped[2:].strip()))
        elif stripped in ("-", "*"):
            blocks.append(make_block("bulleted_list"))
        elif stripped.startswith("> "):
            blocks.append(make_block("quote", stripped[2:].strip()))
        elif NUMBERED_RE.match(stripped):
            blocks.append(make_block("numbered_list", NUMBERED_RE.match(stripped).group(1).strip()))
        elif IMAGE_RE.match(stripped):
            alt, url = IMAGE_RE.match(stripped).groups()
            blocks.append(make_block("image", alt, {"url": url}))
        else:
            blocks.append(make_block("paragraph", stripped))

    # Unterminated fence keeps what it collected
    if code_lines is not None:
        blocks.append(make_block("code", "\n".join(code_lines)))

    return blocks


def _block_payload(raw: Optional[str]) -> Optional[list]:
    """The stored block list, or None when the content is not in block format."""
    if raw is None or not raw.strip():
        return None
    stripped = raw.strip()
    if stripped[0] not in "{[":
        return None
    try:
        parsed = json.loads(stripped)
    except ValueError:
        return None
    if isinstance(parsed, dict) and isinstance(parsed.get("blocks"), list):
        return parsed["blocks"]
    if isinstance(parsed, list):
        return parsed
    return None


def load_document(raw: Optional[str]) -> BlockDocument:
    """Reconcile stored journal content (JSON blocks or legacy text) into a document."""
    if raw is None or not raw.strip():
        return empty_document()

    payload = _block_payload(raw)
    if payload is None:
        blocks = _legacy_to_blocks(raw)
        log_event(logging.DEBUG, "document_loaded_legacy", blocks=len(blocks))
    else:
        seen = set()
        blocks = []
        for item in payload:
            block = _block_from_dict(item, seen)
            seen.add(block.id)
            blocks.append(block)
        log_event(logging.DEBUG, "document_loaded_blocks", blocks=len(blocks))

    if not blocks:
        return empty_document()
    return BlockDocument(blocks=blocks, version=DOCUMENT_VERSION)


def document_to_dict(doc: BlockDocument) -> Dict:
    return {"version": DOCUMENT_VERSION, "blocks": [asdict(block) for block in doc.blocks]}


def dump_document(doc: BlockDocument) -> str:
    return json.dumps(document_to_dict(doc), ensure_ascii=False)


def _render_block(block: Block, number: int) -> str:
    if block.type == "heading1":
        return f"# {block.content}"
    if block.type == "heading2":
        return f"## {block.content}"
    if block.type == "heading3":
        return f"### {block.content}"
    if block.type == "bulleted_list":
        return f"- {block.content}"
    if block.type == "numbered_list":
        return f"{number}. {block.content}"
    if block.type in ("quote", "toggle"):
        return f"> {block.content}"
    if block.type == "divider":
        return "---"
    if block.type == "image":
        return f"![{block.content}]({block.data.get('url', '')})"
    if block.type == "code":
        return f"```\n{block.content}\n```"
    if block.type == "quiz":
        lines = [f"Quiz: {block.data.get('title', 'Quiz')}"]
        for i, question in enumerate(block.data.get("questions", []), start=1):
            lines.append(f"Q{i}: {question['question']}")
            for letter, option in zip(OPTION_LETTERS, question["options"]):
                lines.append(f"   {letter}) {option}")
            lines.append(f"   Answer: {OPTION_LETTERS[question['correct']]}")
        return "\n".join(lines)
    if block.type == "flashcards":
        lines = [f"Flashcards: {block.data.get('title', 'Flashcards')}"]
        for card in block.data.get("cards", []):
            lines.append(f"   {card['front']} :: {card['back']}")
        return "\n".join(lines)
    return block.content


def to_plain_text(doc: BlockDocument) -> str:
    """Render the document in the legacy text format."""
    lines = []
    number = 0
    for block in doc.blocks:
        number = number + 1 if block.type == "numbered_list" else 0
        rendered = _render_block(block, number)
        if rendered or block.type != "paragraph":
            lines.append(rendered)
    return "\n".join(lines)


def _block_words(block: Block) -> List[str]:
    parts = [block.content]
    if block.type == "quiz":
        parts.append(block.data.get("title", ""))
        for question in block.data.get("questions", []):
            parts.append(question["question"])
            parts.extend(question["options"])
    elif block.type == "flashcards":
        parts.append(block.data.get("title", ""))
        for card in block.data.get("cards", []):
            parts.extend([card["front"], card["back"]])
    return " ".join(parts).split()


def word_count(doc: BlockDocument) -> int:
    return sum(len(_block_words(block)) for block in doc.blocks)


# --- BLOCK OPERATIONS ---

def find_index(doc: BlockDocument, block_id: str) -> int:
    for i, block in enumerate(doc.blocks):
        if block.id == block_id:
            return i
    raise NotFoundError(f"Block not found: {block_id}")


def get_block(doc: BlockDocument, block_id: str) -> Block:
    return doc.blocks[find_index(doc, block_id)]


def insert_block(
    doc: BlockDocument,
    block_type: str,
    after_id: Optional[str] = None,
    content: str = "",
    data: Optional[Dict] = None,
) -> Block:
    """Insert a new block after `after_id`, or at the end."""
    if not isinstance(content, str):
        raise ValidationError("Block content must be a string")
    if data is not None and not isinstance(data, dict):
        raise ValidationError("Block data must be an object")
    block = make_block(block_type, content, data)
    if block_type == "quiz":
        block.data = _normalize_quiz_data(block.data)
    elif block_type == "flashcards":
        block.data = _normalize_flashcards_data(block.data)

    if after_id is None:
        doc.blocks.append(block)
    else:
        doc.blocks.insert(find_index(doc, after_id) + 1, block)
    log_event(logging.DEBUG, "block_inserted", block_id=block.id, type=block_type)
    return block


def update_block(
    doc: BlockDocument,
    block_id: str,
    content: Optional[str] = None,
    data: Optional[Dict] = None,
) -> Block:
    block = get_block(doc, block_id)
    if content is not None:
        if not isinstance(content, str):
            raise ValidationError("Block content must be a string")
        block.content = content
    if data is not None:
        if not isinstance(data, dict):
            raise ValidationError("Block data must be an object")
        if block.type == "quiz":
            data = _normalize_quiz_data(data)
        elif block.type == "flashcards":
            data = _normalize_flashcards_data(data)
        block.data = data
    return block


def delete_block(doc: BlockDocument, block_id: str) -> Block:
    """Remove a block; the document always keeps at least one block."""
    removed = doc.blocks.pop(find_index(doc, block_id))
    if not doc.blocks:
        doc.blocks.append(make_block("paragraph"))
    log_event(logging.DEBUG, "block_deleted", block_id=block_id)
    return removed


def move_block(doc: BlockDocument, from_index: int, to_index: int) -> Block:
    """Drag-and-drop reorder: take the block at from_index and splice it in at to_index."""
    if not 0 <= from_index < len(doc.blocks):
        raise ValidationError(f"Block index out of range: {from_index}")
    to_index = max(0, min(to_index, len(doc.blocks) - 1))
    block = doc.blocks.pop(from_index)
    doc.blocks.insert(to_index, block)
    log_event(logging.DEBUG, "block_moved", block_id=block.id, from_index=from_index, to_index=to_index)
    return block


def _split_slash_query(content: str, slash_index: Optional[int]):
    """Return (before, after) with the "/query" text cut out."""
    if slash_index is None:
        match = re.search(r'/\S*$', content)
        if not match:
            return content, ""
        return content[:match.start()], ""

    if not 0 <= slash_index < len(content) or content[slash_index] != "/":
        raise ValidationError("No slash command at the given position")
    end = slash_index + 1
    while end < len(content) and not content[end].isspace():
        end += 1
    return content[:slash_index], content[end:]


def transform_block(
    doc: BlockDocument,
    block_id: str,
    command: str,
    slash_index: Optional[int] = None,
) -> Block:
    """Apply a slash command to a block."""
    entry = get_command(command)
    if entry is None:
        raise ValidationError(f"Unknown command: {command}")

    block = get_block(doc, block_id)
    before, after = _split_slash_query(block.content, slash_index)

    if entry.kind == "inline":
        if block.type not in TEXT_BLOCK_TYPES:
            raise ValidationError(f"Cannot insert {entry.label.lower()} into a {block.type} block")
        block.content = before + entry.snippet + after
    elif entry.kind == "artifact":
        block.type = entry.block_type
        block.data = _default_data(entry.block_type, title=(before + after).strip() or None)
        block.content = ""
    else:
        block.type = entry.block_type
        if entry.block_type == "divider":
            block.content = ""
            block.data = {}
        else:
            block.content = before + after
            block.data = {"url": block.data.get("url", "")} if entry.block_type == "image" else {}

    log_event(logging.INFO, "block_transformed", block_id=block.id, command=command, type=block.type)
    return block


# --- STUDY ARTIFACTS ---

def quiz_block(quiz: Quiz) -> Block:
    return make_block("quiz", data=_normalize_quiz_data(asdict(quiz)))


def flashcards_block(flashcards: FlashcardSet) -> Block:
    return make_block("flashcards", data=_normalize_flashcards_data(asdict(flashcards)))


def _artifact_block(doc: BlockDocument, block_id: str, block_type: str) -> Block:
    block = get_block(doc, block_id)
    if block.type != block_type:
        raise ValidationError(f"Block {block_id} is not a {block_type} block")
    return block


def _check_index(items: list, index: int, label: str):
    if not isinstance(index, int) or not 0 <= index < len(items):
        raise ValidationError(f"{label} index out of range: {index}")


def _validate_correct(value: Union[int, str]) -> int:
    if isinstance(value, str) and value.strip().upper() in OPTION_LETTERS:
        return OPTION_LETTERS.index(value.strip().upper())
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < len(OPTION_LETTERS):
        return value
    raise ValidationError(f"Correct answer must be one of {', '.join(OPTION_LETTERS)}")


def _validate_options(options) -> List[str]:
    if not isinstance(options, list) or len(options) != len(OPTION_LETTERS):
        raise ValidationError(f"A question needs exactly {len(OPTION_LETTERS)} options")
    return [str(option) for option in options]


def rename_artifact(doc: BlockDocument, block_id: str, title: str) -> Block:
    block = get_block(doc, block_id)
    if block.type not in ("quiz", "flashcards"):
        raise ValidationError(f"Block {block_id} has no title")
    block.data["title"] = title
    return block


def update_quiz_question(
    doc: BlockDocument,
    block_id: str,
    index: int,
    question: Optional[str] = None,
    options: Optional[List[str]] = None,
    correct: Optional[Union[int, str]] = None,
) -> Block:
    block = _artifact_block(doc, block_id, "quiz")
    questions = block.data["questions"]
    _check_index(questions, index, "Question")

    item = questions[index]
    if question is not None:
        item["question"] = str(question)
    if options is not None:
        item["options"] = _validate_options(options)
    if correct is not None:
        item["correct"] = _validate_correct(correct)
    return block


def add_quiz_question(
    doc: BlockDocument,
    block_id: str,
    question: str = "",
    options: Optional[List[str]] = None,
    correct: Union[int, str] = 0,
) -> Block:
    block = _artifact_block(doc, block_id, "quiz")
    block.data["questions"].append({
        "question": str(question),
        "options": _validate_options(options) if options is not None else [""] * len(OPTION_LETTERS),
        "correct": _validate_correct(correct),
    })
    return block


def remove_quiz_question(doc: BlockDocument, block_id: str, index: int) -> Block:
    block = _artifact_block(doc, block_id, "quiz")
    _check_index(block.data["questions"], index, "Question")
    block.data["questions"].pop(index)
    return block


def update_flashcard(
    doc: BlockDocument,
    block_id: str,
    index: int,
    front: Optional[str] = None,
    back: Optional[str] = None,
) -> Block:
    block = _artifact_block(doc, block_id, "flashcards")
    cards = block.data["cards"]
    _check_index(cards, index, "Card")
    if front is not None:
        cards[index]["front"] = str(front)
    if back is not None:
        cards[index]["back"] = str(back)
    return block


def add_flashcard(doc: BlockDocument, block_id: str, front: str = "", back: str = "") -> Block:
    block = _artifact_block(doc, block_id, "flashcards")
    block.data["cards"].append({"front": str(front), "back": str(back)})
    return block


def remove_flashcard(doc: BlockDocument, block_id: str, index: int) -> Block:
    block = _artifact_block(doc, block_id, "flashcards")
    _check_index(block.data["cards"], index, "Card")
    block.data["cards"].pop(index)
    return block
