"""
Slash command catalogue and the legacy text-mode command handling.
"""

from typing import List, Optional, Tuple

from models import SlashCommand

COMMANDS: List[SlashCommand] = [
    SlashCommand("h1", "Heading 1", ["heading", "h1", "title", "header"], "block", "heading1", "# "),
    SlashCommand("h2", "Heading 2", ["heading", "h2", "subtitle", "header"], "block", "heading2", "## "),
    SlashCommand("h3", "Heading 3", ["heading", "h3", "header"], "block", "heading3", "### "),
    SlashCommand("bold", "Bold", ["bold", "strong", "**"], "inline", None, "**bold text** "),
    SlashCommand("italic", "Italic", ["italic", "emphasis", "*"], "inline", None, "*italic text* "),
    SlashCommand("code", "Code", ["code", "inline", "`"], "inline", None, "`code` "),
    SlashCommand("link", "Link", ["link", "url", "href"], "inline", None, "[link text](url) "),
    SlashCommand("bullet", "Bullet list", ["bullet", "list", "ul", "-"], "block", "bulleted_list", "- "),
    SlashCommand("numbered", "Numbered list", ["numbered", "list", "ol", "ordered", "1."],
                 "block", "numbered_list", "1. "),
    SlashCommand("toggle", "Toggle list", ["toggle", "collapsible", "▶"], "block", "toggle", "> "),
    SlashCommand("divider", "Divider", ["divider", "separator", "hr", "---"], "block", "divider", "---\n"),
    SlashCommand("image", "Insert image", ["image", "picture", "photo", "!["], "block", "image",
                 "![alt text](url) "),
    SlashCommand("quote", "Insert quote", ["quote", "blockquote", ">"], "block", "quote", "> "),
    SlashCommand("codeblock", "Code block", ["codeblock", "snippet", "```"], "block", "code", "```\n"),
    SlashCommand("quiz", "Quiz", ["quiz", "test", "questions"], "artifact", "quiz"),
    SlashCommand("flashcards", "Flashcards", ["flashcards", "cards", "study"], "artifact", "flashcards"),
]

_BY_VALUE = {command.value: command for command in COMMANDS}


def get_command(value: str) -> Optional[SlashCommand]:
    return _BY_VALUE.get(value)


def filter_commands(query: str) -> List[SlashCommand]:
    """Commands matching the text typed after the slash, in catalogue order."""
    if not query:
        return list(COMMANDS)
    query = query.lower()
    return [
        command for command in COMMANDS
        if any(query in keyword for keyword in command.keywords)
        or query in command.label.lower()
        or query in command.value.lower()
    ]


def detect_slash_query(text: str, cursor: int) -> Optional[Tuple[int, str]]:
    """
    Find an open slash command before the cursor.
    Returns (slash_index, query) or None when the menu should be closed.
    """
    cursor = max(0, min(cursor, len(text)))
    if cursor == 0:
        return None
    slash_index = text.rfind("/", 0, cursor)
    if slash_index == -1:
        return None

    query = text[slash_index + 1:cursor]
    if " " in query or "\n" in query:
        return None
    return slash_index, query


def apply_text_command(text: str, slash_index: int, cursor: int, command: str) -> Tuple[str, int]:
    """
    Replace "/query" with the command's snippet in plain text.
    Returns (new_text, new_cursor). Unknown commands just drop the query.
    """
    entry = get_command(command)
    insert_text = entry.snippet if entry else ""
    before = text[:slash_index]
    after = text[cursor:]
    return before + insert_text + after, len(before) + len(insert_text)
