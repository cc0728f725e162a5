"""
Flask routes for the Inkwell API.

Authentication happens upstream; the gateway passes the signed-in user's id
in the X-User-Id header.
"""

import json
import logging
from dataclasses import asdict

from flask import Blueprint, Response, request, jsonify, stream_with_context

from config import log_event, gemini_model, AUTOSAVE_DELAY_SECONDS
from errors import InkwellError, AIServiceError, UnauthorizedError, ValidationError
from services import blocks, journals, folders, shares, chats, profiles, autosave
from services.ai import stream_reply
from services.commands import filter_commands
from services.streaming import format_sse
from services.vectordb import find_related_journals

# Create blueprint
api = Blueprint('api', __name__)


def current_user_id() -> str:
    user_id = (request.headers.get("X-User-Id") or "").strip()
    if not user_id:
        raise UnauthorizedError("Unauthorized: no user")
    return user_id


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _int_field(data: dict, name: str) -> int:
    value = data.get(name)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    return value


def _document_response(doc, block=None, status: str = None):
    body = {
        "document": blocks.document_to_dict(doc),
        "word_count": blocks.word_count(doc),
    }
    if block is not None:
        body["block"] = asdict(block)
    if status:
        body["save_status"] = status
    return jsonify(body)


def _edit_document(journal_id: str, mutate):
    """Load the latest document, apply an edit and schedule the debounced save."""
    user_id = current_user_id()
    doc = autosave.load_journal_document(user_id, journal_id)
    block = mutate(doc)
    saved = autosave.save_document(user_id, journal_id, doc)
    return _document_response(doc, block, saved["status"])


# --- HEALTH / META ---

@api.route('/health')
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "ok",
        "gemini_available": gemini_model is not None,
        "pending_saves": autosave.pending_count(),
        "autosave_delay": AUTOSAVE_DELAY_SECONDS,
    })


@api.route('/api/commands')
def list_commands():
    """Slash menu entries matching ?q=."""
    return jsonify({"commands": [asdict(c) for c in filter_commands(request.args.get("q", ""))]})


# --- JOURNALS ---

@api.route('/api/journals', methods=['GET'])
def get_journals():
    user_id = current_user_id()
    return jsonify({"journals": journals.list_journals(
        user_id,
        folder_id=request.args.get("folder_id"),
        sort=request.args.get("sort", "updated_desc"),
    )})


@api.route('/api/journals', methods=['POST'])
def create_journal():
    user_id = current_user_id()
    data = _payload()
    journal = journals.create_journal(user_id, data.get("title"), data.get("folder_id"))
    return jsonify(journal), 201


@api.route('/api/journals/<journal_id>', methods=['GET'])
def get_journal(journal_id):
    user_id = current_user_id()
    journal = journals.get_journal(user_id, journal_id)
    pending = autosave.get_pending(journal_id)
    if pending is not None:
        journal["content"] = pending
    journal["has_unsaved_changes"] = pending is not None
    return jsonify(journal)


@api.route('/api/journals/<journal_id>', methods=['PATCH'])
def update_journal(journal_id):
    """Rename, move between folders, or replace content right away."""
    user_id = current_user_id()
    data = _payload()
    if "content" in data and not isinstance(data["content"], str):
        raise ValidationError("content must be a string")

    kwargs = {}
    if "title" in data:
        kwargs["title"] = data["title"]
    if "folder_id" in data:
        kwargs["folder_id"] = data["folder_id"]
    # Ownership and field checks run before unsaved edits are superseded
    journal = journals.update_journal(user_id, journal_id, **kwargs)
    if "content" in data:
        journal = autosave.write_now(user_id, journal_id, data["content"])
    return jsonify(journal)


@api.route('/api/journals/<journal_id>', methods=['DELETE'])
def trash_journal(journal_id):
    """Move a journal to the trash (unsaved edits are written first)."""
    user_id = current_user_id()
    journals.get_journal(user_id, journal_id)
    autosave.flush(journal_id)
    return jsonify(journals.move_to_trash(user_id, journal_id))


@api.route('/api/journals/<journal_id>/export')
def export_journal(journal_id):
    """Download a journal as plain text."""
    user_id = current_user_id()
    journal = journals.get_journal(user_id, journal_id)
    doc = autosave.load_journal_document(user_id, journal_id)
    return Response(
        blocks.to_plain_text(doc),
        mimetype="text/markdown",
        headers={"Content-Disposition": f"attachment; filename={journal['id']}.md"}
    )


# --- DOCUMENT / AUTOSAVE ---

@api.route('/api/journals/<journal_id>/document', methods=['GET'])
def get_document(journal_id):
    user_id = current_user_id()
    doc = autosave.load_journal_document(user_id, journal_id)
    return _document_response(doc)


@api.route('/api/journals/<journal_id>/document', methods=['PUT'])
def put_document(journal_id):
    """
    Replace the whole document (block JSON or legacy text).
    Debounced unless {"immediate": true}.
    """
    user_id = current_user_id()
    data = _payload()
    if "document" in data:
        raw = data["document"]
        doc = blocks.load_document(raw if isinstance(raw, str) else json.dumps(raw))
    elif isinstance(data.get("content"), str):
        doc = blocks.load_document(data["content"])
    else:
        raise ValidationError("Provide document or content")

    journals.get_journal(user_id, journal_id)
    saved = autosave.save_document(user_id, journal_id, doc, immediate=bool(data.get("immediate")))
    return _document_response(doc, status=saved["status"])


@api.route('/api/journals/<journal_id>/autosave', methods=['POST'])
def autosave_content(journal_id):
    """Debounced raw content save, as sent by the editor on each keystroke."""
    user_id = current_user_id()
    data = _payload()
    content = data.get("content")
    if not isinstance(content, str):
        raise ValidationError("content must be a string")
    journals.get_journal(user_id, journal_id)
    return jsonify(autosave.schedule_save(journal_id, content, user_id))


@api.route('/api/journals/<journal_id>/flush', methods=['POST'])
def flush_journal(journal_id):
    user_id = current_user_id()
    journals.get_journal(user_id, journal_id)
    saved = autosave.flush(journal_id)
    return jsonify({"status": "saved" if saved else "clean"})


# --- BLOCKS ---

@api.route('/api/journals/<journal_id>/blocks', methods=['POST'])
def add_block(journal_id):
    data = _payload()
    return _edit_document(journal_id, lambda doc: blocks.insert_block(
        doc,
        data.get("type", "paragraph"),
        after_id=data.get("after_id"),
        content=data.get("content", ""),
        data=data.get("data"),
    ))


@api.route('/api/journals/<journal_id>/blocks/<block_id>', methods=['PATCH'])
def edit_block(journal_id, block_id):
    data = _payload()
    return _edit_document(journal_id, lambda doc: blocks.update_block(
        doc, block_id, content=data.get("content"), data=data.get("data"),
    ))


@api.route('/api/journals/<journal_id>/blocks/<block_id>', methods=['DELETE'])
def remove_block(journal_id, block_id):
    return _edit_document(journal_id, lambda doc: blocks.delete_block(doc, block_id))


@api.route('/api/journals/<journal_id>/blocks/move', methods=['POST'])
def move_block(journal_id):
    """Drag and drop."""
    data = _payload()
    from_index = _int_field(data, "from_index")
    to_index = _int_field(data, "to_index")
    return _edit_document(journal_id, lambda doc: blocks.move_block(doc, from_index, to_index))


@api.route('/api/journals/<journal_id>/blocks/<block_id>/transform', methods=['POST'])
def transform_block(journal_id, block_id):
    """Apply a slash command."""
    data = _payload()
    command = data.get("command")
    if not command:
        raise ValidationError("command is required")
    slash_index = data.get("slash_index")
    if slash_index is not None:
        slash_index = _int_field(data, "slash_index")
    return _edit_document(journal_id, lambda doc: blocks.transform_block(doc, block_id, command, slash_index))


@api.route('/api/journals/<journal_id>/blocks/<block_id>/title', methods=['PUT'])
def rename_artifact(journal_id, block_id):
    title = _payload().get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("title is required")
    return _edit_document(journal_id, lambda doc: blocks.rename_artifact(doc, block_id, title.strip()))


@api.route('/api/journals/<journal_id>/blocks/<block_id>/questions', methods=['POST'])
def add_question(journal_id, block_id):
    data = _payload()
    return _edit_document(journal_id, lambda doc: blocks.add_quiz_question(
        doc, block_id,
        question=data.get("question", ""),
        options=data.get("options"),
        correct=data.get("correct", 0),
    ))


@api.route('/api/journals/<journal_id>/blocks/<block_id>/questions/<int:index>', methods=['PATCH'])
def edit_question(journal_id, block_id, index):
    data = _payload()
    return _edit_document(journal_id, lambda doc: blocks.update_quiz_question(
        doc, block_id, index,
        question=data.get("question"),
        options=data.get("options"),
        correct=data.get("correct"),
    ))


@api.route('/api/journals/<journal_id>/blocks/<block_id>/questions/<int:index>', methods=['DELETE'])
def delete_question(journal_id, block_id, index):
    return _edit_document(journal_id, lambda doc: blocks.remove_quiz_question(doc, block_id, index))


@api.route('/api/journals/<journal_id>/blocks/<block_id>/cards', methods=['POST'])
def add_card(journal_id, block_id):
    data = _payload()
    return _edit_document(journal_id, lambda doc: blocks.add_flashcard(
        doc, block_id, front=data.get("front", ""), back=data.get("back", ""),
    ))


@api.route('/api/journals/<journal_id>/blocks/<block_id>/cards/<int:index>', methods=['PATCH'])
def edit_card(journal_id, block_id, index):
    data = _payload()
    return _edit_document(journal_id, lambda doc: blocks.update_flashcard(
        doc, block_id, index, front=data.get("front"), back=data.get("back"),
    ))


@api.route('/api/journals/<journal_id>/blocks/<block_id>/cards/<int:index>', methods=['DELETE'])
def delete_card(journal_id, block_id, index):
    return _edit_document(journal_id, lambda doc: blocks.remove_flashcard(doc, block_id, index))


# --- CHAT ---

@api.route('/api/journals/<journal_id>/chat', methods=['GET'])
def get_chat(journal_id):
    user_id = current_user_id()
    journal = journals.get_journal(user_id, journal_id)
    return jsonify({
        "greeting": chats.greeting(journal["title"]),
        "messages": chats.list_messages(user_id, journal_id),
    })


@api.route('/api/journals/<journal_id>/chat', methods=['DELETE'])
def clear_chat(journal_id):
    user_id = current_user_id()
    return jsonify({"deleted": chats.clear_chat(user_id, journal_id)})


@api.route('/api/journals/<journal_id>/chat', methods=['POST'])
def send_chat(journal_id):
    """One chat turn; quiz and flashcard requests come back parsed."""
    user_id = current_user_id()
    data = _payload()
    log_event(logging.INFO, "api_chat", journal_id=journal_id, chars=len(data.get("message") or ""))
    result = chats.send_message(
        user_id,
        journal_id,
        data.get("message", ""),
        files=data.get("files"),
        kind=data.get("kind"),
        insert_into_journal=bool(data.get("insert_into_journal")),
        include_notes=data.get("include_notes"),
    )
    return jsonify(result)


@api.route('/api/journals/<journal_id>/chat/stream', methods=['POST'])
def stream_chat(journal_id):
    """SSE variant of a chat turn: chunk events, then done (or error)."""
    user_id = current_user_id()
    data = _payload()
    turn = chats.prepare_turn(
        user_id,
        journal_id,
        data.get("message", ""),
        files=data.get("files"),
        kind=data.get("kind"),
        include_notes=data.get("include_notes"),
    )
    insert_into_journal = bool(data.get("insert_into_journal"))

    def event_stream():
        parts = []
        try:
            for text in stream_reply(turn["system_prompt"], turn["contents"]):
                parts.append(text)
                yield format_sse({"type": "chunk", "text": text})

            reply = "".join(parts).strip()
            if not reply:
                raise AIServiceError("No response from AI service")
            result = chats.complete_turn(user_id, turn, reply, insert_into_journal)
            yield format_sse({"type": "done", **result})
        except InkwellError as e:
            log_event(logging.ERROR, "chat_stream_error", journal_id=journal_id, error=e.message)
            yield format_sse({"type": "error", "error": e.message})

    return Response(
        stream_with_context(event_stream()),
        mimetype="text/event-stream",
        headers={
            'Cache-Control': 'no-cache',
            'Connection': 'keep-alive',
            'X-Accel-Buffering': 'no'
        }
    )


# --- SHARING ---

@api.route('/api/journals/<journal_id>/share', methods=['GET'])
def get_share(journal_id):
    user_id = current_user_id()
    return jsonify({
        "share": shares.get_share(user_id, journal_id),
        "link": shares.share_link(journal_id),
    })


@api.route('/api/journals/<journal_id>/share', methods=['PUT'])
def save_share(journal_id):
    user_id = current_user_id()
    data = _payload()
    share = shares.save_share(
        user_id,
        journal_id,
        data.get("share_type", "anyone"),
        data.get("permission_type", "view"),
        data.get("allowed_emails"),
    )
    return jsonify({"share": share, "link": shares.share_link(journal_id)})


@api.route('/api/journals/<journal_id>/share', methods=['DELETE'])
def delete_share(journal_id):
    user_id = current_user_id()
    return jsonify({"deleted": shares.delete_share(user_id, journal_id)})


@api.route('/api/shared/<journal_id>', methods=['GET'])
def open_shared(journal_id):
    """Open a journal through its share link; no account needed."""
    return jsonify(shares.open_shared_journal(journal_id, request.args.get("email")))


@api.route('/api/shared/<journal_id>', methods=['PUT'])
def save_shared(journal_id):
    data = _payload()
    return jsonify(shares.save_shared_journal(
        journal_id,
        email=data.get("email"),
        title=data.get("title"),
        content=data.get("content"),
    ))


# --- FOLDERS ---

@api.route('/api/folders', methods=['GET'])
def get_folders():
    return jsonify({"folders": folders.list_folders(current_user_id())})


@api.route('/api/folders', methods=['POST'])
def create_folder():
    user_id = current_user_id()
    return jsonify(folders.create_folder(user_id, _payload().get("name"))), 201


@api.route('/api/folders/<folder_id>', methods=['GET'])
def get_folder(folder_id):
    user_id = current_user_id()
    folder = folders.get_folder(user_id, folder_id)
    folder["journals"] = journals.list_journals(
        user_id, folder_id=folder_id, sort=request.args.get("sort", "updated_desc")
    )
    return jsonify(folder)


@api.route('/api/folders/<folder_id>', methods=['PATCH'])
def rename_folder(folder_id):
    user_id = current_user_id()
    return jsonify(folders.rename_folder(user_id, folder_id, _payload().get("name")))


@api.route('/api/folders/<folder_id>', methods=['DELETE'])
def delete_folder(folder_id):
    folders.delete_folder(current_user_id(), folder_id)
    return jsonify({"status": "deleted"})


@api.route('/api/folders/<folder_id>/journals', methods=['POST'])
def add_to_folder(folder_id):
    user_id = current_user_id()
    added = folders.add_journals_to_folder(user_id, folder_id, _payload().get("journal_ids"))
    return jsonify({"added": added})


@api.route('/api/folders/<folder_id>/journals/<journal_id>', methods=['DELETE'])
def remove_from_folder(folder_id, journal_id):
    folders.remove_journal_from_folder(current_user_id(), folder_id, journal_id)
    return jsonify({"status": "removed"})


# --- TRASH ---

@api.route('/api/trash', methods=['GET'])
def get_trash():
    return jsonify({"journals": journals.list_trash(current_user_id())})


@api.route('/api/trash/<journal_id>/restore', methods=['POST'])
def restore_journal(journal_id):
    return jsonify(journals.restore_journal(current_user_id(), journal_id))


@api.route('/api/trash/<journal_id>', methods=['DELETE'])
def delete_journal(journal_id):
    user_id = current_user_id()
    journals.delete_permanently(user_id, journal_id)
    autosave.cancel(journal_id)
    return jsonify({"status": "deleted"})


# --- SEARCH ---

@api.route('/api/search')
def search():
    user_id = current_user_id()
    return jsonify({"journals": journals.search_journals(user_id, request.args.get("q", ""))})


@api.route('/api/search/semantic')
def semantic_search():
    user_id = current_user_id()
    query = request.args.get("q", "").strip()
    if not query:
        raise ValidationError("q is required")
    limit = request.args.get("limit", 5, type=int)
    return jsonify({"journals": find_related_journals(user_id, query, limit=max(1, limit))})


# --- PROFILE ---

@api.route('/api/profile', methods=['GET'])
def get_profile():
    return jsonify(profiles.get_profile(current_user_id()))


@api.route('/api/profile', methods=['PUT'])
def update_profile():
    user_id = current_user_id()
    return jsonify(profiles.set_theme(user_id, _payload().get("theme")))
