"""
Tests for the block document model and editing operations.
"""

import json

import pytest

from errors import NotFoundError, ValidationError
from models import Quiz, QuizQuestion
from services import blocks


def _doc(*specs):
    """Build a document from (type, content) pairs."""
    return blocks.BlockDocument(blocks=[blocks.make_block(t, c) for t, c in specs])


class TestLoadDocument:

    def test_empty_content_gives_single_paragraph(self):
        for raw in (None, "", "   \n"):
            doc = blocks.load_document(raw)
            assert len(doc.blocks) == 1
            assert doc.blocks[0].type == "paragraph"
            assert doc.blocks[0].content == ""

    def test_legacy_text_conversion(self):
        raw = (
            "# Title\n"
            "## Section\n"
            "### Sub\n"
            "- bullet\n"
            "* star bullet\n"
            "1. first\n"
            "> quoted\n"
            "---\n"
            "![diagram](http://img/x.png)\n"
            "\n"
            "plain words\n"
        )
        doc = blocks.load_document(raw)

        assert [(b.type, b.content) for b in doc.blocks] == [
            ("heading1", "Title"),
            ("heading2", "Section"),
            ("heading3", "Sub"),
            ("bulleted_list", "bullet"),
            ("bulleted_list", "star bullet"),
            ("numbered_list", "first"),
            ("quote", "quoted"),
            ("divider", ""),
            ("image", "diagram"),
            ("paragraph", "plain words"),
        ]
        assert doc.blocks[8].data == {"url": "http://img/x.png"}

    def test_legacy_code_fence(self):
        doc = blocks.load_document("```\nx = 1\ny = 2\n```\nafter")
        assert [(b.type, b.content) for b in doc.blocks] == [("code", "x = 1\ny = 2"), ("paragraph", "after")]

    def test_block_json_is_read(self):
        raw = json.dumps({"version": 1, "blocks": [
            {"id": "a1", "type": "heading1", "content": "Hi"},
            {"id": "a1", "type": "mystery", "content": 42},
            {"type": "quiz", "data": {"title": "T", "questions": [
                {"question": "Q?", "options": ["1", "2"], "correct": "B"}
            ]}},
        ]})
        doc = blocks.load_document(raw)

        assert doc.blocks[0].id == "a1"
        # duplicate id regenerated, unknown type degrades, content coerced
        assert doc.blocks[1].id != "a1"
        assert doc.blocks[1].type == "paragraph"
        assert doc.blocks[1].content == "42"
        quiz = doc.blocks[2].data
        assert quiz["questions"][0]["options"] == ["1", "2", "", ""]
        assert quiz["questions"][0]["correct"] == 1

    def test_bare_list_is_read(self):
        doc = blocks.load_document('[{"type": "quote", "content": "q"}]')
        assert [(b.type, b.content) for b in doc.blocks] == [("quote", "q")]

    def test_invalid_json_falls_back_to_text(self):
        doc = blocks.load_document("{not json")
        assert [(b.type, b.content) for b in doc.blocks] == [("paragraph", "{not json")]

    def test_dump_then_load_keeps_ids(self):
        doc = _doc(("heading2", "A"), ("paragraph", "b"))
        reloaded = blocks.load_document(blocks.dump_document(doc))
        assert [b.id for b in reloaded.blocks] == [b.id for b in doc.blocks]


class TestPlainText:

    def test_renders_legacy_markup(self):
        doc = _doc(
            ("heading1", "Title"),
            ("numbered_list", "one"),
            ("numbered_list", "two"),
            ("paragraph", "break"),
            ("numbered_list", "again"),
            ("toggle", "hidden"),
            ("divider", ""),
        )
        assert blocks.to_plain_text(doc) == "# Title\n1. one\n2. two\nbreak\n1. again\n> hidden\n---"

    def test_renders_quiz(self):
        quiz = Quiz(title="Cells", questions=[
            QuizQuestion(question="Powerhouse?", options=["a", "b", "c", "d"], correct=1)
        ])
        doc = blocks.BlockDocument(blocks=[blocks.quiz_block(quiz)])
        text = blocks.to_plain_text(doc)

        assert text.startswith("Quiz: Cells")
        assert "Q1: Powerhouse?" in text
        assert "Answer: B" in text

    def test_word_count_ignores_markup(self):
        doc = _doc(("heading1", "Two words"), ("bulleted_list", "three more words"), ("divider", ""))
        assert blocks.word_count(doc) == 5


class TestBlockOperations:

    def test_insert_after_and_at_end(self):
        doc = _doc(("paragraph", "a"), ("paragraph", "c"))
        middle = blocks.insert_block(doc, "paragraph", after_id=doc.blocks[0].id, content="b")
        end = blocks.insert_block(doc, "heading2", content="d")

        assert [b.content for b in doc.blocks] == ["a", "b", "c", "d"]
        assert doc.blocks[1] is middle
        assert end.type == "heading2"

    def test_insert_unknown_type(self):
        with pytest.raises(ValidationError):
            blocks.insert_block(_doc(("paragraph", "")), "table")

    def test_delete_last_block_leaves_empty_paragraph(self):
        doc = _doc(("heading1", "only"))
        blocks.delete_block(doc, doc.blocks[0].id)

        assert len(doc.blocks) == 1
        assert doc.blocks[0].type == "paragraph"
        assert doc.blocks[0].content == ""

    def test_missing_block(self):
        with pytest.raises(NotFoundError):
            blocks.update_block(_doc(("paragraph", "")), "nope", content="x")

    def test_move_block_clamps_destination(self):
        doc = _doc(("paragraph", "a"), ("paragraph", "b"), ("paragraph", "c"))
        blocks.move_block(doc, 0, 99)
        assert [b.content for b in doc.blocks] == ["b", "c", "a"]

        blocks.move_block(doc, 2, -5)
        assert [b.content for b in doc.blocks] == ["a", "b", "c"]

    def test_move_block_bad_source(self):
        with pytest.raises(ValidationError):
            blocks.move_block(_doc(("paragraph", "a")), 3, 0)

    def test_transform_to_heading_strips_query(self):
        doc = _doc(("paragraph", "Chapter one /h2"))
        block = blocks.transform_block(doc, doc.blocks[0].id, "h2")

        assert block.type == "heading2"
        assert block.content == "Chapter one "

    def test_transform_inline_at_slash_index(self):
        doc = _doc(("paragraph", "say /bo now"))
        block = blocks.transform_block(doc, doc.blocks[0].id, "bold", slash_index=4)

        assert block.type == "paragraph"
        assert block.content == "say **bold text**  now"

    def test_transform_to_divider_clears_content(self):
        doc = _doc(("paragraph", "/divider"))
        block = blocks.transform_block(doc, doc.blocks[0].id, "divider")
        assert (block.type, block.content) == ("divider", "")

    def test_transform_to_quiz_uses_text_as_title(self):
        doc = _doc(("paragraph", "Enzymes /quiz"))
        block = blocks.transform_block(doc, doc.blocks[0].id, "quiz")

        assert block.type == "quiz"
        assert block.data == {"title": "Enzymes", "questions": []}

    def test_transform_unknown_command(self):
        doc = _doc(("paragraph", "/wat"))
        with pytest.raises(ValidationError):
            blocks.transform_block(doc, doc.blocks[0].id, "wat")

    def test_transform_bad_slash_index(self):
        doc = _doc(("paragraph", "no slash"))
        with pytest.raises(ValidationError):
            blocks.transform_block(doc, doc.blocks[0].id, "h1", slash_index=2)


class TestStudyArtifacts:

    def _quiz_doc(self):
        doc = _doc(("paragraph", "intro"))
        blocks.insert_block(doc, "quiz", data={"title": "Q", "questions": []})
        return doc, doc.blocks[1].id

    def test_quiz_question_editing(self):
        doc, block_id = self._quiz_doc()
        blocks.add_quiz_question(doc, block_id, question="2+2?", options=["3", "4", "5", "6"], correct="B")
        blocks.add_quiz_question(doc, block_id)
        blocks.update_quiz_question(doc, block_id, 1, question="Sky?", correct=3)
        blocks.remove_quiz_question(doc, block_id, 0)

        questions = blocks.get_block(doc, block_id).data["questions"]
        assert questions == [{"question": "Sky?", "options": ["", "", "", ""], "correct": 3}]

    def test_quiz_bad_index_and_answer(self):
        doc, block_id = self._quiz_doc()
        with pytest.raises(ValidationError):
            blocks.remove_quiz_question(doc, block_id, 0)
        with pytest.raises(ValidationError):
            blocks.add_quiz_question(doc, block_id, correct="E")

    def test_flashcard_editing(self):
        doc = _doc(("flashcards", ""))
        block_id = doc.blocks[0].id
        blocks.add_flashcard(doc, block_id, front="term", back="meaning")
        blocks.update_flashcard(doc, block_id, 0, back="definition")
        blocks.rename_artifact(doc, block_id, "Vocab")

        data = blocks.get_block(doc, block_id).data
        assert data == {"title": "Vocab", "cards": [{"front": "term", "back": "definition"}]}

        blocks.remove_flashcard(doc, block_id, 0)
        assert blocks.get_block(doc, block_id).data["cards"] == []

    def test_artifact_edit_on_wrong_block_type(self):
        doc = _doc(("paragraph", "text"))
        with pytest.raises(ValidationError):
            blocks.add_flashcard(doc, doc.blocks[0].id)
        with pytest.raises(ValidationError):
            blocks.rename_artifact(doc, doc.blocks[0].id, "x")


class TestInputValidation:

    def test_insert_rejects_non_text_content(self):
        doc = _doc(("paragraph", ""))
        with pytest.raises(ValidationError):
            blocks.insert_block(doc, "paragraph", content=5)
        assert len(doc.blocks) == 1

    def test_insert_rejects_non_object_data(self):
        doc = _doc(("paragraph", ""))
        with pytest.raises(ValidationError):
            blocks.insert_block(doc, "quiz", data="x")
        assert len(doc.blocks) == 1

    def test_lone_list_marker_is_empty_bullet(self):
        doc = blocks.load_document("Groceries\n-\n*")
        assert [(b.type, b.content) for b in doc.blocks] == [
            ("paragraph", "Groceries"),
            ("bulleted_list", ""),
            ("bulleted_list", ""),
        ]
