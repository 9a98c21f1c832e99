"""
Tests for editor prompt preparation.
"""

from routers.chat_orchestration.prompts import MEDIA_RESTRICTION, parse_allowed_tags, prepare_prompt


class TestParseAllowedTags:
    def test_markup_form(self):
        assert parse_allowed_tags("<p> <a href> <strong>") == ["<p>", "<a href>", "<strong>"]

    def test_plain_form(self):
        assert parse_allowed_tags("p, a,strong") == ["p", "a", "strong"]

    def test_empty(self):
        assert parse_allowed_tags("") == []
        assert parse_allowed_tags(None) == []


class TestPreparePrompt:
    def test_basic_formatting(self):
        assert prepare_prompt("Write") == (
            MEDIA_RESTRICTION + "Format the answer using basic HTML formatting tags. Write"
        )

    def test_allowed_tags(self):
        prepared = prepare_prompt("Write", ["<p>", "<em>"])
        assert prepared.endswith("Format the answer using ONLY the following HTML tags: <p> <em>. Write")
        assert prepared.startswith("Do not try to use any image, video, or audio tags.")
