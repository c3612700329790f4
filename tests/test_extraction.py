"""Tests for reply-text extraction."""

from __future__ import annotations

import pytest

from fliza.gateway import NOT_FOUND, REPLY_TEXT_PATHS, extract_reply_text
from fliza.gateway.extraction import extract_agent_metadata


class TestExtractReplyText:
    """Tests for extract_reply_text()."""

    def test_agent_response_text_wins(self):
        payload = {"agentResponse": {"text": "nested"}, "text": "flat"}
        result = extract_reply_text(payload)
        assert result.text == "nested"
        assert result.path == "agentResponse.text"

    @pytest.mark.parametrize(
        "payload,expected,path",
        [
            ({"text": "a", "content": "b", "response": "c"}, "a", "text"),
            ({"content": "b", "response": "c"}, "b", "content"),
            ({"response": "c"}, "c", "response"),
        ],
    )
    def test_priority_order(self, payload, expected, path):
        result = extract_reply_text(payload)
        assert (result.text, result.path) == (expected, path)

    def test_empty_strings_skipped(self):
        payload = {"agentResponse": {"text": "  "}, "text": "", "content": "real"}
        assert extract_reply_text(payload).text == "real"

    def test_non_string_values_skipped(self):
        payload = {"text": {"value": "x"}, "content": 42, "response": "ok"}
        assert extract_reply_text(payload).text == "ok"

    def test_list_reads_first_element(self):
        assert extract_reply_text([{"text": "first"}, {"text": "second"}]).text == "first"

    @pytest.mark.parametrize("payload", [None, "text", [], {}, {"other": "x"}])
    def test_not_found(self, payload):
        result = extract_reply_text(payload)
        assert result is NOT_FOUND
        assert not result.found

    def test_custom_paths(self):
        payload = {"message": {"body": "hi"}, "text": "ignored"}
        result = extract_reply_text(payload, paths=(("message", "body"),))
        assert result.text == "hi"

    def test_default_paths(self):
        assert REPLY_TEXT_PATHS[0] == ("agentResponse", "text")
        assert len(REPLY_TEXT_PATHS) == 4


class TestExtractAgentMetadata:
    """Tests for extract_agent_metadata()."""

    def test_thought_and_actions(self):
        payload = {"agentResponse": {"thought": "hmm", "actions": ["REPLY", "WAVE"]}}
        assert extract_agent_metadata(payload) == ("hmm", ["REPLY", "WAVE"])

    def test_single_action_string(self):
        payload = {"agentResponse": {"actions": "REPLY"}}
        assert extract_agent_metadata(payload) == (None, ["REPLY"])

    def test_missing(self):
        assert extract_agent_metadata({"text": "x"}) == (None, [])
        assert extract_agent_metadata(None) == (None, [])
