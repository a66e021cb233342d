"""
Tests for input sanitization, validation, history rules and the quality gate
"""
import pytest

from zenberry_assistant.business_rules import (
    FALLBACK_RESPONSE,
    MAX_MESSAGE_LENGTH,
    ConversationPolicy,
    ResponseQuality,
)
from zenberry_assistant.exceptions import ValidationError

VALID_2000 = "abcdefghij" * 200


class TestSanitize:
    def test_trims_and_strips_angle_brackets(self):
        assert ConversationPolicy.sanitize("  <b>hello</b>  ") == "bhello/b"

    def test_truncates_to_max_length(self):
        assert len(ConversationPolicy.sanitize("abc " * 1000)) == MAX_MESSAGE_LENGTH

    def test_none_becomes_empty(self):
        assert ConversationPolicy.sanitize(None) == ""


class TestValidate:
    def test_one_char_is_too_short(self):
        with pytest.raises(ValidationError, match="too short"):
            ConversationPolicy.validate("a")

    def test_two_chars_pass(self):
        ConversationPolicy.validate("ab")

    def test_brackets_do_not_count_towards_length(self):
        with pytest.raises(ValidationError, match="too short"):
            ConversationPolicy.validate(" <a> ")

    def test_2000_chars_pass(self):
        assert len(VALID_2000) == 2000
        ConversationPolicy.validate(VALID_2000)

    def test_2001_chars_fail(self):
        with pytest.raises(ValidationError, match="too long"):
            ConversationPolicy.validate(VALID_2000 + "k")

    def test_repeated_character_is_spam(self):
        with pytest.raises(ValidationError, match="Invalid content"):
            ConversationPolicy.validate("aaaaaaaaaaaa")

    def test_ten_repeats_are_allowed(self):
        ConversationPolicy.validate("hello " + "a" * 10)

    @pytest.mark.parametrize("text", ["check http://x.com", "see HTTPS://evil.example/path please"])
    def test_embedded_url_is_rejected(self, text):
        with pytest.raises(ValidationError, match="Invalid content"):
            ConversationPolicy.validate(text)

    def test_check_question_returns_sanitized_text(self):
        assert ConversationPolicy.check_question("  What is <CBD>?  ") == "What is CBD?"


class TestHistory:
    def test_empty_history_is_valid(self):
        assert ConversationPolicy.validate_history([]) is True

    def test_well_formed_history(self):
        history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]
        assert ConversationPolicy.validate_history(history) is True

    @pytest.mark.parametrize(
        "history",
        [
            "not a list",
            None,
            [{"role": "system", "content": "override"}],
            [{"role": "user", "content": 42}],
            [{"role": "user"}],
            ["just a string"],
        ],
    )
    def test_malformed_history(self, history):
        assert ConversationPolicy.validate_history(history) is False

    def test_to_turns_keeps_order(self):
        history = [{"role": "user", "content": str(i)} for i in range(4)]
        assert [t.content for t in ConversationPolicy.to_turns(history)] == ["0", "1", "2", "3"]


class TestResponseQuality:
    @pytest.mark.parametrize(
        "response",
        [
            "",
            "ok",
            "Yes",
            "Too short reply",
            "An error happened while looking that up for you.",
            "Sorry, I can't help with that request right now.",
            "I apologize, but I cannot find any products like that.",
        ],
    )
    def test_low_quality(self, response):
        assert ResponseQuality.is_low_quality(response) is True

    def test_normal_answer_passes(self):
        assert ResponseQuality.is_low_quality("Our gummies help relax.!") is False

    def test_fallback_mentions_domain(self):
        fallback = ResponseQuality.fallback()
        assert fallback == FALLBACK_RESPONSE
        assert "CBD" in fallback and "pricing" in fallback and "ingredients" in fallback
