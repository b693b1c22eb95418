"""Tests for the text-heuristic extractor."""

import pytest

from chatsentry.moderation import text_extraction
from chatsentry.moderation.text_extraction import (
    DEFAULT_CLEAN_CONFIDENCE,
    DEFAULT_FLAGGED_CONFIDENCE,
    NO_REASON_PLACEHOLDER,
    extract,
    extract_many,
    split_item_segments,
)


class TestEmbeddedJson:
    def test_embedded_json_is_trusted(self):
        text = (
            'Here is my answer: {"isSpam": true, "confidence": 0.92, '
            '"reason": "crypto recruiting", "shouldBan": true} hope it helps'
        )
        outcome = extract(text)
        assert outcome.is_flagged is True
        assert outcome.confidence == pytest.approx(0.92)
        assert outcome.reason == "crypto recruiting"
        assert outcome.should_escalate is True

    def test_snake_case_keys_and_string_booleans(self):
        outcome = extract('{"is_flagged": "false", "confidence": "0.4", "matches_known_pattern": "yes"}')
        assert outcome.is_flagged is False
        assert outcome.confidence == pytest.approx(0.4)
        assert outcome.matches_known_pattern is True
        assert outcome.reason == text_extraction.EMBEDDED_JSON_REASON

    def test_embedded_confidence_is_clamped(self):
        outcome = extract('{"flagged": true, "confidence": 7}')
        assert outcome.confidence == 1.0

    def test_json_without_confidence_is_ignored(self):
        outcome = extract('{"isSpam": true} but overall this is not spam.')
        assert outcome.is_flagged is False

    def test_later_object_is_used_when_first_is_incomplete(self):
        outcome = extract('{"note": 1} then {"spam": true, "confidence": 0.8}')
        assert outcome.is_flagged is True
        assert outcome.confidence == pytest.approx(0.8)


class TestFlagRules:
    @pytest.mark.parametrize("text,expected", [
        ("This is spam? No, it is not spam.", False),
        ("This message is spam.", True),
        ("It's advertising for a crypto channel", True),
        ("Suspicious links everywhere", True),
        ("The user greets everyone politely.", False),
        ("Isn't an advertisement, just a question", False),
        ("Not spam. Just a greeting.", False),
        ("No spam detected here.", False),
        ("Spam, not a promotion of anything real.", True),
        ("This is spam and not an ad for a real product", True),
        ("", False),
    ])
    def test_detect_flag(self, text, expected):
        assert extract(text).is_flagged is expected


class TestConfidence:
    @pytest.mark.parametrize("text,expected", [
        ("This is spam with confidence 85%", 0.85),
        ("This is spam. Confidence: 0.6", 0.6),
        ("This is spam with 70% certainty", 0.7),
        ("This is spam, high confidence.", 0.9),
        ("This is spam, medium confidence.", 0.7),
        ("This is spam, low confidence.", 0.3),
        ("This is spam.", DEFAULT_FLAGGED_CONFIDENCE),
        ("A friendly greeting.", DEFAULT_CLEAN_CONFIDENCE),
    ])
    def test_detect_confidence(self, text, expected):
        assert extract(text).confidence == pytest.approx(expected)

    def test_numeric_value_over_100_is_clamped(self):
        assert extract("This is spam, confidence 250").confidence == 1.0


class TestReason:
    def test_reason_label(self):
        assert extract("This is spam. Reason: promises of easy money.").reason == "promises of easy money"

    def test_because(self):
        assert extract("Flagged because it offers crypto jobs.").reason == "it offers crypto jobs"

    def test_since(self):
        assert extract("It is spam since the bio links a channel.").reason == "the bio links a channel"

    def test_as_clause(self):
        assert extract("It is spam as it links to a private channel.").reason == "it links to a private channel"

    def test_reasonable_does_not_count_as_reason_label(self):
        outcome = extract("A reasonable question about the project.")
        assert outcome.reason == NO_REASON_PLACEHOLDER

    def test_flagged_falls_back_to_keyword_sentence(self):
        outcome = extract("Looks like advertising! Nothing else to add")
        assert outcome.is_flagged is True
        assert outcome.reason == "Looks like advertising"

    @pytest.mark.parametrize("text,expected", [
        ("Scam link. Remove.", "Scam link"),
        ("Remove it. Malicious download offered.", "Malicious download offered"),
    ])
    def test_flag_keywords_also_find_the_reason_sentence(self, text, expected):
        outcome = extract(text)
        assert outcome.is_flagged is True
        assert outcome.reason == expected

    def test_clean_without_reason_uses_placeholder(self):
        assert extract("Hello there").reason == NO_REASON_PLACEHOLDER


class TestEscalationAndPattern:
    def test_should_be_banned(self):
        assert extract("This is spam and the user should be banned.").should_escalate is True

    def test_negative_escalation_wins(self):
        assert extract("Spam, but do not ban the user.").should_escalate is False

    def test_flagged_implies_known_pattern(self):
        outcome = extract("This is spam.")
        assert outcome.matches_known_pattern is True

    def test_known_pattern_without_flag(self):
        outcome = extract("Not spam, although the pattern is unusual.")
        assert outcome.is_flagged is False
        assert outcome.matches_known_pattern is True

    def test_empty_text_is_complete(self):
        outcome = extract("")
        assert outcome.is_flagged is False
        assert outcome.confidence == pytest.approx(DEFAULT_CLEAN_CONFIDENCE)
        assert outcome.reason == NO_REASON_PLACEHOLDER
        assert outcome.matches_known_pattern is False
        assert outcome.should_escalate is False


class TestExtractMany:
    def test_labelled_segments_with_markers(self):
        text = (
            "Message 1 (index 0):\nThis is spam, confidence 90%.\n---\n"
            "Message 2 (index 1):\nThis is not spam.\n---\n"
        )
        outcomes = extract_many(text, 2)
        assert len(outcomes) == 2
        assert outcomes[0].is_flagged is True
        assert outcomes[0].confidence == pytest.approx(0.9)
        assert outcomes[1].is_flagged is False

    def test_labels_are_mapped_by_number(self):
        text = "Message 2: This is not spam.\nMessage 1: This is spam."
        outcomes = extract_many(text, 2)
        assert [o.is_flagged for o in outcomes] == [True, False]

    def test_markdown_labels(self):
        text = "**Item 1:** This is spam.\n**Item 2:** A normal question."
        outcomes = extract_many(text, 2)
        assert [o.is_flagged for o in outcomes] == [True, False]

    def test_marker_split_without_labels(self):
        outcomes = extract_many("This is spam.\n---\nThis is not spam.", 2)
        assert [o.is_flagged for o in outcomes] == [True, False]

    def test_missing_segments_reuse_whole_text(self):
        outcomes = extract_many("This is spam.", 3)
        assert len(outcomes) == 3
        assert all(o.is_flagged for o in outcomes)

    def test_out_of_range_labels_are_ignored(self):
        segments = split_item_segments("Message 3: spam\nMessage 1: fine", 2)
        assert segments == ["fine", None]

    @pytest.mark.parametrize("count", [0, -1])
    def test_non_positive_count(self, count):
        assert extract_many("This is spam.", count) == []

    def test_empty_text_gives_complete_outcomes(self):
        outcomes = extract_many("", 2)
        assert len(outcomes) == 2
        assert all(not o.is_flagged for o in outcomes)


class TestHostileInput:
    def test_huge_label_number_is_not_a_label(self):
        outcomes = extract_many("Message " + "9" * 5000 + ": spam", 2)
        assert len(outcomes) == 2
        assert all(o.is_flagged for o in outcomes)

    def test_deeply_nested_braces(self):
        outcome = extract('{"a":' * 100000)
        assert outcome.is_flagged is False
        assert outcome.reason == NO_REASON_PLACEHOLDER
