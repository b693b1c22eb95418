"""Tests for profile and short-message heuristics."""

import pytest

from chatsentry.moderation.profile_signals import (
    SUSPICIOUS_BIO_REASON,
    build_request,
    has_suspicious_bio_links,
    is_innocent_looking_message,
)


@pytest.mark.parametrize("bio,expected", [
    (None, False),
    ("", False),
    ("Crypto signals daily t.me/pumpchannel", True),
    ("My channel \U0001f449 https://example.com", True),
    ("Exclusive content, no links here", False),
    ("Photographer. https://portfolio.example", False),
    ("shit happens", False),
])
def test_has_suspicious_bio_links(bio, expected):
    assert has_suspicious_bio_links(bio) is expected


@pytest.mark.parametrize("text,expected", [
    ("hi", True),
    ("Hello everyone", True),
    ("am I pretty?", True),
    ("\U0001f44d", True),
    ("hello, what the fuck", False),
    ("Hello everyone, I have a question about the release", False),
    ("ok", False),
    ("", False),
    (None, False),
])
def test_is_innocent_looking_message(text, expected):
    assert is_innocent_looking_message(text) is expected


def test_build_request_flags_suspicious_profile():
    request = build_request(
        text="hi",
        actor_name="bot",
        actor_bio="Earnings daily t.me/x",
        has_avatar=False,
        correlation_id=3,
        conversation_id=12,
    )
    assert request.flagged_profile is True
    assert request.flag_reason == SUSPICIOUS_BIO_REASON
    assert request.conversation_id == 12
    assert request.correlation_id == 3


def test_build_request_clean_profile():
    request = build_request(text="hello", actor_bio="I like cats")
    assert request.flagged_profile is False
    assert request.flag_reason is None
