"""Cheap profile and message signals computed before classification.

These never decide on their own; they pre-flag a request so the classifier
(and the enforcement threshold) can weigh the sender's profile.
"""

from __future__ import annotations

import re

from chatsentry.datatypes.moderation_datatypes import DEFAULT_CONVERSATION_ID, ModerationRequest
from chatsentry.util.logger import get_logger

logger = get_logger("profile_signals")

SUSPICIOUS_BIO_REASON = "suspicious bio with advertising links"
LINK_MARKERS = ("t.me/", "http://", "https://")
INNOCENT_MESSAGE_MAX_LENGTH = 20

SUSPICIOUS_BIO_PHRASES = (
    "for the chosen",
    "exclusive",
    "my channel",
    "my onlyfans",
    "private channel",
    "earnings",
    "income",
    "investments",
    "signals",
    "predictions",
    "arbitrage",
    "crypto",
    "18+",
    "join now",
    "subscribe",
    "click here",
    "\U0001f449",  # 👉
    "\U0001f51e",  # 🔞
    "\U0001f4b0",  # 💰
    "\U0001f4b8",  # 💸
    "\U0001f4c8",  # 📈
)

PROFANITY = (
    "fuck",
    "shit",
    "bitch",
    "asshole",
    "cunt",
    "dick",
    "pussy",
    "whore",
    "slut",
    "idiot",
    "moron",
)

BAIT_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bhi\b",
        r"\bhello\b",
        r"\bhey\b",
        r"how are you",
        r"what'?s new",
        r"am i (?:pretty|cute|beautiful)",
        r"\bcool\b",
        r"\binteresting\b",
        r"\bagreed?\b",
        r"\bwow\b",
        r"\bsuper\b",
        r"\bnice\b",
        "\U0001f44d",  # 👍
        "\u2764",  # ❤
        "\U0001f60a",  # 😊
        "\U0001f60d",  # 😍
    )
)


def _has_link(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in LINK_MARKERS)


def _has_profanity(text: str) -> bool:
    lowered = text.lower()
    return any(word in lowered for word in PROFANITY)


def has_suspicious_bio_links(bio: str | None) -> bool:
    """True when `bio` carries a link together with an advertising phrase.

    Profane bios without links are rude but allowed.
    """
    if not bio:
        return False
    if not _has_link(bio):
        return False
    lowered = bio.lower()
    return any(phrase in lowered for phrase in SUSPICIOUS_BIO_PHRASES)


def is_innocent_looking_message(text: str | None) -> bool:
    """True for short greeting-like text typical of bait bots.

    Only meaningful together with a suspicious profile.
    """
    if not text:
        return False
    if _has_profanity(text):
        return False
    if len(text) > INNOCENT_MESSAGE_MAX_LENGTH:
        return False
    return any(pattern.search(text) for pattern in BAIT_PATTERNS)


def build_request(
    text: str = "",
    actor_name: str | None = None,
    actor_bio: str | None = None,
    has_avatar: bool | None = None,
    correlation_id: int | None = None,
    conversation_id: int = DEFAULT_CONVERSATION_ID,
) -> ModerationRequest:
    """Assemble a request with ``flagged_profile`` derived from the bio."""
    flagged = has_suspicious_bio_links(actor_bio)
    if flagged:
        logger.info("[PROFILE] Suspicious bio for %s: %r", actor_name or "unknown user", actor_bio)
        if is_innocent_looking_message(text):
            logger.info("[PROFILE] Short bait-like message from suspicious profile: %r", text)

    return ModerationRequest(
        text=text,
        actor_name=actor_name,
        actor_bio=actor_bio,
        has_avatar=has_avatar,
        flagged_profile=flagged,
        flag_reason=SUSPICIOUS_BIO_REASON if flagged else None,
        correlation_id=correlation_id,
        conversation_id=conversation_id,
    )
