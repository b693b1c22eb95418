"""Heuristic extraction of moderation decisions from free-form classifier text.

Used when the classifier answers in prose instead of calling the declared
tool. Everything here is pure string processing over the *reply* text, so the
rules can be checked against literal transcripts without a network layer.

Every public function is total: any string, including ``""``, yields a
complete, well-typed :class:`ModerationOutcome`.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from chatsentry.datatypes.moderation_datatypes import ModerationOutcome, clamp_confidence
from chatsentry.util.logger import get_logger

logger = get_logger("text_extraction")

NO_REASON_PLACEHOLDER = "Could not extract a reason from the classifier reply"
EMBEDDED_JSON_REASON = "Extracted from JSON embedded in the reply"

# JSON keys accepted as the flag field, in lookup order.
FLAG_KEYS = ("isFlagged", "is_flagged", "isSpam", "is_spam", "flagged", "spam")
ESCALATE_KEYS = ("shouldEscalate", "should_escalate", "shouldBan", "should_ban")
PATTERN_KEYS = ("matchesKnownPattern", "matches_known_pattern")

# Flag rules, strongest first: negation > explicit assertion > bare keyword.
_FLAG_TOPIC = r"(?:an?\s+)?(?:spam|advertis\w*|ad\b|promotion\w*)"
NEGATIVE_ASSERTION = re.compile(
    r"\b(?:is|are|was|it's|that's)\s+(?:not|no)\s+" + _FLAG_TOPIC
    + r"|\b(?:isn't|aren't|wasn't)\s+" + _FLAG_TOPIC
    + r"|(?:^|\n)[ \t*_]*not\s+" + _FLAG_TOPIC
    + r"|\bno\s+(?:spam|advertis\w*)\s+(?:detected|found|here|present)",
    re.IGNORECASE,
)
POSITIVE_ASSERTION = re.compile(
    r"\b(?:is|this\s+is|it\s+is|it's|looks\s+like)\s+(?:an?\s+)?(?:spam|advertis\w*|ad\b|promotion\w*|scam)",
    re.IGNORECASE,
)
FLAG_KEYWORDS = re.compile(r"spam|advertis|suspicious|malicious|scam", re.IGNORECASE)

NUMERIC_CONFIDENCE_PATTERNS = (
    re.compile(r"\bconfidence\s*(?:level|score)?\s*(?:of|is|=|:)?\s*(\d+(?:\.\d+)?|\.\d+)\s*%?", re.IGNORECASE),
    re.compile(r"\bwith\s+(\d+(?:\.\d+)?|\.\d+)\s*%?\s+(?:confidence|certainty)", re.IGNORECASE),
    re.compile(r"\bcertainty\s*(?:of|is|=|:)?\s*(\d+(?:\.\d+)?|\.\d+)\s*%?", re.IGNORECASE),
)
QUALITATIVE_CONFIDENCE = (
    (re.compile(r"\b(?:very\s+)?high(?:ly)?\s+(?:confidence|confident|certainty)", re.IGNORECASE), 0.9),
    (re.compile(r"\b(?:medium|moderate)\s+(?:confidence|certainty)", re.IGNORECASE), 0.7),
    (re.compile(r"\blow\s+(?:confidence|certainty)", re.IGNORECASE), 0.3),
)
DEFAULT_FLAGGED_CONFIDENCE = 0.75
DEFAULT_CLEAN_CONFIDENCE = 0.25

REASON_PATTERNS = (
    re.compile(r"\breason\b(?:\s+is)?\s*[:\-]?\s*([^\n.]+)(?:[.\n]|$)", re.IGNORECASE),
    re.compile(r"\bbecause\s+([^\n.]+)(?:[.\n]|$)", re.IGNORECASE),
    re.compile(r"\bsince\s+([^\n.]+)(?:[.\n]|$)", re.IGNORECASE),
    re.compile(r"\bas\s+((?:it|the\s+\w+|this|they|there)\s+[^\n.]+)(?:[.\n]|$)", re.IGNORECASE),
    re.compile(r"\bdue\s+to\s+([^\n.]+)(?:[.\n]|$)", re.IGNORECASE),
)
SENTENCE_SPLIT = re.compile(r"[.!?]+")

NEGATIVE_ESCALATION = re.compile(
    r"\b(?:no\s+ban|not\s+(?:be\s+)?bann?ed|(?:do\s+not|don't|should\s+not|shouldn't)\s+(?:be\s+)?ban)",
    re.IGNORECASE,
)
ESCALATION_KEYWORDS = re.compile(
    r"should\s+be\s+banned|recommend(?:ed)?\s+(?:a\s+)?ban|\bban(?:ned|ning)?\b|\bblock(?:ed|ing)?\s+(?:the\s+)?user",
    re.IGNORECASE,
)
KNOWN_PATTERN_KEYWORDS = re.compile(
    r"known\s+(?:spam\s+)?(?:pattern|template)|matches\s+(?:a\s+)?(?:known\s+)?(?:pattern|template)"
    r"|\bpattern\b|typical\s+(?:spam|bot|scam)",
    re.IGNORECASE,
)

# Per-item labels and markers the gateway writes into batch prompts.
ITEM_LABEL = re.compile(
    r"(?:^|\n)[ \t*#_]*(?:message|item)\s+(\d{1,6})(?:\s*\([^)\n]*\))?\s*[*_]*\s*[:.)]",
    re.IGNORECASE,
)
ITEM_MARKER = re.compile(r"-{3,}")


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "y")
    return bool(value)


def _first_key(payload: Dict[str, Any], keys: tuple) -> Optional[str]:
    for key in keys:
        if key in payload:
            return key
    return None


def _find_embedded_json(text: str) -> Optional[Dict[str, Any]]:
    """Return the first JSON object in `text` that carries a flag and a confidence."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            candidate, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            candidate = None
        except RecursionError:
            logger.debug("[EXTRACT] Nesting too deep for embedded JSON; skipping JSON scan")
            return None
        if isinstance(candidate, dict) and _first_key(candidate, FLAG_KEYS) and "confidence" in candidate:
            return candidate
        start = text.find("{", start + 1)
    return None


def _outcome_from_json(payload: Dict[str, Any]) -> ModerationOutcome:
    flag_key = _first_key(payload, FLAG_KEYS)
    escalate_key = _first_key(payload, ESCALATE_KEYS)
    pattern_key = _first_key(payload, PATTERN_KEYS)
    reason = payload.get("reason")
    return ModerationOutcome(
        is_flagged=_coerce_bool(payload.get(flag_key)) if flag_key else False,
        confidence=clamp_confidence(payload.get("confidence")),
        reason=str(reason).strip() if reason else EMBEDDED_JSON_REASON,
        matches_known_pattern=_coerce_bool(payload.get(pattern_key)) if pattern_key else False,
        should_escalate=_coerce_bool(payload.get(escalate_key)) if escalate_key else False,
    )


def detect_flag(text: str) -> bool:
    """Decide the flag from keyword rules: negation beats assertion beats keyword."""
    if NEGATIVE_ASSERTION.search(text):
        return False
    if POSITIVE_ASSERTION.search(text):
        return True
    return bool(FLAG_KEYWORDS.search(text))


def detect_confidence(text: str, is_flagged: bool) -> float:
    """Numeric mention, then qualitative wording, then a flag-dependent default."""
    for pattern in NUMERIC_CONFIDENCE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        try:
            value = float(match.group(1))
        except ValueError:
            continue
        if value > 1:
            value /= 100
        return clamp_confidence(value)

    for pattern, value in QUALITATIVE_CONFIDENCE:
        if pattern.search(text):
            return value

    return DEFAULT_FLAGGED_CONFIDENCE if is_flagged else DEFAULT_CLEAN_CONFIDENCE


def detect_reason(text: str, is_flagged: bool) -> str:
    for pattern in REASON_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()

    if is_flagged:
        for sentence in SENTENCE_SPLIT.split(text):
            if FLAG_KEYWORDS.search(sentence) and sentence.strip():
                return sentence.strip()

    return NO_REASON_PLACEHOLDER


def detect_escalation(text: str) -> bool:
    if NEGATIVE_ESCALATION.search(text):
        return False
    return bool(ESCALATION_KEYWORDS.search(text))


def extract(free_text: str) -> ModerationOutcome:
    """Derive a single moderation outcome from free-form classifier text.

    Args:
        free_text: The classifier's prose reply (may be empty).

    Returns:
        ModerationOutcome: Always complete; ambiguous text resolves to the
        documented default confidences rather than an error.
    """
    text = free_text or ""

    payload = _find_embedded_json(text)
    if payload is not None:
        logger.debug("[EXTRACT] Using JSON object embedded in reply text")
        return _outcome_from_json(payload)

    is_flagged = detect_flag(text)
    outcome = ModerationOutcome(
        is_flagged=is_flagged,
        confidence=detect_confidence(text, is_flagged),
        reason=detect_reason(text, is_flagged),
        matches_known_pattern=is_flagged or bool(KNOWN_PATTERN_KEYWORDS.search(text)),
        should_escalate=detect_escalation(text),
    )
    logger.debug(
        "[EXTRACT] Heuristic result: flagged=%s confidence=%.2f escalate=%s",
        outcome.is_flagged,
        outcome.confidence,
        outcome.should_escalate,
    )
    return outcome


def split_item_segments(free_text: str, count: int) -> List[Optional[str]]:
    """Split a batch reply into per-item segments.

    ``Message N:`` / ``Item N:`` labels are mapped by their number, so a
    preamble or out-of-order answers do not shift items. Without labels the
    reply is split on ``---`` markers in order. Positions with no segment are
    ``None``.
    """
    text = free_text or ""
    segments: List[Optional[str]] = [None] * max(count, 0)

    labels = list(ITEM_LABEL.finditer(text))
    if labels:
        for position, match in enumerate(labels):
            end = labels[position + 1].start() if position + 1 < len(labels) else len(text)
            body = ITEM_MARKER.sub(" ", text[match.end():end]).strip()
            index = int(match.group(1)) - 1
            if 0 <= index < count and segments[index] is None and body:
                segments[index] = body
        return segments

    if ITEM_MARKER.search(text):
        parts = [part.strip() for part in ITEM_MARKER.split(text) if part.strip()]
        for index, part in enumerate(parts[:count]):
            segments[index] = part

    return segments


def extract_many(free_text: str, count: int) -> List[ModerationOutcome]:
    """Derive `count` outcomes from one batch reply, in item order.

    Items without their own segment are extracted from the whole reply.
    """
    if count <= 0:
        return []

    text = free_text or ""
    segments = split_item_segments(text, count)
    found = sum(1 for segment in segments if segment is not None)
    if found < count:
        logger.debug("[EXTRACT] Found %d/%d item segments; reusing whole reply for the rest", found, count)

    return [extract(segment if segment is not None else text) for segment in segments]
