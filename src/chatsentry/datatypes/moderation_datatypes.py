"""
Request and outcome types for the moderation engine.

- `ModerationRequest`: one message or profile check to classify.
- `ModerationOutcome`: the classifier's decision for one request.

Both are frozen; the engine never mutates a caller's request. Identity
assignment and clamping produce new instances via `dataclasses.replace`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Sequence

# Batching key used when the caller does not name a conversation.
DEFAULT_CONVERSATION_ID = 0

PROCESSING_ERROR_REASON = "processing error"


@dataclass(slots=True, frozen=True)
class ModerationRequest:
    """One moderation-worthy unit: message text plus optional profile signals.

    Attributes:
        text (str): Message text; may be empty for profile-only checks.
        actor_name (str | None): Display or user name of the sender.
        actor_bio (str | None): Profile bio of the sender.
        has_avatar (bool | None): Whether the sender has a profile picture.
        flagged_profile (bool | None): Caller pre-marked the profile as suspicious.
        flag_reason (str | None): Why the profile was pre-marked.
        correlation_id (int | None): Caller identity for the result; the
            engine substitutes the batch index when absent.
        conversation_id (int): Batching key (chat id).
    """

    text: str = ""
    actor_name: str | None = None
    actor_bio: str | None = None
    has_avatar: bool | None = None
    flagged_profile: bool | None = None
    flag_reason: str | None = None
    correlation_id: int | None = None
    conversation_id: int = DEFAULT_CONVERSATION_ID

    def with_correlation_id(self, correlation_id: int) -> ModerationRequest:
        """Return a copy carrying `correlation_id`."""
        return replace(self, correlation_id=correlation_id)


def clamp_confidence(value: Any) -> float:
    """Coerce `value` to a finite float in [0, 1]; anything unusable becomes 0."""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(confidence):
        return 0.0
    return min(1.0, max(0.0, confidence))


@dataclass(slots=True, frozen=True)
class ModerationOutcome:
    """Classifier decision for one request.

    Attributes:
        is_flagged (bool): Spam/advertising verdict.
        confidence (float): Certainty in [0, 1].
        reason (str): Human-readable explanation.
        matches_known_pattern (bool): Looks like a known spam template.
        should_escalate (bool): Ban the sender, not only delete the message.
        correlation_id (int | None): Identity of the originating request.
    """

    is_flagged: bool
    confidence: float
    reason: str
    matches_known_pattern: bool = False
    should_escalate: bool = False
    correlation_id: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))

    def with_correlation_id(self, correlation_id: int | None) -> ModerationOutcome:
        return replace(self, correlation_id=correlation_id)

    @classmethod
    def conservative(cls, correlation_id: int | None = None, reason: str = PROCESSING_ERROR_REASON) -> ModerationOutcome:
        """Not-flagged, zero-confidence outcome used whenever a decision is unavailable."""
        return cls(
            is_flagged=False,
            confidence=0.0,
            reason=reason,
            matches_known_pattern=False,
            should_escalate=False,
            correlation_id=correlation_id,
        )


def conservative_outcomes(requests: Sequence[ModerationRequest], reason: str = PROCESSING_ERROR_REASON) -> list[ModerationOutcome]:
    """One conservative outcome per request, in request order."""
    return [
        ModerationOutcome.conservative(resolve_correlation_id(request, index), reason)
        for index, request in enumerate(requests)
    ]


def resolve_correlation_id(request: ModerationRequest, index: int) -> int:
    """Caller-supplied identity, or the positional index within the batch."""
    return request.correlation_id if request.correlation_id is not None else index
