"""
Action types and verdicts produced by the moderation engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from chatsentry.datatypes.moderation_datatypes import ModerationOutcome


class ActionType(Enum):
    """Enforcement actions the engine can request."""

    BAN = "ban"
    DELETE = "delete"
    NULL = "null"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class ModerationVerdict:
    """Decision for one inbound message or member.

    Attributes:
        action: What to do with the message/member.
        reason: Reason reported to logs and audit trails.
        outcome: Classifier outcome behind the verdict, if the classifier ran.
        threshold: Confidence threshold the outcome was compared against.
    """

    action: ActionType
    reason: str
    outcome: ModerationOutcome | None = None
    threshold: float | None = None

    @property
    def should_delete(self) -> bool:
        return self.action in (ActionType.DELETE, ActionType.BAN)

    @property
    def should_ban(self) -> bool:
        return self.action is ActionType.BAN
