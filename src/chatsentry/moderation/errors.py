"""Failure conditions raised inside the classifier gateway.

None of these escape the gateway: each is caught and turned into a fallback
or conservative outcome before results reach a caller.
"""

from __future__ import annotations

from typing import Sequence

from chatsentry.datatypes.moderation_datatypes import ModerationOutcome


class ModerationError(Exception):
    """Base class for classifier-side moderation failures."""


class TransportError(ModerationError):
    """The HTTP call to the classifier failed or returned an unusable envelope.

    Attributes:
        partial_text: Any reply text recovered before the failure, for the
            text fallback.
    """

    def __init__(self, message: str, partial_text: str | None = None) -> None:
        super().__init__(message)
        self.partial_text = partial_text


class SchemaMismatchError(ModerationError):
    """Structured output did not match the declared tool contract."""


class PartialResultError(ModerationError):
    """Structured output covered fewer items than requested, or repeated indices.

    Attributes:
        missing: Request positions with no surviving entry.
        duplicates: Indices the classifier reported more than once.
        outcomes: Reconciled outcomes, one per request, with conservative
            outcomes in the missing positions.
    """

    def __init__(
        self,
        message: str,
        missing: Sequence[int] = (),
        duplicates: Sequence[int] = (),
        outcomes: Sequence[ModerationOutcome] = (),
    ) -> None:
        super().__init__(message)
        self.missing = tuple(missing)
        self.duplicates = tuple(duplicates)
        self.outcomes = list(outcomes)
