"""Narrow read-only accessors the moderation engine consults.

Persistence and admin flows for these live outside the package; the engine
only needs the lookups below. The ``Static*`` classes are in-memory
implementations for configuration-driven setups and tests.
"""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Protocol


class PromptSource(Protocol):
    def get_custom_prompt(self, conversation_id: int) -> str | None:
        """Custom single-message template for `conversation_id`, if one is set."""
        ...


class AllowList(Protocol):
    def is_allowed(self, user_id: int) -> bool:
        """True when `user_id` bypasses moderation."""
        ...


class ConversationGate(Protocol):
    def is_moderated(self, conversation_id: int) -> bool:
        """True when messages in `conversation_id` should be moderated."""
        ...


class StaticPromptSource:
    def __init__(self, prompts: Mapping[int, str] | None = None) -> None:
        self._prompts: Dict[int, str] = dict(prompts or {})

    def set_prompt(self, conversation_id: int, template: str | None) -> None:
        if template:
            self._prompts[conversation_id] = template
        else:
            self._prompts.pop(conversation_id, None)

    def get_custom_prompt(self, conversation_id: int) -> str | None:
        return self._prompts.get(conversation_id)


class StaticAllowList:
    def __init__(self, user_ids: Iterable[int] = ()) -> None:
        self._user_ids = set(user_ids)

    def add(self, user_id: int) -> None:
        self._user_ids.add(user_id)

    def remove(self, user_id: int) -> None:
        self._user_ids.discard(user_id)

    def is_allowed(self, user_id: int) -> bool:
        return user_id in self._user_ids


class StaticConversationGate:
    """Moderate only the listed conversations, or every conversation when given ``None``."""

    def __init__(self, conversation_ids: Iterable[int] | None = None) -> None:
        self._conversation_ids = set(conversation_ids) if conversation_ids is not None else None

    def is_moderated(self, conversation_id: int) -> bool:
        if self._conversation_ids is None:
            return True
        return conversation_id in self._conversation_ids
