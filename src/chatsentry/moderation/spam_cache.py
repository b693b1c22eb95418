"""
In-memory memory of confirmed spammers and spam message texts.

- `SpamCache`: known spammers by user id and normalized spam texts.
- `SpamCacheCleaner`: background task that evicts stale spammer entries on a
  fixed interval.
"""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Set

from chatsentry.util.logger import get_logger

logger = get_logger("spam_cache")

MAX_MESSAGE_EXAMPLES = 5

_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True)
class SpamUserInfo:
    """What is known about a confirmed spammer.

    Attributes:
        user_id (int): Platform user id.
        spam_reason (str): Why the user was marked.
        timestamp (float): When the entry was added (epoch seconds).
        username (str | None): Display or user name at detection time.
        bio (str | None): Profile bio at detection time.
        ban_count (int): Times the user was banned while cached.
        message_examples (List[str]): Recent spam messages, newest last.
        suspicion_level (float | None): Classifier confidence when marked.
    """

    user_id: int
    spam_reason: str
    timestamp: float = field(default_factory=time.time)
    username: str | None = None
    bio: str | None = None
    ban_count: int = 0
    message_examples: List[str] = field(default_factory=list)
    suspicion_level: float | None = None


def normalize_message(text: str) -> str:
    """Lower-case `text` and collapse runs of whitespace."""
    return _WHITESPACE.sub(" ", (text or "").lower()).strip()


class SpamCache:
    """Known spammers and spam texts, consulted before any classifier call."""

    def __init__(self) -> None:
        self._users: Dict[int, SpamUserInfo] = {}
        self._messages: Set[str] = set()

    def __len__(self) -> int:
        return len(self._users)

    def add_spam_user(self, info: SpamUserInfo) -> None:
        """Insert or replace the entry for ``info.user_id``."""
        if len(info.message_examples) > MAX_MESSAGE_EXAMPLES:
            info.message_examples = info.message_examples[-MAX_MESSAGE_EXAMPLES:]
        self._users[info.user_id] = info
        logger.info("[SPAM CACHE] User %s added to spammer cache", info.user_id)

    def is_known_spammer(self, user_id: int) -> bool:
        return user_id in self._users

    def get_spam_user_info(self, user_id: int) -> SpamUserInfo | None:
        return self._users.get(user_id)

    def record_ban(self, user_id: int) -> None:
        """Increment the ban counter of a cached spammer; unknown users are ignored."""
        info = self._users.get(user_id)
        if info is None:
            return
        self._users[user_id] = replace(info, ban_count=info.ban_count + 1)

    def add_spam_message(self, text: str) -> None:
        normalized = normalize_message(text)
        if not normalized:
            return
        self._messages.add(normalized)
        logger.debug("[SPAM CACHE] Spam message cached (%d known)", len(self._messages))

    def is_similar_to_known_spam(self, text: str) -> bool:
        """True when `text` normalizes to a cached spam message."""
        normalized = normalize_message(text)
        return bool(normalized) and normalized in self._messages

    def cleanup(self, max_age_seconds: float, now: float | None = None) -> int:
        """Drop spammer entries older than `max_age_seconds`.

        Spam texts carry no timestamp and are kept.

        Returns:
            int: Number of users removed.
        """
        now = time.time() if now is None else now
        stale = [user_id for user_id, info in self._users.items() if now - info.timestamp > max_age_seconds]
        for user_id in stale:
            del self._users[user_id]
            logger.info("[SPAM CACHE] User %s expired from spammer cache", user_id)
        return len(stale)


class SpamCacheCleaner:
    """
    Periodically run ``SpamCache.cleanup``.

    Args:
        cache: The cache to clean.
        get_max_age: Callable returning the entry lifetime in seconds.
        get_interval: Callable returning the interval in seconds (called at start).
    """

    def __init__(
        self,
        cache: SpamCache,
        get_max_age: Callable[[], float],
        get_interval: Callable[[], float],
    ) -> None:
        self._cache = cache
        self._get_max_age = get_max_age
        self._get_interval = get_interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_loop(self, interval: float) -> None:
        """Infinite loop: sleep, clean, repeat."""
        logger.info("[SPAM CACHE] Starting periodic cleanup (interval=%.1fs)", interval)
        try:
            while True:
                await asyncio.sleep(interval)
                try:
                    removed = self._cache.cleanup(self._get_max_age())
                    if removed:
                        logger.info("[SPAM CACHE] Cleanup removed %d users", removed)
                except Exception as exc:
                    logger.error("[SPAM CACHE] Unexpected error during cleanup: %s", exc)
        except asyncio.CancelledError:
            logger.info("[SPAM CACHE] Periodic cleanup cancelled")
            raise

    def start(self) -> None:
        """Start the background cleanup task if not already running."""
        if self.running:
            logger.warning("[SPAM CACHE] Cleanup task already running")
            return
        interval = self._get_interval()
        self._task = asyncio.create_task(self._run_loop(interval))

    async def shutdown(self) -> None:
        """Stop the cleanup task."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("[SPAM CACHE] Cleaner shutdown complete")
