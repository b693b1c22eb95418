"""Tests for SpamCache and its periodic cleaner."""

import asyncio
import time

import pytest

from chatsentry.moderation.spam_cache import (
    MAX_MESSAGE_EXAMPLES,
    SpamCache,
    SpamCacheCleaner,
    SpamUserInfo,
    normalize_message,
)


class TestSpamCache:
    def test_known_spammer_lookup(self):
        cache = SpamCache()
        cache.add_spam_user(SpamUserInfo(user_id=1, spam_reason="crypto"))

        assert cache.is_known_spammer(1)
        assert not cache.is_known_spammer(2)
        assert cache.get_spam_user_info(1).spam_reason == "crypto"
        assert len(cache) == 1

    def test_message_examples_are_capped(self):
        cache = SpamCache()
        examples = [f"spam {i}" for i in range(MAX_MESSAGE_EXAMPLES + 3)]
        cache.add_spam_user(SpamUserInfo(user_id=1, spam_reason="r", message_examples=examples))

        assert cache.get_spam_user_info(1).message_examples == examples[-MAX_MESSAGE_EXAMPLES:]

    def test_record_ban_increments_counter(self):
        cache = SpamCache()
        cache.add_spam_user(SpamUserInfo(user_id=1, spam_reason="r"))

        cache.record_ban(1)
        cache.record_ban(1)
        cache.record_ban(404)

        assert cache.get_spam_user_info(1).ban_count == 2
        assert not cache.is_known_spammer(404)

    def test_spam_messages_are_normalized(self):
        cache = SpamCache()
        cache.add_spam_message("  Earn $100   a DAY\n now ")

        assert cache.is_similar_to_known_spam("earn $100 a day now")
        assert not cache.is_similar_to_known_spam("earn $200 a day now")

    def test_blank_messages_are_ignored(self):
        cache = SpamCache()
        cache.add_spam_message("   ")

        assert not cache.is_similar_to_known_spam("")

    def test_cleanup_removes_only_stale_users(self):
        cache = SpamCache()
        now = time.time()
        cache.add_spam_user(SpamUserInfo(user_id=1, spam_reason="old", timestamp=now - 100))
        cache.add_spam_user(SpamUserInfo(user_id=2, spam_reason="new", timestamp=now - 10))
        cache.add_spam_message("spam text")

        removed = cache.cleanup(50, now=now)

        assert removed == 1
        assert not cache.is_known_spammer(1)
        assert cache.is_known_spammer(2)
        assert cache.is_similar_to_known_spam("spam text")


def test_normalize_message():
    assert normalize_message(" A\tB  C ") == "a b c"
    assert normalize_message("") == ""


class TestSpamCacheCleaner:
    @pytest.mark.asyncio
    async def test_runs_cleanup_periodically(self):
        cache = SpamCache()
        cache.add_spam_user(SpamUserInfo(user_id=1, spam_reason="old", timestamp=time.time() - 1000))
        cleaner = SpamCacheCleaner(cache, get_max_age=lambda: 10, get_interval=lambda: 0.01)

        cleaner.start()
        await asyncio.sleep(0.05)
        await cleaner.shutdown()

        assert not cache.is_known_spammer(1)
        assert not cleaner.running

    @pytest.mark.asyncio
    async def test_start_twice_keeps_single_task(self):
        cleaner = SpamCacheCleaner(SpamCache(), get_max_age=lambda: 10, get_interval=lambda: 60)

        cleaner.start()
        first_task = cleaner._task
        cleaner.start()

        assert cleaner._task is first_task
        await cleaner.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_without_start(self):
        cleaner = SpamCacheCleaner(SpamCache(), get_max_age=lambda: 10, get_interval=lambda: 60)
        await cleaner.shutdown()
        assert not cleaner.running
