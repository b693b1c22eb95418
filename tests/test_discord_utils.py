"""Tests for the Discord helpers that execute verdicts."""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from chatsentry.datatypes.action_datatypes import ActionType, ModerationVerdict
from chatsentry.util.discord_utils import (
    apply_verdict,
    ban_member,
    is_ignored_author,
    request_from_message,
    safe_delete_message,
)


def http_error(error_type, status, reason):
    response = MagicMock()
    response.status = status
    response.reason = reason
    return error_type(response, "message")


def make_message(content="hello", bio_avatar=None):
    message = AsyncMock()
    message.id = 555
    message.content = content
    message.channel.id = 42
    message.author = MagicMock(spec=discord.Member)
    message.author.id = 1234
    message.author.name = "spammer"
    message.author.display_name = "Spam Bot"
    message.author.avatar = bio_avatar
    message.guild = AsyncMock()
    message.guild.id = 7
    return message


class TestIsIgnoredAuthor:
    def test_member_is_not_ignored(self):
        author = MagicMock(spec=discord.Member)
        author.bot = False
        assert is_ignored_author(author) is False

    def test_bot_is_ignored(self):
        author = MagicMock(spec=discord.Member)
        author.bot = True
        assert is_ignored_author(author) is True

    def test_non_member_is_ignored(self):
        author = MagicMock(spec=discord.User)
        author.bot = False
        assert is_ignored_author(author) is True


class TestRequestFromMessage:
    def test_ids_come_from_message_and_channel(self):
        request = request_from_message(make_message("buy now"))

        assert request.text == "buy now"
        assert request.correlation_id == 555
        assert request.conversation_id == 42
        assert request.actor_name == "Spam Bot"
        assert request.has_avatar is False
        assert not request.flagged_profile

    def test_suspicious_bio_flags_profile(self):
        request = request_from_message(make_message("hi"), bio="Crypto signals t.me/pump")

        assert request.flagged_profile is True
        assert request.actor_bio == "Crypto signals t.me/pump"

    def test_missing_content_becomes_empty_text(self):
        assert request_from_message(make_message(None)).text == ""


class TestSafeDelete:
    @pytest.mark.asyncio
    async def test_success(self):
        message = make_message()
        assert await safe_delete_message(message) is True
        message.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_found(self):
        message = make_message()
        message.delete.side_effect = http_error(discord.NotFound, 404, "Not Found")
        assert await safe_delete_message(message) is False

    @pytest.mark.asyncio
    async def test_forbidden(self):
        message = make_message()
        message.delete.side_effect = http_error(discord.Forbidden, 403, "Forbidden")
        assert await safe_delete_message(message) is False


@pytest.mark.asyncio
async def test_ban_member_forbidden_returns_false():
    guild = AsyncMock()
    guild.ban.side_effect = http_error(discord.Forbidden, 403, "Forbidden")
    member = MagicMock()

    assert await ban_member(guild, member, "spam") is False


class TestApplyVerdict:
    @pytest.mark.asyncio
    async def test_null_does_nothing(self):
        message = make_message()

        assert await apply_verdict(message, ModerationVerdict(ActionType.NULL, "clean")) is True
        message.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_removes_message(self):
        message = make_message()

        assert await apply_verdict(message, ModerationVerdict(ActionType.DELETE, "spam")) is True
        message.delete.assert_awaited_once()
        message.guild.ban.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ban_deletes_and_bans(self):
        message = make_message()

        assert await apply_verdict(message, ModerationVerdict(ActionType.BAN, "crypto spam")) is True
        message.delete.assert_awaited_once()
        message.guild.ban.assert_awaited_once_with(message.author, reason="chatsentry: crypto spam")

    @pytest.mark.asyncio
    async def test_ban_outside_guild_fails(self):
        message = make_message()
        message.guild = None

        assert await apply_verdict(message, ModerationVerdict(ActionType.BAN, "spam")) is False
        message.delete.assert_awaited_once()
