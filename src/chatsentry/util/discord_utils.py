"""
discord_utils.py
================

Stateless Discord helpers for chatsentry: turning messages into moderation
requests and executing verdicts (message deletion, bans) with recoverable
Discord errors suppressed and logged.
"""

from typing import Union

import discord

from chatsentry.datatypes.action_datatypes import ActionType, ModerationVerdict
from chatsentry.datatypes.moderation_datatypes import ModerationRequest
from chatsentry.moderation import profile_signals
from chatsentry.util.logger import get_logger

logger = get_logger("discord_utils")


def is_ignored_author(author: Union[discord.User, discord.Member]) -> bool:
    """
    Check if an author should be ignored by moderation handlers (e.g., bots or non-members).

    Args:
        author (discord.User | discord.Member): The user or member to check.

    Returns:
        bool: True if the author is a bot or not a member, False otherwise.
    """
    return author.bot or not isinstance(author, discord.Member)


def request_from_message(message: discord.Message, bio: str | None = None) -> ModerationRequest:
    """
    Build a moderation request for a guild message.

    The channel id is the batching key and the message id the correlation id.
    Discord does not expose member bios to bots, so `bio` is supplied by the
    caller when known.
    """
    author = message.author
    return profile_signals.build_request(
        text=message.content or "",
        actor_name=getattr(author, "display_name", None) or author.name,
        actor_bio=bio,
        has_avatar=author.avatar is not None,
        correlation_id=message.id,
        conversation_id=message.channel.id,
    )


async def safe_delete_message(message: discord.Message) -> bool:
    """
    Attempt to delete a Discord message, suppressing recoverable errors.

    Args:
        message (discord.Message): The message to delete.

    Returns:
        bool: True if deletion succeeded, False otherwise.
    """
    try:
        await message.delete()
        return True
    except discord.NotFound:
        return False
    except discord.Forbidden:
        logger.warning("No permission to delete message %s", message.id)
    except discord.HTTPException as exc:
        logger.error("Error deleting message %s: %s", message.id, exc)
    return False


async def ban_member(guild: discord.Guild, member: discord.abc.Snowflake, reason: str) -> bool:
    """Ban `member` from `guild`; returns False when Discord refuses."""
    try:
        await guild.ban(member, reason=f"chatsentry: {reason}")
        return True
    except discord.Forbidden:
        logger.warning("No permission to ban user %s in guild %s", member.id, guild.id)
    except discord.HTTPException as exc:
        logger.error("Failed to ban user %s: %s", member.id, exc)
    return False


async def apply_verdict(message: discord.Message, verdict: ModerationVerdict) -> bool:
    """
    Execute a moderation verdict against the message that triggered it.

    DELETE removes the message; BAN removes it and bans the author.

    Args:
        message (discord.Message): The moderated message.
        verdict (ModerationVerdict): The engine's decision.

    Returns:
        bool: True if every requested step succeeded (NULL always succeeds).
    """
    if verdict.action is ActionType.NULL:
        logger.debug("Ignoring null verdict for message %s", message.id)
        return True

    author = message.author
    logger.debug("Executing %s on user %s (%s) for reason '%s'", verdict.action, author, author.id, verdict.reason)

    deleted = await safe_delete_message(message)
    if verdict.action is ActionType.DELETE:
        return deleted

    guild = message.guild
    if guild is None:
        logger.warning("Cannot ban user %s outside a guild", author.id)
        return False
    return await ban_member(guild, author, verdict.reason)
