"""
Message and member moderation on top of the batching coordinator.

Features:
- Allow-list and conversation gating before any classifier call
- Spam-cache short-circuit for known spammers and repeated spam texts
- Custom per-conversation prompts classified directly, everything else batched
- Confidence thresholds (lowered for pre-flagged profiles) mapped to actions
"""

from __future__ import annotations

import discord

from chatsentry.ai.classifier_gateway import ClassifierGateway
from chatsentry.configuration.ai_settings import ModerationSettings
from chatsentry.configuration.app_configuration import app_config
from chatsentry.datatypes.action_datatypes import ActionType, ModerationVerdict
from chatsentry.datatypes.moderation_datatypes import ModerationOutcome, ModerationRequest
from chatsentry.moderation.batch_coordinator import BatchCoordinator
from chatsentry.moderation.collaborators import (
    AllowList,
    ConversationGate,
    PromptSource,
    StaticAllowList,
    StaticConversationGate,
    StaticPromptSource,
)
from chatsentry.moderation.spam_cache import SpamCache, SpamCacheCleaner, SpamUserInfo
from chatsentry.util import discord_utils
from chatsentry.util.logger import get_logger

logger = get_logger("moderation_engine")

KNOWN_SPAMMER_REASON = "known spammer"
KNOWN_SPAM_TEXT_REASON = "matches a known spam message"


class ModerationEngine:
    """
    Decide what to do with inbound messages and new members.

    Attributes:
        gateway: Classifier gateway used for direct (unbatched) calls.
        coordinator: Batching coordinator for default-prompt messages.
        spam_cache: Known spammers and spam texts.
        cache_cleaner: Expires stale spammers once `start` has been awaited.
    """

    def __init__(
        self,
        gateway: ClassifierGateway,
        coordinator: BatchCoordinator | None = None,
        spam_cache: SpamCache | None = None,
        prompt_source: PromptSource | None = None,
        allow_list: AllowList | None = None,
        conversation_gate: ConversationGate | None = None,
        settings: ModerationSettings | None = None,
        enabled: bool | None = None,
    ) -> None:
        self.gateway = gateway
        self.coordinator = coordinator or BatchCoordinator(gateway, app_config.batching_settings("immediate"))
        self.spam_cache = spam_cache if spam_cache is not None else SpamCache()
        self._prompt_source = prompt_source or StaticPromptSource()
        self._allow_list = allow_list or StaticAllowList()
        self._conversation_gate = conversation_gate or StaticConversationGate()
        self._settings = settings or app_config.moderation_settings
        self._enabled = app_config.ai_settings.enabled if enabled is None else enabled
        self.cache_cleaner = SpamCacheCleaner(
            self.spam_cache,
            get_max_age=lambda: self._settings.spam_cache_max_age_seconds,
            get_interval=lambda: self._settings.spam_cache_cleanup_interval_seconds,
        )

    def threshold_for(self, request: ModerationRequest) -> float:
        """Confidence needed to act; pre-flagged profiles need less."""
        threshold = self._settings.confidence_threshold
        if request.flagged_profile:
            threshold *= self._settings.flagged_profile_factor
        return threshold

    async def moderate(self, request: ModerationRequest, user_id: int) -> ModerationVerdict:
        """Decide the action for one inbound message from `user_id`."""
        conversation_id = request.conversation_id
        if not self._enabled:
            return ModerationVerdict(ActionType.NULL, "moderation disabled")
        if not self._conversation_gate.is_moderated(conversation_id):
            return ModerationVerdict(ActionType.NULL, "conversation not moderated")
        if self._allow_list.is_allowed(user_id):
            logger.debug("[ENGINE] User %s is allow-listed; skipping moderation", user_id)
            return ModerationVerdict(ActionType.NULL, "user allow-listed")

        if self.spam_cache.is_known_spammer(user_id):
            logger.info("[ENGINE] Known spammer %s posted in conversation %s", user_id, conversation_id)
            return ModerationVerdict(ActionType.BAN, KNOWN_SPAMMER_REASON)
        if request.text and self.spam_cache.is_similar_to_known_spam(request.text):
            logger.info("[ENGINE] Message from %s matches cached spam", user_id)
            return ModerationVerdict(ActionType.DELETE, KNOWN_SPAM_TEXT_REASON)

        custom_prompt = self._prompt_source.get_custom_prompt(conversation_id)
        if custom_prompt:
            logger.debug("[ENGINE] Using custom prompt for conversation %s", conversation_id)
            outcome = await self.gateway.classify_one(request, custom_prompt=custom_prompt)
        else:
            outcome = await self.coordinator.submit(request)

        verdict = self._verdict_for(request, outcome)
        if verdict.should_delete:
            self._remember_spammer(request, user_id, outcome)
        logger.info(
            "[ENGINE] User %s in conversation %s: %s (flagged=%s, confidence=%.2f, threshold=%.2f)",
            user_id,
            conversation_id,
            verdict.action,
            outcome.is_flagged,
            outcome.confidence,
            verdict.threshold or 0.0,
        )
        return verdict

    async def check_new_member(self, request: ModerationRequest, user_id: int) -> ModerationVerdict:
        """Profile check for a member joining a moderated conversation.

        Only bans; a joining member has no message to delete.
        """
        if not self._enabled or not self._conversation_gate.is_moderated(request.conversation_id):
            return ModerationVerdict(ActionType.NULL, "conversation not moderated")
        if self._allow_list.is_allowed(user_id):
            return ModerationVerdict(ActionType.NULL, "user allow-listed")
        if self.spam_cache.is_known_spammer(user_id):
            logger.info("[ENGINE] Known spammer %s joined conversation %s", user_id, request.conversation_id)
            return ModerationVerdict(ActionType.BAN, KNOWN_SPAMMER_REASON)

        outcome = await self.gateway.classify_one(request)
        threshold = self.threshold_for(request)
        if outcome.is_flagged and outcome.confidence >= threshold and outcome.should_escalate:
            self._remember_spammer(request, user_id, outcome)
            return ModerationVerdict(ActionType.BAN, outcome.reason, outcome, threshold)
        return ModerationVerdict(ActionType.NULL, outcome.reason, outcome, threshold)

    async def enforce(self, message: discord.Message, verdict: ModerationVerdict) -> bool:
        """Apply `verdict` to `message` and count a successful ban against the author."""
        applied = await discord_utils.apply_verdict(message, verdict)
        if applied and verdict.should_ban:
            self.spam_cache.record_ban(message.author.id)
        return applied

    async def start(self) -> None:
        """Start background upkeep (spam-cache expiry). Call from the running loop."""
        self.cache_cleaner.start()

    async def shutdown(self) -> None:
        await self.coordinator.shutdown()
        await self.cache_cleaner.shutdown()

    def _verdict_for(self, request: ModerationRequest, outcome: ModerationOutcome) -> ModerationVerdict:
        threshold = self.threshold_for(request)
        if outcome.is_flagged and outcome.confidence >= threshold:
            action = ActionType.BAN if outcome.should_escalate else ActionType.DELETE
            return ModerationVerdict(action, outcome.reason, outcome, threshold)
        return ModerationVerdict(ActionType.NULL, outcome.reason, outcome, threshold)

    def _remember_spammer(self, request: ModerationRequest, user_id: int, outcome: ModerationOutcome) -> None:
        previous = self.spam_cache.get_spam_user_info(user_id)
        examples = list(previous.message_examples) if previous else []
        if request.text:
            examples.append(request.text)
            self.spam_cache.add_spam_message(request.text)
        self.spam_cache.add_spam_user(
            SpamUserInfo(
                user_id=user_id,
                spam_reason=outcome.reason,
                username=request.actor_name,
                bio=request.actor_bio,
                ban_count=previous.ban_count if previous else 0,
                message_examples=examples,
                suspicion_level=outcome.confidence,
            )
        )
