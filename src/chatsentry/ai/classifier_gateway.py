"""Classifier calls against an OpenAI-compatible chat completions endpoint.

This module turns moderation requests into one classifier call and always
hands back a complete outcome list:
- Builds the policy prompt (or a custom template) and declares the tool the
  classifier must call.
- Parses the structured tool call when present.
- Falls back to the text-heuristic extractor on prose replies.
- Resolves anything else (transport failure, unusable reply) to the
  conservative outcome.

No exception leaves ``classify_one`` or ``classify_many``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import httpx
import openai
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam

from chatsentry.ai import prompt_builder, tool_schemas
from chatsentry.configuration.ai_settings import ClassifierSettings
from chatsentry.configuration.app_configuration import app_config
from chatsentry.datatypes.moderation_datatypes import (
    ModerationOutcome,
    ModerationRequest,
    conservative_outcomes,
    resolve_correlation_id,
)
from chatsentry.moderation import moderation_parsing, text_extraction
from chatsentry.moderation.errors import PartialResultError, SchemaMismatchError, TransportError
from chatsentry.util.logger import get_logger

logger = get_logger("classifier_gateway")


@dataclass(slots=True)
class ClassifierReply:
    """What came back from one completion: the first tool call and any text."""

    tool_name: str | None = None
    arguments: str | None = None
    text: str = ""

    @property
    def has_tool_call(self) -> bool:
        return self.tool_name is not None

    def fallback_text(self) -> str:
        """Text for the extractor: the prose reply, else the raw tool arguments."""
        return self.text or self.arguments or ""


class ClassifierGateway:
    """
    Issue classifier calls and normalize every reply into outcomes.

    One gateway per classifier configuration; batching coordinators hold a
    reference to the gateway they flush into.
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        settings: ClassifierSettings | None = None,
        policy: str | None = None,
    ) -> None:
        self._settings = settings or app_config.ai_settings
        self._client = client or AsyncOpenAI(
            api_key=self._settings.api_key,
            base_url=self._settings.base_url,
        )
        self._model_name = self._settings.model_name
        self._policy = policy or app_config.system_prompt_template or prompt_builder.DEFAULT_POLICY
        self._batch_policy = policy or app_config.batch_prompt_template or self._policy
        logger.info(
            "[GATEWAY] Initialized with base_url=%s, model=%s",
            self._settings.base_url,
            self._model_name,
        )

    @property
    def model_name(self) -> str:
        return self._model_name

    def _temperature_for(self, requests: Sequence[ModerationRequest]) -> float:
        if any(request.flagged_profile for request in requests):
            return self._settings.flagged_temperature
        return self._settings.temperature

    async def _complete(
        self,
        messages: List[ChatCompletionMessageParam],
        tool: dict,
        tool_name: str,
        temperature: float,
        max_tokens: int,
    ) -> ClassifierReply:
        """Run one completion with the tool forced, and unpack the first choice.

        Raises:
            TransportError: The HTTP call failed or the reply had no choices.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self._model_name,
                messages=messages,
                tools=[tool],
                tool_choice=tool_schemas.forced_tool_choice(tool_name),
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIResponseValidationError as exc:
            # 200 reply that is not a completion object; keep a raw text body for the extractor
            body = exc.body if isinstance(exc.body, str) else None
            raise TransportError(f"Classifier reply was malformed: {exc}", partial_text=body) from exc
        except (openai.OpenAIError, httpx.HTTPError) as exc:
            raise TransportError(f"Classifier request failed: {exc}") from exc

        if not response.choices:
            raise TransportError("Classifier reply contained no choices")

        message = response.choices[0].message
        text = (message.content or "").strip()
        for call in message.tool_calls or []:
            function = getattr(call, "function", None)
            if function is not None:
                return ClassifierReply(tool_name=function.name, arguments=function.arguments, text=text)
        return ClassifierReply(text=text)

    def _extract_one(self, text: str | None, correlation_id: int) -> ModerationOutcome:
        if not text or not text.strip():
            return ModerationOutcome.conservative(correlation_id)
        try:
            return text_extraction.extract(text).with_correlation_id(correlation_id)
        except Exception as exc:
            logger.error("[GATEWAY] Text fallback failed: %s", exc)
            return ModerationOutcome.conservative(correlation_id)

    def _extract_many(self, text: str | None, requests: Sequence[ModerationRequest]) -> List[ModerationOutcome]:
        if not text or not text.strip():
            return conservative_outcomes(requests)
        try:
            extracted = text_extraction.extract_many(text, len(requests))
        except Exception as exc:
            logger.error("[GATEWAY] Batch text fallback failed: %s", exc)
            return conservative_outcomes(requests)
        return [
            outcome.with_correlation_id(resolve_correlation_id(request, index))
            for index, (outcome, request) in enumerate(zip(extracted, requests))
        ]

    async def classify_one(self, request: ModerationRequest, custom_prompt: str | None = None) -> ModerationOutcome:
        """Classify a single request.

        Args:
            request: The request to classify.
            custom_prompt: Optional per-conversation template replacing the policy.

        Returns:
            ModerationOutcome: Carries the request's correlation id (0 when unset).
        """
        correlation_id = resolve_correlation_id(request, 0)
        try:
            messages = prompt_builder.build_single_messages(
                request, self._model_name, policy=self._policy, custom_template=custom_prompt
            )
            reply: ClassifierReply | None = None
            try:
                reply = await self._complete(
                    messages,
                    tool_schemas.single_tool(),
                    tool_schemas.SINGLE_TOOL_NAME,
                    self._temperature_for([request]),
                    self._settings.max_output_tokens,
                )
                if not reply.has_tool_call:
                    raise SchemaMismatchError("Classifier answered without calling the tool")
                outcome = moderation_parsing.parse_single_call(reply.tool_name, reply.arguments, request)
                logger.debug(
                    "[GATEWAY] Message %s: flagged=%s confidence=%.2f",
                    correlation_id,
                    outcome.is_flagged,
                    outcome.confidence,
                )
                return outcome
            except SchemaMismatchError as exc:
                logger.warning("[GATEWAY] Structured reply unusable, using text fallback: %s", exc)
                return self._extract_one(reply.fallback_text() if reply else None, correlation_id)
            except TransportError as exc:
                logger.error("[GATEWAY] %s", exc)
                return self._extract_one(exc.partial_text, correlation_id)
        except Exception as exc:
            logger.exception("[GATEWAY] Unexpected failure classifying message %s: %s", correlation_id, exc)
            return ModerationOutcome.conservative(correlation_id)

    async def classify_many(
        self,
        requests: Sequence[ModerationRequest],
        custom_prompt: str | None = None,
    ) -> List[ModerationOutcome]:
        """Classify several requests in one call.

        Returns:
            List[ModerationOutcome]: Same length and order as `requests`.
        """
        if not requests:
            return []
        if len(requests) == 1:
            return [await self.classify_one(requests[0], custom_prompt)]

        try:
            outcomes = await self._classify_batch(requests, custom_prompt)
        except Exception as exc:
            logger.exception("[GATEWAY] Unexpected failure classifying %d messages: %s", len(requests), exc)
            outcomes = conservative_outcomes(requests)

        if len(outcomes) != len(requests):
            logger.error("[GATEWAY] Got %d outcomes for %d messages; using defaults", len(outcomes), len(requests))
            outcomes = conservative_outcomes(requests)
        return outcomes

    async def _classify_batch(
        self,
        requests: Sequence[ModerationRequest],
        custom_prompt: str | None,
    ) -> List[ModerationOutcome]:
        messages = prompt_builder.build_batch_messages(
            requests, self._model_name, policy=self._batch_policy, custom_template=custom_prompt
        )
        reply: ClassifierReply | None = None
        try:
            reply = await self._complete(
                messages,
                tool_schemas.batch_tool(len(requests)),
                tool_schemas.BATCH_TOOL_NAME,
                self._temperature_for(requests),
                self._settings.batch_max_output_tokens,
            )
            if not reply.has_tool_call:
                raise SchemaMismatchError("Classifier answered without calling the tool")
            outcomes = moderation_parsing.parse_batch_call(reply.tool_name, reply.arguments, requests)
            logger.debug(
                "[GATEWAY] Batch of %d: %d flagged",
                len(requests),
                sum(1 for outcome in outcomes if outcome.is_flagged),
            )
            return outcomes
        except PartialResultError as exc:
            logger.warning(
                "[GATEWAY] Partial batch result (missing=%s, duplicates=%s)",
                list(exc.missing),
                list(exc.duplicates),
            )
            return exc.outcomes
        except SchemaMismatchError as exc:
            logger.warning("[GATEWAY] Structured batch reply unusable, using text fallback: %s", exc)
            return self._extract_many(reply.text if reply else None, requests)
        except TransportError as exc:
            logger.error("[GATEWAY] %s", exc)
            return self._extract_many(exc.partial_text, requests)
