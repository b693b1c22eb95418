"""
Build classifier prompts from moderation requests.

- Renders each request (text, name, bio, avatar, profile flag) as a labelled block
- Numbers batch items with ``Message N:`` labels and ``---`` separators, which the
  text fallback relies on to split prose replies
- Substitutes ``${...}`` variables in per-conversation custom templates
- Produces the ChatCompletionMessageParam list sent to the OpenAI-compatible API
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Sequence

from openai.types.chat import (
    ChatCompletionMessageParam,
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam,
)

from chatsentry.ai.tool_schemas import BATCH_TOOL_NAME, SINGLE_TOOL_NAME
from chatsentry.datatypes.moderation_datatypes import ModerationRequest
from chatsentry.util.logger import get_logger

logger = get_logger("prompt_builder")

ITEM_SEPARATOR = "---"
DEFAULT_FLAG_REASON = "suspicious bio with links"

DEFAULT_POLICY = """You are a chat moderator that detects ONLY spam messages and advertising bots.

Remove only advertising and spam. Any other content is allowed, even if it is off-topic, \
strange, rude or toxic. Song lyrics, memes, jokes and random phrases are allowed.

A short greeting such as "hi" or "hello" is NOT spam unless the sender's profile or bio \
contains links to channels, sites or other users. Judge the bio exactly as given and never \
assume links that are not shown. Users jokingly calling themselves a bot or a spammer are not spam.

Typical spam:
1. Easy money offers: "Earn $100 a day with no risk, details in DM", "Want to know how I make money? Write me".
2. Bait messages from bots whose profile links to a private channel: "Hi", "Am I pretty?", \
"Interesting", "Hi all, I'm new here". Such messages combined with a suspicious profile ARE spam.
3. Crypto service recruiting: "Hiring a few people for crypto work", "Up to $500 a day", \
"We teach everything for free", "Contact: @username".

Spam indicators: promises of quick income, specific money amounts, invitations to private \
messages or other contacts, heavy emoji or unusual formatting in an advertising context, \
mentions of exchanges in a recruiting context."""

SINGLE_INSTRUCTION = (
    f"Respond ONLY by calling the function {SINGLE_TOOL_NAME}. Do not write a text answer. "
    "If the message is spam, set is_spam to true and explain why in reason; "
    "otherwise set is_spam to false and explain why it is not spam."
)
BATCH_INSTRUCTION = (
    f"Respond ONLY by calling the function {BATCH_TOOL_NAME} with one entry per message. "
    "message_index is the 0-based index shown next to each message. Do not write a text answer."
)

_VARIABLE = re.compile(r"\$\{(\w+)\}")


def render_request(request: ModerationRequest) -> str:
    """Render the text and profile signals of one request."""
    lines = [f'Text: "{request.text}"']
    if request.actor_name:
        lines.append(f"User name: {request.actor_name}")
    if request.actor_bio:
        lines.append(f"User bio: {request.actor_bio}")
    if request.has_avatar is not None:
        lines.append(f"The user {'has' if request.has_avatar else 'has no'} profile picture")
    if request.flagged_profile:
        lines.append(
            "WARNING: this user's profile was pre-flagged as suspicious. "
            f"Reason: {request.flag_reason or DEFAULT_FLAG_REASON}"
        )
    return "\n".join(lines)


def render_batch(requests: Sequence[ModerationRequest]) -> str:
    """Render a numbered block per request, each closed by the item separator."""
    blocks = []
    for index, request in enumerate(requests):
        blocks.append(f"Message {index + 1} (index {index}):\n{render_request(request)}\n{ITEM_SEPARATOR}")
    return "\n".join(blocks) + "\n"


def apply_template_variables(
    template: str,
    model_name: str,
    request: ModerationRequest | None = None,
    requests: Sequence[ModerationRequest] | None = None,
) -> str:
    """Substitute ``${name}`` variables in a custom prompt template.

    ``${model}`` and ``${date}`` are always available. Single-item templates
    also get the request fields (``${messageText}``, ``${userName}``,
    ``${userBio}``, ``${hasAvatar}``, ``${suspiciousProfile}``,
    ``${suspicionReason}``, ``${messageId}``, ``${chatId}``); batch templates
    get ``${messages}`` and ``${messageCount}``. Unknown variables are left as-is.
    """
    values: Dict[str, Callable[[], str]] = {
        "model": lambda: model_name,
        "date": lambda: datetime.now(timezone.utc).isoformat(),
    }
    if request is not None:
        values.update(
            {
                "messageText": lambda: request.text or "",
                "userName": lambda: request.actor_name or "",
                "userBio": lambda: request.actor_bio or "",
                "hasAvatar": lambda: str(bool(request.has_avatar)).lower(),
                "suspiciousProfile": lambda: str(bool(request.flagged_profile)).lower(),
                "suspicionReason": lambda: request.flag_reason or "",
                "messageId": lambda: str(request.correlation_id or 0),
                "chatId": lambda: str(request.conversation_id),
            }
        )
    if requests:
        values.update(
            {
                "messages": lambda: render_batch(requests),
                "messageCount": lambda: str(len(requests)),
            }
        )

    def substitute(match: re.Match) -> str:
        resolver = values.get(match.group(1))
        return resolver() if resolver is not None else match.group(0)

    return _VARIABLE.sub(substitute, template)


def _has_item_variables(template: str, names: Sequence[str]) -> bool:
    return any(f"${{{name}}}" in template for name in names)


def build_single_messages(
    request: ModerationRequest,
    model_name: str,
    policy: str | None = None,
    custom_template: str | None = None,
) -> List[ChatCompletionMessageParam]:
    """Chat messages for classifying one request.

    A custom template replaces the policy. When it does not reference the
    message variables, the rendered request is sent as the user turn.
    """
    if custom_template:
        system_prompt = apply_template_variables(custom_template, model_name, request=request)
        if _has_item_variables(custom_template, ("messageText",)):
            user_prompt = f"Classify the message described above. {SINGLE_INSTRUCTION}"
        else:
            user_prompt = f"Message to check:\n{render_request(request)}\n\n{SINGLE_INSTRUCTION}"
    else:
        system_prompt = f"{policy or DEFAULT_POLICY}\n\n{SINGLE_INSTRUCTION}"
        user_prompt = f"Message to check:\n{render_request(request)}"

    return [
        ChatCompletionSystemMessageParam(role="system", content=system_prompt),
        ChatCompletionUserMessageParam(role="user", content=user_prompt),
    ]


def build_batch_messages(
    requests: Sequence[ModerationRequest],
    model_name: str,
    policy: str | None = None,
    custom_template: str | None = None,
) -> List[ChatCompletionMessageParam]:
    """Chat messages for classifying several requests in one call."""
    if custom_template:
        system_prompt = apply_template_variables(custom_template, model_name, requests=requests)
        if _has_item_variables(custom_template, ("messages",)):
            user_prompt = f"Classify the {len(requests)} messages described above. {BATCH_INSTRUCTION}"
        else:
            user_prompt = f"Messages to check:\n\n{render_batch(requests)}\n{BATCH_INSTRUCTION}"
    else:
        system_prompt = f"{policy or DEFAULT_POLICY}\n\n{BATCH_INSTRUCTION}"
        user_prompt = f"Messages to check:\n\n{render_batch(requests)}"

    logger.debug("[PROMPT] Built batch prompt for %d messages (%d chars)", len(requests), len(user_prompt))
    return [
        ChatCompletionSystemMessageParam(role="system", content=system_prompt),
        ChatCompletionUserMessageParam(role="user", content=user_prompt),
    ]
