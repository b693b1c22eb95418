"""Function-calling contracts the classifier is instructed to answer through."""

from typing import Any, Dict

from chatsentry.util.logger import get_logger

logger = get_logger("tool_schemas")

SINGLE_TOOL_NAME = "moderate_message"
BATCH_TOOL_NAME = "moderate_messages_batch"

_DECISION_PROPERTIES: Dict[str, Dict[str, Any]] = {
    "is_spam": {
        "type": "boolean",
        "description": "True if the message is spam or advertising, false if it is a normal message.",
    },
    "confidence": {
        "type": "number",
        "description": "Confidence in the decision from 0.0 to 1.0, where 1.0 is maximum confidence.",
    },
    "reason": {
        "type": "string",
        "description": "Short explanation of why the message is or is not spam.",
    },
    "matches_known_pattern": {
        "type": "boolean",
        "description": "Whether the message matches a known spam template (bait bot or crypto advertising).",
    },
    "should_ban": {
        "type": "boolean",
        "description": "Whether the sender should be banned outright rather than only having the message removed.",
    },
}
_DECISION_REQUIRED = ["is_spam", "confidence", "reason", "matches_known_pattern", "should_ban"]


def build_single_parameters() -> dict:
    """JSON schema for the arguments of the single-message tool."""
    return {
        "type": "object",
        "properties": dict(_DECISION_PROPERTIES),
        "required": list(_DECISION_REQUIRED),
    }


def build_batch_parameters(item_count: int) -> dict:
    """JSON schema for the arguments of the batch tool.

    ``message_index`` is requested 0-based. Replies are reconciled by the
    order of their indices, so other numbering is tolerated.

    Args:
        item_count: Number of messages in the batch.

    Returns:
        JSON schema dict for the ``results`` array.
    """
    if item_count <= 0:
        logger.warning("[SCHEMA] Batch schema requested for %d items", item_count)

    entry_properties: Dict[str, Any] = {
        "message_index": {
            "type": "integer",
            "minimum": 0,
            "description": "Index of the message (0-based).",
        },
    }
    entry_properties.update(_DECISION_PROPERTIES)

    return {
        "type": "object",
        "properties": {
            "results": {
                "type": "array",
                "description": "Moderation result for each message.",
                "items": {
                    "type": "object",
                    "properties": entry_properties,
                    "required": ["message_index"] + _DECISION_REQUIRED,
                },
            }
        },
        "required": ["results"],
    }


def build_tool(name: str, description: str, parameters: dict) -> dict:
    """Wrap a parameter schema in the OpenAI ``tools`` envelope."""
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": parameters,
        },
    }


def single_tool() -> dict:
    return build_tool(
        SINGLE_TOOL_NAME,
        "Decide whether a message is spam or advertising and whether it should be removed.",
        build_single_parameters(),
    )


def batch_tool(item_count: int) -> dict:
    return build_tool(
        BATCH_TOOL_NAME,
        "Decide for each message whether it is spam or advertising and whether it should be removed.",
        build_batch_parameters(item_count),
    )


def forced_tool_choice(name: str) -> dict:
    """``tool_choice`` value that tells the classifier to call `name`."""
    return {"type": "function", "function": {"name": name}}
