"""Parse and validate structured tool-call replies from the classifier."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence, Set

import jsonschema
from jsonschema import ValidationError

from chatsentry.ai.tool_schemas import (
    BATCH_TOOL_NAME,
    SINGLE_TOOL_NAME,
    build_batch_parameters,
    build_single_parameters,
)
from chatsentry.datatypes.moderation_datatypes import (
    ModerationOutcome,
    ModerationRequest,
    resolve_correlation_id,
)
from chatsentry.moderation.errors import PartialResultError, SchemaMismatchError
from chatsentry.util.logger import get_logger

logger = get_logger("moderation_parsing")


def parse_tool_arguments(raw: str | None) -> Dict[str, Any]:
    """Decode the JSON ``arguments`` string of a tool call into a dict."""
    if not raw or not raw.strip():
        raise SchemaMismatchError("Tool call carried no arguments")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("[PARSE] Tool arguments are not valid JSON: %s", exc)
        raise SchemaMismatchError("Tool arguments are not valid JSON") from exc

    if not isinstance(payload, dict):
        raise SchemaMismatchError(f"Tool arguments must be an object, got {type(payload).__name__}")
    return payload


def validate_call(name: str | None, expected_name: str, payload: Dict[str, Any], schema: dict) -> None:
    """Check the function name and validate `payload` against `schema`."""
    if name != expected_name:
        raise SchemaMismatchError(f"Expected call to {expected_name}, got {name!r}")
    try:
        jsonschema.validate(instance=payload, schema=schema)
    except ValidationError as exc:
        logger.warning("[PARSE] Schema validation failed for %s: %s", expected_name, exc.message)
        raise SchemaMismatchError(f"Arguments for {expected_name} failed validation: {exc.message}") from exc


def outcome_from_entry(entry: Dict[str, Any], correlation_id: int | None = None) -> ModerationOutcome:
    """Build an outcome from one validated decision object."""
    return ModerationOutcome(
        is_flagged=bool(entry["is_spam"]),
        confidence=entry["confidence"],
        reason=str(entry["reason"]).strip(),
        matches_known_pattern=bool(entry["matches_known_pattern"]),
        should_escalate=bool(entry["should_ban"]),
        correlation_id=correlation_id,
    )


def parse_single_call(name: str | None, arguments: str | None, request: ModerationRequest) -> ModerationOutcome:
    """Parse a ``moderate_message`` call for `request`.

    Raises:
        SchemaMismatchError: Wrong tool, undecodable arguments or a schema failure.
    """
    payload = parse_tool_arguments(arguments)
    validate_call(name, SINGLE_TOOL_NAME, payload, build_single_parameters())
    return outcome_from_entry(payload, resolve_correlation_id(request, 0))


def parse_batch_call(
    name: str | None,
    arguments: str | None,
    requests: Sequence[ModerationRequest],
) -> List[ModerationOutcome]:
    """Parse a ``moderate_messages_batch`` call and map entries onto `requests`.

    Entries are sorted by the classifier's ``message_index`` and then assigned
    to requests by position, so 0-based, 1-based or gapped numbering all land
    in order. The first entry for a repeated index wins. Entries beyond the
    batch size are dropped. The result always has one outcome per request.

    Raises:
        SchemaMismatchError: Wrong tool, undecodable arguments or a schema failure.
        PartialResultError: Fewer distinct entries than requests, or an index
            repeated. ``exc.outcomes`` holds the reconciled list with
            conservative outcomes in the uncovered positions.
    """
    count = len(requests)
    payload = parse_tool_arguments(arguments)
    validate_call(name, BATCH_TOOL_NAME, payload, build_batch_parameters(count))

    entries = sorted(payload["results"], key=lambda entry: entry["message_index"])
    logger.debug("[PARSE] Batch call returned %d entries for %d messages", len(entries), count)

    seen: Set[int] = set()
    duplicates: Set[int] = set()
    unique: List[Dict[str, Any]] = []
    for entry in entries:
        index = entry["message_index"]
        if index in seen:
            duplicates.add(index)
            continue
        seen.add(index)
        unique.append(entry)

    if len(unique) > count:
        logger.warning("[PARSE] Ignoring %d surplus batch entries", len(unique) - count)

    outcomes: List[ModerationOutcome] = []
    missing: List[int] = []
    for position, request in enumerate(requests):
        correlation_id = resolve_correlation_id(request, position)
        if position < len(unique):
            outcomes.append(outcome_from_entry(unique[position], correlation_id))
        else:
            missing.append(position)
            outcomes.append(ModerationOutcome.conservative(correlation_id))

    if missing or duplicates:
        raise PartialResultError(
            f"Batch result incomplete: missing={missing} duplicates={sorted(duplicates)}",
            missing=missing,
            duplicates=sorted(duplicates),
            outcomes=outcomes,
        )
    return outcomes
