"""
chatsentry - LLM-backed spam moderation for group chats

chatsentry classifies chat messages and member profiles as spam/advertising
or legitimate content with an external language-model classifier and turns
the result into enforcement verdicts (delete message, ban user).

Core Components:

- **Batching Coordinator**: Coalesces requests per conversation into bounded
  batches flushed on size or on a timer
- **Classifier Gateway**: Calls an OpenAI-compatible endpoint with a forced
  function-calling tool and normalizes every reply into outcomes
- **Text-Heuristic Extractor**: Recovers decisions from prose replies when the
  classifier does not call its tool
- **Moderation Engine**: Applies allow-lists, the spam cache and confidence
  thresholds to produce delete/ban verdicts

Usage:
    from chatsentry.ai.classifier_gateway import ClassifierGateway
    from chatsentry.moderation.moderation_engine import ModerationEngine

    engine = ModerationEngine(ClassifierGateway())
    verdict = await engine.moderate(request, user_id)
"""
from __future__ import annotations

from importlib import metadata as importlib_metadata


try:
    __version__ = importlib_metadata.version("chatsentry")
except importlib_metadata.PackageNotFoundError:  # pragma: no cover - fallback when not installed
    __version__ = "0.0.0"


def get_version() -> str:
    """Return the package version string."""
    return __version__


__all__ = ["get_version", "__version__"]
