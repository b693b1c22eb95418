import os
from typing import Any, Dict

DEFAULT_MODEL_NAME = "gemini-2.0-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
API_KEY_ENV_VAR = "CHATSENTRY_API_KEY"


class ClassifierSettings:
    """Helper exposing typed accessors for the remote classifier configuration.

    Wraps the ``ai_settings`` section of the application config. Only ``get``,
    ``as_dict`` and the convenience properties are provided; it is not a full
    mapping.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        """Return the underlying mapping."""
        return self.data

    @property
    def enabled(self) -> bool:
        return bool(self.data.get("enabled", True))

    @property
    def base_url(self) -> str:
        return str(self.data.get("base_url") or DEFAULT_BASE_URL)

    @property
    def api_key(self) -> str:
        """API key from the config file, falling back to ``CHATSENTRY_API_KEY``."""
        val = self.data.get("api_key") or os.getenv(API_KEY_ENV_VAR, "")
        return str(val)

    @property
    def model_name(self) -> str:
        return str(self.data.get("model_name") or DEFAULT_MODEL_NAME)

    @property
    def temperature(self) -> float:
        return float(self.data.get("temperature", 0.1))

    @property
    def flagged_temperature(self) -> float:
        return float(self.data.get("flagged_temperature", 0.05))

    @property
    def max_output_tokens(self) -> int:
        return int(self.data.get("max_output_tokens", 1024))

    @property
    def batch_max_output_tokens(self) -> int:
        return int(self.data.get("batch_max_output_tokens", 2048))


class BatchingSettings:
    """Flush policy for one Coordinator/Gateway pairing.

    Timeout and size are per profile so two gateways can batch independently.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @property
    def timeout_seconds(self) -> float:
        return max(0.0, float(self.data.get("timeout_seconds", 3.0)))

    @property
    def max_batch_size(self) -> int:
        return max(1, int(self.data.get("max_batch_size", 5)))


class ModerationSettings:
    """Enforcement thresholds and spam-cache retention."""

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @property
    def confidence_threshold(self) -> float:
        return float(self.data.get("confidence_threshold", 0.7))

    @property
    def flagged_profile_factor(self) -> float:
        return float(self.data.get("flagged_profile_factor", 0.8))

    @property
    def spam_cache_max_age_seconds(self) -> float:
        return float(self.data.get("spam_cache_max_age_seconds", 3 * 24 * 60 * 60))

    @property
    def spam_cache_cleanup_interval_seconds(self) -> float:
        return float(self.data.get("spam_cache_cleanup_interval_seconds", 24 * 60 * 60))
