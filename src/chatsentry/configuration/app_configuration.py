from __future__ import annotations
import os
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml
from dotenv import load_dotenv

from chatsentry.configuration.ai_settings import BatchingSettings, ClassifierSettings, ModerationSettings
from chatsentry.util.logger import get_logger

logger = get_logger("app_configuration")

load_dotenv()

CONFIG_PATH = Path(os.getenv("CHATSENTRY_CONFIG") or "./config/app_config.yml").resolve()

# Built-in flush policies; the ``batching`` section of the config overrides them per key.
DEFAULT_BATCHING_PROFILES: Dict[str, Dict[str, Any]] = {
    "immediate": {"timeout_seconds": 3.0, "max_batch_size": 5},
    "secondary": {"timeout_seconds": 3.0, "max_batch_size": 10},
}

class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    Caches the contents of the YAML file (``CHATSENTRY_CONFIG`` or
    ``./config/app_config.yml``), exposes dictionary-like
    helpers, and wraps the classifier, batching and moderation sections in
    typed settings objects. Reads take an fcntl shared lock so a concurrent
    writer never yields a torn file.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping; ignoring it.", self.config_path)
            return {}
        return data

    def _section(self, key: str) -> Dict[str, Any]:
        value = self._data.get(key, {})
        return value if isinstance(value, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        The mapping is empty when the file is missing or malformed.
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping (do not mutate)."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def system_prompt_template(self) -> str:
        """Return the configured default single-message prompt (or empty string).

        An empty value makes the gateway fall back to its built-in policy prompt.
        """
        value = self._section("ai_settings").get("system_prompt", "")
        return str(value or "")

    @property
    def batch_prompt_template(self) -> str:
        """Return the configured default batch prompt (or empty string)."""
        value = self._section("ai_settings").get("batch_prompt", "")
        return str(value or "")

    @property
    def ai_settings(self) -> ClassifierSettings:
        return ClassifierSettings(self._section("ai_settings"))

    @property
    def moderation_settings(self) -> ModerationSettings:
        return ModerationSettings(self._section("moderation"))

    def batching_settings(self, profile: str = "immediate") -> BatchingSettings:
        """Return the flush policy for a named gateway profile.

        Unknown profiles get the ``immediate`` defaults; keys present in the
        config file win over the built-in values.
        """
        merged = dict(DEFAULT_BATCHING_PROFILES.get(profile, DEFAULT_BATCHING_PROFILES["immediate"]))
        configured = self._section("batching").get(profile)
        if isinstance(configured, dict):
            merged.update(configured)
        return BatchingSettings(merged)


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
