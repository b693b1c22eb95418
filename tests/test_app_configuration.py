import json
from pathlib import Path

import pytest

from chatsentry.configuration.ai_settings import (
    API_KEY_ENV_VAR,
    DEFAULT_MODEL_NAME,
    BatchingSettings,
    ClassifierSettings,
    ModerationSettings,
)
from chatsentry.configuration.app_configuration import AppConfig


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path) -> None:
    config_path.write_text(
        """
ai_settings:
  model_name: test-model
  base_url: http://localhost:8000/v1
  temperature: 0.2
  system_prompt: "Only flag spam."
batching:
  immediate:
    timeout_seconds: 1.5
moderation:
  confidence_threshold: 0.9
""",
        encoding="utf-8",
    )

    config = AppConfig(config_path)

    assert config.system_prompt_template == "Only flag spam."
    assert config.batch_prompt_template == ""

    ai_settings = config.ai_settings
    assert ai_settings.model_name == "test-model"
    assert ai_settings.base_url == "http://localhost:8000/v1"
    assert ai_settings.temperature == pytest.approx(0.2)
    assert ai_settings.flagged_temperature == pytest.approx(0.05)

    batching = config.batching_settings("immediate")
    assert batching.timeout_seconds == pytest.approx(1.5)
    assert batching.max_batch_size == 5

    assert config.moderation_settings.confidence_threshold == pytest.approx(0.9)


def test_app_config_accepts_json_payload(config_path: Path) -> None:
    config_path.write_text(json.dumps({"ai_settings": {"model_name": "json-model"}}), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.get("ai_settings") == {"model_name": "json-model"}
    assert config.ai_settings.model_name == "json-model"


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.system_prompt_template == ""
    assert config.ai_settings.model_name == DEFAULT_MODEL_NAME
    assert config.moderation_settings.confidence_threshold == pytest.approx(0.7)


def test_app_config_malformed_yaml_returns_defaults(config_path: Path) -> None:
    config_path.write_text("ai_settings: [unclosed", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.data == {}


def test_app_config_non_mapping_is_ignored(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.data == {}
    assert config.ai_settings.as_dict() == {}


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text("moderation:\n  confidence_threshold: 0.5\n", encoding="utf-8")
    config = AppConfig(config_path)
    assert config.moderation_settings.confidence_threshold == pytest.approx(0.5)

    config_path.write_text("moderation:\n  confidence_threshold: 0.6\n", encoding="utf-8")
    config.reload()

    assert config.moderation_settings.confidence_threshold == pytest.approx(0.6)


def test_batching_profiles_have_independent_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "missing.yml")

    immediate = config.batching_settings("immediate")
    secondary = config.batching_settings("secondary")
    unknown = config.batching_settings("unknown")

    assert (immediate.timeout_seconds, immediate.max_batch_size) == (3.0, 5)
    assert (secondary.timeout_seconds, secondary.max_batch_size) == (3.0, 10)
    assert unknown.max_batch_size == 5


def test_classifier_settings_api_key_env_fallback(monkeypatch) -> None:
    monkeypatch.setenv(API_KEY_ENV_VAR, "env-key")

    assert ClassifierSettings({}).api_key == "env-key"
    assert ClassifierSettings({"api_key": "file-key"}).api_key == "file-key"


def test_classifier_settings_defaults() -> None:
    settings = ClassifierSettings()

    assert settings.enabled is True
    assert settings.max_output_tokens == 1024
    assert settings.batch_max_output_tokens == 2048
    assert settings.get("missing", "fallback") == "fallback"


def test_batching_settings_are_bounded() -> None:
    settings = BatchingSettings({"timeout_seconds": -2, "max_batch_size": 0})

    assert settings.timeout_seconds == 0.0
    assert settings.max_batch_size == 1


def test_moderation_settings_defaults() -> None:
    settings = ModerationSettings()

    assert settings.flagged_profile_factor == pytest.approx(0.8)
    assert settings.spam_cache_max_age_seconds == 3 * 24 * 60 * 60
    assert settings.spam_cache_cleanup_interval_seconds == 24 * 60 * 60
