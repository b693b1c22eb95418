"""
Configuration management for chatsentry.

- **app_configuration.py**: fcntl-locked YAML loader for ``config/app_config.yml``.
  Exposes the prompt templates, classifier settings, per-profile batching
  policies and moderation thresholds. Missing or malformed files fall back to
  defaults instead of raising.

- **ai_settings.py**: Typed wrappers (``ClassifierSettings``,
  ``BatchingSettings``, ``ModerationSettings``) over the raw config sections.
"""
