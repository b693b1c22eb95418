"""
Utility helpers for chatsentry.

- **logger.py**: Centralized logging with coloured prompt_toolkit console output,
  a rotating per-session log file, and suppression of noisy library loggers.

- **discord_utils.py**: Stateless Discord helpers that carry out moderation
  verdicts (message deletion, member bans) with recoverable errors suppressed.
"""
