"""
Moderation dispatch, batching and enforcement decisions for chatsentry.

- **batch_coordinator.py**: Per-conversation batching of moderation requests.
  Flushes a batch to the classifier gateway on size or on a timer started by
  its first item, and resolves one future per caller.

- **result_correlator.py**: Delivers each outcome of a flushed batch to the
  future waiting on the matching request; resolves conservatively on failure.

- **moderation_parsing.py**: Validates structured tool-call replies against
  their JSON schema and reconciles batch entries onto the requests.

- **text_extraction.py**: Heuristic extraction of decisions from prose replies
  when the classifier does not call its tool.

- **errors.py**: Transport, schema and partial-result failures raised inside
  the gateway.

- **profile_signals.py**: Bio and short-message heuristics used to pre-flag
  requests.

- **spam_cache.py**: Known spammers and spam texts, with a periodic cleaner.

- **collaborators.py**: Prompt, allow-list and conversation-gate accessors.

- **moderation_engine.py**: Turns outcomes into verdicts (delete, ban) using
  the confidence thresholds and the spam cache.
"""
