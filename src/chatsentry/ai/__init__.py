"""
Classifier access for chatsentry.

This package talks to an OpenAI-compatible chat completions endpoint:

- **classifier_gateway.py**: Issues single and batched classification calls,
  parses tool-call replies, falls back to text extraction and never raises.

- **prompt_builder.py**: Builds the policy prompt, renders requests into
  numbered message blocks and substitutes custom template variables.

- **tool_schemas.py**: Function-calling tool definitions and their JSON schemas.
"""
