"""
Shared constants for Turnwise.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Endpoint/Model defaults
DEFAULT_MODEL = "gpt-4o-mini"
"""Default chat model."""

DEFAULT_BASE_URL = "https://api.openai.com/v1"
"""Default OpenAI-compatible endpoint."""

DEFAULT_REQUEST_TIMEOUT = 120.0
"""Default HTTP timeout for a single completion request, in seconds."""

# Orchestration defaults
DEFAULT_MAX_RETRIES = 2
"""Default number of corrective retries for structured output."""

DEFAULT_MAX_TOOL_ROUNDS = 20
"""Default maximum rounds of tool execution per request."""

# Feedback text sent back to the model
SCHEMA_INSTRUCTION_PREFIX = "Return answer in json format as specified in schema:"
"""Prefix of the instruction message injected when a response schema is configured."""

INVALID_JSON_FEEDBACK_PREFIX = "Answer isn't valid JSON:"
"""Prefix of the corrective message sent when the answer cannot be parsed."""

SCHEMA_VIOLATION_FEEDBACK_PREFIX = "Answer isn't valid due to json schema validation errors:"
"""Prefix of the corrective message sent when the answer violates the schema."""

# Truncation limits for logs and error messages
ERROR_BODY_EXCERPT_CHARS = 500
"""Maximum characters of an HTTP error body kept in a TransportError."""
