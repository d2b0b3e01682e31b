"""Small HTTP-related constants shared across Wayfarer.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
CHAT_COMPLETIONS_PATH = "/chat/completions"
SECURE_SCHEME = "https://"

# Used when neither the call nor the client names a model.
FALLBACK_MODEL = "openai/gpt-3.5-turbo"

JSON_CONTENT_TYPE = "application/json"
EVENT_STREAM_CONTENT_TYPE = "text/event-stream"

# Headers a caller's extra_headers may not replace (compared case-insensitively).
MANDATORY_HEADERS: frozenset[str] = frozenset({"authorization", "content-type"})
MANDATORY_STREAM_HEADERS: frozenset[str] = MANDATORY_HEADERS | {"accept"}
