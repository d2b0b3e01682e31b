"""Wayfarer: a resilient client for OpenRouter chat completions.

Public API:
    - ChatClient: chat(), stream(), validate_json()
    - ClientConfig: Configuration dataclass
    - ChatParams / ChatMessage: Request types
    - ChatSuccess / Usage: Result types
    - RetryPolicy: Retry and backoff settings
"""

from __future__ import annotations

import logging

from wayfarer.client import ChatClient
from wayfarer.config import ClientConfig
from wayfarer.errors import (
    APIError,
    ConfigurationError,
    ErrorKind,
    HTTPError,
    JSONValidationError,
    RequestTimeoutError,
    RequestValidationError,
    StreamingError,
    WayfarerError,
)
from wayfarer.retry import RetryPolicy
from wayfarer.streaming import ChatStream
from wayfarer.structured import validate_json
from wayfarer.types import ChatMessage, ChatParams, ChatSuccess, Usage

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("wayfarer-llm")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("wayfarer").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "ChatClient",
    "ChatMessage",
    "ChatParams",
    "ChatStream",
    "ChatSuccess",
    "ClientConfig",
    "ConfigurationError",
    "ErrorKind",
    "HTTPError",
    "JSONValidationError",
    "RequestTimeoutError",
    "RequestValidationError",
    "RetryPolicy",
    "StreamingError",
    "Usage",
    "WayfarerError",
    "validate_json",
]
