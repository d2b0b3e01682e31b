"""Configuration: frozen ClientConfig validated at construction."""

from __future__ import annotations

from dataclasses import dataclass, replace
import math
import os
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from wayfarer._http import DEFAULT_BASE_URL, SECURE_SCHEME
from wayfarer.errors import ConfigurationError
from wayfarer.retry import RetryPolicy

if TYPE_CHECKING:
    import httpx

load_dotenv()

API_KEY_ENV_VAR = "OPENROUTER_API_KEY"

# Environment variable -> (field name, parser)
_ENV_FIELDS: dict[str, tuple[str, type]] = {
    "OPENROUTER_BASE_URL": ("base_url", str),
    "OPENROUTER_MODEL": ("default_model", str),
    "OPENROUTER_TIMEOUT_S": ("timeout_s", float),
    "OPENROUTER_MAX_RETRIES": ("max_retries", int),
}


@dataclass(frozen=True)
class ClientConfig:
    """Immutable configuration for a ChatClient.

    The API key is auto-resolved from ``OPENROUTER_API_KEY`` when omitted.
    Nothing here touches the network.

    Example:
        config = ClientConfig(default_model="openai/gpt-4o-mini")
        # API key is automatically resolved from OPENROUTER_API_KEY
    """

    #: Auto-resolved from ``OPENROUTER_API_KEY`` when *None*.
    api_key: str | None = None
    #: Must use HTTPS.
    base_url: str = DEFAULT_BASE_URL
    default_model: str | None = None
    default_temperature: float | None = None
    #: Deadline for a single attempt, in seconds.
    timeout_s: float = 60.0
    max_retries: int = 3
    #: Replaces the HTTP transport, e.g. ``httpx.MockTransport`` in tests.
    transport: httpx.AsyncBaseTransport | None = None
    #: Optional attribution headers recommended by OpenRouter.
    referer: str | None = None
    title: str | None = "wayfarer"
    #: Full retry policy; when set it takes precedence over ``max_retries``.
    retry: RetryPolicy | None = None

    def __post_init__(self) -> None:
        """Auto-resolve the API key and validate configuration."""
        if self.api_key is None:
            object.__setattr__(self, "api_key", os.environ.get(API_KEY_ENV_VAR))

        if not isinstance(self.api_key, str) or not self.api_key.strip():
            raise ConfigurationError(
                "API key is required",
                field="api_key",
                meta={"wire_field": "apiKey"},
                hint=f"Set {API_KEY_ENV_VAR} environment variable or pass api_key=...",
            )

        base_url = self.base_url
        if not isinstance(base_url, str) or not base_url.startswith(SECURE_SCHEME):
            raise ConfigurationError(
                "Base URL must use HTTPS protocol",
                field="base_url",
                meta={"provided": base_url, "wire_field": "baseUrl"},
                hint="Use an https:// endpoint such as " + DEFAULT_BASE_URL,
            )
        object.__setattr__(self, "base_url", base_url.rstrip("/"))

        if not _is_positive_number(self.timeout_s):
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s!r}",
                field="timeout_s",
                hint="This bounds a single attempt, in seconds.",
            )
        if (
            isinstance(self.max_retries, bool)
            or not isinstance(self.max_retries, int)
            or self.max_retries < 0
        ):
            raise ConfigurationError(
                f"max_retries must be an integer >= 0, got {self.max_retries!r}",
                field="max_retries",
            )
        temp = self.default_temperature
        if temp is not None and not (
            isinstance(temp, (int, float))
            and not isinstance(temp, bool)
            and 0 <= temp <= 2
        ):
            raise ConfigurationError(
                f"default_temperature must be between 0 and 2, got {temp!r}",
                field="default_temperature",
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> ClientConfig:
        """Build a config from ``OPENROUTER_*`` variables; overrides win."""
        values: dict[str, Any] = {}
        for env_var, (name, parse) in _ENV_FIELDS.items():
            raw = os.environ.get(env_var)
            if raw is None or not raw.strip():
                continue
            try:
                values[name] = parse(raw.strip())
            except ValueError as e:
                raise ConfigurationError(
                    f"{env_var} is not a valid {parse.__name__}: {raw!r}",
                    field=name,
                    meta={"provided": raw},
                ) from e
        values.update(overrides)
        return cls(**values)

    def retry_policy(self) -> RetryPolicy:
        """Return the effective retry policy for this client."""
        if self.retry is not None:
            return self.retry
        return RetryPolicy(max_retries=self.max_retries)

    def with_overrides(self, **changes: Any) -> ClientConfig:
        """Return a validated copy with ``changes`` applied."""
        return replace(self, **changes)

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"ClientConfig(base_url={self.base_url!r}, "
            f"default_model={self.default_model!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, "
            f"timeout_s={self.timeout_s}, max_retries={self.max_retries})"
        )

    __repr__ = __str__


def _is_positive_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )
