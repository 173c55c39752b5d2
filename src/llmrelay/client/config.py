"""Client configuration — provider, credentials, model id and call defaults.

A :class:`ClientConfig` is an immutable value built once and passed to
:class:`~llmrelay.client.client.LLMClient`. The ``with_*`` builders return
modified copies, so one value can be shared read-only across concurrent calls.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from llmrelay.errors import ConfigurationError
from llmrelay.types.common import Provider

DEFAULT_MAX_TOKENS = 16384
DEFAULT_TIMEOUT = 60.0
ANTHROPIC_TIMEOUT = 180.0
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class ClientConfig(BaseModel):
    """Immutable client settings.

    ``embeddings`` enables :meth:`LLMClient.embed`; ``reasoning_effort``
    forwards thinking settings as OpenAI's ``reasoning_effort`` parameter for
    providers that understand it.
    """

    model_config = ConfigDict(frozen=True)

    provider: Provider
    api_key: str = Field(repr=False)
    model: str
    base_url: str
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    embeddings: bool = False
    reasoning_effort: bool = False

    @field_validator("api_key", "model", "base_url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def create(cls, **values: Any) -> ClientConfig:
        """Validate *values*, raising :class:`ConfigurationError` on failure."""
        try:
            return cls(**values)
        except ValidationError as exc:
            error = exc.errors()[0]
            field = ".".join(str(part) for part in error["loc"])
            msg = f"invalid client configuration: {field}: {error['msg']}"
            raise ConfigurationError(msg) from exc

    @classmethod
    def anthropic(cls, api_key: str, model: str, **overrides: Any) -> ClientConfig:
        """Configuration for Anthropic's Messages API."""
        overrides.setdefault("base_url", Provider.ANTHROPIC.default_base_url)
        overrides.setdefault("timeout", ANTHROPIC_TIMEOUT)
        return cls.create(provider=Provider.ANTHROPIC, api_key=api_key, model=model, **overrides)

    @classmethod
    def openai_compatible(
        cls, base_url: str, api_key: str, model: str, **overrides: Any
    ) -> ClientConfig:
        """Configuration for any server speaking OpenAI's Chat Completions API.

        *base_url* is the API root, with or without a trailing version segment
        (``https://api.openai.com`` and ``https://openrouter.ai/api/v1`` both work).
        """
        return cls.create(
            provider=Provider.OPENAI, base_url=base_url, api_key=api_key, model=model, **overrides
        )

    @classmethod
    def openrouter(cls, api_key: str, model: str, **overrides: Any) -> ClientConfig:
        return cls.openai_compatible(OPENROUTER_BASE_URL, api_key, model, **overrides)

    def with_timeout(self, timeout: float) -> ClientConfig:
        return self._replace(timeout=timeout)

    def with_max_tokens(self, max_tokens: int) -> ClientConfig:
        return self._replace(max_tokens=max_tokens)

    def with_base_url(self, base_url: str) -> ClientConfig:
        return self._replace(base_url=base_url)

    def with_embeddings(self, enabled: bool = True) -> ClientConfig:
        return self._replace(embeddings=enabled)

    def _replace(self, **changes: Any) -> ClientConfig:
        # Revalidate instead of model_copy so builder input is checked too.
        return self.create(**{**self.model_dump(), **changes})
