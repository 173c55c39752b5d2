"""Shared error types for conversion, proxy utilities, transport and configuration."""

from __future__ import annotations


class LLMRelayError(Exception):
    """Base error for all llmrelay failures."""


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


class ConversionError(LLMRelayError):
    """A value could not be converted between the canonical and alternate formats."""

    kind = "conversion"

    def __init__(self, detail: str = "", *, path: str | None = None) -> None:
        self.detail = detail
        self.path = path
        msg = f"{self.kind}: {detail}" if detail else self.kind
        if path:
            msg += f" (at {path})"
        super().__init__(msg)


class UnsupportedConstructError(ConversionError):
    """The target format cannot represent a construct present in the source."""

    kind = "unsupported_construct"


class MalformedInputError(ConversionError):
    """The source value is syntactically broken (e.g. invalid JSON tool arguments)."""

    kind = "malformed_input"


class SchemaViolationError(ConversionError):
    """The source value does not satisfy the structural rules of its schema."""

    kind = "schema_violation"


# ---------------------------------------------------------------------------
# Tool name transform
# ---------------------------------------------------------------------------


class TransformError(LLMRelayError):
    """Base error for tool identifier transforms."""


class UnknownEncodedNameError(TransformError):
    """``restore`` received a name the transform never produced."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown encoded tool name: {name!r}")


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportError(LLMRelayError):
    """A failure reported by the transport layer.

    ``retryable`` tells callers whether repeating the identical request can
    reasonably succeed; the client itself never retries.
    """

    retryable = False

    def __init__(self, detail: str = "", *, status: int | None = None, body: str = "") -> None:
        self.detail = detail
        self.status = status
        self.body = body
        prefix = f"HTTP {status}" if status is not None else self.__class__.__name__
        super().__init__(f"{prefix}: {detail}" if detail else prefix)


class UnauthorizedError(TransportError):
    """Credentials were rejected (401/403)."""


class RateLimitedError(TransportError):
    """The provider throttled the request (429)."""

    retryable = True

    def __init__(
        self,
        detail: str = "",
        *,
        status: int | None = 429,
        body: str = "",
        retry_after: float | None = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(detail, status=status, body=body)


class OverloadedError(TransportError):
    """The provider is temporarily unable to serve the request (5xx, 529)."""

    retryable = True


class TransportTimeoutError(TransportError):
    """The request did not complete within the configured timeout."""

    retryable = True


class NetworkFailureError(TransportError):
    """The request never reached the provider or the connection dropped."""

    retryable = True


class MalformedResponseError(TransportError):
    """The provider answered with a body that cannot be decoded."""


class RejectedRequestError(TransportError):
    """The provider rejected the request for any other client-side reason (4xx)."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(LLMRelayError):
    """Invalid client configuration or proxy utility settings."""


class BreakpointLimitError(ConfigurationError):
    """Cache-control injection would exceed the provider's breakpoint limit."""

    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(f"Cache breakpoints required: {count}, provider limit: {limit}")
