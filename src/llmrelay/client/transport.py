"""Transport layer — the only place a network call happens.

:class:`Transport` is the interface the client consumes. :class:`HttpxTransport`
is the default implementation; tests and embedding applications can supply
any object with a matching ``send`` coroutine.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Literal, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, Field

from llmrelay.errors import (
    NetworkFailureError,
    OverloadedError,
    RateLimitedError,
    RejectedRequestError,
    TransportError,
    TransportTimeoutError,
    UnauthorizedError,
)
from llmrelay.types.common import Provider

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"

_OVERLOADED_STATUSES = frozenset({500, 502, 503, 504, 529})
_BODY_PREVIEW = 500


class Endpoint(BaseModel):
    """Where a payload goes."""

    model_config = ConfigDict(frozen=True)

    url: str
    operation: Literal["chat", "embeddings"] = "chat"
    timeout: float | None = None


class Credentials(BaseModel):
    """How a payload is authenticated."""

    model_config = ConfigDict(frozen=True)

    provider: Provider
    api_key: str = Field(repr=False)

    def headers(self) -> dict[str, str]:
        if self.provider is Provider.ANTHROPIC:
            return {"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION}
        return {"Authorization": f"Bearer {self.api_key}"}


@runtime_checkable
class Transport(Protocol):
    """Sends one JSON payload and returns the raw response body.

    Implementations raise a :class:`~llmrelay.errors.TransportError` subclass
    for every failure, including non-2xx responses.
    """

    async def send(
        self, endpoint: Endpoint, payload: dict[str, Any], credentials: Credentials
    ) -> bytes: ...


class HttpxTransport:
    """:class:`Transport` over :class:`httpx.AsyncClient`.

    Pass an existing client to share its connection pool, or use the
    transport as an async context manager to keep one open across calls.
    Otherwise every ``send`` opens and closes its own client.

    Usage::

        async with HttpxTransport() as transport:
            client = LLMClient(config, transport)
            response = await client.complete("Be brief.", "Hello!")
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client
        self._owns_client = False

    async def __aenter__(self) -> HttpxTransport:
        if self._client is None:
            self._client = httpx.AsyncClient()
            self._owns_client = True
        return self

    async def __aexit__(self, *_: object) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def send(
        self, endpoint: Endpoint, payload: dict[str, Any], credentials: Credentials
    ) -> bytes:
        if self._client is not None:
            return await self._post(self._client, endpoint, payload, credentials)
        async with httpx.AsyncClient() as client:
            return await self._post(client, endpoint, payload, credentials)

    async def _post(
        self,
        client: httpx.AsyncClient,
        endpoint: Endpoint,
        payload: dict[str, Any],
        credentials: Credentials,
    ) -> bytes:
        headers = {"content-type": "application/json", **credentials.headers()}
        timeout = endpoint.timeout if endpoint.timeout is not None else httpx.USE_CLIENT_DEFAULT
        logger.debug("POST %s", endpoint.url)
        try:
            response = await client.post(endpoint.url, json=payload, headers=headers, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise TransportTimeoutError(str(exc) or "request timed out") from exc
        except httpx.RequestError as exc:
            raise NetworkFailureError(str(exc) or exc.__class__.__name__) from exc

        if response.is_success:
            return response.content
        raise classify_response(response)


def classify_response(response: httpx.Response) -> TransportError:
    """Map a non-2xx response onto the transport error taxonomy."""
    status = response.status_code
    body = response.text
    detail = body[:_BODY_PREVIEW]
    logger.error("API error %d: %s", status, detail)

    if status in (401, 403):
        return UnauthorizedError(detail, status=status, body=body)
    if status == 429:
        retry_after = parse_retry_after(response.headers.get("retry-after"))
        return RateLimitedError(detail, status=status, body=body, retry_after=retry_after)
    if status in _OVERLOADED_STATUSES:
        return OverloadedError(detail, status=status, body=body)
    return RejectedRequestError(detail, status=status, body=body)


def parse_retry_after(value: str | None) -> float | None:
    """Read a ``Retry-After`` header given as seconds or as an HTTP date."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)
