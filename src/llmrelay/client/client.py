"""LLMClient — async chat and embeddings calls against either provider.

The client builds a canonical request, converts it for the configured
provider, hands the payload to a :class:`~llmrelay.client.transport.Transport`
and converts the reply back into canonical form. Its only state is the
immutable :class:`~llmrelay.client.config.ClientConfig`, so one client can
serve any number of concurrent calls.

Each call moves through ``IDLE → BUILDING → SENT → AWAITING`` and ends in
``COMPLETED`` or ``FAILED``; transitions are logged and reported to the
optional ``on_state`` listener together with a per-call id.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict

from llmrelay.client.config import ClientConfig
from llmrelay.client.transport import Credentials, Endpoint, HttpxTransport, Transport
from llmrelay.convert import get_transpiler
from llmrelay.convert.thinking import build_thinking_params
from llmrelay.convert.transpiler import Transpiler
from llmrelay.errors import (
    ConfigurationError,
    ConversionError,
    LLMRelayError,
    MalformedResponseError,
)
from llmrelay.types.canonical import (
    ChatRequest,
    ChatResponse,
    EmbeddingRequest,
    EmbeddingResponse,
    Message,
    TextBlock,
    ThinkingConfig,
    ToolChoice,
    ToolDefinition,
    validate_request,
)
from llmrelay.types.common import EffortLevel, Provider
from llmrelay.utils.telemetry import (
    ATTR_EMBEDDING_COUNT,
    ATTR_ENDPOINT,
    ATTR_ERROR_KIND,
    ATTR_MODEL,
    ATTR_OPERATION,
    ATTR_PROVIDER,
    ATTR_STOP_REASON,
    ATTR_TOKENS_INPUT,
    ATTR_TOKENS_OUTPUT,
    ATTR_TOKENS_TOTAL,
    get_tracer,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

_VERSION_SUFFIX = re.compile(r"/v\d+$")

Operation = Literal["chat", "embeddings"]


class CallState(str, Enum):
    """Lifecycle of a single client call."""

    IDLE = "idle"
    BUILDING = "building"
    SENT = "sent"
    AWAITING = "awaiting"
    COMPLETED = "completed"
    FAILED = "failed"


StateListener = Callable[[str, CallState], None]


class ChatOptions(BaseModel):
    """Per-call request settings layered over the client configuration.

    ``effort`` only applies together with adaptive thinking.
    """

    model_config = ConfigDict(frozen=True)

    system: str | list[TextBlock] | None = None
    tools: list[ToolDefinition] | None = None
    tool_choice: ToolChoice | None = None
    thinking: ThinkingConfig | None = None
    effort: EffortLevel | None = None
    temperature: float | None = None
    top_p: float | None = None
    stop_sequences: list[str] | None = None
    max_tokens: int | None = None


def endpoint_url(config: ClientConfig, operation: Operation) -> str:
    """Resolve the request URL for *operation* under ``config.base_url``.

    A base URL that already ends in a version segment (``/v1``) is used as-is.
    """
    if config.provider is Provider.ANTHROPIC:
        if operation != "chat":
            msg = "the anthropic provider has no embeddings endpoint"
            raise ConfigurationError(msg)
        path = "/messages"
    else:
        path = "/chat/completions" if operation == "chat" else "/embeddings"

    base = config.base_url
    if _VERSION_SUFFIX.search(base):
        return base + path
    return f"{base}/v1{path}"


class _Call:
    """Tracks the state of one in-flight call."""

    def __init__(self, operation: Operation, listener: StateListener | None) -> None:
        self.id = uuid4().hex[:12]
        self.operation = operation
        self._listener = listener
        self.state = CallState.IDLE

    def advance(self, state: CallState) -> None:
        logger.debug("%s call %s: %s -> %s", self.operation, self.id, self.state.value, state.value)
        self.state = state
        if self._listener is not None:
            self._listener(self.id, state)


class LLMClient:
    """Async client for chat and embeddings calls.

    Usage::

        config = ClientConfig.anthropic(api_key, "claude-sonnet-4-5")
        client = LLMClient(config)
        response = await client.complete("You are helpful.", "Hello!")
        print(response.text)
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Transport | None = None,
        *,
        on_state: StateListener | None = None,
    ) -> None:
        self.config = config
        self.transport: Transport = transport or HttpxTransport()
        self.transpiler: Transpiler = get_transpiler(
            config.provider, reasoning_effort=config.reasoning_effort
        )
        self._on_state = on_state
        self._credentials = Credentials(provider=config.provider, api_key=config.api_key)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def complete(
        self,
        system: str | None,
        user_text: str,
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        """Send a single-turn conversation.

        A non-None *system* overrides ``options.system``.
        """
        options = options or ChatOptions()
        if system is not None:
            options = options.model_copy(update={"system": system})
        return await self.chat([Message.user_text(user_text)], options)

    async def chat(self, messages: list[Message], options: ChatOptions | None = None) -> ChatResponse:
        """Send a conversation and return the assistant reply in canonical form.

        Raises:
            ConversionError: the request cannot be represented for the
                configured provider.
            TransportError: the transport failed; passed through unchanged.
            MalformedResponseError: the reply could not be decoded.
        """
        logger.info(
            "Sending request to LLM (provider: %s, model: %s, messages: %d)",
            self.config.provider.value,
            self.config.model,
            len(messages),
        )
        call = _Call("chat", self._on_state)
        call.advance(CallState.BUILDING)
        try:
            request = self.build_request(messages, options)
        except LLMRelayError:
            call.advance(CallState.FAILED)
            raise
        return await self._send(call, request)

    async def send(self, request: ChatRequest) -> ChatResponse:
        """Send an already built canonical request."""
        call = _Call("chat", self._on_state)
        call.advance(CallState.BUILDING)
        return await self._send(call, request)

    def build_request(
        self, messages: list[Message], options: ChatOptions | None = None
    ) -> ChatRequest:
        """Assemble and validate the canonical request ``chat`` would send."""
        options = options or ChatOptions()
        thinking, output_config = build_thinking_params(options.thinking, options.effort)
        fields: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": options.max_tokens or self.config.max_tokens,
            "messages": messages,
        }
        optional: dict[str, Any] = {
            "system": options.system,
            "tools": options.tools,
            "tool_choice": options.tool_choice,
            "thinking": thinking,
            "output_config": output_config,
            "temperature": options.temperature,
            "top_p": options.top_p,
            "stop_sequences": options.stop_sequences,
        }
        fields.update({key: value for key, value in optional.items() if value is not None})
        return validate_request(ChatRequest(**fields))

    def build_payload(self, request: ChatRequest) -> tuple[Endpoint, dict[str, Any]]:
        """Convert *request* into the endpoint and JSON payload for the provider."""
        endpoint = Endpoint(
            url=endpoint_url(self.config, "chat"),
            operation="chat",
            timeout=self.config.timeout,
        )
        return endpoint, self.transpiler.to_provider(request)

    async def _send(self, call: _Call, request: ChatRequest) -> ChatResponse:
        with _tracer.start_as_current_span("llmrelay.chat") as span:
            span.set_attribute(ATTR_OPERATION, "chat")
            span.set_attribute(ATTR_PROVIDER, self.config.provider.value)
            span.set_attribute(ATTR_MODEL, request.model)
            try:
                endpoint, payload = self.build_payload(request)
                span.set_attribute(ATTR_ENDPOINT, endpoint.url)
                raw = await self._exchange(call, endpoint, payload)
                response = self._decode(raw, self.transpiler.from_provider)
            except LLMRelayError as exc:
                span.set_attribute(ATTR_ERROR_KIND, exc.__class__.__name__)
                call.advance(CallState.FAILED)
                raise

            if response.stop_reason is not None:
                span.set_attribute(ATTR_STOP_REASON, response.stop_reason)
            if response.usage is not None:
                span.set_attribute(ATTR_TOKENS_INPUT, response.usage.input_tokens)
                span.set_attribute(ATTR_TOKENS_OUTPUT, response.usage.output_tokens)
                span.set_attribute(ATTR_TOKENS_TOTAL, response.usage.total_tokens)
            call.advance(CallState.COMPLETED)

        logger.info(
            "LLM responded (stop_reason: %s, content blocks: %d)",
            response.stop_reason,
            len(response.content),
        )
        return response

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    async def embed(self, input: str | list[str], model: str | None = None) -> EmbeddingResponse:
        """Embed one or more strings; vectors come back in input order.

        Raises:
            ConfigurationError: embeddings are not enabled for this client, or
                the provider has no embeddings endpoint.
            MalformedResponseError: the reply is undecodable or carries a
                different number of vectors than inputs.
        """
        if not self.config.embeddings:
            msg = "embeddings are not enabled for this client"
            raise ConfigurationError(msg)
        if self.config.provider is not Provider.OPENAI:
            msg = f"the {self.config.provider.value} provider has no embeddings endpoint"
            raise ConfigurationError(msg)

        request = EmbeddingRequest(model=model or self.config.model, input=input)
        expected = len(request.inputs)
        call = _Call("embeddings", self._on_state)
        logger.debug("Embedding %d inputs (model: %s)", expected, request.model)

        with _tracer.start_as_current_span("llmrelay.embed") as span:
            span.set_attribute(ATTR_OPERATION, "embeddings")
            span.set_attribute(ATTR_PROVIDER, self.config.provider.value)
            span.set_attribute(ATTR_MODEL, request.model)
            span.set_attribute(ATTR_EMBEDDING_COUNT, expected)
            try:
                call.advance(CallState.BUILDING)
                endpoint = Endpoint(
                    url=endpoint_url(self.config, "embeddings"),
                    operation="embeddings",
                    timeout=self.config.timeout,
                )
                payload = self.transpiler.embeddings_to_provider(request)
                raw = await self._exchange(call, endpoint, payload)
                response = self._decode(raw, self.transpiler.embeddings_from_provider)
                if len(response.vectors) != expected:
                    msg = f"expected {expected} embeddings, got {len(response.vectors)}"
                    raise MalformedResponseError(msg)
            except LLMRelayError as exc:
                span.set_attribute(ATTR_ERROR_KIND, exc.__class__.__name__)
                call.advance(CallState.FAILED)
                raise
            if response.usage is not None:
                span.set_attribute(ATTR_TOKENS_INPUT, response.usage.input_tokens)
            call.advance(CallState.COMPLETED)
        return response

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _exchange(self, call: _Call, endpoint: Endpoint, payload: dict[str, Any]) -> bytes:
        call.advance(CallState.SENT)
        pending = self.transport.send(endpoint, payload, self._credentials)
        call.advance(CallState.AWAITING)
        return await pending

    @staticmethod
    def _decode(raw: bytes, convert: Callable[[dict[str, Any]], Any]) -> Any:
        try:
            data = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.error("Failed to parse response: %s", exc)
            msg = f"response body is not valid JSON: {exc}"
            raise MalformedResponseError(msg) from exc
        if not isinstance(data, dict):
            msg = "response body is not a JSON object"
            raise MalformedResponseError(msg)
        try:
            return convert(data)
        except ConversionError as exc:
            logger.error("Failed to parse response: %s", exc)
            raise MalformedResponseError(str(exc)) from exc
