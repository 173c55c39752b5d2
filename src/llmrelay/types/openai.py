"""Alternate wire models — OpenAI Chat Completions and Embeddings schemas.

Inbound models are deliberately permissive (``extra="allow"``, optional
fields) because proxies receive whatever OpenAI-compatible clients send;
the converters decide what is representable.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import Discriminator, Tag, ValidationError

from llmrelay.errors import SchemaViolationError
from llmrelay.types.canonical import WireModel

# ---------------------------------------------------------------------------
# Content parts
# ---------------------------------------------------------------------------


class TextPart(WireModel):
    type: Literal["text"] = "text"
    text: str


class ImageURL(WireModel):
    url: str
    detail: str | None = None


class ImageURLPart(WireModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageURL


class UnknownPart(WireModel):
    """A content part type not modelled here (audio, file, ...)."""

    type: str


def _part_tag(value: Any) -> str:
    part_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return part_type if part_type in ("text", "image_url") else "unknown"


ContentPart = Annotated[
    Union[
        Annotated[TextPart, Tag("text")],
        Annotated[ImageURLPart, Tag("image_url")],
        Annotated[UnknownPart, Tag("unknown")],
    ],
    Discriminator(_part_tag),
]


# ---------------------------------------------------------------------------
# Messages & tools
# ---------------------------------------------------------------------------


class FunctionCall(WireModel):
    name: str
    arguments: str


class ToolCall(WireModel):
    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class ChatMessage(WireModel):
    """A message in a chat completion request.

    ``role`` stays a plain string so unknown roles reach the converter, which
    reports them as unsupported instead of failing validation.
    """

    role: str
    content: str | list[ContentPart] | None = None
    name: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None


class FunctionDefinition(WireModel):
    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None
    strict: bool | None = None


class Tool(WireModel):
    type: str = "function"
    function: FunctionDefinition | None = None


class NamedFunction(WireModel):
    name: str


class NamedToolChoice(WireModel):
    type: Literal["function"] = "function"
    function: NamedFunction


class ChatCompletionRequest(WireModel):
    """An OpenAI chat completion request.

    ``system`` is not part of OpenAI's schema; some compatible gateways send a
    dedicated system field and it is honoured when present.
    """

    model: str | None = None
    messages: list[ChatMessage]
    system: str | list[ContentPart] | None = None
    max_tokens: int | None = None
    max_completion_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    stop: str | list[str] | None = None
    stream: bool | None = None
    user: str | None = None
    tools: list[Tool] | None = None
    tool_choice: str | NamedToolChoice | None = None
    parallel_tool_calls: bool | None = None
    reasoning_effort: str | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ResponseMessage(WireModel):
    role: Literal["assistant"] = "assistant"
    content: str | None = None
    refusal: str | None = None
    reasoning_content: str | None = None
    tool_calls: list[ToolCall] | None = None


class Choice(WireModel):
    index: int = 0
    message: ResponseMessage
    finish_reason: str | None = None


class PromptTokensDetails(WireModel):
    cached_tokens: int | None = None


class CompletionTokensDetails(WireModel):
    reasoning_tokens: int | None = None


class CompletionUsage(WireModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int | None = None
    prompt_tokens_details: PromptTokensDetails | None = None
    completion_tokens_details: CompletionTokensDetails | None = None


class ChatCompletion(WireModel):
    id: str | None = None
    object: str | None = None
    created: int | None = None
    model: str | None = None
    choices: list[Choice]
    usage: CompletionUsage | None = None


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


class EmbeddingsRequest(WireModel):
    model: str
    input: str | list[str]
    encoding_format: str | None = None
    dimensions: int | None = None


class EmbeddingObject(WireModel):
    object: str | None = None
    embedding: list[float]
    index: int


class EmbeddingsUsage(WireModel):
    prompt_tokens: int
    total_tokens: int | None = None


class EmbeddingsResponse(WireModel):
    object: str | None = None
    data: list[EmbeddingObject]
    model: str | None = None
    usage: EmbeddingsUsage | None = None


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _decode(model: type[WireModel], data: Any, what: str) -> Any:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise SchemaViolationError(f"invalid {what}: {exc.errors()[0]['msg']}") from exc


def decode_chat_completion_request(data: Any) -> ChatCompletionRequest:
    return _decode(ChatCompletionRequest, data, "chat completion request")  # type: ignore[no-any-return]


def decode_chat_completion(data: Any) -> ChatCompletion:
    return _decode(ChatCompletion, data, "chat completion")  # type: ignore[no-any-return]


def decode_embeddings_request(data: Any) -> EmbeddingsRequest:
    return _decode(EmbeddingsRequest, data, "embeddings request")  # type: ignore[no-any-return]


def decode_embeddings_response(data: Any) -> EmbeddingsResponse:
    return _decode(EmbeddingsResponse, data, "embeddings response")  # type: ignore[no-any-return]
