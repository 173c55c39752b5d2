"""Canonical data model — the internal shape every conversion normalizes to.

The canonical format mirrors Anthropic's Messages API wire schema, so a
canonical value can be sent to Anthropic unchanged and a canonical
encode/decode pair round-trips exactly::

    encode_chat_request(decode_chat_request(payload)) == payload

All models are frozen; conversions build new values instead of mutating.
Unknown fields are kept (``extra="allow"``) and unknown content block types
decode to :class:`UnknownBlock` so provider additions survive identity
round-trips.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    ModelWrapValidatorHandler,
    PrivateAttr,
    SerializerFunctionWrapHandler,
    Tag,
    ValidationError,
    field_validator,
    model_serializer,
    model_validator,
)

from llmrelay.errors import SchemaViolationError
from llmrelay.types.common import (
    TOOL_NAME_PATTERN,
    EffortLevel,
    StopReason,
    is_valid_tool_name,
    stop_reason_from_anthropic,
)

# Smallest ``budget_tokens`` Anthropic accepts for manual extended thinking.
MIN_THINKING_BUDGET = 1024

_ALWAYS_EMIT = ("type", "role")


class WireModel(BaseModel):
    """Base for every canonical and alternate wire model.

    Encoding emits exactly the fields that were provided (plus the ``type`` /
    ``role`` tags), which is what makes decode→encode an identity.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    def model_post_init(self, context: Any, /) -> None:
        fields_set = self.__pydantic_fields_set__
        for name in _ALWAYS_EMIT:
            if name in type(self).model_fields:
                fields_set.add(name)
        if self.__pydantic_extra__:
            fields_set.update(self.__pydantic_extra__)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-compatible wire representation."""
        return self.model_dump(mode="json", exclude_unset=True)


# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------


class CacheControl(WireModel):
    """Prompt-cache boundary marker."""

    type: Literal["ephemeral"] = "ephemeral"
    ttl: str | None = None


class TextBlock(WireModel):
    type: Literal["text"] = "text"
    text: str
    cache_control: CacheControl | None = None


class Base64ImageSource(WireModel):
    type: Literal["base64"] = "base64"
    media_type: str
    data: str


class URLImageSource(WireModel):
    type: Literal["url"] = "url"
    url: str


ImageSource = Annotated[Union[Base64ImageSource, URLImageSource], Field(discriminator="type")]


class ImageBlock(WireModel):
    type: Literal["image"] = "image"
    source: ImageSource
    cache_control: CacheControl | None = None


ToolResultPart = Annotated[Union[TextBlock, ImageBlock], Field(discriminator="type")]


class ToolUseBlock(WireModel):
    """A tool invocation emitted by the assistant."""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any]
    cache_control: CacheControl | None = None


class ToolResultBlock(WireModel):
    """The outcome of a tool call, sent back inside a user message."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str | list[ToolResultPart] | None = None
    is_error: bool | None = None
    cache_control: CacheControl | None = None

    @property
    def text(self) -> str:
        """Concatenated text of the result content."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return "".join(part.text for part in self.content if isinstance(part, TextBlock))


class ThinkingBlock(WireModel):
    """Extended-reasoning output with its opaque continuity signature."""

    type: Literal["thinking"] = "thinking"
    thinking: str
    signature: str | None = None


class RedactedThinkingBlock(WireModel):
    type: Literal["redacted_thinking"] = "redacted_thinking"
    data: str


class UnknownBlock(WireModel):
    """A block type this library does not model yet; kept verbatim."""

    type: str


_KNOWN_BLOCK_TYPES = frozenset(
    {"text", "image", "tool_use", "tool_result", "thinking", "redacted_thinking"}
)


def _block_tag(value: Any) -> str:
    block_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return block_type if block_type in _KNOWN_BLOCK_TYPES else "unknown"


ContentBlock = Annotated[
    Union[
        Annotated[TextBlock, Tag("text")],
        Annotated[ImageBlock, Tag("image")],
        Annotated[ToolUseBlock, Tag("tool_use")],
        Annotated[ToolResultBlock, Tag("tool_result")],
        Annotated[ThinkingBlock, Tag("thinking")],
        Annotated[RedactedThinkingBlock, Tag("redacted_thinking")],
        Annotated[UnknownBlock, Tag("unknown")],
    ],
    Discriminator(_block_tag),
]

# Blocks that may carry a ``cache_control`` marker.
CACHEABLE_BLOCKS = (TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class Message(WireModel):
    """A single conversation turn.

    String content is accepted on input and normalized to one text block.
    The string form is re-emitted on encode as long as that block is unchanged.
    """

    role: Literal["user", "assistant", "system"]
    content: list[ContentBlock]

    _string_content: bool = PrivateAttr(default=False)

    @field_validator("content", mode="before")
    @classmethod
    def _normalize_content(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [{"type": "text", "text": value}]
        return value

    @model_validator(mode="wrap")
    @classmethod
    def _remember_string_content(cls, data: Any, handler: ModelWrapValidatorHandler[Message]) -> Message:
        message = handler(data)
        if isinstance(data, dict) and isinstance(data.get("content"), str):
            message._string_content = True
        return message

    @model_serializer(mode="wrap")
    def _restore_string_content(self, handler: SerializerFunctionWrapHandler) -> Any:
        data = handler(self)
        if self._string_content and isinstance(data, dict) and len(self.content) == 1:
            block = self.content[0]
            if isinstance(block, TextBlock) and block.model_fields_set <= {"type", "text"}:
                data["content"] = block.text
        return data

    def __eq__(self, other: object) -> bool:
        # The string-form hint only shapes encoding; it is not part of the value.
        if not isinstance(other, Message):
            return NotImplemented
        return (
            self.__class__ is other.__class__
            and self.__dict__ == other.__dict__
            and self.__pydantic_extra__ == other.__pydantic_extra__
        )

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))

    @classmethod
    def user(cls, content: list[ContentBlock]) -> Message:
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: list[ContentBlock]) -> Message:
        return cls(role="assistant", content=content)

    @classmethod
    def user_text(cls, text: str) -> Message:
        """Create a user message holding a single text block."""
        blocks: list[ContentBlock] = [TextBlock(text=text)]
        return cls(role="user", content=blocks)

    @classmethod
    def tool_results(cls, results: list[ToolResultBlock]) -> Message:
        """Create the user message that carries tool results back to the model."""
        return cls(role="user", content=list(results))


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class ToolDefinition(WireModel):
    """A client tool the model may call."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any]
    cache_control: CacheControl | None = None


class ToolChoiceAuto(WireModel):
    type: Literal["auto"] = "auto"
    disable_parallel_tool_use: bool | None = None


class ToolChoiceAny(WireModel):
    type: Literal["any"] = "any"
    disable_parallel_tool_use: bool | None = None


class ToolChoiceNone(WireModel):
    type: Literal["none"] = "none"


class ToolChoiceTool(WireModel):
    type: Literal["tool"] = "tool"
    name: str
    disable_parallel_tool_use: bool | None = None


ToolChoice = Annotated[
    Union[ToolChoiceAuto, ToolChoiceAny, ToolChoiceNone, ToolChoiceTool],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Thinking configuration
# ---------------------------------------------------------------------------


class ThinkingDisabled(WireModel):
    type: Literal["disabled"] = "disabled"


class ThinkingAdaptive(WireModel):
    """The model decides when and how much to think; effort via ``output_config``."""

    type: Literal["adaptive"] = "adaptive"


class ThinkingEnabled(WireModel):
    """Manual extended thinking with an explicit token budget."""

    type: Literal["enabled"] = "enabled"
    budget_tokens: int = Field(ge=MIN_THINKING_BUDGET)


ThinkingConfig = Annotated[
    Union[ThinkingDisabled, ThinkingAdaptive, ThinkingEnabled],
    Field(discriminator="type"),
]


class OutputConfig(WireModel):
    effort: EffortLevel | None = None


# ---------------------------------------------------------------------------
# Requests & responses
# ---------------------------------------------------------------------------


class RequestMetadata(WireModel):
    user_id: str | None = None


class ChatRequest(WireModel):
    """A complete chat request in canonical form."""

    model: str
    max_tokens: int
    messages: list[Message]
    system: str | list[TextBlock] | None = None
    tools: list[ToolDefinition] | None = None
    tool_choice: ToolChoice | None = None
    thinking: ThinkingConfig | None = None
    output_config: OutputConfig | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    stop_sequences: list[str] | None = None
    stream: bool | None = None
    metadata: RequestMetadata | None = None

    @property
    def system_text(self) -> str | None:
        """The system prompt flattened to a single string."""
        if self.system is None or isinstance(self.system, str):
            return self.system
        return "".join(block.text for block in self.system)


class Usage(WireModel):
    """Token accounting. Optional fields are present only when reported."""

    input_tokens: int
    output_tokens: int
    cache_creation_input_tokens: int | None = None
    cache_read_input_tokens: int | None = None
    thinking_tokens: int | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ChatResponse(WireModel):
    """An assistant reply in canonical form."""

    id: str | None = None
    type: Literal["message"] = "message"
    role: Literal["assistant"] = "assistant"
    model: str | None = None
    content: list[ContentBlock]
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: Usage | None = None

    @property
    def text(self) -> str:
        """All text content concatenated."""
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))

    @property
    def thinking_text(self) -> str | None:
        texts = [block.thinking for block in self.content if isinstance(block, ThinkingBlock)]
        return "".join(texts) if texts else None

    @property
    def stop(self) -> StopReason:
        """The stop reason normalized; a missing value counts as end of turn."""
        if self.stop_reason is None:
            return StopReason.END_TURN
        return stop_reason_from_anthropic(self.stop_reason)

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [block for block in self.content if isinstance(block, ToolUseBlock)]

    @property
    def has_tool_use(self) -> bool:
        return self.stop is StopReason.TOOL_USE


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


class EmbeddingRequest(WireModel):
    model: str
    input: str | list[str]

    @property
    def inputs(self) -> list[str]:
        """The input as a list, in order."""
        return [self.input] if isinstance(self.input, str) else list(self.input)


class EmbeddingUsage(WireModel):
    input_tokens: int


class EmbeddingResponse(WireModel):
    model: str | None = None
    vectors: list[list[float]]
    usage: EmbeddingUsage | None = None


# ---------------------------------------------------------------------------
# Wire codec & structural validation
# ---------------------------------------------------------------------------


def _decode(model: type[WireModel], data: Any, what: str) -> Any:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise SchemaViolationError(f"invalid {what}: {exc.errors()[0]['msg']}") from exc


def decode_chat_request(data: Any) -> ChatRequest:
    return _decode(ChatRequest, data, "chat request")  # type: ignore[no-any-return]


def decode_chat_response(data: Any) -> ChatResponse:
    return _decode(ChatResponse, data, "chat response")  # type: ignore[no-any-return]


def decode_embedding_request(data: Any) -> EmbeddingRequest:
    return _decode(EmbeddingRequest, data, "embedding request")  # type: ignore[no-any-return]


def decode_embedding_response(data: Any) -> EmbeddingResponse:
    return _decode(EmbeddingResponse, data, "embedding response")  # type: ignore[no-any-return]


def encode(value: WireModel) -> dict[str, Any]:
    """Encode any canonical value to its JSON-compatible wire form."""
    return value.to_wire()


def validate_tool_definition(tool: ToolDefinition) -> ToolDefinition:
    """Reject a tool whose name violates the shared identifier grammar."""
    if not is_valid_tool_name(tool.name):
        raise SchemaViolationError(
            f"tool name {tool.name!r} must match {TOOL_NAME_PATTERN.pattern}",
            path="tools",
        )
    return tool


def validate_request(request: ChatRequest) -> ChatRequest:
    """Check the structural invariants of a request destined for transport.

    - at least one message, and every message has at least one block;
    - tool names are unique and match the identifier grammar.
    """
    if not request.messages:
        raise SchemaViolationError("request has no messages", path="messages")
    for index, message in enumerate(request.messages):
        if not message.content:
            raise SchemaViolationError("message has no content blocks", path=f"messages[{index}]")
    if request.tools:
        seen: set[str] = set()
        for tool in request.tools:
            validate_tool_definition(tool)
            if tool.name in seen:
                raise SchemaViolationError(f"duplicate tool name {tool.name!r}", path="tools")
            seen.add(tool.name)
    return request
