"""OpenAI → canonical conversion for requests, responses and embeddings.

Key differences handled here:
- Leading system/developer messages (and a dedicated ``system`` field, when a
  gateway sends one) merge into the canonical ``system`` field.
- ``role: "tool"`` messages become tool result blocks inside a user message.
- JSON-string tool arguments are parsed; malformed JSON is an error.
- Content given as a bare string or a list of parts normalizes to blocks.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from llmrelay.convert.thinking import ThinkingMode, thinking_from_effort
from llmrelay.convert.to_openai import TOOL_ERROR_PREFIX
from llmrelay.errors import (
    MalformedInputError,
    SchemaViolationError,
    UnsupportedConstructError,
)
from llmrelay.types.canonical import (
    Base64ImageSource,
    ChatRequest,
    ChatResponse,
    ContentBlock,
    EmbeddingRequest,
    EmbeddingResponse,
    EmbeddingUsage,
    ImageBlock,
    Message,
    RequestMetadata,
    TextBlock,
    ToolChoiceAny,
    ToolChoiceAuto,
    ToolChoiceNone,
    ToolChoiceTool,
    ToolDefinition,
    ToolResultBlock,
    ToolResultPart,
    ToolUseBlock,
    URLImageSource,
    Usage,
)
from llmrelay.types.canonical import ToolChoice as CanonicalToolChoice
from llmrelay.types.common import openai_to_anthropic_stop_reason
from llmrelay.types.openai import (
    ChatCompletionRequest,
    ChatMessage,
    CompletionUsage,
    ContentPart,
    ImageURLPart,
    NamedToolChoice,
    TextPart,
    Tool,
    ToolCall,
    decode_chat_completion,
    decode_chat_completion_request,
    decode_embeddings_request,
    decode_embeddings_response,
)

logger = logging.getLogger(__name__)

SYSTEM_SEPARATOR = "\n\n"

_SYSTEM_ROLES = frozenset({"system", "developer"})
_EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}

SystemPart = str | list[TextBlock]


def openai_request_to_canonical(
    payload: ChatCompletionRequest | dict[str, Any],
    *,
    model: str | None = None,
    default_max_tokens: int | None = None,
    thinking_mode: ThinkingMode = "budget",
) -> ChatRequest:
    """Convert an OpenAI chat completion request into a canonical request.

    Args:
        payload: The inbound request, as a model or decoded JSON.
        model: Overrides the request's model id (proxies often remap it).
        default_max_tokens: Used only when the request carries neither
            ``max_tokens`` nor ``max_completion_tokens``.
        thinking_mode: How ``reasoning_effort`` maps onto canonical thinking.

    Raises:
        SchemaViolationError: the payload does not match the OpenAI schema, or
            leaves nothing to send.
        MalformedInputError: tool arguments are not valid JSON, or a required
            value such as ``max_tokens`` is missing.
        UnsupportedConstructError: the request uses a feature with no
            canonical representation (``n > 1``, audio parts, custom tools).
    """
    request = decode_chat_completion_request(payload)

    if request.n is not None and request.n != 1:
        raise UnsupportedConstructError(f"n={request.n}: only a single choice is representable", path="n")

    system_parts: list[SystemPart] = []
    if request.system is not None:
        system_parts.append(_system_content(request.system, "system"))

    messages = _messages_to_canonical(request.messages, system_parts)
    if not messages:
        raise SchemaViolationError("request has no conversation messages", path="messages")

    resolved_model = model or request.model
    if not resolved_model:
        raise SchemaViolationError("request has no model", path="model")

    max_tokens = request.max_completion_tokens or request.max_tokens or default_max_tokens
    if max_tokens is None:
        raise MalformedInputError("max_tokens is required", path="max_tokens")

    fields: dict[str, Any] = {
        "model": resolved_model,
        "max_tokens": max_tokens,
        "messages": messages,
    }
    system = _merge_system(system_parts)
    if system is not None:
        fields["system"] = system
    if request.tools is not None:
        fields["tools"] = [_tool_to_canonical(tool, f"tools[{i}]") for i, tool in enumerate(request.tools)]
    tool_choice = _tool_choice_to_canonical(request)
    if tool_choice is not None:
        fields["tool_choice"] = tool_choice
    if request.temperature is not None:
        fields["temperature"] = request.temperature
    if request.top_p is not None:
        fields["top_p"] = request.top_p
    if request.stop is not None:
        fields["stop_sequences"] = [request.stop] if isinstance(request.stop, str) else list(request.stop)
    if request.stream is not None:
        fields["stream"] = request.stream
    if request.user is not None:
        fields["metadata"] = RequestMetadata(user_id=request.user)
    if request.reasoning_effort is not None:
        thinking, output_config = thinking_from_effort(request.reasoning_effort, thinking_mode)
        fields["thinking"] = thinking
        if output_config is not None:
            fields["output_config"] = output_config

    if request.model_extra:
        logger.debug("Dropping OpenAI-only request fields: %s", sorted(request.model_extra))

    return ChatRequest(**fields)


def openai_response_to_canonical(payload: Any) -> ChatResponse:
    """Convert an OpenAI chat completion into a canonical response.

    Only the first choice is kept. ``reasoning_content`` is never turned
    back into thinking blocks.
    """
    completion = decode_chat_completion(payload)
    if not completion.choices:
        raise MalformedInputError("response has no choices", path="choices")
    if len(completion.choices) > 1:
        logger.debug("Keeping the first of %d choices", len(completion.choices))

    choice = completion.choices[0]
    message = choice.message
    content: list[ContentBlock] = []
    if message.content:
        content.append(TextBlock(text=message.content))
    elif message.refusal:
        content.append(TextBlock(text=message.refusal))
    for index, tool_call in enumerate(message.tool_calls or []):
        content.append(_tool_call_to_canonical(tool_call, f"choices[0].message.tool_calls[{index}]"))

    fields: dict[str, Any] = {"content": content}
    if completion.id is not None:
        fields["id"] = completion.id
    if completion.model is not None:
        fields["model"] = completion.model
    if choice.finish_reason is not None:
        fields["stop_reason"] = openai_to_anthropic_stop_reason(choice.finish_reason)
    if completion.usage is not None:
        fields["usage"] = _usage_to_canonical(completion.usage)
    return ChatResponse(**fields)


def openai_embedding_request_to_canonical(payload: Any) -> EmbeddingRequest:
    request = decode_embeddings_request(payload)
    dropped = [name for name in ("encoding_format", "dimensions") if getattr(request, name) is not None]
    if dropped:
        logger.debug("Dropping OpenAI-only embedding fields: %s", dropped)
    return EmbeddingRequest(model=request.model, input=request.input)


def openai_embedding_response_to_canonical(payload: Any) -> EmbeddingResponse:
    """Convert an OpenAI embeddings response, ordering vectors by ``index``.

    Raises:
        MalformedInputError: the indices are not exactly ``0..n-1``.
    """
    response = decode_embeddings_response(payload)
    ordered = sorted(response.data, key=lambda item: item.index)
    if [item.index for item in ordered] != list(range(len(ordered))):
        raise MalformedInputError("embedding indices are not contiguous from 0", path="data")

    fields: dict[str, Any] = {"vectors": [item.embedding for item in ordered]}
    if response.model is not None:
        fields["model"] = response.model
    if response.usage is not None:
        fields["usage"] = EmbeddingUsage(input_tokens=response.usage.prompt_tokens)
    return EmbeddingResponse(**fields)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


def _messages_to_canonical(
    inbound: list[ChatMessage], system_parts: list[SystemPart]
) -> list[Message]:
    """Walk the OpenAI message list, collecting system content as it goes.

    Consecutive tool messages, and a user message directly after them, are
    folded into a single canonical user message.
    """
    messages: list[Message] = []
    started = False
    open_tool_group = False

    for index, message in enumerate(inbound):
        path = f"messages[{index}]"
        role = message.role
        _log_message_extras(message, path)

        if role in _SYSTEM_ROLES:
            if not started:
                if message.content is not None:
                    system_parts.append(_system_content(message.content, path))
                continue
            # A mid-conversation instruction keeps its position.
            blocks: list[ContentBlock] = list(_text_blocks(message.content, path))
            if blocks:
                messages.append(Message(role="system", content=blocks))
            open_tool_group = False
            continue

        started = True
        if role == "tool":
            result = _tool_message_to_result(message, path)
            if open_tool_group:
                messages[-1] = _extend(messages[-1], [result])
            else:
                messages.append(Message(role="user", content=[result]))
                open_tool_group = True
        elif role == "user":
            user_blocks = _user_content(message.content, path)
            if not user_blocks:
                logger.debug("Skipping user message with no content parts at %s", path)
            elif open_tool_group:
                messages[-1] = _extend(messages[-1], user_blocks)
            elif isinstance(message.content, str):
                messages.append(Message(role="user", content=message.content))
            else:
                messages.append(Message(role="user", content=user_blocks))
            open_tool_group = False
        elif role == "assistant":
            assistant_blocks = _assistant_content(message, path)
            open_tool_group = False
            if not assistant_blocks:
                logger.debug("Skipping empty assistant message at %s", path)
                continue
            if isinstance(message.content, str) and len(assistant_blocks) == 1:
                messages.append(Message(role="assistant", content=message.content))
            else:
                messages.append(Message(role="assistant", content=assistant_blocks))
        else:
            raise UnsupportedConstructError(f"unknown role {role!r}", path=path)

    return messages


def _log_message_extras(message: ChatMessage, path: str) -> None:
    if message.name is not None:
        logger.debug("Dropping message name at %s", path)
    if message.model_extra:
        logger.debug("Dropping OpenAI-only message fields at %s: %s", path, sorted(message.model_extra))


def _extend(message: Message, blocks: list[ContentBlock]) -> Message:
    return message.model_copy(update={"content": [*message.content, *blocks]})


def _system_content(content: str | list[ContentPart], path: str) -> SystemPart:
    if isinstance(content, str):
        return content
    return _text_blocks(content, path)


def _text_blocks(content: str | list[ContentPart] | None, path: str) -> list[TextBlock]:
    """Read content that may only hold text; anything else is refused, never dropped."""
    if content is None:
        return []
    if isinstance(content, str):
        return [TextBlock(text=content)]
    blocks: list[TextBlock] = []
    for index, part in enumerate(content):
        if not isinstance(part, TextPart):
            raise UnsupportedConstructError(
                f"{part.type!r} part in system content", path=f"{path}.content[{index}]"
            )
        blocks.append(TextBlock(text=part.text))
    return blocks


def _merge_system(parts: list[SystemPart]) -> str | list[TextBlock] | None:
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    if all(isinstance(part, str) for part in parts):
        return SYSTEM_SEPARATOR.join(part for part in parts if isinstance(part, str))
    merged: list[TextBlock] = []
    for part in parts:
        if isinstance(part, str):
            merged.append(TextBlock(text=part))
        else:
            merged.extend(part)
    return merged


def _user_content(content: str | list[ContentPart] | None, path: str) -> list[ContentBlock]:
    if content is None:
        return [TextBlock(text="")]
    if isinstance(content, str):
        return [TextBlock(text=content)]
    blocks: list[ContentBlock] = []
    for index, part in enumerate(content):
        part_path = f"{path}.content[{index}]"
        if isinstance(part, TextPart):
            blocks.append(TextBlock(text=part.text))
        elif isinstance(part, ImageURLPart):
            blocks.append(_image_to_canonical(part, part_path))
        else:
            raise UnsupportedConstructError(f"{part.type!r} content part", path=part_path)
    return blocks


def _assistant_content(message: ChatMessage, path: str) -> list[ContentBlock]:
    if message.model_extra and "function_call" in message.model_extra:
        raise UnsupportedConstructError(
            "legacy function_call; send tool_calls instead", path=f"{path}.function_call"
        )
    blocks: list[ContentBlock] = []
    content = message.content
    if isinstance(content, str):
        if content:
            blocks.append(TextBlock(text=content))
    elif content is not None:
        for index, part in enumerate(content):
            if not isinstance(part, TextPart):
                raise UnsupportedConstructError(
                    f"{part.type!r} part in an assistant message", path=f"{path}.content[{index}]"
                )
            blocks.append(TextBlock(text=part.text))
    for index, tool_call in enumerate(message.tool_calls or []):
        blocks.append(_tool_call_to_canonical(tool_call, f"{path}.tool_calls[{index}]"))
    return blocks


def _tool_message_to_result(message: ChatMessage, path: str) -> ToolResultBlock:
    if not message.tool_call_id:
        raise SchemaViolationError("tool message without tool_call_id", path=path)

    fields: dict[str, Any] = {"tool_use_id": message.tool_call_id}
    content = message.content
    if isinstance(content, str):
        if content.startswith(TOOL_ERROR_PREFIX):
            fields["is_error"] = True
            content = content[len(TOOL_ERROR_PREFIX) :]
        fields["content"] = content
    elif content is not None:
        parts: list[ToolResultPart] = list(_text_blocks(content, path))
        if parts and isinstance(parts[0], TextBlock) and parts[0].text.startswith(TOOL_ERROR_PREFIX):
            fields["is_error"] = True
            parts[0] = TextBlock(text=parts[0].text[len(TOOL_ERROR_PREFIX) :])
        fields["content"] = parts
    return ToolResultBlock(**fields)


def _tool_call_to_canonical(tool_call: ToolCall, path: str) -> ToolUseBlock:
    return ToolUseBlock(
        id=tool_call.id,
        name=tool_call.function.name,
        input=parse_arguments(tool_call.function.arguments, path=f"{path}.function.arguments"),
    )


def parse_arguments(raw: str, *, path: str | None = None) -> dict[str, Any]:
    """Parse a JSON-string tool argument into a structured object.

    An empty string means "no arguments". Anything else must be a JSON object.

    Raises:
        MalformedInputError: *raw* is not valid JSON or not an object.
    """
    if not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedInputError(f"tool arguments are not valid JSON: {exc.msg}", path=path) from exc
    if not isinstance(value, dict):
        raise MalformedInputError("tool arguments must be a JSON object", path=path)
    return value


def _image_to_canonical(part: ImageURLPart, path: str) -> ImageBlock:
    url = part.image_url.url
    if url.startswith("data:"):
        parsed = parse_data_url(url)
        if parsed is None:
            raise MalformedInputError("image data URL is not base64-encoded", path=path)
        media_type, data = parsed
        return ImageBlock(source=Base64ImageSource(media_type=media_type, data=data))
    return ImageBlock(source=URLImageSource(url=url))


def parse_data_url(url: str) -> tuple[str, str] | None:
    """Split ``data:<media>;base64,<data>`` into ``(media, data)``."""
    if not url.startswith("data:"):
        return None
    header, sep, data = url[len("data:") :].partition(",")
    if not sep or not header.endswith(";base64"):
        return None
    return header[: -len(";base64")], data


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


def _tool_to_canonical(tool: Tool, path: str) -> ToolDefinition:
    if tool.type != "function" or tool.function is None:
        raise UnsupportedConstructError(f"tool of type {tool.type!r}", path=path)
    function = tool.function
    fields: dict[str, Any] = {
        "name": function.name,
        "input_schema": function.parameters if function.parameters is not None else _EMPTY_SCHEMA,
    }
    if function.description is not None:
        fields["description"] = function.description
    if function.strict is not None:
        logger.debug("Dropping strict=%s on tool %s", function.strict, function.name)
    return ToolDefinition(**fields)


def _tool_choice_to_canonical(request: ChatCompletionRequest) -> CanonicalToolChoice | None:
    choice = request.tool_choice
    parallel = request.parallel_tool_calls
    disable = None if parallel is None else not parallel

    if choice is None:
        return ToolChoiceAuto(disable_parallel_tool_use=disable) if disable is not None else None
    if isinstance(choice, NamedToolChoice):
        return _with_parallel(ToolChoiceTool(name=choice.function.name), disable)
    if choice == "auto":
        return _with_parallel(ToolChoiceAuto(), disable)
    if choice == "required":
        return _with_parallel(ToolChoiceAny(), disable)
    if choice == "none":
        if disable is not None:
            logger.debug("Dropping parallel_tool_calls: tool_choice is 'none'")
        return ToolChoiceNone()
    raise UnsupportedConstructError(f"tool_choice {choice!r}", path="tool_choice")


def _with_parallel(choice: CanonicalToolChoice, disable: bool | None) -> CanonicalToolChoice:
    if disable is None:
        return choice
    return choice.model_copy(update={"disable_parallel_tool_use": disable})


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


def _usage_to_canonical(usage: CompletionUsage) -> Usage:
    fields: dict[str, Any] = {
        "input_tokens": usage.prompt_tokens,
        "output_tokens": usage.completion_tokens,
    }
    if usage.prompt_tokens_details is not None and usage.prompt_tokens_details.cached_tokens is not None:
        fields["cache_read_input_tokens"] = usage.prompt_tokens_details.cached_tokens
    details = usage.completion_tokens_details
    if details is not None and details.reasoning_tokens is not None:
        fields["thinking_tokens"] = details.reasoning_tokens
    return Usage(**fields)
