"""Canonical → OpenAI conversion for requests, responses and embeddings.

Key differences handled here:
- The system prompt becomes a leading ``role: "system"`` message.
- Each tool result block becomes its own ``role: "tool"`` message, in order.
- Tool-use inputs are re-serialized to JSON strings.
- Thinking blocks have no counterpart and are dropped.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from llmrelay.convert.thinking import reasoning_effort_for
from llmrelay.errors import SchemaViolationError, UnsupportedConstructError
from llmrelay.types.canonical import (
    Base64ImageSource,
    ChatRequest,
    ChatResponse,
    EmbeddingRequest,
    EmbeddingResponse,
    ImageBlock,
    Message,
    RedactedThinkingBlock,
    TextBlock,
    ThinkingBlock,
    ThinkingDisabled,
    ToolChoiceAny,
    ToolChoiceAuto,
    ToolChoiceNone,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
)
from llmrelay.types.canonical import ToolChoice as CanonicalToolChoice
from llmrelay.types.common import anthropic_to_openai_finish_reason
from llmrelay.types.openai import (
    ChatCompletion,
    ChatCompletionRequest,
    ChatMessage,
    Choice,
    CompletionTokensDetails,
    CompletionUsage,
    ContentPart,
    EmbeddingObject,
    EmbeddingsRequest,
    EmbeddingsResponse,
    EmbeddingsUsage,
    FunctionCall,
    FunctionDefinition,
    ImageURL,
    ImageURLPart,
    NamedFunction,
    NamedToolChoice,
    PromptTokensDetails,
    ResponseMessage,
    TextPart,
    Tool,
    ToolCall,
)

logger = logging.getLogger(__name__)

# Prefix marking a failed tool result; OpenAI tool messages have no error flag.
TOOL_ERROR_PREFIX = "[tool_error] "


def canonical_request_to_openai(
    request: ChatRequest,
    *,
    reasoning_effort: bool = False,
) -> ChatCompletionRequest:
    """Convert a canonical chat request into an OpenAI chat completion request.

    Args:
        request: The canonical request.
        reasoning_effort: Whether the target accepts ``reasoning_effort``. When
            False, thinking configuration is omitted.

    Raises:
        UnsupportedConstructError: a block or tool has no OpenAI representation.
        SchemaViolationError: a block appears in a role that cannot hold it.
    """
    messages: list[ChatMessage] = []
    if request.system == []:
        logger.debug("Omitting empty system block list")
    elif request.system is not None:
        messages.append(ChatMessage(role="system", content=_system_to_openai(request.system)))
    for index, message in enumerate(request.messages):
        messages.extend(_message_to_openai(message, f"messages[{index}]"))

    fields: dict[str, Any] = {
        "model": request.model,
        "max_tokens": request.max_tokens,
        "messages": messages,
    }
    if request.tools is not None:
        fields["tools"] = [_tool_to_openai(tool, f"tools[{i}]") for i, tool in enumerate(request.tools)]
    if request.tool_choice is not None:
        fields.update(_tool_choice_to_openai(request.tool_choice))
    if request.temperature is not None:
        fields["temperature"] = request.temperature
    if request.top_p is not None:
        fields["top_p"] = request.top_p
    if request.stop_sequences is not None:
        fields["stop"] = list(request.stop_sequences)
    if request.stream is not None:
        fields["stream"] = request.stream
    if request.metadata is not None and request.metadata.user_id is not None:
        fields["user"] = request.metadata.user_id
    if request.top_k is not None:
        logger.debug("Dropping top_k=%s: no OpenAI counterpart", request.top_k)

    effort = reasoning_effort_for(request.thinking, request.output_config) if reasoning_effort else None
    if effort is not None:
        fields["reasoning_effort"] = effort
    elif request.thinking is not None and not isinstance(request.thinking, ThinkingDisabled):
        logger.debug("Dropping thinking config %r: target has no reasoning_effort", request.thinking.type)

    return ChatCompletionRequest(**fields)


def canonical_response_to_openai(
    response: ChatResponse,
    *,
    created: int | None = None,
    include_reasoning: bool = False,
) -> ChatCompletion:
    """Convert a canonical response into an OpenAI chat completion.

    Thinking text is dropped unless *include_reasoning* is set, in which case
    it is exposed as the non-standard ``reasoning_content`` field used by
    several OpenAI-compatible gateways.
    """
    texts: list[str] = []
    reasoning: list[str] = []
    tool_calls: list[ToolCall] = []

    for index, block in enumerate(response.content):
        path = f"content[{index}]"
        if isinstance(block, TextBlock):
            texts.append(block.text)
        elif isinstance(block, ThinkingBlock):
            reasoning.append(block.thinking)
        elif isinstance(block, RedactedThinkingBlock):
            continue
        elif isinstance(block, ToolUseBlock):
            tool_calls.append(_tool_use_to_openai(block))
        else:
            raise UnsupportedConstructError(
                f"{block.type!r} block in an assistant response", path=path
            )

    message_fields: dict[str, Any] = {"content": "".join(texts) if texts else None}
    if include_reasoning and reasoning:
        message_fields["reasoning_content"] = "".join(reasoning)
    if tool_calls:
        message_fields["tool_calls"] = tool_calls

    finish_reason = (
        anthropic_to_openai_finish_reason(response.stop_reason)
        if response.stop_reason is not None
        else None
    )

    fields: dict[str, Any] = {
        "object": "chat.completion",
        "choices": [
            Choice(index=0, message=ResponseMessage(**message_fields), finish_reason=finish_reason)
        ],
    }
    if response.id is not None:
        fields["id"] = response.id
    if created is not None:
        fields["created"] = created
    if response.model is not None:
        fields["model"] = response.model
    if response.usage is not None:
        fields["usage"] = _usage_to_openai(response)
    return ChatCompletion(**fields)


def canonical_embedding_request_to_openai(request: EmbeddingRequest) -> EmbeddingsRequest:
    return EmbeddingsRequest(model=request.model, input=request.input)


def canonical_embedding_response_to_openai(response: EmbeddingResponse) -> EmbeddingsResponse:
    data = [
        EmbeddingObject(object="embedding", embedding=vector, index=index)
        for index, vector in enumerate(response.vectors)
    ]
    fields: dict[str, Any] = {"object": "list", "data": data}
    if response.model is not None:
        fields["model"] = response.model
    if response.usage is not None:
        tokens = response.usage.input_tokens
        fields["usage"] = EmbeddingsUsage(prompt_tokens=tokens, total_tokens=tokens)
    return EmbeddingsResponse(**fields)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


def _system_to_openai(system: str | list[TextBlock]) -> str | list[ContentPart]:
    if isinstance(system, str):
        return system
    if system and any(block.cache_control is not None for block in system):
        logger.debug("Dropping cache_control on system blocks: no OpenAI counterpart")
    return [TextPart(text=block.text) for block in system]


def _message_to_openai(message: Message, path: str) -> list[ChatMessage]:
    if not message.content:
        raise SchemaViolationError("message has no content blocks", path=path)
    if message.role == "assistant":
        converted = _assistant_to_openai(message, path)
        return [converted] if converted is not None else []
    if message.role == "system":
        return [ChatMessage(role="system", content=_system_message_content(message, path))]
    return _user_to_openai(message, path)


def _system_message_content(message: Message, path: str) -> str | list[ContentPart]:
    blocks: list[TextBlock] = []
    for index, block in enumerate(message.content):
        if not isinstance(block, TextBlock):
            raise UnsupportedConstructError(
                f"{block.type!r} block in a system message", path=f"{path}.content[{index}]"
            )
        blocks.append(block)
    return blocks[0].text if len(blocks) == 1 else [TextPart(text=b.text) for b in blocks]


def _user_to_openai(message: Message, path: str) -> list[ChatMessage]:
    """Split a user message into user and tool messages, preserving block order."""
    out: list[ChatMessage] = []
    pending: list[ContentPart] = []

    def flush() -> None:
        if not pending:
            return
        if len(pending) == 1 and isinstance(pending[0], TextPart):
            out.append(ChatMessage(role="user", content=pending[0].text))
        else:
            out.append(ChatMessage(role="user", content=list(pending)))
        pending.clear()

    for index, block in enumerate(message.content):
        block_path = f"{path}.content[{index}]"
        if isinstance(block, ToolResultBlock):
            flush()
            out.append(_tool_result_to_openai(block, block_path))
        elif isinstance(block, TextBlock):
            pending.append(TextPart(text=block.text))
        elif isinstance(block, ImageBlock):
            pending.append(_image_to_openai(block))
        elif isinstance(block, (ThinkingBlock, RedactedThinkingBlock)):
            logger.debug("Dropping %s block at %s", block.type, block_path)
        elif isinstance(block, ToolUseBlock):
            raise SchemaViolationError("tool_use block in a user message", path=block_path)
        else:
            raise UnsupportedConstructError(f"{block.type!r} block", path=block_path)
    flush()
    return out


def _assistant_to_openai(message: Message, path: str) -> ChatMessage | None:
    texts: list[str] = []
    tool_calls: list[ToolCall] = []

    for index, block in enumerate(message.content):
        block_path = f"{path}.content[{index}]"
        if isinstance(block, TextBlock):
            texts.append(block.text)
        elif isinstance(block, ToolUseBlock):
            tool_calls.append(_tool_use_to_openai(block))
        elif isinstance(block, (ThinkingBlock, RedactedThinkingBlock)):
            logger.debug("Dropping %s block at %s", block.type, block_path)
        elif isinstance(block, ToolResultBlock):
            raise SchemaViolationError("tool_result block in an assistant message", path=block_path)
        else:
            raise UnsupportedConstructError(
                f"{block.type!r} block in an assistant message", path=block_path
            )

    if not texts and not tool_calls:
        logger.debug("Omitting assistant message at %s: nothing left after dropping thinking", path)
        return None

    fields: dict[str, Any] = {"role": "assistant"}
    if len(texts) == 1:
        fields["content"] = texts[0]
    elif texts:
        fields["content"] = [TextPart(text=text) for text in texts]
    if tool_calls:
        fields["tool_calls"] = tool_calls
    return ChatMessage(**fields)


def _tool_use_to_openai(block: ToolUseBlock) -> ToolCall:
    arguments = json.dumps(block.input, ensure_ascii=False)
    return ToolCall(id=block.id, function=FunctionCall(name=block.name, arguments=arguments))


def _tool_result_to_openai(block: ToolResultBlock, path: str) -> ChatMessage:
    content: str | list[ContentPart]
    if block.content is None:
        content = ""
    elif isinstance(block.content, str):
        content = block.content
    else:
        parts: list[ContentPart] = []
        for index, part in enumerate(block.content):
            if not isinstance(part, TextBlock):
                raise UnsupportedConstructError(
                    "image content in a tool result", path=f"{path}.content[{index}]"
                )
            parts.append(TextPart(text=part.text))
        content = parts or ""

    if block.is_error:
        if isinstance(content, str):
            content = TOOL_ERROR_PREFIX + content
        elif content and isinstance(content[0], TextPart):
            content = [TextPart(text=TOOL_ERROR_PREFIX + content[0].text), *content[1:]]
        else:
            content = TOOL_ERROR_PREFIX
    return ChatMessage(role="tool", tool_call_id=block.tool_use_id, content=content)


def _image_to_openai(block: ImageBlock) -> ImageURLPart:
    source = block.source
    if isinstance(source, Base64ImageSource):
        url = f"data:{source.media_type};base64,{source.data}"
    else:
        url = source.url
    return ImageURLPart(image_url=ImageURL(url=url))


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


def _tool_to_openai(tool: ToolDefinition, path: str) -> Tool:
    extra = tool.model_extra or {}
    if "type" in extra:
        raise UnsupportedConstructError(f"server tool of type {extra['type']!r}", path=path)
    fields: dict[str, Any] = {"name": tool.name, "parameters": tool.input_schema}
    if tool.description is not None:
        fields["description"] = tool.description
    return Tool(type="function", function=FunctionDefinition(**fields))


def _tool_choice_to_openai(choice: CanonicalToolChoice) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if isinstance(choice, ToolChoiceAuto):
        fields["tool_choice"] = "auto"
    elif isinstance(choice, ToolChoiceAny):
        fields["tool_choice"] = "required"
    elif isinstance(choice, ToolChoiceNone):
        fields["tool_choice"] = "none"
        return fields
    else:
        fields["tool_choice"] = NamedToolChoice(function=NamedFunction(name=choice.name))
    if choice.disable_parallel_tool_use is not None:
        fields["parallel_tool_calls"] = not choice.disable_parallel_tool_use
    return fields


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


def _usage_to_openai(response: ChatResponse) -> CompletionUsage:
    usage = response.usage
    assert usage is not None
    fields: dict[str, Any] = {
        "prompt_tokens": usage.input_tokens,
        "completion_tokens": usage.output_tokens,
        "total_tokens": usage.total_tokens,
    }
    if usage.cache_read_input_tokens is not None:
        fields["prompt_tokens_details"] = PromptTokensDetails(
            cached_tokens=usage.cache_read_input_tokens
        )
    if usage.thinking_tokens is not None:
        fields["completion_tokens_details"] = CompletionTokensDetails(
            reasoning_tokens=usage.thinking_tokens
        )
    return CompletionUsage(**fields)
