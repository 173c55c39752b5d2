"""Canonical data model and the alternate (OpenAI) wire models."""

from llmrelay.types.canonical import (
    Base64ImageSource,
    CacheControl,
    ChatRequest,
    ChatResponse,
    ContentBlock,
    EmbeddingRequest,
    EmbeddingResponse,
    EmbeddingUsage,
    ImageBlock,
    Message,
    OutputConfig,
    RedactedThinkingBlock,
    RequestMetadata,
    TextBlock,
    ThinkingAdaptive,
    ThinkingBlock,
    ThinkingConfig,
    ThinkingDisabled,
    ThinkingEnabled,
    ToolChoice,
    ToolChoiceAny,
    ToolChoiceAuto,
    ToolChoiceNone,
    ToolChoiceTool,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
    UnknownBlock,
    URLImageSource,
    Usage,
    decode_chat_request,
    decode_chat_response,
    decode_embedding_request,
    decode_embedding_response,
    encode,
    validate_request,
    validate_tool_definition,
)
from llmrelay.types.common import EffortLevel, Provider, StopReason, validate_tool_name

__all__ = [
    "Base64ImageSource",
    "CacheControl",
    "ChatRequest",
    "ChatResponse",
    "ContentBlock",
    "EffortLevel",
    "EmbeddingRequest",
    "EmbeddingResponse",
    "EmbeddingUsage",
    "ImageBlock",
    "Message",
    "OutputConfig",
    "Provider",
    "RedactedThinkingBlock",
    "RequestMetadata",
    "StopReason",
    "TextBlock",
    "ThinkingAdaptive",
    "ThinkingBlock",
    "ThinkingConfig",
    "ThinkingDisabled",
    "ThinkingEnabled",
    "ToolChoice",
    "ToolChoiceAny",
    "ToolChoiceAuto",
    "ToolChoiceNone",
    "ToolChoiceTool",
    "ToolDefinition",
    "ToolResultBlock",
    "ToolUseBlock",
    "URLImageSource",
    "UnknownBlock",
    "Usage",
    "decode_chat_request",
    "decode_chat_response",
    "decode_embedding_request",
    "decode_embedding_response",
    "encode",
    "validate_request",
    "validate_tool_definition",
    "validate_tool_name",
]
