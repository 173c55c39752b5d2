"""llmrelay — canonical LLM chat/embeddings model, OpenAI conversion and transport."""

from __future__ import annotations

from llmrelay.client import ChatOptions, ClientConfig, LLMClient
from llmrelay.convert import (
    canonical_request_to_openai,
    canonical_response_to_openai,
    openai_request_to_canonical,
    openai_response_to_canonical,
)
from llmrelay.proxy import CachePolicy, ToolNameTransform, inject_cache_control
from llmrelay.types import ChatRequest, ChatResponse, Message

__version__ = "0.1.0"

__all__ = [
    "CachePolicy",
    "ChatOptions",
    "ChatRequest",
    "ChatResponse",
    "ClientConfig",
    "LLMClient",
    "Message",
    "ToolNameTransform",
    "__version__",
    "canonical_request_to_openai",
    "canonical_response_to_openai",
    "inject_cache_control",
    "openai_request_to_canonical",
    "openai_response_to_canonical",
]
