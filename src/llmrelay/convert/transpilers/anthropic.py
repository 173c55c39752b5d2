"""Anthropic transpiler — the canonical format is Anthropic's wire schema.

Conversion is the canonical codec itself: requests encode unchanged and
responses decode unchanged. Anthropic has no embeddings endpoint, so the
embedding directions are refused.
"""

from typing import Any

from llmrelay.errors import UnsupportedConstructError
from llmrelay.types.canonical import (
    ChatRequest,
    ChatResponse,
    EmbeddingRequest,
    EmbeddingResponse,
    decode_chat_response,
    encode,
)


class AnthropicTranspiler:
    """Identity codec between canonical values and Anthropic's Messages API."""

    def to_provider(self, request: ChatRequest) -> dict[str, Any]:
        return encode(request)

    def from_provider(self, response: dict[str, Any]) -> ChatResponse:
        return decode_chat_response(response)

    def embeddings_to_provider(self, request: EmbeddingRequest) -> dict[str, Any]:
        raise UnsupportedConstructError("the anthropic provider has no embeddings endpoint")

    def embeddings_from_provider(self, response: dict[str, Any]) -> EmbeddingResponse:
        raise UnsupportedConstructError("the anthropic provider has no embeddings endpoint")
