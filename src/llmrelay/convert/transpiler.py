"""Transpiler protocol — converts between canonical values and a provider's wire format.

Each provider has a concrete transpiler implementing both directions:
canonical request -> provider payload and provider response -> ChatResponse.
"""

from typing import Any, Protocol

from llmrelay.types.canonical import (
    ChatRequest,
    ChatResponse,
    EmbeddingRequest,
    EmbeddingResponse,
)


class Transpiler(Protocol):
    """Protocol for provider-specific wire format transpilers."""

    def to_provider(self, request: ChatRequest) -> dict[str, Any]:
        """Convert a canonical request into the provider's JSON payload."""
        ...

    def from_provider(self, response: dict[str, Any]) -> ChatResponse:
        """Convert a provider's decoded JSON response into a canonical response."""
        ...

    def embeddings_to_provider(self, request: EmbeddingRequest) -> dict[str, Any]:
        """Convert a canonical embedding request into the provider's JSON payload."""
        ...

    def embeddings_from_provider(self, response: dict[str, Any]) -> EmbeddingResponse:
        """Convert a provider's embeddings response into canonical vectors."""
        ...
