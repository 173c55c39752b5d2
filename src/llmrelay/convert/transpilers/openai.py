"""OpenAI transpiler — wraps the canonical <-> OpenAI conversion functions.

Key differences from canonical:
- System prompt is a leading ``role: "system"`` message.
- Tool results are separate ``role: "tool"`` messages.
- Tool call arguments are JSON strings.
- Thinking is only expressible as ``reasoning_effort`` (opt-in).
"""

from typing import Any

from llmrelay.convert.to_canonical import (
    openai_embedding_response_to_canonical,
    openai_response_to_canonical,
)
from llmrelay.convert.to_openai import (
    canonical_embedding_request_to_openai,
    canonical_request_to_openai,
)
from llmrelay.types.canonical import (
    ChatRequest,
    ChatResponse,
    EmbeddingRequest,
    EmbeddingResponse,
)


class OpenAITranspiler:
    """Converts between canonical values and OpenAI's Chat Completions format."""

    def __init__(self, *, reasoning_effort: bool = False) -> None:
        self.reasoning_effort = reasoning_effort

    def to_provider(self, request: ChatRequest) -> dict[str, Any]:
        converted = canonical_request_to_openai(request, reasoning_effort=self.reasoning_effort)
        return converted.to_wire()

    def from_provider(self, response: dict[str, Any]) -> ChatResponse:
        return openai_response_to_canonical(response)

    def embeddings_to_provider(self, request: EmbeddingRequest) -> dict[str, Any]:
        return canonical_embedding_request_to_openai(request).to_wire()

    def embeddings_from_provider(self, response: dict[str, Any]) -> EmbeddingResponse:
        return openai_embedding_response_to_canonical(response)
