"""Tests for provider transpilers and the transpiler factory."""

import pytest

from llmrelay.convert import AnthropicTranspiler, OpenAITranspiler, get_transpiler
from llmrelay.errors import UnsupportedConstructError
from llmrelay.types.canonical import (
    ChatRequest,
    EmbeddingRequest,
    Message,
    ThinkingEnabled,
)
from llmrelay.types.common import Provider


def _request() -> ChatRequest:
    return ChatRequest(
        model="m",
        max_tokens=64,
        system="Be brief.",
        messages=[Message.user_text("hi")],
        thinking=ThinkingEnabled(budget_tokens=4096),
    )


class TestGetTranspiler:
    def test_by_enum_and_name(self) -> None:
        assert isinstance(get_transpiler(Provider.ANTHROPIC), AnthropicTranspiler)
        assert isinstance(get_transpiler("openai"), OpenAITranspiler)
        assert isinstance(get_transpiler("openai-compatible"), OpenAITranspiler)

    def test_reasoning_effort_flag(self) -> None:
        transpiler = get_transpiler("openai", reasoning_effort=True)
        assert isinstance(transpiler, OpenAITranspiler)
        assert transpiler.reasoning_effort is True

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError, match="unknown provider"):
            get_transpiler("gemini")


class TestAnthropicTranspiler:
    def test_request_is_canonical_wire(self) -> None:
        payload = AnthropicTranspiler().to_provider(_request())
        assert payload == {
            "model": "m",
            "max_tokens": 64,
            "system": "Be brief.",
            "messages": [{"role": "user", "content": [{"type": "text", "text": "hi"}]}],
            "thinking": {"type": "enabled", "budget_tokens": 4096},
        }

    def test_response_decodes(self) -> None:
        response = AnthropicTranspiler().from_provider(
            {
                "id": "msg_1",
                "type": "message",
                "role": "assistant",
                "content": [{"type": "text", "text": "Hello"}],
                "stop_reason": "end_turn",
                "usage": {"input_tokens": 3, "output_tokens": 1},
            }
        )
        assert response.text == "Hello"

    def test_embeddings_unsupported(self) -> None:
        transpiler = AnthropicTranspiler()
        with pytest.raises(UnsupportedConstructError):
            transpiler.embeddings_to_provider(EmbeddingRequest(model="m", input="x"))
        with pytest.raises(UnsupportedConstructError):
            transpiler.embeddings_from_provider({"vectors": []})


class TestOpenAITranspiler:
    def test_thinking_only_with_reasoning_effort(self) -> None:
        assert "reasoning_effort" not in OpenAITranspiler().to_provider(_request())
        payload = OpenAITranspiler(reasoning_effort=True).to_provider(_request())
        assert payload["reasoning_effort"] == "medium"
        assert payload["messages"][0] == {"role": "system", "content": "Be brief."}

    def test_response(self) -> None:
        response = OpenAITranspiler().from_provider(
            {
                "choices": [
                    {
                        "index": 0,
                        "message": {"role": "assistant", "content": "Hi"},
                        "finish_reason": "length",
                    }
                ]
            }
        )
        assert response.text == "Hi"
        assert response.stop_reason == "max_tokens"

    def test_embeddings(self) -> None:
        transpiler = OpenAITranspiler()
        payload = transpiler.embeddings_to_provider(EmbeddingRequest(model="e", input=["a"]))
        assert payload == {"model": "e", "input": ["a"]}
        response = transpiler.embeddings_from_provider({"data": [{"embedding": [1.0], "index": 0}]})
        assert response.vectors == [[1.0]]
