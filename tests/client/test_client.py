"""Tests for LLMClient."""

import json
from typing import Any

import pytest

from llmrelay.client.client import CallState, ChatOptions, LLMClient, endpoint_url
from llmrelay.client.config import ClientConfig
from llmrelay.client.transport import Credentials, Endpoint
from llmrelay.errors import (
    ConfigurationError,
    MalformedResponseError,
    RateLimitedError,
    SchemaViolationError,
    UnsupportedConstructError,
)
from llmrelay.types.canonical import (
    ChatRequest,
    ImageBlock,
    Message,
    TextBlock,
    ThinkingAdaptive,
    ToolDefinition,
    ToolResultBlock,
    URLImageSource,
)
from llmrelay.types.common import EffortLevel

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_ANTHROPIC_REPLY = {
    "id": "msg_1",
    "type": "message",
    "role": "assistant",
    "model": "claude-sonnet-4-5",
    "content": [{"type": "text", "text": "Hello!"}],
    "stop_reason": "end_turn",
    "usage": {"input_tokens": 9, "output_tokens": 2},
}

_OPENAI_REPLY = {
    "id": "chatcmpl-1",
    "object": "chat.completion",
    "model": "gpt-4o",
    "choices": [
        {"index": 0, "message": {"role": "assistant", "content": "Hi"}, "finish_reason": "stop"}
    ],
    "usage": {"prompt_tokens": 4, "completion_tokens": 1, "total_tokens": 5},
}


class StubTransport:
    """Records every send and replies with canned bodies."""

    def __init__(self, *replies: bytes | Exception) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[Endpoint, dict[str, Any], Credentials]] = []

    async def send(
        self, endpoint: Endpoint, payload: dict[str, Any], credentials: Credentials
    ) -> bytes:
        self.calls.append((endpoint, payload, credentials))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _json(data: Any) -> bytes:
    return json.dumps(data).encode()


def _anthropic_client(*replies: bytes | Exception, **kwargs: Any) -> tuple[LLMClient, StubTransport]:
    transport = StubTransport(*replies)
    config = ClientConfig.anthropic("sk-ant", "claude-sonnet-4-5")
    return LLMClient(config, transport, **kwargs), transport


def _openai_client(*replies: bytes | Exception, **overrides: Any) -> tuple[LLMClient, StubTransport]:
    transport = StubTransport(*replies)
    config = ClientConfig.openai_compatible("https://api.openai.com", "sk", "gpt-4o", **overrides)
    return LLMClient(config, transport), transport


# ---------------------------------------------------------------------------
# Endpoint resolution
# ---------------------------------------------------------------------------


class TestEndpointUrl:
    def test_anthropic(self) -> None:
        config = ClientConfig.anthropic("k", "m")
        assert endpoint_url(config, "chat") == "https://api.anthropic.com/v1/messages"

    def test_anthropic_has_no_embeddings(self) -> None:
        with pytest.raises(ConfigurationError):
            endpoint_url(ClientConfig.anthropic("k", "m"), "embeddings")

    def test_openai(self) -> None:
        config = ClientConfig.openai_compatible("https://api.openai.com", "k", "m")
        assert endpoint_url(config, "chat") == "https://api.openai.com/v1/chat/completions"
        assert endpoint_url(config, "embeddings") == "https://api.openai.com/v1/embeddings"

    def test_versioned_base_url(self) -> None:
        config = ClientConfig.openrouter("k", "m")
        assert endpoint_url(config, "chat") == "https://openrouter.ai/api/v1/chat/completions"


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class TestComplete:
    async def test_anthropic_round_trip(self) -> None:
        client, transport = _anthropic_client(_json(_ANTHROPIC_REPLY))
        response = await client.complete("You are helpful.", "Hello!")

        assert response.text == "Hello!"
        endpoint, payload, credentials = transport.calls[0]
        assert endpoint.url == "https://api.anthropic.com/v1/messages"
        assert endpoint.timeout == 180.0
        assert credentials.api_key == "sk-ant"
        assert payload == {
            "model": "claude-sonnet-4-5",
            "max_tokens": 16384,
            "messages": [{"role": "user", "content": [{"type": "text", "text": "Hello!"}]}],
            "system": "You are helpful.",
        }

    async def test_openai_round_trip(self) -> None:
        client, transport = _openai_client(_json(_OPENAI_REPLY))
        response = await client.complete(None, "Hello!", ChatOptions(system="Be brief.", temperature=0.2))

        assert response.text == "Hi"
        assert response.stop_reason == "end_turn"
        endpoint, payload, _ = transport.calls[0]
        assert endpoint.url == "https://api.openai.com/v1/chat/completions"
        assert payload["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hello!"},
        ]
        assert payload["temperature"] == 0.2

    async def test_system_argument_overrides_options(self) -> None:
        client, transport = _anthropic_client(_json(_ANTHROPIC_REPLY))
        await client.complete("override", "q", ChatOptions(system="original"))
        assert transport.calls[0][1]["system"] == "override"


class TestChat:
    async def test_tool_conversation(self) -> None:
        client, transport = _openai_client(_json(_OPENAI_REPLY))
        tool = ToolDefinition(name="calc", input_schema={"type": "object"})
        messages = [
            Message.user_text("2+2?"),
            Message.tool_results([ToolResultBlock(tool_use_id="c1", content="4")]),
        ]
        await client.chat(messages, ChatOptions(tools=[tool], max_tokens=64))
        payload = transport.calls[0][1]
        assert payload["max_tokens"] == 64
        assert payload["tools"][0]["function"]["name"] == "calc"
        assert payload["messages"][-1] == {"role": "tool", "tool_call_id": "c1", "content": "4"}

    async def test_adaptive_effort(self) -> None:
        client, transport = _anthropic_client(_json(_ANTHROPIC_REPLY))
        options = ChatOptions(thinking=ThinkingAdaptive(), effort=EffortLevel.LOW)
        await client.chat([Message.user_text("q")], options)
        payload = transport.calls[0][1]
        assert payload["thinking"] == {"type": "adaptive"}
        assert payload["output_config"] == {"effort": "low"}

    async def test_states_reported(self) -> None:
        seen: list[tuple[str, CallState]] = []
        client, _ = _anthropic_client(
            _json(_ANTHROPIC_REPLY), on_state=lambda call_id, state: seen.append((call_id, state))
        )
        await client.chat([Message.user_text("q")])
        assert [state for _, state in seen] == [
            CallState.BUILDING,
            CallState.SENT,
            CallState.AWAITING,
            CallState.COMPLETED,
        ]
        assert len({call_id for call_id, _ in seen}) == 1

    async def test_invalid_request_fails_before_sending(self) -> None:
        seen: list[CallState] = []
        client, transport = _anthropic_client(on_state=lambda _, state: seen.append(state))
        with pytest.raises(SchemaViolationError):
            await client.chat([])
        assert transport.calls == []
        assert seen == [CallState.BUILDING, CallState.FAILED]

    async def test_unrepresentable_request(self) -> None:
        client, transport = _openai_client()
        image = ImageBlock(source=URLImageSource(url="https://x/y.png"))
        messages = [Message.tool_results([ToolResultBlock(tool_use_id="t", content=[image])])]
        with pytest.raises(UnsupportedConstructError):
            await client.chat(messages)
        assert transport.calls == []

    async def test_transport_error_passes_through(self) -> None:
        seen: list[CallState] = []
        client, _ = _anthropic_client(RateLimitedError("slow"), on_state=lambda _, state: seen.append(state))
        with pytest.raises(RateLimitedError):
            await client.chat([Message.user_text("q")])
        assert seen[-1] is CallState.FAILED

    @pytest.mark.parametrize(
        "body",
        [b"not json", b"[1, 2]", b"\xff\xfe", _json({"content": "wrong"})],
    )
    async def test_malformed_response(self, body: bytes) -> None:
        client, _ = _anthropic_client(body)
        with pytest.raises(MalformedResponseError):
            await client.chat([Message.user_text("q")])

    async def test_send_prebuilt_request(self) -> None:
        client, transport = _anthropic_client(_json(_ANTHROPIC_REPLY))
        request = ChatRequest(model="other-model", max_tokens=5, messages=[Message.user_text("q")])
        response = await client.send(request)
        assert response.content == [TextBlock(text="Hello!")]
        assert transport.calls[0][1]["model"] == "other-model"

    def test_build_request_uses_config_defaults(self) -> None:
        client, _ = _anthropic_client()
        request = client.build_request([Message.user_text("q")])
        assert request.model == "claude-sonnet-4-5"
        assert request.max_tokens == 16384
        assert request.system is None


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


class TestEmbed:
    async def test_vectors_in_input_order(self) -> None:
        reply = {
            "object": "list",
            "data": [
                {"object": "embedding", "embedding": [0.2], "index": 1},
                {"object": "embedding", "embedding": [0.1], "index": 0},
            ],
            "model": "text-embedding-3-small",
            "usage": {"prompt_tokens": 2, "total_tokens": 2},
        }
        client, transport = _openai_client(_json(reply), embeddings=True)
        response = await client.embed(["a", "b"], model="text-embedding-3-small")

        assert response.vectors == [[0.1], [0.2]]
        endpoint, payload, _ = transport.calls[0]
        assert endpoint.url == "https://api.openai.com/v1/embeddings"
        assert endpoint.operation == "embeddings"
        assert payload == {"model": "text-embedding-3-small", "input": ["a", "b"]}

    async def test_count_mismatch(self) -> None:
        reply = {"data": [{"embedding": [0.1], "index": 0}]}
        client, _ = _openai_client(_json(reply), embeddings=True)
        with pytest.raises(MalformedResponseError, match="expected 2 embeddings, got 1"):
            await client.embed(["a", "b"])

    async def test_disabled(self) -> None:
        client, transport = _openai_client()
        with pytest.raises(ConfigurationError, match="not enabled"):
            await client.embed("a")
        assert transport.calls == []

    async def test_anthropic_unsupported(self) -> None:
        transport = StubTransport()
        config = ClientConfig.anthropic("k", "m", embeddings=True)
        with pytest.raises(ConfigurationError, match="no embeddings endpoint"):
            await LLMClient(config, transport).embed("a")
