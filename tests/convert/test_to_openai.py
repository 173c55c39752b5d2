"""Tests for canonical → OpenAI conversion."""

import json
from typing import Any

import pytest

from llmrelay.convert.to_openai import (
    TOOL_ERROR_PREFIX,
    canonical_embedding_request_to_openai,
    canonical_embedding_response_to_openai,
    canonical_request_to_openai,
    canonical_response_to_openai,
)
from llmrelay.errors import SchemaViolationError, UnsupportedConstructError
from llmrelay.types.canonical import (
    Base64ImageSource,
    CacheControl,
    ChatRequest,
    ChatResponse,
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
    ThinkingDisabled,
    ThinkingEnabled,
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
)
from llmrelay.types.common import EffortLevel


def _request(messages: list[Message], **fields: Any) -> ChatRequest:
    return ChatRequest(model="gpt-4o", max_tokens=256, messages=messages, **fields)


def _wire(request: ChatRequest, **kwargs: Any) -> dict[str, Any]:
    return canonical_request_to_openai(request, **kwargs).to_wire()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestRequestMessages:
    def test_system_and_user(self) -> None:
        wire = _wire(_request([Message.user_text("Hello!")], system="You are helpful."))
        assert wire == {
            "model": "gpt-4o",
            "max_tokens": 256,
            "messages": [
                {"role": "system", "content": "You are helpful."},
                {"role": "user", "content": "Hello!"},
            ],
        }

    def test_system_blocks_become_text_parts(self) -> None:
        system = [
            TextBlock(text="One."),
            TextBlock(text="Two.", cache_control=CacheControl()),
        ]
        wire = _wire(_request([Message.user_text("hi")], system=system))
        assert wire["messages"][0] == {
            "role": "system",
            "content": [{"type": "text", "text": "One."}, {"type": "text", "text": "Two."}],
        }

    def test_tool_results_split_into_tool_messages_in_order(self) -> None:
        message = Message.user(
            [
                ToolResultBlock(tool_use_id="tu_1", content="4"),
                TextBlock(text="and then?"),
                ToolResultBlock(tool_use_id="tu_2", content=[TextBlock(text="a"), TextBlock(text="b")]),
            ]
        )
        wire = _wire(_request([message]))
        assert wire["messages"] == [
            {"role": "tool", "tool_call_id": "tu_1", "content": "4"},
            {"role": "user", "content": "and then?"},
            {
                "role": "tool",
                "tool_call_id": "tu_2",
                "content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}],
            },
        ]

    def test_tool_result_error_marker(self) -> None:
        message = Message.tool_results([ToolResultBlock(tool_use_id="tu_1", content="boom", is_error=True)])
        wire = _wire(_request([message]))
        assert wire["messages"] == [
            {"role": "tool", "tool_call_id": "tu_1", "content": TOOL_ERROR_PREFIX + "boom"},
        ]

    def test_tool_result_error_marker_on_parts_and_empty(self) -> None:
        parts = ToolResultBlock(tool_use_id="a", content=[TextBlock(text="bad")], is_error=True)
        empty = ToolResultBlock(tool_use_id="b", is_error=True)
        wire = _wire(_request([Message.tool_results([parts, empty])]))
        assert wire["messages"][0]["content"] == [{"type": "text", "text": TOOL_ERROR_PREFIX + "bad"}]
        assert wire["messages"][1]["content"] == TOOL_ERROR_PREFIX

    def test_empty_tool_result_parts_become_empty_string(self) -> None:
        plain = ToolResultBlock(tool_use_id="a", content=[])
        failed = ToolResultBlock(tool_use_id="b", content=[], is_error=True)
        wire = _wire(_request([Message.tool_results([plain, failed])]))
        assert wire["messages"] == [
            {"role": "tool", "tool_call_id": "a", "content": ""},
            {"role": "tool", "tool_call_id": "b", "content": TOOL_ERROR_PREFIX},
        ]

    def test_empty_system_list_is_omitted(self) -> None:
        wire = _wire(_request([Message.user_text("hi")], system=[]))
        assert wire["messages"] == [{"role": "user", "content": "hi"}]

    def test_assistant_text_and_tool_calls(self) -> None:
        message = Message.assistant(
            [
                ThinkingBlock(thinking="hmm", signature="s"),
                TextBlock(text="Let me check."),
                ToolUseBlock(id="tu_1", name="calc", input={"a": 1, "b": [True, None]}),
            ]
        )
        wire = _wire(_request([Message.user_text("q"), message]))
        assistant = wire["messages"][1]
        assert assistant["role"] == "assistant"
        assert assistant["content"] == "Let me check."
        call = assistant["tool_calls"][0]
        assert call["id"] == "tu_1"
        assert call["type"] == "function"
        assert call["function"]["name"] == "calc"
        assert json.loads(call["function"]["arguments"]) == {"a": 1, "b": [True, None]}

    def test_non_ascii_arguments_kept_verbatim(self) -> None:
        message = Message.assistant([ToolUseBlock(id="t", name="say", input={"text": "héllo"})])
        wire = _wire(_request([Message.user_text("q"), message]))
        assert wire["messages"][1]["tool_calls"][0]["function"]["arguments"] == '{"text": "héllo"}'

    def test_multiple_assistant_texts_become_parts(self) -> None:
        message = Message.assistant([TextBlock(text="a"), TextBlock(text="b")])
        wire = _wire(_request([Message.user_text("q"), message]))
        assert wire["messages"][1]["content"] == [
            {"type": "text", "text": "a"},
            {"type": "text", "text": "b"},
        ]

    def test_thinking_only_assistant_is_omitted(self) -> None:
        message = Message.assistant([RedactedThinkingBlock(data="x")])
        wire = _wire(_request([Message.user_text("q"), message, Message.user_text("again")]))
        assert [m["role"] for m in wire["messages"]] == ["user", "user"]

    def test_images(self) -> None:
        message = Message.user(
            [
                TextBlock(text="Look"),
                ImageBlock(source=Base64ImageSource(media_type="image/png", data="aGk=")),
                ImageBlock(source=URLImageSource(url="https://x/cat.png")),
            ]
        )
        wire = _wire(_request([message]))
        assert wire["messages"][0]["content"] == [
            {"type": "text", "text": "Look"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,aGk="}},
            {"type": "image_url", "image_url": {"url": "https://x/cat.png"}},
        ]

    def test_mid_conversation_system_message(self) -> None:
        messages = [
            Message.user_text("q"),
            Message(role="system", content=[TextBlock(text="Switch to French.")]),
        ]
        wire = _wire(_request(messages))
        assert wire["messages"][1] == {"role": "system", "content": "Switch to French."}


class TestRequestErrors:
    def test_empty_message(self) -> None:
        with pytest.raises(SchemaViolationError, match=r"messages\[0\]"):
            canonical_request_to_openai(_request([Message(role="user", content=[])]))

    def test_tool_result_image(self) -> None:
        image = ImageBlock(source=URLImageSource(url="https://x/y.png"))
        message = Message.tool_results([ToolResultBlock(tool_use_id="t", content=[image])])
        with pytest.raises(UnsupportedConstructError, match="image content in a tool result"):
            canonical_request_to_openai(_request([message]))

    def test_image_in_assistant_message(self) -> None:
        image = ImageBlock(source=URLImageSource(url="https://x/y.png"))
        with pytest.raises(UnsupportedConstructError):
            canonical_request_to_openai(_request([Message.user_text("q"), Message.assistant([image])]))

    def test_tool_use_in_user_message(self) -> None:
        message = Message.user([ToolUseBlock(id="t", name="x", input={})])
        with pytest.raises(SchemaViolationError, match="tool_use block in a user message"):
            canonical_request_to_openai(_request([message]))

    def test_tool_result_in_assistant_message(self) -> None:
        message = Message.assistant([ToolResultBlock(tool_use_id="t", content="x")])
        with pytest.raises(SchemaViolationError):
            canonical_request_to_openai(_request([Message.user_text("q"), message]))

    def test_unknown_block(self) -> None:
        message = Message.user([UnknownBlock(type="document")])
        with pytest.raises(UnsupportedConstructError, match="'document'"):
            canonical_request_to_openai(_request([message]))

    def test_server_tool(self) -> None:
        tool = ToolDefinition.model_validate(
            {"type": "web_search_20250305", "name": "web_search", "input_schema": {}}
        )
        with pytest.raises(UnsupportedConstructError, match="server tool"):
            canonical_request_to_openai(_request([Message.user_text("q")], tools=[tool]))


class TestRequestParameters:
    def test_tools_and_choice(self) -> None:
        tool = ToolDefinition(
            name="calc",
            description="Evaluate",
            input_schema={"type": "object", "properties": {"x": {"type": "number"}}},
        )
        request = _request(
            [Message.user_text("q")],
            tools=[tool],
            tool_choice=ToolChoiceTool(name="calc", disable_parallel_tool_use=True),
        )
        wire = _wire(request)
        assert wire["tools"] == [
            {
                "type": "function",
                "function": {
                    "name": "calc",
                    "parameters": {"type": "object", "properties": {"x": {"type": "number"}}},
                    "description": "Evaluate",
                },
            }
        ]
        assert wire["tool_choice"] == {"type": "function", "function": {"name": "calc"}}
        assert wire["parallel_tool_calls"] is False

    @pytest.mark.parametrize(
        ("choice", "expected"),
        [
            (ToolChoiceAuto(), "auto"),
            (ToolChoiceAny(), "required"),
            (ToolChoiceNone(), "none"),
        ],
    )
    def test_simple_tool_choices(self, choice: Any, expected: str) -> None:
        wire = _wire(_request([Message.user_text("q")], tool_choice=choice))
        assert wire["tool_choice"] == expected
        assert "parallel_tool_calls" not in wire

    def test_sampling_parameters(self) -> None:
        request = _request(
            [Message.user_text("q")],
            temperature=0.2,
            top_p=0.9,
            top_k=5,
            stop_sequences=["END"],
            stream=True,
            metadata=RequestMetadata(user_id="u-1"),
        )
        wire = _wire(request)
        assert wire["temperature"] == 0.2
        assert wire["top_p"] == 0.9
        assert wire["stop"] == ["END"]
        assert wire["stream"] is True
        assert wire["user"] == "u-1"
        assert "top_k" not in wire

    def test_manual_budget_without_reasoning_effort_is_omitted(self) -> None:
        wire = _wire(_request([Message.user_text("q")], thinking=ThinkingEnabled(budget_tokens=2000)))
        assert "reasoning_effort" not in wire
        assert "thinking" not in wire

    @pytest.mark.parametrize(
        ("budget", "effort"),
        [(1024, "low"), (2048, "low"), (2049, "medium"), (16384, "medium"), (32000, "high")],
    )
    def test_manual_budget_maps_to_reasoning_effort(self, budget: int, effort: str) -> None:
        request = _request([Message.user_text("q")], thinking=ThinkingEnabled(budget_tokens=budget))
        assert _wire(request, reasoning_effort=True)["reasoning_effort"] == effort

    def test_adaptive_effort(self) -> None:
        request = _request(
            [Message.user_text("q")],
            thinking=ThinkingAdaptive(),
            output_config=OutputConfig(effort=EffortLevel.LOW),
        )
        assert _wire(request, reasoning_effort=True)["reasoning_effort"] == "low"

    def test_adaptive_max_becomes_high(self) -> None:
        request = _request(
            [Message.user_text("q")],
            thinking=ThinkingAdaptive(),
            output_config=OutputConfig(effort=EffortLevel.MAX),
        )
        assert _wire(request, reasoning_effort=True)["reasoning_effort"] == "high"

    def test_disabled_thinking_emits_nothing(self) -> None:
        request = _request([Message.user_text("q")], thinking=ThinkingDisabled())
        assert "reasoning_effort" not in _wire(request, reasoning_effort=True)

    def test_input_is_not_mutated(self) -> None:
        request = _request([Message.user_text("q")], system="s")
        before = request.to_wire()
        canonical_request_to_openai(request)
        assert request.to_wire() == before


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class TestResponse:
    def test_text_response(self) -> None:
        response = ChatResponse(
            id="msg_1",
            model="claude-sonnet-4-5",
            content=[TextBlock(text="Hello")],
            stop_reason="end_turn",
            usage=Usage(input_tokens=10, output_tokens=5),
        )
        wire = canonical_response_to_openai(response, created=1700000000).to_wire()
        assert wire == {
            "id": "msg_1",
            "object": "chat.completion",
            "created": 1700000000,
            "model": "claude-sonnet-4-5",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": "Hello"},
                    "finish_reason": "stop",
                }
            ],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        }

    def test_tool_use_response(self) -> None:
        response = ChatResponse(
            content=[ToolUseBlock(id="tu_1", name="calc", input={"x": 2})],
            stop_reason="tool_use",
        )
        wire = canonical_response_to_openai(response).to_wire()
        choice = wire["choices"][0]
        assert choice["finish_reason"] == "tool_calls"
        assert choice["message"]["content"] is None
        assert choice["message"]["tool_calls"][0]["function"] == {"name": "calc", "arguments": '{"x": 2}'}

    def test_thinking_dropped_unless_requested(self) -> None:
        response = ChatResponse(
            content=[ThinkingBlock(thinking="deep", signature="s"), TextBlock(text="Answer")],
            stop_reason="end_turn",
        )
        plain = canonical_response_to_openai(response).to_wire()
        assert "reasoning_content" not in plain["choices"][0]["message"]
        rich = canonical_response_to_openai(response, include_reasoning=True).to_wire()
        assert rich["choices"][0]["message"]["reasoning_content"] == "deep"

    def test_unknown_stop_reason_passes_through(self) -> None:
        response = ChatResponse(content=[TextBlock(text="x")], stop_reason="pause_turn")
        wire = canonical_response_to_openai(response).to_wire()
        assert wire["choices"][0]["finish_reason"] == "pause_turn"

    def test_usage_details(self) -> None:
        usage = Usage(
            input_tokens=100,
            output_tokens=50,
            cache_creation_input_tokens=20,
            cache_read_input_tokens=30,
            thinking_tokens=10,
        )
        wire = canonical_response_to_openai(ChatResponse(content=[], usage=usage)).to_wire()
        assert wire["usage"] == {
            "prompt_tokens": 100,
            "completion_tokens": 50,
            "total_tokens": 150,
            "prompt_tokens_details": {"cached_tokens": 30},
            "completion_tokens_details": {"reasoning_tokens": 10},
        }

    def test_image_in_response_is_unsupported(self) -> None:
        response = ChatResponse(content=[ImageBlock(source=URLImageSource(url="https://x"))])
        with pytest.raises(UnsupportedConstructError):
            canonical_response_to_openai(response)


class TestEmbeddings:
    def test_request(self) -> None:
        request = EmbeddingRequest(model="text-embedding-3-small", input=["a", "b"])
        assert canonical_embedding_request_to_openai(request).to_wire() == {
            "model": "text-embedding-3-small",
            "input": ["a", "b"],
        }

    def test_response(self) -> None:
        response = EmbeddingResponse(
            model="text-embedding-3-small",
            vectors=[[0.1, 0.2], [0.3, 0.4]],
            usage=EmbeddingUsage(input_tokens=4),
        )
        wire = canonical_embedding_response_to_openai(response).to_wire()
        assert wire == {
            "object": "list",
            "data": [
                {"object": "embedding", "embedding": [0.1, 0.2], "index": 0},
                {"object": "embedding", "embedding": [0.3, 0.4], "index": 1},
            ],
            "model": "text-embedding-3-small",
            "usage": {"prompt_tokens": 4, "total_tokens": 4},
        }
