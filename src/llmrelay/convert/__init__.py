"""Bidirectional conversion between the canonical and OpenAI formats."""

from llmrelay.convert.thinking import (
    build_thinking_params,
    parse_model_suffix,
    reasoning_effort_for,
    thinking_from_effort,
)
from llmrelay.convert.to_canonical import (
    openai_embedding_request_to_canonical,
    openai_embedding_response_to_canonical,
    openai_request_to_canonical,
    openai_response_to_canonical,
    parse_arguments,
    parse_data_url,
)
from llmrelay.convert.to_openai import (
    TOOL_ERROR_PREFIX,
    canonical_embedding_request_to_openai,
    canonical_embedding_response_to_openai,
    canonical_request_to_openai,
    canonical_response_to_openai,
)
from llmrelay.convert.transpiler import Transpiler
from llmrelay.convert.transpilers import AnthropicTranspiler, OpenAITranspiler
from llmrelay.types.common import Provider


def get_transpiler(provider: Provider | str, *, reasoning_effort: bool = False) -> Transpiler:
    """Return the transpiler for a provider.

    Raises:
        ValueError: *provider* names no known provider.
    """
    if Provider.parse(provider) is Provider.ANTHROPIC:
        return AnthropicTranspiler()
    return OpenAITranspiler(reasoning_effort=reasoning_effort)


__all__ = [
    "TOOL_ERROR_PREFIX",
    "AnthropicTranspiler",
    "OpenAITranspiler",
    "Transpiler",
    "build_thinking_params",
    "canonical_embedding_request_to_openai",
    "canonical_embedding_response_to_openai",
    "canonical_request_to_openai",
    "canonical_response_to_openai",
    "get_transpiler",
    "openai_embedding_request_to_canonical",
    "openai_embedding_response_to_canonical",
    "openai_request_to_canonical",
    "openai_response_to_canonical",
    "parse_arguments",
    "parse_data_url",
    "parse_model_suffix",
    "reasoning_effort_for",
    "thinking_from_effort",
]
