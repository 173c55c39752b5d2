"""Provider-specific transpiler implementations."""

from llmrelay.convert.transpilers.anthropic import AnthropicTranspiler
from llmrelay.convert.transpilers.openai import OpenAITranspiler

__all__ = ["AnthropicTranspiler", "OpenAITranspiler"]
