"""Provider-neutral enums, stop-reason tables and the tool identifier grammar."""

from __future__ import annotations

import logging
import re
from enum import Enum

from llmrelay.errors import SchemaViolationError

logger = logging.getLogger(__name__)


class Provider(str, Enum):
    """The two wire formats this library speaks."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"

    @property
    def default_base_url(self) -> str:
        if self is Provider.ANTHROPIC:
            return "https://api.anthropic.com"
        return "https://api.openai.com"

    @classmethod
    def parse(cls, value: str) -> Provider:
        """Parse a provider name, accepting ``openai-compatible`` as an alias."""
        normalized = value.strip().lower()
        if normalized in ("openai-compatible", "openai_compatible"):
            return cls.OPENAI
        try:
            return cls(normalized)
        except ValueError:
            msg = f"unknown provider: {value}"
            raise ValueError(msg) from None


class EffortLevel(str, Enum):
    """Effort level for adaptive thinking (``output_config.effort``)."""

    MAX = "max"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: str) -> EffortLevel:
        aliases = {"med": "medium", "minimal": "low", "xhigh": "max"}
        normalized = value.strip().lower()
        try:
            return cls(aliases.get(normalized, normalized))
        except ValueError:
            msg = f"unknown effort level: {value}"
            raise ValueError(msg) from None


# ---------------------------------------------------------------------------
# Stop reasons
# ---------------------------------------------------------------------------


class StopReason(str, Enum):
    """Stop reason normalized across providers.

    ``OTHER`` is the fallback arm for values neither table recognizes; the raw
    string travels alongside it so nothing is lost.
    """

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    OTHER = "other"


_ANTHROPIC_STOP_REASONS: dict[str, StopReason] = {
    "end_turn": StopReason.END_TURN,
    "tool_use": StopReason.TOOL_USE,
    "max_tokens": StopReason.MAX_TOKENS,
    "stop_sequence": StopReason.STOP_SEQUENCE,
}

_OPENAI_FINISH_REASONS: dict[str, StopReason] = {
    "stop": StopReason.END_TURN,
    "tool_calls": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
    "length": StopReason.MAX_TOKENS,
}

_TO_OPENAI: dict[StopReason, str] = {
    StopReason.END_TURN: "stop",
    StopReason.TOOL_USE: "tool_calls",
    StopReason.MAX_TOKENS: "length",
    StopReason.STOP_SEQUENCE: "stop",
}

_TO_ANTHROPIC: dict[StopReason, str] = {
    StopReason.END_TURN: "end_turn",
    StopReason.TOOL_USE: "tool_use",
    StopReason.MAX_TOKENS: "max_tokens",
    StopReason.STOP_SEQUENCE: "stop_sequence",
}


def stop_reason_from_anthropic(raw: str) -> StopReason:
    """Normalize an Anthropic ``stop_reason``; unknown values map to ``OTHER``."""
    reason = _ANTHROPIC_STOP_REASONS.get(raw)
    if reason is None:
        logger.warning("Unrecognized Anthropic stop_reason %r, passing through as 'other'", raw)
        return StopReason.OTHER
    return reason


def stop_reason_from_openai(raw: str) -> StopReason:
    """Normalize an OpenAI ``finish_reason``; unknown values map to ``OTHER``."""
    reason = _OPENAI_FINISH_REASONS.get(raw)
    if reason is None:
        logger.warning("Unrecognized OpenAI finish_reason %r, passing through as 'other'", raw)
        return StopReason.OTHER
    return reason


def openai_to_anthropic_stop_reason(raw: str) -> str:
    """Translate a finish reason; ``OTHER`` keeps the raw provider string."""
    reason = stop_reason_from_openai(raw)
    if reason is StopReason.OTHER:
        return raw
    return _TO_ANTHROPIC[reason]


def anthropic_to_openai_finish_reason(raw: str) -> str:
    """Translate a stop reason; ``OTHER`` keeps the raw provider string."""
    reason = stop_reason_from_anthropic(raw)
    if reason is StopReason.OTHER:
        return raw
    return _TO_OPENAI[reason]


# ---------------------------------------------------------------------------
# Tool identifier grammar
# ---------------------------------------------------------------------------

# Intersection of both providers' rules for function/tool names.
TOOL_NAME_MAX_LENGTH = 64
TOOL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


def is_valid_tool_name(name: str) -> bool:
    """Return True if *name* is accepted by both providers."""
    return bool(TOOL_NAME_PATTERN.fullmatch(name))


def validate_tool_name(name: str) -> str:
    """Return *name* unchanged or raise :class:`SchemaViolationError`."""
    if not is_valid_tool_name(name):
        raise SchemaViolationError(
            f"tool name {name!r} must match {TOOL_NAME_PATTERN.pattern}",
            path="tools.name",
        )
    return name
