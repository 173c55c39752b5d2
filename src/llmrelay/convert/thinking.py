"""Extended-thinking helpers.

Bridges the canonical ``thinking`` / ``output_config`` pair and OpenAI's
single ``reasoning_effort`` string, and parses effort suffixes embedded in
model ids (``"claude-sonnet-4-5(high)"``).
"""

from __future__ import annotations

from typing import Literal

from llmrelay.errors import MalformedInputError
from llmrelay.types.canonical import (
    MIN_THINKING_BUDGET,
    OutputConfig,
    ThinkingAdaptive,
    ThinkingConfig,
    ThinkingDisabled,
    ThinkingEnabled,
)
from llmrelay.types.common import EffortLevel

ThinkingMode = Literal["budget", "adaptive"]

_DISABLED_EFFORTS = frozenset({"none", "off", "disabled"})

_BUDGET_BY_EFFORT: dict[str, int] = {
    "minimal": 1024,
    "low": 1024,
    "med": 8192,
    "medium": 8192,
    "auto": 16000,
    "high": 32000,
    "xhigh": 64000,
    "max": 64000,
}

_SUFFIXES = _DISABLED_EFFORTS | _BUDGET_BY_EFFORT.keys()


def build_thinking_params(
    thinking: ThinkingConfig | None,
    effort: EffortLevel | None = None,
) -> tuple[ThinkingConfig | None, OutputConfig | None]:
    """Return the ``(thinking, output_config)`` pair for a canonical request.

    Effort only applies to adaptive thinking, and ``high`` is the provider
    default so it is left implicit.
    """
    if isinstance(thinking, ThinkingAdaptive) and effort not in (None, EffortLevel.HIGH):
        return thinking, OutputConfig(effort=effort)
    return thinking, None


def reasoning_effort_for(
    thinking: ThinkingConfig | None,
    output_config: OutputConfig | None = None,
) -> str | None:
    """Map canonical thinking settings onto OpenAI's ``reasoning_effort``.

    Returns None when thinking is absent or disabled.
    """
    if thinking is None or isinstance(thinking, ThinkingDisabled):
        return None
    if isinstance(thinking, ThinkingEnabled):
        if thinking.budget_tokens <= 2048:
            return "low"
        if thinking.budget_tokens <= 16384:
            return "medium"
        return "high"
    effort = output_config.effort if output_config is not None else None
    if effort is None or effort is EffortLevel.MAX:
        return "high"
    return effort.value


def thinking_from_effort(
    effort: str,
    mode: ThinkingMode = "budget",
) -> tuple[ThinkingConfig, OutputConfig | None]:
    """Build canonical thinking settings from an effort string.

    ``mode="budget"`` yields manual thinking with a token budget;
    ``mode="adaptive"`` yields adaptive thinking with an effort level.
    Numeric strings are read as a token budget.

    Raises:
        MalformedInputError: the effort string is not recognized, or a numeric
            budget is below the provider minimum.
    """
    normalized = effort.strip().lower()
    if normalized in _DISABLED_EFFORTS:
        return ThinkingDisabled(), None

    budget: int | None = None
    if normalized.isdigit():
        budget = int(normalized)
        if budget == 0:
            return ThinkingDisabled(), None
    elif normalized not in _BUDGET_BY_EFFORT:
        raise MalformedInputError(f"unknown reasoning effort {effort!r}", path="reasoning_effort")

    if mode == "adaptive":
        level = _effort_for_budget(budget) if budget is not None else _effort_for_name(normalized)
        _, output_config = build_thinking_params(ThinkingAdaptive(), level)
        return ThinkingAdaptive(), output_config

    if budget is None:
        budget = _BUDGET_BY_EFFORT[normalized]
    if budget < MIN_THINKING_BUDGET:
        raise MalformedInputError(
            f"thinking budget {budget} is below the minimum of {MIN_THINKING_BUDGET}",
            path="reasoning_effort",
        )
    return ThinkingEnabled(budget_tokens=budget), None


def _effort_for_name(name: str) -> EffortLevel:
    if name == "auto":
        return EffortLevel.MEDIUM
    return EffortLevel.parse(name)


def _effort_for_budget(budget: int) -> EffortLevel:
    if budget <= 2048:
        return EffortLevel.LOW
    if budget <= 16384:
        return EffortLevel.MEDIUM
    if budget <= 49152:
        return EffortLevel.HIGH
    return EffortLevel.MAX


def parse_model_suffix(model: str) -> tuple[str, str | None]:
    """Split ``"model(effort)"`` into ``("model", "effort")``.

    Anything that is not a known effort name or an integer is left attached
    to the model id.
    """
    open_paren = model.rfind("(")
    if open_paren == -1 or not model.endswith(")"):
        return model, None
    suffix = model[open_paren + 1 : -1]
    if suffix.lower() in _SUFFIXES or suffix.isdigit():
        return model[:open_paren], suffix
    return model, None
