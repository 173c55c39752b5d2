"""Prompt-cache breakpoint injection for canonical requests.

Marks cacheable prefix boundaries with ``cache_control`` markers. Which
positions get marked is decided by a :class:`CachePolicy`; the default marks
the end of the system prompt and the end of the second-to-last message.

Re-applying a policy replaces markers at the positions it targets instead of
adding new ones, so injection is idempotent. Markers the caller placed
elsewhere are kept and count towards the provider's breakpoint limit.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from llmrelay.errors import BreakpointLimitError
from llmrelay.types.canonical import (
    CACHEABLE_BLOCKS,
    CacheControl,
    ChatRequest,
    ContentBlock,
    Message,
    TextBlock,
    ToolDefinition,
    ToolResultBlock,
)

logger = logging.getLogger(__name__)

# Anthropic rejects requests carrying more than four cache breakpoints.
MAX_CACHE_BREAKPOINTS = 4


class CachePolicy(BaseModel):
    """Where to place cache breakpoints.

    ``message_offsets`` count from the end of the conversation: ``1`` is the
    last message, ``2`` the second-to-last.
    """

    model_config = ConfigDict(frozen=True)

    tools: bool = False
    system: bool = True
    message_offsets: tuple[int, ...] = (2,)
    ttl: str | None = None
    max_breakpoints: int = Field(default=MAX_CACHE_BREAKPOINTS, ge=0)

    def marker(self) -> CacheControl:
        if self.ttl is None:
            return CacheControl()
        return CacheControl(ttl=self.ttl)


def count_cache_breakpoints(request: ChatRequest) -> int:
    """Count every ``cache_control`` marker present in *request*."""
    count = 0
    if isinstance(request.system, list):
        count += sum(1 for block in request.system if block.cache_control is not None)
    if request.tools:
        count += sum(1 for tool in request.tools if tool.cache_control is not None)
    for message in request.messages:
        for block in message.content:
            count += _block_markers(block)
    return count


def inject_cache_control(request: ChatRequest, policy: CachePolicy | None = None) -> ChatRequest:
    """Return a copy of *request* with cache breakpoints placed per *policy*.

    Raises:
        BreakpointLimitError: the markers already present plus the ones this
            policy places exceed ``policy.max_breakpoints``.
    """
    policy = policy or CachePolicy()
    marker = policy.marker()
    update: dict[str, Any] = {}
    placed = 0
    replaced = 0

    if policy.tools and request.tools:
        tools, was_marked = _mark_last_tool(request.tools, marker)
        update["tools"] = tools
        placed += 1
        replaced += was_marked

    if policy.system and request.system:
        system, was_marked = _mark_system(request.system, marker)
        update["system"] = system
        placed += 1
        replaced += was_marked

    messages = list(request.messages)
    for index in _target_indices(len(messages), policy.message_offsets):
        marked = _mark_message(messages[index], marker)
        if marked is None:
            logger.debug("No cacheable block in messages[%d]; skipping breakpoint", index)
            continue
        messages[index], was_marked = marked
        placed += 1
        replaced += was_marked
    if placed:
        update["messages"] = messages

    total = count_cache_breakpoints(request) - replaced + placed
    if total > policy.max_breakpoints:
        raise BreakpointLimitError(total, policy.max_breakpoints)

    logger.debug("Placed %d cache breakpoints (%d total)", placed, total)
    return request.model_copy(update=update) if update else request


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _block_markers(block: ContentBlock) -> int:
    count = 0
    if isinstance(block, CACHEABLE_BLOCKS) and block.cache_control is not None:
        count += 1
    if isinstance(block, ToolResultBlock) and isinstance(block.content, list):
        count += sum(1 for part in block.content if part.cache_control is not None)
    return count


def _target_indices(length: int, offsets: tuple[int, ...]) -> list[int]:
    indices = {length - offset for offset in offsets if 0 < offset <= length}
    return sorted(indices)


def _mark_last_tool(
    tools: list[ToolDefinition], marker: CacheControl
) -> tuple[list[ToolDefinition], bool]:
    last = tools[-1]
    marked = last.model_copy(update={"cache_control": marker})
    return [*tools[:-1], marked], last.cache_control is not None


def _mark_system(
    system: str | list[TextBlock], marker: CacheControl
) -> tuple[list[TextBlock], bool]:
    # Only the list form can carry a marker.
    if isinstance(system, str):
        return [TextBlock(text=system, cache_control=marker)], False
    last = system[-1]
    marked = last.model_copy(update={"cache_control": marker})
    return [*system[:-1], marked], last.cache_control is not None


def _mark_message(message: Message, marker: CacheControl) -> tuple[Message, bool] | None:
    """Mark the last block of *message* able to carry a marker.

    Thinking and unknown blocks are skipped over.
    """
    for position in range(len(message.content) - 1, -1, -1):
        block = message.content[position]
        if isinstance(block, CACHEABLE_BLOCKS):
            content = list(message.content)
            content[position] = block.model_copy(update={"cache_control": marker})
            updated = message.model_copy(update={"content": content})
            return updated, block.cache_control is not None
    return None
