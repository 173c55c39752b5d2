"""Transforms a proxy applies to canonical requests before forwarding them."""

from llmrelay.proxy.cache_control import (
    MAX_CACHE_BREAKPOINTS,
    CachePolicy,
    count_cache_breakpoints,
    inject_cache_control,
)
from llmrelay.proxy.tool_names import (
    ToolNameTransform,
    decode_tool_name,
    encode_tool_name,
)

__all__ = [
    "MAX_CACHE_BREAKPOINTS",
    "CachePolicy",
    "ToolNameTransform",
    "count_cache_breakpoints",
    "decode_tool_name",
    "encode_tool_name",
    "inject_cache_control",
]
