"""Reversible tool-name transform.

External tool identifiers (MCP server tools, dotted names, non-ASCII names)
often violate the provider identifier grammar ``^[a-zA-Z0-9_-]{1,64}$``.
The transform maps any string onto that grammar with an escaping scheme that
can be undone exactly:

- the result starts with ``mcp_``;
- ``A-Z a-z 0-9 -`` are kept as-is;
- ``_`` becomes ``__``;
- every other UTF-8 byte becomes ``_`` plus two lowercase hex digits.

An encoding longer than 64 characters is replaced by ``mcpx_`` and 24 hex
digits of the name's SHA-256. That form cannot be decoded on its own, so the
:class:`ToolNameTransform` that produced it remembers the original.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable

from llmrelay.errors import TransformError, UnknownEncodedNameError
from llmrelay.types.canonical import (
    ChatRequest,
    ChatResponse,
    ContentBlock,
    Message,
    ToolChoiceTool,
    ToolDefinition,
    ToolUseBlock,
)
from llmrelay.types.common import TOOL_NAME_MAX_LENGTH

logger = logging.getLogger(__name__)

ENCODED_PREFIX = "mcp_"
HASHED_PREFIX = "mcpx_"
_HASH_HEX_LENGTH = 24
_HEX_DIGITS = frozenset("0123456789abcdef")


def _is_plain(byte: int) -> bool:
    char = chr(byte)
    return byte < 0x80 and (char.isalnum() or char == "-")


def encode_tool_name(name: str) -> str:
    """Encode *name* into the provider identifier grammar. Total and deterministic."""
    parts = [ENCODED_PREFIX]
    for byte in name.encode("utf-8"):
        if _is_plain(byte):
            parts.append(chr(byte))
        elif byte == ord("_"):
            parts.append("__")
        else:
            parts.append(f"_{byte:02x}")
    encoded = "".join(parts)
    if len(encoded) > TOOL_NAME_MAX_LENGTH:
        digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:_HASH_HEX_LENGTH]
        return HASHED_PREFIX + digest
    return encoded


def decode_tool_name(encoded: str) -> str:
    """Invert :func:`encode_tool_name` for names that were escaped, not hashed.

    Raises:
        UnknownEncodedNameError: *encoded* is not a string ``encode_tool_name``
            could have produced.
    """
    if not encoded.startswith(ENCODED_PREFIX):
        raise UnknownEncodedNameError(encoded)

    body = encoded[len(ENCODED_PREFIX) :]
    raw = bytearray()
    i = 0
    while i < len(body):
        char = body[i]
        if char != "_":
            if not char.isascii():
                raise UnknownEncodedNameError(encoded)
            raw.append(ord(char))
            i += 1
        elif body[i + 1 : i + 2] == "_":
            raw.append(ord("_"))
            i += 2
        else:
            hex_pair = body[i + 1 : i + 3]
            if len(hex_pair) != 2 or not set(hex_pair) <= _HEX_DIGITS:
                raise UnknownEncodedNameError(encoded)
            raw.append(int(hex_pair, 16))
            i += 3

    try:
        name = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise UnknownEncodedNameError(encoded) from None
    # Rejects non-canonical spellings such as an escaped plain character.
    if encode_tool_name(name) != encoded:
        raise UnknownEncodedNameError(encoded)
    return name


class ToolNameTransform:
    """Encodes tool names for a provider and restores them on the way back.

    Holds the inverse table for hashed names, so use one instance per
    conversation (or share one across a proxy) for both directions.

    Usage::

        names = ToolNameTransform()
        outbound = names.transform_request(request)
        response = names.restore_response(await client.send(outbound))
    """

    def __init__(self) -> None:
        self._hashed: dict[str, str] = {}

    def transform(self, name: str) -> str:
        encoded = encode_tool_name(name)
        if encoded.startswith(HASHED_PREFIX):
            known = self._hashed.setdefault(encoded, name)
            if known != name:
                msg = f"hash collision between tool names {known!r} and {name!r}"
                raise TransformError(msg)
        return encoded

    def restore(self, encoded: str) -> str:
        """Return the original name for *encoded*.

        Raises:
            UnknownEncodedNameError: *encoded* was not produced by this transform.
        """
        if encoded.startswith(HASHED_PREFIX):
            try:
                return self._hashed[encoded]
            except KeyError:
                raise UnknownEncodedNameError(encoded) from None
        return decode_tool_name(encoded)

    def transform_request(self, request: ChatRequest) -> ChatRequest:
        """Encode tool names in definitions, ``tool_choice`` and tool_use blocks.

        Server tools (definitions carrying their own ``type``) keep their names.
        """
        update: dict[str, object] = {}
        if request.tools:
            update["tools"] = [self._transform_tool(tool) for tool in request.tools]
        if isinstance(request.tool_choice, ToolChoiceTool):
            update["tool_choice"] = request.tool_choice.model_copy(
                update={"name": self.transform(request.tool_choice.name)}
            )
        update["messages"] = [self._rename_message(message, self.transform) for message in request.messages]
        return request.model_copy(update=update)

    def restore_response(self, response: ChatResponse) -> ChatResponse:
        """Restore original names on the response's tool_use blocks."""
        content = [_rename_block(block, self.restore) for block in response.content]
        return response.model_copy(update={"content": content})

    def restore_request(self, request: ChatRequest) -> ChatRequest:
        """Restore original names on tool_use blocks of an already encoded request."""
        messages = [self._rename_message(message, self.restore) for message in request.messages]
        return request.model_copy(update={"messages": messages})

    def _transform_tool(self, tool: ToolDefinition) -> ToolDefinition:
        if tool.model_extra and tool.model_extra.get("type"):
            logger.debug("Keeping server tool name %r", tool.name)
            return tool
        return tool.model_copy(update={"name": self.transform(tool.name)})

    @staticmethod
    def _rename_message(message: Message, rename: Callable[[str], str]) -> Message:
        if not any(isinstance(block, ToolUseBlock) for block in message.content):
            return message
        content = [_rename_block(block, rename) for block in message.content]
        return message.model_copy(update={"content": content})


def _rename_block(block: ContentBlock, rename: Callable[[str], str]) -> ContentBlock:
    if isinstance(block, ToolUseBlock):
        return block.model_copy(update={"name": rename(block.name)})
    return block
