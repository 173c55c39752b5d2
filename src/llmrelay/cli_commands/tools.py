"""``llmrelay tools`` — encode and decode provider-safe tool names."""

from __future__ import annotations

import click

from llmrelay.cli_commands._output import console, fail
from llmrelay.errors import TransformError
from llmrelay.proxy.tool_names import decode_tool_name, encode_tool_name


@click.group()
def tools() -> None:
    """Inspect the reversible tool-name encoding."""


@tools.command("encode")
@click.argument("name")
def encode(name: str) -> None:
    """Print the provider-safe encoding of NAME."""
    console.print(encode_tool_name(name), markup=False, highlight=False, soft_wrap=True)


@tools.command("decode")
@click.argument("encoded")
def decode(encoded: str) -> None:
    """Print the original tool name behind ENCODED."""
    try:
        name = decode_tool_name(encoded)
    except TransformError as exc:
        fail("Decode error", exc)
    console.print(name, markup=False, highlight=False, soft_wrap=True)
