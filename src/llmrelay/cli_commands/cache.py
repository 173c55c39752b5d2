"""``llmrelay cache`` — preview cache-control injection on a request."""

from __future__ import annotations

import click

from llmrelay.cli_commands._output import fail, load_json, print_payload
from llmrelay.errors import LLMRelayError
from llmrelay.proxy.cache_control import (
    MAX_CACHE_BREAKPOINTS,
    CachePolicy,
    inject_cache_control,
)
from llmrelay.types.canonical import decode_chat_request


@click.command("cache")
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--tools", "mark_tools", is_flag=True, help="Mark the last tool definition.")
@click.option("--no-system", is_flag=True, help="Leave the system prompt unmarked.")
@click.option(
    "--offset",
    "offsets",
    type=click.IntRange(min=1),
    multiple=True,
    help="Mark the message this far from the end (repeatable, default: 2).",
)
@click.option("--ttl", default=None, help="Cache TTL, e.g. 5m or 1h.")
@click.option(
    "--max-breakpoints",
    type=click.IntRange(min=0),
    default=MAX_CACHE_BREAKPOINTS,
    show_default=True,
    help="Provider breakpoint limit.",
)
def cache(
    request_file: str,
    mark_tools: bool,
    no_system: bool,
    offsets: tuple[int, ...],
    ttl: str | None,
    max_breakpoints: int,
) -> None:
    """Print REQUEST_FILE (an Anthropic request) with cache breakpoints added."""
    policy = CachePolicy(
        tools=mark_tools,
        system=not no_system,
        message_offsets=offsets or (2,),
        ttl=ttl,
        max_breakpoints=max_breakpoints,
    )
    try:
        request = decode_chat_request(load_json(request_file))
        annotated = inject_cache_control(request, policy)
    except LLMRelayError as exc:
        fail("Cache injection error", exc)

    print_payload(annotated.to_wire())
