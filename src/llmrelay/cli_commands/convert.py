"""``llmrelay convert`` — translate payloads between Anthropic and OpenAI shapes."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import click

from llmrelay.cli_commands._output import fail, load_json, print_payload
from llmrelay.convert import (
    canonical_embedding_request_to_openai,
    canonical_embedding_response_to_openai,
    canonical_request_to_openai,
    canonical_response_to_openai,
    openai_embedding_request_to_canonical,
    openai_embedding_response_to_canonical,
    openai_request_to_canonical,
    openai_response_to_canonical,
)
from llmrelay.errors import LLMRelayError
from llmrelay.types.canonical import (
    WireModel,
    decode_chat_request,
    decode_chat_response,
    decode_embedding_request,
    decode_embedding_response,
)

_FORMATS = click.Choice(["openai", "anthropic"])


def _direction(func: Callable[..., None]) -> Callable[..., None]:
    func = click.argument("payload_file", type=click.Path(exists=True, dir_okay=False))(func)
    func = click.option(
        "--from", "source", type=_FORMATS, required=True, help="Format of PAYLOAD_FILE."
    )(func)
    func = click.option(
        "--to", "target", type=_FORMATS, default=None, help="Output format (default: the other one)."
    )(func)
    return func


def _run(
    payload_file: str,
    source: str,
    target: str | None,
    *,
    decode: Callable[[Any], WireModel],
    to_openai: Callable[[Any], WireModel],
    to_anthropic: Callable[[Any], WireModel],
) -> None:
    target = target or ("anthropic" if source == "openai" else "openai")
    data = load_json(payload_file)
    try:
        if source == "anthropic":
            canonical = decode(data)
            result = canonical if target == "anthropic" else to_openai(canonical)
        else:
            canonical = to_anthropic(data)
            result = canonical if target == "anthropic" else to_openai(canonical)
    except LLMRelayError as exc:
        fail("Conversion error", exc)
    print_payload(result.to_wire())


@click.group()
def convert() -> None:
    """Convert payloads between the Anthropic and OpenAI wire formats."""


@convert.command("request")
@_direction
@click.option(
    "--max-tokens",
    type=int,
    default=None,
    help="max_tokens to use when an OpenAI request carries none.",
)
@click.option(
    "--reasoning-effort/--no-reasoning-effort",
    default=False,
    help="Forward thinking settings as OpenAI reasoning_effort.",
)
def request(
    payload_file: str,
    source: str,
    target: str | None,
    max_tokens: int | None,
    reasoning_effort: bool,
) -> None:
    """Convert a chat request.

    PAYLOAD_FILE is a JSON request body.
    """
    _run(
        payload_file,
        source,
        target,
        decode=decode_chat_request,
        to_openai=lambda value: canonical_request_to_openai(value, reasoning_effort=reasoning_effort),
        to_anthropic=lambda value: openai_request_to_canonical(value, default_max_tokens=max_tokens),
    )


@convert.command("response")
@_direction
@click.option("--include-reasoning", is_flag=True, help="Emit thinking as reasoning_content.")
def response(payload_file: str, source: str, target: str | None, include_reasoning: bool) -> None:
    """Convert a chat response.

    PAYLOAD_FILE is a JSON response body.
    """
    _run(
        payload_file,
        source,
        target,
        decode=decode_chat_response,
        to_openai=lambda value: canonical_response_to_openai(value, include_reasoning=include_reasoning),
        to_anthropic=openai_response_to_canonical,
    )


@convert.command("embedding-request")
@_direction
def embedding_request(payload_file: str, source: str, target: str | None) -> None:
    """Convert an embeddings request."""
    _run(
        payload_file,
        source,
        target,
        decode=decode_embedding_request,
        to_openai=canonical_embedding_request_to_openai,
        to_anthropic=openai_embedding_request_to_canonical,
    )


@convert.command("embedding-response")
@_direction
def embedding_response(payload_file: str, source: str, target: str | None) -> None:
    """Convert an embeddings response."""
    _run(
        payload_file,
        source,
        target,
        decode=decode_embedding_response,
        to_openai=canonical_embedding_response_to_openai,
        to_anthropic=openai_embedding_response_to_canonical,
    )
