"""llmrelay CLI entrypoint."""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from llmrelay import __version__

_LOGGER_NAME = "llmrelay"


def _show_library_logs() -> None:
    """Send llmrelay debug logs (dropped fields, lossy mappings) to stderr."""
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))


@click.group()
@click.version_option(version=__version__, prog_name="llmrelay")
@click.option("--verbose", "-v", is_flag=True, help="Log what conversions drop or rewrite.")
def main(verbose: bool) -> None:
    """llmrelay: convert and annotate LLM chat payloads."""
    if verbose:
        _show_library_logs()


# Register subcommands
from llmrelay.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
