"""Shared CLI input and output helpers."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, NoReturn

from rich.console import Console
from rich.markup import escape

console = Console()


def load_json(path: str) -> Any:
    """Read a JSON document, exiting with status 1 if it cannot be parsed."""
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        fail(f"Cannot read {path}", exc)


def print_payload(data: dict[str, Any]) -> None:
    """Print a wire payload as indented JSON."""
    console.print_json(data=data)


def fail(title: str, exc: Exception) -> NoReturn:
    """Report *exc* in red and exit with status 1."""
    console.print(f"[red]{escape(title)}:[/red] {escape(str(exc))}")
    sys.exit(1)
