"""CLI utilities package."""

import json
from pathlib import Path
from typing import Any, Optional
import click
from ... import build_reconciler
from ...utils.logging import get_logger
from .file_resolver import resolve_file_path

logger = get_logger("cli.utils")


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.

    Args:
        message: Error message
        suggestion: Optional suggestion or help text

    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


def emit(text: str, output: Optional[str] = None, quiet: bool = False) -> None:
    """Write command output to a file or stdout."""
    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(text)
        if not quiet:
            click.echo(f"Output saved to: {output_path}", err=True)
        return
    try:
        click.echo(text)
    except UnicodeEncodeError:
        click.echo(text.encode('ascii', errors='replace').decode('ascii'))


def to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


__all__ = ["resolve_file_path", "build_reconciler", "format_error", "emit", "to_json"]
