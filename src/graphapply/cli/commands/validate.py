"""Validate command - check a desired-state document and its graph."""

import sys
import click
from ...ingest.desired_loader import load_desired_state
from ...graph.resource_graph import ResourceGraph
from ...utils.errors import GraphApplyError
from ...utils.logging import get_logger
from ..utils import format_error, resolve_file_path

logger = get_logger("cli.validate")


@click.command()
@click.argument('desired', type=click.Path(exists=False))
def validate(desired):
    """
    Validate a desired-state document.

    Loads DESIRED, checks every reference and explicit dependency names a
    declared resource, and checks the dependency graph has no cycle.
    """
    try:
        path = resolve_file_path(desired)
        desired_state = load_desired_state(str(path))
        graph = ResourceGraph.from_desired_state(desired_state)
        graph.check_acyclic()
        click.echo(
            f"Valid: {len(graph)} resources, "
            f"{graph.graph.number_of_edges()} dependencies, no cycles."
        )
    except FileNotFoundError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except GraphApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Validation failed: {e}"), err=True)
        sys.exit(1)
