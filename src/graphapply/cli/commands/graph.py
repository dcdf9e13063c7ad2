"""Graph command - print the dependency order of a desired-state document."""

import sys
import click
from ...graph.resource_graph import ResourceGraph
from ...ingest.desired_loader import load_desired_state
from ...presentation.human_formatter import format_graph
from ...utils.errors import GraphApplyError
from ...utils.logging import get_logger
from ..utils import emit, format_error, resolve_file_path, to_json

logger = get_logger("cli.graph")


@click.command()
@click.argument('desired', type=click.Path(exists=False))
@click.option('--json', 'json_output', is_flag=True, help='Output nodes and edges as JSON')
def graph(desired, json_output):
    """Show resources in dependency order (dependencies first)."""
    try:
        path = resolve_file_path(desired)
        resource_graph = ResourceGraph.from_desired_state(load_desired_state(str(path)))

        if json_output:
            payload = {
                "order": [node.node_id for node in resource_graph.topological_order()],
                "edges": [
                    {"from": node_id, "to": dep_id, "reason": data.get("reason")}
                    for node_id, dep_id, data in resource_graph.graph.edges(data=True)
                ],
            }
            emit(to_json(payload))
        else:
            emit(format_graph(resource_graph))
    except FileNotFoundError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except GraphApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Graph failed: {e}"), err=True)
        sys.exit(1)
