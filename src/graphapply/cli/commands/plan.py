"""Plan command - show what apply would change."""

import sys
import click
from ...presentation.human_formatter import format_plan
from ...utils.errors import GraphApplyError
from ...utils.logging import get_logger
from ..utils import build_reconciler, emit, format_error, resolve_file_path, to_json

logger = get_logger("cli.plan")


@click.command()
@click.argument('desired', type=click.Path(exists=False))
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='Engine config YAML file')
@click.option('--state', 'state_path', type=click.Path(), help='State file (default: state.path from config)')
@click.option('--refresh', is_flag=True, help='Re-read every recorded resource from its provider first')
@click.option('--destroy', is_flag=True, help='Plan deletion of every recorded resource')
@click.option('--json', 'json_output', is_flag=True, help='Output the plan as JSON')
@click.option('--output', '-o', type=click.Path(), help='Save output to file')
@click.option('--show-unchanged', is_flag=True, help='Include resources that need no change')
def plan(desired, config_path, state_path, refresh, destroy, json_output, output, show_unchanged):
    """
    Compute the operations needed to converge on DESIRED.

    Nothing is changed; with --refresh, recorded state is re-read from
    providers and drift is written back to the state file.
    """
    try:
        path = resolve_file_path(desired)
        reconciler = build_reconciler(config_path, state_path)
        computed = reconciler.plan(str(path), refresh=refresh, destroy=destroy)

        if json_output:
            text = to_json(computed.model_dump(mode="json"))
        else:
            text = format_plan(computed, show_no_op=show_unchanged)
        emit(text, output)
    except FileNotFoundError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except GraphApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Planning failed: {e}"), err=True)
        sys.exit(1)
