"""Apply and destroy commands - converge providers onto the desired state."""

import signal
import sys
import threading
import click
from ...execution.cancellation import CancellationToken
from ...presentation.human_formatter import format_plan, format_report
from ...utils.errors import GraphApplyError
from ...utils.logging import get_logger
from ..utils import build_reconciler, emit, format_error, resolve_file_path, to_json

logger = get_logger("cli.apply")


def _install_interrupt_handler(token: CancellationToken):
    """First Ctrl-C cancels the run; a second one aborts immediately."""
    if threading.current_thread() is not threading.main_thread():
        return None

    def handler(signum, frame):
        if token.cancelled:
            raise KeyboardInterrupt
        click.echo("Interrupt received: finishing in-flight operations, dispatching nothing new.", err=True)
        token.cancel("run cancelled by interrupt")

    return signal.signal(signal.SIGINT, handler)


def _run(desired, config_path, state_path, refresh, concurrency, json_output, output, quiet, destroy):
    token = CancellationToken()
    previous_handler = _install_interrupt_handler(token)
    try:
        path = resolve_file_path(desired)
        reconciler = build_reconciler(config_path, state_path, overrides={"concurrency": concurrency})
        if not quiet:
            click.echo(f"Applying {'destroy of ' if destroy else ''}{path}", err=True)

        result = reconciler.apply(str(path), refresh=refresh, destroy=destroy, cancel_token=token)

        if json_output:
            text = to_json({
                "plans": [p.model_dump(mode="json") for p in result.plans],
                "report": result.report.model_dump(mode="json"),
                "replanned": result.replanned,
            })
        else:
            sections = [format_plan(p) for p in result.plans]
            sections.append(format_report(result.report))
            text = "\n\n".join(sections)
        emit(text, output, quiet)

        if not result.success:
            sys.exit(1)
    except FileNotFoundError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except GraphApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Apply failed: {e}"), err=True)
        sys.exit(1)
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)


_common_options = [
    click.argument('desired', type=click.Path(exists=False)),
    click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='Engine config YAML file'),
    click.option('--state', 'state_path', type=click.Path(), help='State file (default: state.path from config)'),
    click.option('--refresh', is_flag=True, help='Re-read every recorded resource from its provider first'),
    click.option('--concurrency', type=click.IntRange(min=1), help='Maximum operations applied at once'),
    click.option('--json', 'json_output', is_flag=True, help='Output plans and run report as JSON'),
    click.option('--output', '-o', type=click.Path(), help='Save output to file'),
    click.option('--quiet', is_flag=True, help='Suppress progress messages'),
]


def _with_common_options(fn):
    for option in reversed(_common_options):
        fn = option(fn)
    return fn


@click.command()
@_with_common_options
def apply(desired, config_path, state_path, refresh, concurrency, json_output, output, quiet):
    """
    Converge providers onto DESIRED and record the outcome.

    Exits 1 if any operation failed. Ctrl-C stops dispatching new
    operations; in-flight ones finish and are recorded.
    """
    _run(desired, config_path, state_path, refresh, concurrency, json_output, output, quiet, destroy=False)


@click.command()
@_with_common_options
def destroy(desired, config_path, state_path, refresh, concurrency, json_output, output, quiet):
    """Delete every recorded resource, dependents first."""
    _run(desired, config_path, state_path, refresh, concurrency, json_output, output, quiet, destroy=True)
