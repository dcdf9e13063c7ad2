"""Main CLI entry point for GraphApply."""

import click
from .commands.apply import apply, destroy
from .commands.graph import graph
from .commands.plan import plan
from .commands.state import state
from .commands.validate import validate
from .commands.version import version as version_command
from ..utils.logging import get_logger, set_verbosity
from .. import __version__

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="graphapply", message="%(prog)s version %(version)s")
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose):
    """GraphApply - Dependency-aware declarative resource reconciler."""
    set_verbosity(verbose)


cli.add_command(validate)
cli.add_command(graph)
cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(state)
cli.add_command(version_command)
