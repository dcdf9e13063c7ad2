"""Version command - show GraphApply and state file format versions."""

import click
from ... import __version__
from ...state.store import FileStateStore


@click.command()
@click.option('--verbose', '-v', is_flag=True, help='Also show the state file format version')
def version(verbose: bool):
    """Show GraphApply version."""
    click.echo(f"graphapply version {__version__}")
    if verbose:
        click.echo(f"state file format {FileStateStore.FORMAT_VERSION}")
