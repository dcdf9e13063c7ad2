"""State commands - inspect recorded resources."""

import sys
import click
from ...config import load_engine_settings
from ...state.store import FileStateStore
from ...utils.errors import GraphApplyError
from ...utils.logging import get_logger
from ..utils import emit, format_error, to_json

logger = get_logger("cli.state")


def _open_store(config_path, state_path) -> FileStateStore:
    if state_path is None:
        state_path = load_engine_settings(config_path).state.path
    return FileStateStore(state_path)


@click.group()
def state():
    """State inspection commands."""
    pass


@state.command('list')
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='Engine config YAML file')
@click.option('--state', 'state_path', type=click.Path(), help='State file (default: state.path from config)')
def list_records(config_path, state_path):
    """List recorded resources."""
    try:
        store = _open_store(config_path, state_path)
        records = store.all()
        if not records:
            click.echo("No resources recorded.")
            return
        for node_id in sorted(records):
            click.echo(f"{node_id}\t{records[node_id].provider_id}")
    except GraphApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)


@state.command('show')
@click.argument('node_id')
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='Engine config YAML file')
@click.option('--state', 'state_path', type=click.Path(), help='State file (default: state.path from config)')
def show(node_id, config_path, state_path):
    """Show one recorded resource as JSON."""
    try:
        store = _open_store(config_path, state_path)
        record = store.load(node_id)
        if record is None:
            known = ", ".join(store.list_ids()) or "none"
            click.echo(format_error(f"No state recorded for '{node_id}'", f"Recorded resources: {known}"), err=True)
            sys.exit(1)
        emit(to_json(record.model_dump(mode="json")))
    except GraphApplyError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
