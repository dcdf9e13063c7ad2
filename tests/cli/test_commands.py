"""Tests for CLI commands."""

import json
import pytest
import yaml
from click.testing import CliRunner
from graphapply import __version__
from graphapply.cli.main import cli


DESIRED = {
    "version": "1",
    "resources": [
        {"kind": "role", "name": "r", "attributes": {"name": "eks-role"}},
        {"kind": "cluster", "name": "c", "attributes": {"name": "main", "role_arn": "${role.r.arn}"}},
        {"kind": "node_group", "name": "n", "attributes": {"cluster": "${cluster.c.name}", "size": 3}},
    ],
}

ENGINE_CONFIG = {
    "concurrency": 2,
    "providers": {
        "role": {"type": "memory", "computed": {"arn": "arn:role/{id}"}},
        "cluster": {"type": "memory"},
        "node_group": {"type": "memory"},
    },
}


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Isolated working directory with a desired-state file and engine config."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    for var in ("GRAPHAPPLY_CONCURRENCY", "GRAPHAPPLY_STATE_PATH", "GRAPHAPPLY_STALE_AFTER", "GRAPHAPPLY_MAX_ATTEMPTS"):
        monkeypatch.delenv(var, raising=False)
    (tmp_path / "graphapply.yaml").write_text(yaml.safe_dump(DESIRED), encoding='utf-8')
    (tmp_path / "engine.yaml").write_text(yaml.safe_dump(ENGINE_CONFIG), encoding='utf-8')
    return tmp_path


@pytest.fixture
def runner():
    return CliRunner()


class TestInspectionCommands:
    """Test commands that never call providers."""

    def test_version_command(self, runner):
        """Test version command."""
        result = runner.invoke(cli, ['version'])
        assert result.exit_code == 0
        assert f"graphapply version {__version__}" in result.output
        assert "state file format" not in result.output

    def test_version_verbose(self, runner):
        """Test version -v also shows the state file format."""
        result = runner.invoke(cli, ['version', '-v'])
        assert result.exit_code == 0
        assert "state file format 1" in result.output

    def test_version_option(self, runner):
        """Test --version flag."""
        result = runner.invoke(cli, ['--version'])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_validate(self, runner, workspace):
        """Test validating a well-formed document (directory resolves to graphapply.yaml)."""
        result = runner.invoke(cli, ['validate', '.'])
        assert result.exit_code == 0
        assert "Valid: 3 resources, 2 dependencies" in result.output

    def test_validate_cycle(self, runner, workspace):
        """Test validation fails on a dependency cycle."""
        cyclic = {
            "resources": [
                {"kind": "svc", "name": "a", "attributes": {"peer": "${svc.b.id}"}},
                {"kind": "svc", "name": "b", "attributes": {"peer": "${svc.a.id}"}},
            ]
        }
        (workspace / "cyclic.json").write_text(json.dumps(cyclic), encoding='utf-8')

        result = runner.invoke(cli, ['validate', 'cyclic.json'])

        assert result.exit_code == 1
        assert "Dependency cycle detected" in result.output

    def test_validate_missing_file(self, runner, workspace):
        """Test a missing file exits non-zero."""
        result = runner.invoke(cli, ['validate', 'nonexistent.yaml'])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_graph(self, runner, workspace):
        """Test dependency order output."""
        result = runner.invoke(cli, ['graph', 'graphapply.yaml', '--json'])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["order"] == ["role.r", "cluster.c", "node_group.n"]
        assert {"from": "cluster.c", "to": "role.r", "reason": "reference"} in payload["edges"]


class TestPlanAndApply:
    """Test commands that plan and apply."""

    def test_plan_json(self, runner, workspace):
        """Test plan prints operations in dependency order."""
        result = runner.invoke(cli, ['plan', 'graphapply.yaml', '-c', 'engine.yaml', '--json'])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert [op["op_id"] for op in payload["operations"]] == [
            "role.r:create", "cluster.c:create", "node_group.n:create",
        ]

    def test_plan_human(self, runner, workspace):
        """Test human-readable plan summary."""
        result = runner.invoke(cli, ['plan', 'graphapply.yaml', '-c', 'engine.yaml'])

        assert result.exit_code == 0
        assert "Plan: 3 to create, 0 to update, 0 to replace, 0 to delete." in result.output

    def test_apply_then_state(self, runner, workspace):
        """Test apply records state and a follow-up plan has no changes."""
        result = runner.invoke(cli, ['apply', 'graphapply.yaml', '-c', 'engine.yaml', '--quiet'])
        assert result.exit_code == 0
        assert "Result: SUCCESS" in result.output
        assert (workspace / "graphapply.state.json").exists()

        listed = runner.invoke(cli, ['state', 'list'])
        assert listed.exit_code == 0
        assert "cluster.c\tcluster-0001" in listed.output

        shown = runner.invoke(cli, ['state', 'show', 'role.r'])
        assert shown.exit_code == 0
        assert json.loads(shown.output)["attributes"]["arn"] == "arn:role/role-0001"

        replanned = runner.invoke(cli, ['plan', 'graphapply.yaml', '-c', 'engine.yaml'])
        assert "No changes." in replanned.output

    def test_apply_json_to_file(self, runner, workspace):
        """Test apply --json -o writes plans and report."""
        result = runner.invoke(cli, [
            'apply', 'graphapply.yaml', '-c', 'engine.yaml', '--json', '-o', 'out/run.json', '--quiet',
            '--state', 'custom.state.json',
        ])

        assert result.exit_code == 0
        payload = json.loads((workspace / "out" / "run.json").read_text(encoding='utf-8'))
        assert payload["report"]["success"] is True
        assert len(payload["report"]["results"]) == 3
        assert (workspace / "custom.state.json").exists()

    def test_apply_unknown_kind_fails(self, runner, workspace):
        """Test a kind without a provider adapter exits 1."""
        result = runner.invoke(cli, ['apply', 'graphapply.yaml', '--quiet'])

        assert result.exit_code == 1
        assert "No provider adapter registered" in result.output

    def test_destroy(self, runner, workspace):
        """Test destroy removes every recorded resource."""
        runner.invoke(cli, ['apply', 'graphapply.yaml', '-c', 'engine.yaml', '--quiet'])

        result = runner.invoke(cli, ['destroy', 'graphapply.yaml', '-c', 'engine.yaml', '--quiet'])

        assert result.exit_code == 0
        listed = runner.invoke(cli, ['state', 'list'])
        assert "No resources recorded." in listed.output

    def test_state_show_unknown(self, runner, workspace):
        """Test showing an unrecorded node exits 1."""
        result = runner.invoke(cli, ['state', 'show', 'role.nope'])
        assert result.exit_code == 1
        assert "No state recorded for 'role.nope'" in result.output
