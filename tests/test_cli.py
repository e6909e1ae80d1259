# SPDX-License-Identifier: MIT
"""Tests for the prebundle command line."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from prebundle import cli as cli_module
from prebundle.cli import cli
from prebundle.engines import Engines

from conftest import make_package


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def fake_engines(monkeypatch: pytest.MonkeyPatch, engines: Engines) -> Engines:
    monkeypatch.setattr(cli_module, "build_engines", lambda project_dir: engines)
    monkeypatch.setattr(cli_module, "setup_logging", lambda level=None, fmt=None: None)
    return engines


def _write_config(project: Path, body: str) -> None:
    (project / "prebundle.toml").write_text(body)


class TestCli:
    def test_builds_all_dependencies(self, cli_runner: CliRunner, project: Path, fake_engines):
        make_package(project, "left-pad")
        make_package(project, "chalk")
        _write_config(project, 'dependencies = ["left-pad", { name = "chalk", format = "esm" }]\n')

        result = cli_runner.invoke(cli, ["-C", str(project)])

        assert result.exit_code == 0, result.output
        assert "prebundled: left-pad" in result.output
        assert "prebundled: chalk" in result.output
        assert "2 package(s) written" in result.output
        assert (project / "compiled" / "chalk" / "index.d.ts").exists()

    def test_package_argument_filters(self, cli_runner: CliRunner, project: Path, fake_engines):
        make_package(project, "left-pad")
        make_package(project, "chalk")
        _write_config(project, 'dependencies = ["left-pad", "chalk"]\n')

        result = cli_runner.invoke(cli, ["-C", str(project), "chalk"])

        assert result.exit_code == 0, result.output
        assert "prebundled: chalk" in result.output
        assert "left-pad" not in result.output
        assert not (project / "compiled" / "left-pad").exists()

    def test_failure_exit_code(self, cli_runner: CliRunner, project: Path, fake_engines):
        make_package(project, "left-pad")
        _write_config(project, 'dependencies = ["ghost", "left-pad"]\n')

        result = cli_runner.invoke(cli, ["-C", str(project)])

        assert result.exit_code == 1
        assert "ghost" in result.output
        assert "1 of 2 dependencies failed" in result.output
        assert (project / "compiled" / "left-pad" / "index.js").exists()

    def test_ci_env_disables_cache(
        self, cli_runner: CliRunner, project: Path, fake_engines, monkeypatch
    ):
        make_package(project, "left-pad")
        _write_config(project, 'dependencies = ["left-pad"]\n')
        monkeypatch.setenv("CI", "true")

        result = cli_runner.invoke(cli, ["-C", str(project)])

        assert result.exit_code == 0, result.output
        assert fake_engines.ncc.calls[0]["cache"] is False

    def test_missing_config(self, cli_runner: CliRunner, project: Path, fake_engines):
        result = cli_runner.invoke(cli, ["-C", str(project)])
        assert result.exit_code == 1
        assert "prebundle.toml" in result.output

    def test_invalid_config(self, cli_runner: CliRunner, project: Path, fake_engines):
        _write_config(project, 'dependencies = [{ name = "a", format = "umd" }]\n')
        result = cli_runner.invoke(cli, ["-C", str(project)])
        assert result.exit_code == 1
        assert "Invalid format" in result.output

    def test_unknown_package_warns(self, cli_runner: CliRunner, project: Path, fake_engines):
        make_package(project, "left-pad")
        _write_config(project, 'dependencies = ["left-pad"]\n')
        result = cli_runner.invoke(cli, ["-C", str(project), "nope"])
        assert result.exit_code == 0
        assert "not a configured dependency" in result.output

    def test_hook_module_in_project(
        self, cli_runner: CliRunner, project: Path, fake_engines, monkeypatch
    ):
        make_package(project, "left-pad")
        (project / "prebundle_cli_hooks.py").write_text(
            "def before(task):\n"
            "    task.dep_path.joinpath('hooked').write_text('yes')\n"
        )
        _write_config(
            project,
            'dependencies = [{ name = "left-pad", before_bundle = "prebundle_cli_hooks:before" }]\n',
        )
        monkeypatch.delitem(sys.modules, "prebundle_cli_hooks", raising=False)

        result = cli_runner.invoke(cli, ["-C", str(project)])
        sys.modules.pop("prebundle_cli_hooks", None)

        assert result.exit_code == 0, result.output
        assert (project / "node_modules" / "left-pad" / "hooked").read_text() == "yes"

    def test_fail_fast_reports_skipped(self, cli_runner: CliRunner, project: Path, fake_engines):
        make_package(project, "left-pad")
        _write_config(project, 'dependencies = ["ghost", "left-pad"]\n')

        result = cli_runner.invoke(cli, ["-C", str(project), "--fail-fast"])

        assert result.exit_code == 1
        assert "Prebundling into" in result.output
        assert "skipped: left-pad" in result.output
        assert not (project / "compiled" / "left-pad").exists()
