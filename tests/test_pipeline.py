# SPDX-License-Identifier: MIT
"""End-to-end tests for the prebundle pipeline with fake engines."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from prebundle.config import DependencyConfig, PrebundleConfig
from prebundle.constants import FALLBACK_DTS
from prebundle.dts import DeclarationOutcome
from prebundle.engines import Engines
from prebundle.errors import EngineError
from prebundle.pipeline import RunOptions, Status, prebundle, run
from prebundle.task import resolve_task

from conftest import make_package


def _snapshot(directory: Path) -> dict[str, bytes]:
    return {
        str(p.relative_to(directory)): p.read_bytes()
        for p in sorted(directory.rglob("*"))
        if p.is_file()
    }


class TestPrebundle:
    def test_left_pad_scenario(self, project: Path, engines: Engines):
        """CJS dependency with no declarations anywhere gets the fallback."""
        make_package(project, "left-pad", {"license": "WTFPL"})
        task = resolve_task("left-pad", PrebundleConfig(), project)

        result = prebundle(task, engines, RunOptions(cwd=project))

        assert result.status is Status.SUCCESS
        assert result.declaration is DeclarationOutcome.FALLBACK
        dist = project / "compiled" / "left-pad"
        assert (dist / "index.d.ts").read_text() == FALLBACK_DTS
        manifest = json.loads((dist / "package.json").read_text())
        assert manifest["types"] == "index.d.ts"
        assert manifest["type"] == "commonjs"
        assert (dist / "index.js").read_text() == engines.ncc.code

    def test_esm_output_is_module(self, project: Path, engines: Engines):
        make_package(project, "chalk")
        task = resolve_task(
            DependencyConfig(name="chalk", format="esm"), PrebundleConfig(), project
        )
        prebundle(task, engines, RunOptions(cwd=project))
        manifest = json.loads((task.dist_path / "package.json").read_text())
        assert manifest["type"] == "module"
        assert engines.ncc.calls == []

    def test_ncc_module_asset_sets_type(self, project: Path, engines: Engines):
        make_package(project, "pkg")
        engines.ncc.assets = {"package.json": b'{"type":"module"}'}
        task = resolve_task("pkg", PrebundleConfig(), project)
        prebundle(task, engines, RunOptions(cwd=project))
        manifest = json.loads((task.dist_path / "package.json").read_text())
        assert manifest["type"] == "module"

    def test_teardown_removes_stale_output(self, project: Path, engines: Engines):
        make_package(project, "pkg")
        stale = project / "compiled" / "pkg" / "stale.js"
        stale.parent.mkdir(parents=True)
        stale.write_text("old")

        prebundle(resolve_task("pkg", PrebundleConfig(), project), engines, RunOptions(cwd=project))

        assert not stale.exists()

    def test_idempotent(self, project: Path, engines: Engines):
        make_package(project, "pkg", {"types": "index.d.ts"},
                     {"index.js": "", "index.d.ts": "", "LICENSE": "MIT"})
        engines.ncc.assets = {"lib/a.js": b"a", "lib/a.js.map": b"{}"}
        task = resolve_task("pkg", PrebundleConfig(), project)

        prebundle(task, engines, RunOptions(cwd=project))
        first = _snapshot(task.dist_path)
        prebundle(task, engines, RunOptions(cwd=project))

        assert _snapshot(task.dist_path) == first

    def test_no_source_maps_survive(self, project: Path, engines: Engines):
        make_package(project, "pkg")
        engines.ncc.assets = {"index.js.map": b"{}", "deep/x/y.js.map": b"{}", "deep/x/y.js": b"y"}
        task = resolve_task("pkg", PrebundleConfig(), project)
        prebundle(task, engines, RunOptions(cwd=project))
        assert list(task.dist_path.rglob("*.map")) == []

    def test_cache_disabled_under_ci(self, project: Path, engines: Engines):
        make_package(project, "pkg")
        task = resolve_task("pkg", PrebundleConfig(), project)
        prebundle(task, engines, RunOptions(cwd=project, ci=True))
        prebundle(task, engines, RunOptions(cwd=project, ci=False))
        assert engines.ncc.calls[0]["cache"] is False
        assert engines.ncc.calls[1]["cache"] == project / "node_modules" / ".cache" / "ncc-cache"

    def test_hooks_run_around_build(self, project: Path, engines: Engines):
        make_package(project, "pkg")
        events = []

        def before(task):
            events.append(("before", task.dist_path.exists()))

        def after(task):
            events.append(("after", (task.dist_path / "index.js").exists()))

        dep = DependencyConfig(name="pkg", before_bundle=before, after_bundle=after)
        task = resolve_task(dep, PrebundleConfig(), project)
        prebundle(task, engines, RunOptions(cwd=project))

        assert events == [("before", False), ("after", True)]

    def test_build_failure_propagates(self, project: Path, engines: Engines):
        make_package(project, "pkg")
        engines.ncc.error = EngineError("ncc failed", op="ncc")
        task = resolve_task("pkg", PrebundleConfig(), project)
        with pytest.raises(EngineError):
            prebundle(task, engines, RunOptions(cwd=project))


class TestRun:
    def test_runs_every_dependency(self, project: Path, engines: Engines):
        make_package(project, "a")
        make_package(project, "b")
        config = PrebundleConfig(dependencies=["a", DependencyConfig(name="b", format="esm")])

        report = run(config, engines, RunOptions(cwd=project))

        assert report.ok
        assert [r.name for r in report.succeeded] == ["a", "b"]
        assert (project / "compiled" / "a" / "index.js").exists()
        assert (project / "compiled" / "b" / "index.js").exists()

    def test_single_dependency_filter(self, project: Path, engines: Engines):
        make_package(project, "a")
        make_package(project, "b")
        config = PrebundleConfig(dependencies=["a", "b"])

        report = run(config, engines, RunOptions(cwd=project, only="b"))

        statuses = {r.name: r.status for r in report.results}
        assert statuses == {"a": Status.SKIPPED, "b": Status.SUCCESS}
        assert not (project / "compiled" / "a").exists()

    def test_missing_dependency_does_not_stop_run(self, project: Path, engines: Engines):
        make_package(project, "b")
        config = PrebundleConfig(dependencies=["ghost", "b"])

        report = run(config, engines, RunOptions(cwd=project))

        assert not report.ok
        assert [r.name for r in report.failed] == ["ghost"]
        assert "Cannot find dependency" in report.failed[0].error
        assert [r.name for r in report.succeeded] == ["b"]

    def test_fail_fast_skips_remaining(self, project: Path, engines: Engines):
        make_package(project, "b")
        config = PrebundleConfig(dependencies=["ghost", "b"])

        report = run(config, engines, RunOptions(cwd=project, fail_fast=True))

        statuses = [(r.name, r.status) for r in report.results]
        assert statuses == [("ghost", Status.FAILED), ("b", Status.SKIPPED)]

    def test_hook_exception_fails_only_that_dependency(self, project: Path, engines: Engines):
        make_package(project, "a")
        make_package(project, "b")

        def explode(task):
            raise RuntimeError("hook exploded")

        config = PrebundleConfig(
            dependencies=[DependencyConfig(name="a", before_bundle=explode), "b"]
        )
        report = run(config, engines, RunOptions(cwd=project))

        assert report.failed[0].name == "a"
        assert report.failed[0].error == "hook exploded"
        assert report.succeeded[0].name == "b"

    def test_parallel_run_keeps_config_order(self, project: Path, engines: Engines):
        names = ["a", "b", "c", "d"]
        for name in names:
            make_package(project, name)
        config = PrebundleConfig(dependencies=list(names))

        report = run(config, engines, RunOptions(cwd=project, jobs=3))

        assert [r.name for r in report.results] == names
        assert report.ok
        for name in names:
            assert (project / "compiled" / name / "package.json").exists()
