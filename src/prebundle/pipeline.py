# SPDX-License-Identifier: MIT
"""The prebundle pipeline.

Each dependency goes through the same fixed sequence:

    teardown -> before hook -> build -> declarations -> materialize -> after hook

Dependencies are independent: each owns its output directory, so a run can
build several at once. A failure aborts only the dependency it happened in,
unless ``fail_fast`` is set.
"""

from __future__ import annotations

import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import structlog

from .config import DependencyConfig, PrebundleConfig
from .dts import DeclarationOutcome, emit_dts
from .engines import Engines
from .errors import PrebundleError
from .materializer import materialize
from .strategy import build_cache_dir, select_strategy
from .task import ParsedTask, dist_path_for, resolve_task

log = structlog.get_logger("prebundle.pipeline")


@dataclass(frozen=True)
class RunOptions:
    """Process-wide settings, read once at startup.

    Attributes:
        cwd: Project directory
        only: Build only the dependency with this name
        ci: Running under continuous integration (disables the ncc cache)
        jobs: Maximum number of dependencies built at once
        fail_fast: Stop starting new dependencies after the first failure
    """

    cwd: Path
    only: Optional[str] = None
    ci: bool = False
    jobs: int = 1
    fail_fast: bool = False


class Status(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class PrebundleResult:
    """Outcome of prebundling one dependency."""

    name: str
    status: Status
    dist_path: Optional[Path] = None
    declaration: Optional[DeclarationOutcome] = None
    error: Optional[str] = None


@dataclass
class RunReport:
    """Outcome of a whole prebundle run, one result per configured dependency."""

    results: list[PrebundleResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[PrebundleResult]:
        return [r for r in self.results if r.status is Status.SUCCESS]

    @property
    def failed(self) -> list[PrebundleResult]:
        return [r for r in self.results if r.status is Status.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed


def prebundle(task: ParsedTask, engines: Engines, options: RunOptions) -> PrebundleResult:
    """Prebundle a single dependency into its output directory.

    Raises:
        PrebundleError: If the hook, build, or materialization fails
    """
    log.info("prebundle.start", dependency=task.dep_name)

    if task.dist_path.exists():
        shutil.rmtree(task.dist_path)

    task.hooks.run_before(task)

    strategy = select_strategy(task, engines, cache=build_cache_dir(options.cwd, options.ci))
    output = strategy.execute(task)

    task.dist_path.mkdir(parents=True, exist_ok=True)
    declaration = emit_dts(task, engines, options.cwd)
    materialize(task, output, engines)

    task.hooks.run_after(task)

    log.info(
        "prebundle.success",
        dependency=task.dep_name,
        dist_path=str(task.dist_path),
        declaration=declaration.value,
    )
    return PrebundleResult(
        name=task.dep_name,
        status=Status.SUCCESS,
        dist_path=task.dist_path,
        declaration=declaration,
    )


def _dependency_name(dep: Union[str, DependencyConfig]) -> str:
    return dep if isinstance(dep, str) else dep.name


def _run_one(
    dep: Union[str, DependencyConfig],
    config: PrebundleConfig,
    engines: Engines,
    options: RunOptions,
) -> PrebundleResult:
    name = _dependency_name(dep)
    try:
        task = resolve_task(dep, config, options.cwd)
        return prebundle(task, engines, options)
    except Exception as e:
        # hooks are user code and may raise anything
        log.error(
            "prebundle.failed",
            dependency=name,
            error=str(e),
            exc_info=not isinstance(e, PrebundleError),
        )
        return PrebundleResult(
            name=name,
            status=Status.FAILED,
            dist_path=dist_path_for(name, options.cwd),
            error=str(e),
        )


def run(
    config: PrebundleConfig,
    engines: Engines,
    options: RunOptions,
) -> RunReport:
    """Prebundle every configured dependency.

    Args:
        config: Prebundle configuration
        engines: External engines to build with
        options: Process-wide run settings

    Returns:
        RunReport with one result per configured dependency, in config order
    """
    results: dict[int, PrebundleResult] = {}
    pending: list[tuple[int, Union[str, DependencyConfig]]] = []

    for index, dep in enumerate(config.dependencies):
        name = _dependency_name(dep)
        if options.only and name != options.only:
            results[index] = PrebundleResult(name=name, status=Status.SKIPPED)
        else:
            pending.append((index, dep))

    if options.jobs <= 1:
        aborted = False
        for index, dep in pending:
            if aborted:
                results[index] = PrebundleResult(name=_dependency_name(dep), status=Status.SKIPPED)
                continue
            results[index] = _run_one(dep, config, engines, options)
            if options.fail_fast and results[index].status is Status.FAILED:
                aborted = True
    else:
        _run_parallel(pending, results, config, engines, options)

    return RunReport(results=[results[i] for i in sorted(results)])


def _run_parallel(
    pending: list[tuple[int, Union[str, DependencyConfig]]],
    results: dict[int, PrebundleResult],
    config: PrebundleConfig,
    engines: Engines,
    options: RunOptions,
) -> None:
    with ThreadPoolExecutor(max_workers=options.jobs) as pool:
        futures = {
            index: pool.submit(_run_one, dep, config, engines, options) for index, dep in pending
        }
        aborted = False
        for index, dep in pending:
            future = futures[index]
            if aborted and future.cancel():
                results[index] = PrebundleResult(name=_dependency_name(dep), status=Status.SKIPPED)
                continue
            results[index] = future.result()
            if options.fail_fast and results[index].status is Status.FAILED:
                aborted = True
