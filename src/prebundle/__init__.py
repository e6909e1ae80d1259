# SPDX-License-Identifier: MIT
"""Prebundling of third-party Node dependencies.

This package turns a list of dependencies into self-contained vendored
packages: one bundled entry module, a synthesized ``index.d.ts``, a trimmed
``package.json`` and the license, with no dependency edges left except the
declared externals.

Example:
    >>> from pathlib import Path
    >>> from prebundle import Engines, RunOptions, load_config, run
    >>>
    >>> project = Path(".")
    >>> config = load_config(project)
    >>> report = run(config, Engines.node(project), RunOptions(cwd=project))
    >>> [r.name for r in report.failed]
    []
"""

__version__ = "0.1.0"

from .config import (
    DependencyConfig,
    EmitFile,
    PrebundleConfig,
    find_config_file,
    load_config,
)
from .dts import DeclarationOutcome, emit_dts, find_declaration_input
from .engines import (
    BundleResult,
    Engines,
    EntryOverride,
    FormatBuildOptions,
    NodeRunner,
)
from .errors import (
    BuildError,
    ConfigError,
    EngineError,
    MaterializeError,
    PrebundleError,
    ResolutionError,
)
from .externals import merge_dts_externals, merge_externals
from .hooks import BundleHooks, load_hook
from .pipeline import PrebundleResult, RunOptions, RunReport, Status, prebundle, run
from .strategy import BuildOutput, EntryExportOverride, select_strategy
from .task import ParsedTask, resolve_task

__all__ = [
    # Config
    "DependencyConfig",
    "EmitFile",
    "PrebundleConfig",
    "find_config_file",
    "load_config",
    # Tasks
    "ParsedTask",
    "resolve_task",
    "BundleHooks",
    "load_hook",
    "merge_externals",
    "merge_dts_externals",
    # Engines
    "Engines",
    "NodeRunner",
    "BundleResult",
    "EntryOverride",
    "FormatBuildOptions",
    # Build
    "BuildOutput",
    "EntryExportOverride",
    "select_strategy",
    "DeclarationOutcome",
    "emit_dts",
    "find_declaration_input",
    # Pipeline
    "prebundle",
    "run",
    "RunOptions",
    "RunReport",
    "PrebundleResult",
    "Status",
    # Errors
    "PrebundleError",
    "ConfigError",
    "ResolutionError",
    "BuildError",
    "EngineError",
    "MaterializeError",
]
