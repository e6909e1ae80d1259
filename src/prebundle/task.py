# SPDX-License-Identifier: MIT
"""Resolution of dependency configs into fully populated tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from .config import DependencyConfig, DtsExternal, EmitFile, PrebundleConfig
from .constants import (
    DEFAULT_EXTERNALS,
    DEFAULT_FORMAT,
    DEFAULT_PLATFORM,
    DEFAULT_TARGET,
    DIST_DIR,
)
from .errors import ResolutionError
from .externals import merge_dts_externals, merge_externals
from .hooks import BundleHooks
from .resolver import find_dep_path, resolve_entry


@dataclass(frozen=True)
class ParsedTask:
    """Everything the pipeline needs to prebundle one dependency.

    Every field is populated; nothing downstream applies its own default.

    Attributes:
        dep_name: Package name, also used as the output manifest name
        dep_path: Install directory of the dependency
        dep_entry: Resolved entry file
        dist_path: Output directory
        format: "cjs" or "esm"
        target: ECMAScript target
        minify: Minify the bundled code
        platform: esbuild platform
        alias: esbuild module alias table
        esbuild_external: Modules esbuild leaves unbundled
        export_star_as_default: Re-export the entry namespace as default
        export_cjs_named_export: Re-export the entry's keys by name
        external_node_builtins: Leave Node built-ins external in esbuild
        externals: Merged externals (defaults, global, dependency)
        dts_externals: Merged declaration externals (global, dependency)
        emit_files: Extra files written into the output
        hooks: Before/after bundle callbacks
        package_json_field: Extra manifest fields copied through
        ignore_dts: Emit the fallback declaration without bundling
        prettier: Strip comments and reformat the bundled code
    """

    dep_name: str
    dep_path: Path
    dep_entry: Path
    dist_path: Path
    format: str = DEFAULT_FORMAT
    target: str = DEFAULT_TARGET
    minify: bool = False
    platform: str = DEFAULT_PLATFORM
    alias: dict[str, str] = field(default_factory=dict)
    esbuild_external: list[str] = field(default_factory=list)
    export_star_as_default: bool = False
    export_cjs_named_export: bool = False
    external_node_builtins: bool = False
    externals: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_EXTERNALS))
    dts_externals: list[DtsExternal] = field(default_factory=list)
    emit_files: list[EmitFile] = field(default_factory=list)
    hooks: BundleHooks = field(default_factory=BundleHooks)
    package_json_field: list[str] = field(default_factory=list)
    ignore_dts: bool = False
    prettier: bool = False


def dist_path_for(name: str, cwd: Path) -> Path:
    """Output directory for a dependency."""
    return cwd / DIST_DIR / name


def resolve_task(
    dep: Union[str, DependencyConfig],
    config: PrebundleConfig,
    cwd: Path,
) -> ParsedTask:
    """Turn a dependency entry into a ParsedTask.

    Args:
        dep: Bare dependency name or a DependencyConfig
        config: Top-level configuration supplying the global layers
        cwd: Project directory

    Returns:
        ParsedTask instance

    Raises:
        ResolutionError: If the dependency is not installed or has no entry
        ConfigError: If a hook cannot be loaded
    """
    if isinstance(dep, str):
        dep = DependencyConfig(name=dep)

    dep_path = find_dep_path(dep.name, cwd)
    if dep_path is None:
        raise ResolutionError(f"Cannot find dependency '{dep.name}' in node_modules")

    dep_entry = resolve_entry(dep_path)

    return ParsedTask(
        dep_name=dep.name,
        dep_path=dep_path,
        dep_entry=dep_entry,
        dist_path=dist_path_for(dep.name, cwd),
        format=dep.format or DEFAULT_FORMAT,
        target=dep.target or DEFAULT_TARGET,
        minify=bool(dep.minify),
        platform=dep.platform or DEFAULT_PLATFORM,
        alias=dict(dep.alias or {}),
        esbuild_external=list(dep.esbuild_external or []),
        export_star_as_default=bool(dep.export_star_as_default),
        export_cjs_named_export=bool(dep.export_cjs_named_export),
        external_node_builtins=bool(dep.external_node_builtins),
        externals=merge_externals(DEFAULT_EXTERNALS, config.externals, dep.externals),
        dts_externals=merge_dts_externals(config.dts_externals, dep.dts_externals),
        emit_files=list(dep.emit_files or []),
        hooks=BundleHooks.from_specs(dep.before_bundle, dep.after_bundle, search_path=cwd),
        package_json_field=list(dep.package_json_field or []),
        ignore_dts=bool(dep.ignore_dts),
        prettier=config.prettier if dep.prettier is None else dep.prettier,
    )
