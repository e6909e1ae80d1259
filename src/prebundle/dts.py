# SPDX-License-Identifier: MIT
"""Declaration synthesis for prebundled dependencies.

The declaration entry is looked up in order:

1. ``types``/``typing``/``typings`` (or ``exports["."].types``) in the
   dependency's own manifest
2. a ``.d.ts`` next to the resolved entry file
3. the manifest of the ``@types/*`` companion package

The first hit is bundled into ``index.d.ts``; when nothing is found a
permissive ``export = any;`` declaration is written instead.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

import structlog

from .constants import FALLBACK_DTS, TYPES_FIELDS
from .engines import Engines
from .externals import declaration_externals
from .resolver import find_direct_type_file, find_package_json, pkg_name_to_at_types, read_json
from .task import ParsedTask

log = structlog.get_logger("prebundle.dts")


class DeclarationOutcome(str, Enum):
    """How index.d.ts was produced for a dependency."""

    BUNDLED = "bundled"
    FALLBACK = "fallback"
    IGNORED = "ignored"
    FAILED_FALLBACK = "failed-fallback"


def get_types_field(manifest: Any) -> Optional[str]:
    """Read the declaration path out of a manifest, or None."""
    if not isinstance(manifest, dict):
        return None
    for key in TYPES_FIELDS:
        value = manifest.get(key)
        if isinstance(value, str) and value:
            return value
    # packages that only declare `exports`
    exports = manifest.get("exports")
    if isinstance(exports, dict):
        return get_types_field(exports.get("."))
    return None


def _read_manifest(path: Path) -> Any:
    try:
        return read_json(path)
    except (OSError, json.JSONDecodeError):
        return None


def _from_manifest(task: ParsedTask, cwd: Path) -> Optional[Path]:
    types = get_types_field(_read_manifest(task.dep_path / "package.json"))
    return task.dep_path / types if types else None


def _from_direct_file(task: ParsedTask, cwd: Path) -> Optional[Path]:
    return find_direct_type_file(task.dep_entry)


def _from_at_types(task: ParsedTask, cwd: Path) -> Optional[Path]:
    manifest_path = find_package_json(pkg_name_to_at_types(task.dep_name), cwd)
    if manifest_path is None:
        return None
    types = get_types_field(_read_manifest(manifest_path))
    if types:
        return manifest_path.parent / types
    index = manifest_path.parent / "index.d.ts"
    return index if index.is_file() else None


DECLARATION_LOOKUPS: list[Callable[[ParsedTask, Path], Optional[Path]]] = [
    _from_manifest,
    _from_direct_file,
    _from_at_types,
]


def find_declaration_input(task: ParsedTask, cwd: Path) -> Optional[Path]:
    """Return the first declaration entry found by the lookup chain."""
    for lookup in DECLARATION_LOOKUPS:
        found = lookup(task, cwd)
        if found is not None:
            return found
    return None


def compiler_options(task: ParsedTask) -> dict[str, Any]:
    """TypeScript options for declaration-only bundling."""
    return {
        "skipLibCheck": True,
        "preserveSymlinks": False,
        "composite": False,
        "incremental": False,
        "declarationMap": False,
        "declaration": True,
        "noEmit": False,
        "emitDeclarationOnly": True,
        "noEmitOnError": True,
        "checkJs": False,
        "target": task.target,
    }


def write_fallback_dts(task: ParsedTask) -> None:
    path = task.dist_path / "index.d.ts"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(FALLBACK_DTS, encoding="utf-8")


def emit_dts(task: ParsedTask, engines: Engines, cwd: Path) -> DeclarationOutcome:
    """Write ``index.d.ts`` for a task.

    Declaration bundler failures are logged and replaced by the fallback
    declaration; they never abort the dependency.
    """
    if task.ignore_dts:
        write_fallback_dts(task)
        return DeclarationOutcome.IGNORED

    input_path = find_declaration_input(task, cwd)
    if input_path is None:
        write_fallback_dts(task)
        return DeclarationOutcome.FALLBACK

    try:
        engines.dts.bundle(
            input_path,
            externals=declaration_externals(task),
            compiler_options=compiler_options(task),
            out_dir=task.dist_path,
        )
    except Exception as e:
        log.error(
            "prebundle.dts_failed",
            dependency=task.dep_name,
            input=str(input_path),
            error=str(e),
        )
        write_fallback_dts(task)
        return DeclarationOutcome.FAILED_FALLBACK

    return DeclarationOutcome.BUNDLED
