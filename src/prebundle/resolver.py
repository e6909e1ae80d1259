# SPDX-License-Identifier: MIT
"""Lookups against the project's installed node_modules tree.

Packages are found the way Node finds them: starting at the project
directory and walking up through every parent's ``node_modules``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from .errors import ResolutionError

# Condition keys tried, in order, inside exports["."]
EXPORT_CONDITIONS = ["require", "node", "default", "import"]

_ENTRY_SUFFIXES = ["", ".js", ".cjs"]


def pkg_name_to_at_types(name: str) -> str:
    """Map a package name to its DefinitelyTyped companion.

    ``foo`` becomes ``@types/foo`` and ``@scope/foo`` becomes
    ``@types/scope__foo``.
    """
    if name.startswith("@"):
        scope, _, pkg = name[1:].partition("/")
        return f"@types/{scope}__{pkg}"
    return f"@types/{name}"


def read_json(path: Path) -> Any:
    """Read a JSON file."""
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, data: Any) -> None:
    """Write formatted JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def find_package_json(name: str, cwd: Path) -> Optional[Path]:
    """Find ``node_modules/<name>/package.json`` from cwd upward."""
    current = cwd.resolve()
    for directory in [current, *current.parents]:
        candidate = directory / "node_modules" / name / "package.json"
        if candidate.is_file():
            return candidate
    return None


def find_dep_path(name: str, cwd: Path) -> Optional[Path]:
    """Find the install directory of a dependency, or None."""
    manifest = find_package_json(name, cwd)
    return manifest.parent if manifest is not None else None


def _export_target(exports: Any) -> Optional[str]:
    """Pick the main entry out of a manifest ``exports`` field."""
    if isinstance(exports, str):
        return exports
    if not isinstance(exports, dict):
        return None

    root = exports.get(".", exports if not any(k.startswith(".") for k in exports) else None)
    if isinstance(root, str):
        return root
    if isinstance(root, dict):
        for condition in EXPORT_CONDITIONS:
            value = root.get(condition)
            if isinstance(value, str):
                return value
            if isinstance(value, dict):
                nested = _export_target(value)
                if nested:
                    return nested
    return None


def _probe(base: Path) -> Optional[Path]:
    for suffix in _ENTRY_SUFFIXES:
        candidate = base.with_name(base.name + suffix) if suffix else base
        if candidate.is_file():
            return candidate
    index = base / "index.js"
    if index.is_file():
        return index
    return None


def resolve_entry(dep_path: Path) -> Path:
    """Resolve the entry file a dependency's manifest declares.

    Raises:
        ResolutionError: If no candidate entry exists on disk
    """
    manifest_path = dep_path / "package.json"
    try:
        manifest = read_json(manifest_path)
    except (OSError, json.JSONDecodeError) as e:
        raise ResolutionError(f"Cannot read {manifest_path}: {e}") from e

    candidates: list[str] = []
    exported = _export_target(manifest.get("exports"))
    if exported:
        candidates.append(exported)
    main = manifest.get("main")
    if isinstance(main, str) and main:
        candidates.append(main)
    candidates.append("index.js")

    for candidate in candidates:
        found = _probe(dep_path / candidate)
        if found is not None:
            return found

    raise ResolutionError(
        f"Cannot resolve entry file for {dep_path.name} (tried {', '.join(candidates)})"
    )


def find_direct_type_file(entry: Path) -> Optional[Path]:
    """Return the ``.d.ts`` file sitting next to an entry file, if any."""
    name = entry.name
    for ext in (".js", ".cjs", ".mjs"):
        if name.endswith(ext):
            name = name[: -len(ext)]
            break
    candidate = entry.parent / f"{name}.d.ts"
    return candidate if candidate.is_file() else None
