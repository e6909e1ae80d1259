# SPDX-License-Identifier: MIT
"""Writing a prebundled dependency's output package to disk."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any, Optional

from .constants import MANIFEST_FIELDS, TYPES_FIELDS
from .engines import CodeFormatter, Engines
from .errors import MaterializeError
from .resolver import read_json, write_json
from .strategy import BuildOutput
from .task import ParsedTask

INDEX_FILENAME = "index.js"


def emit_index(
    code: str,
    dist_path: Path,
    prettier: bool = False,
    formatter: Optional[CodeFormatter] = None,
) -> Path:
    """Write the bundled entry code.

    With ``prettier`` the code is first stripped of comments by the minifier
    (no compression, no mangling) and then reformatted.

    Raises:
        MaterializeError: If the minifier returns no code
    """
    index = dist_path / INDEX_FILENAME
    index.parent.mkdir(parents=True, exist_ok=True)

    if prettier:
        if formatter is None:
            raise MaterializeError("prettier requested but no formatter is configured")
        minimized = formatter.minify(code)
        if not minimized:
            raise MaterializeError(f"terser minify failed for {index}")
        code = formatter.format(minimized, index)

    index.write_text(code, encoding="utf-8")
    return index


def emit_assets(assets: dict[str, bytes], dist_path: Path) -> None:
    for name, source in assets.items():
        path = dist_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(source)


def pick(data: dict[str, Any], keys: list[str]) -> dict[str, Any]:
    """Copy the given keys that exist in ``data``, in key order."""
    return {key: data[key] for key in keys if key in data}


def build_package_json(
    task: ParsedTask,
    source: dict[str, Any],
    package_type: Optional[str] = None,
) -> dict[str, Any]:
    """Build the trimmed output manifest from the dependency's manifest."""
    manifest = pick(source, [*MANIFEST_FIELDS, *task.package_json_field])

    if manifest.get("name") != task.dep_name:
        manifest["name"] = task.dep_name

    manifest["types"] = "index.d.ts"
    manifest["type"] = "commonjs"
    if package_type:
        manifest["type"] = package_type

    return manifest


def emit_package_json(task: ParsedTask, package_type: Optional[str] = None) -> dict[str, Any]:
    source_path = task.dep_path / "package.json"
    try:
        source = read_json(source_path)
    except (OSError, ValueError) as e:
        raise MaterializeError(f"Cannot read {source_path}: {e}") from e

    manifest = build_package_json(task, source, package_type)
    write_json(task.dist_path / "package.json", manifest)
    return manifest


def emit_license(task: ParsedTask) -> bool:
    """Copy LICENSE to ``license`` in the output. Returns False when absent."""
    license_path = task.dep_path / "LICENSE"
    if not license_path.is_file():
        return False
    task.dist_path.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(license_path, task.dist_path / "license")
    return True


def remove_source_maps(dist_path: Path) -> int:
    """Delete every ``*.map`` file under the output directory."""
    removed = 0
    for path in sorted(dist_path.rglob("*.map")):
        if path.is_file():
            path.unlink()
            removed += 1
    return removed


def rename_dist_folder(dist_path: Path) -> None:
    """Move a ``dist/`` folder referenced by the manifest's types to ``types/``."""
    manifest_path = dist_path / "package.json"
    manifest = read_json(manifest_path)

    for key in TYPES_FIELDS:
        value = manifest.get(key)
        if isinstance(value, str) and value.startswith("dist/"):
            manifest[key] = "types/" + value[len("dist/"):]

            dist_folder = dist_path / "dist"
            if dist_folder.is_dir():
                dist_folder.rename(dist_path / "types")

    write_json(manifest_path, manifest)


def emit_extra_files(task: ParsedTask) -> None:
    for item in task.emit_files:
        path = task.dist_path / item.path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(item.content, encoding="utf-8")


def materialize(task: ParsedTask, output: BuildOutput, engines: Engines) -> None:
    """Write a task's build output as a complete package.

    Raises:
        MaterializeError: If the entry cannot be written
    """
    emit_index(output.code, task.dist_path, task.prettier, engines.formatter)
    emit_assets(output.assets, task.dist_path)
    emit_package_json(task, output.package_type)
    emit_license(task)
    remove_source_maps(task.dist_path)
    rename_dist_folder(task.dist_path)
    emit_extra_files(task)
