# SPDX-License-Identifier: MIT
"""Pytest configuration and fixtures for prebundle tests."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Union

import pytest

from prebundle.engines import BundleResult, Engines, FormatBuildOptions
from prebundle.strategy import EntryExportOverride


def make_package(
    project: Path,
    name: str,
    manifest: Optional[dict[str, Any]] = None,
    files: Optional[dict[str, str]] = None,
) -> Path:
    """Install a fake package under ``project/node_modules``."""
    pkg_dir = project / "node_modules" / name
    pkg_dir.mkdir(parents=True, exist_ok=True)
    data = {"name": name, "version": "1.0.0", "main": "index.js"}
    if manifest is not None:
        data.update(manifest)
    (pkg_dir / "package.json").write_text(json.dumps(data), encoding="utf-8")
    for rel, content in (files or {"index.js": "module.exports = {};\n"}).items():
        path = pkg_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return pkg_dir


@dataclass
class FakeNcc:
    code: str = "module.exports = 1;\n"
    assets: dict[str, bytes] = field(default_factory=dict)
    error: Optional[Exception] = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    def bundle(self, entry, *, externals, minify, target, cache) -> BundleResult:
        self.calls.append(
            {"entry": entry, "externals": externals, "minify": minify,
             "target": target, "cache": cache}
        )
        if self.error is not None:
            raise self.error
        return BundleResult(code=self.code, assets=dict(self.assets))


@dataclass
class FakeEsbuild:
    """Simulates esbuild resolving the entry and one nested import."""

    nested: str = "./lib/util.js"
    error: Optional[Exception] = None
    calls: list[FormatBuildOptions] = field(default_factory=list)
    loaded: list[tuple[str, str]] = field(default_factory=list)

    def build(self, options: FormatBuildOptions) -> list[str]:
        self.calls.append(options)
        if self.error is not None:
            raise self.error
        entry = options.entry_points[0]
        text = f"// bundled {entry}\n"
        for path, importer in [(entry, ""), (self.nested, entry)]:
            if options.entry_override is not None and EntryExportOverride.applies_to(importer):
                self.loaded.append((path, "override"))
                text += options.entry_override.contents
            else:
                self.loaded.append((path, "file"))
        return [text]


@dataclass
class FakeDts:
    content: str = "export declare const x: number;\n"
    error: Optional[Exception] = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    def bundle(self, input, *, externals, compiler_options, out_dir) -> None:
        self.calls.append(
            {"input": input, "externals": externals,
             "compiler_options": compiler_options, "out_dir": out_dir}
        )
        if self.error is not None:
            raise self.error
        out_dir.mkdir(parents=True, exist_ok=True)
        (out_dir / "index.d.ts").write_text(self.content, encoding="utf-8")


@dataclass
class FakeFormatter:
    minified: Union[str, None, Callable[[str], Optional[str]]] = None
    formatted_suffix: str = "// formatted\n"

    def minify(self, code: str) -> Optional[str]:
        if callable(self.minified):
            return self.minified(code)
        if self.minified is None:
            return code.replace("/* comment */", "")
        return self.minified

    def format(self, code: str, filepath: Path) -> str:
        return code + self.formatted_suffix


@dataclass
class FakeInspector:
    keys: dict[str, list[str]] = field(default_factory=dict)
    calls: list[Path] = field(default_factory=list)

    def export_keys(self, path: Path) -> list[str]:
        self.calls.append(path)
        return list(self.keys.get(str(path), []))


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create an empty project directory with node_modules."""
    project_dir = tmp_path / "project"
    (project_dir / "node_modules").mkdir(parents=True)
    return project_dir


@pytest.fixture
def engines() -> Engines:
    """Create in-memory engines that never touch Node."""
    return Engines(
        ncc=FakeNcc(),
        esbuild=FakeEsbuild(),
        dts=FakeDts(),
        formatter=FakeFormatter(),
        inspector=FakeInspector(),
    )
