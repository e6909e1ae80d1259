# SPDX-License-Identifier: MIT
"""Contracts for the external bundling engines and their Node implementations.

The pipeline never bundles anything itself. It talks to five collaborators:

- a whole-program CommonJS bundler (ncc)
- a format-targeted bundler (esbuild)
- a declaration bundler (rollup + rollup-plugin-dts)
- a minifier/formatter pair (terser + prettier)
- an export inspector that lists a CommonJS module's export keys

The Node implementations share one driver script shipped with this package.
Each call starts ``node drivers/engine.mjs``, writes a JSON request to its
stdin and reads a JSON reply from its stdout. Engine packages are resolved
from the project directory, so they must be installed there.
"""

from __future__ import annotations

import base64
import json
import re
import shutil
import subprocess
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Protocol, Union

from .errors import EngineError

if TYPE_CHECKING:
    from .config import DtsExternal

DRIVER_NAME = "engine.mjs"


@dataclass
class BundleResult:
    """Output of the whole-program bundler."""

    code: str
    assets: dict[str, bytes] = field(default_factory=dict)


@dataclass
class EntryOverride:
    """Replacement module source for the bundle's entry point.

    Applied by the format-targeted bundler only while resolving the entry
    itself, never for modules the entry imports.
    """

    contents: str
    resolve_dir: str


@dataclass
class FormatBuildOptions:
    """Options passed to the format-targeted bundler."""

    entry_points: list[str]
    format: str
    platform: str
    target: str
    minify: bool = False
    alias: dict[str, str] = field(default_factory=dict)
    external: list[str] = field(default_factory=list)
    entry_override: Optional[EntryOverride] = None


class WholeProgramBundler(Protocol):
    def bundle(
        self,
        entry: Path,
        *,
        externals: dict[str, str],
        minify: bool,
        target: str,
        cache: Union[Path, bool],
    ) -> BundleResult: ...


class FormatBundler(Protocol):
    def build(self, options: FormatBuildOptions) -> list[str]: ...


class DeclarationBundler(Protocol):
    def bundle(
        self,
        input: Path,
        *,
        externals: list[DtsExternal],
        compiler_options: dict[str, Any],
        out_dir: Path,
    ) -> None: ...


class CodeFormatter(Protocol):
    def minify(self, code: str) -> Optional[str]: ...

    def format(self, code: str, filepath: Path) -> str: ...


class ExportInspector(Protocol):
    def export_keys(self, path: Path) -> list[str]: ...


class NodeRunner:
    """Runs operations of the bundled Node driver script.

    Args:
        cwd: Project directory; engine packages are resolved from here
        node: Node executable (default: ``node`` on PATH)
    """

    def __init__(self, cwd: Path, node: Optional[str] = None) -> None:
        self.cwd = cwd
        self.node = node or shutil.which("node") or "node"

    @staticmethod
    def driver_path() -> Path:
        return Path(str(resources.files("prebundle") / "drivers" / DRIVER_NAME))

    def call(self, op: str, payload: dict[str, Any]) -> Any:
        """Run one driver operation and return its decoded reply.

        Raises:
            EngineError: If node is missing, exits non-zero, or replies with
                something other than JSON
        """
        request = json.dumps({"op": op, "cwd": str(self.cwd), **payload})
        try:
            result = subprocess.run(
                [self.node, str(self.driver_path())],
                input=request,
                capture_output=True,
                text=True,
                cwd=self.cwd,
                check=False,
            )
        except FileNotFoundError:
            raise EngineError(f"Node executable not found: {self.node}", op=op) from None

        if result.returncode != 0:
            raise EngineError(
                f"{op} failed:\n{result.stderr.strip()}", op=op, stderr=result.stderr
            )

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise EngineError(
                f"{op} returned invalid output: {e}", op=op, stderr=result.stderr
            ) from e


class NodeNccBundler:
    def __init__(self, runner: NodeRunner) -> None:
        self.runner = runner

    def bundle(
        self,
        entry: Path,
        *,
        externals: dict[str, str],
        minify: bool,
        target: str,
        cache: Union[Path, bool],
    ) -> BundleResult:
        reply = self.runner.call(
            "ncc",
            {
                "entry": str(entry),
                "externals": externals,
                "minify": minify,
                "target": target,
                "cache": str(cache) if isinstance(cache, Path) else False,
            },
        )
        assets = {
            name: base64.b64decode(source) for name, source in reply.get("assets", {}).items()
        }
        return BundleResult(code=reply["code"], assets=assets)


class NodeEsbuildBundler:
    def __init__(self, runner: NodeRunner) -> None:
        self.runner = runner

    def build(self, options: FormatBuildOptions) -> list[str]:
        override = None
        if options.entry_override is not None:
            override = {
                "contents": options.entry_override.contents,
                "resolveDir": options.entry_override.resolve_dir,
            }
        reply = self.runner.call(
            "esbuild",
            {
                "entryPoints": options.entry_points,
                "format": options.format,
                "platform": options.platform,
                "target": options.target,
                "minify": options.minify,
                "alias": options.alias,
                "external": options.external,
                "entryOverride": override,
            },
        )
        return list(reply["outputs"])


class NodeDtsBundler:
    def __init__(self, runner: NodeRunner) -> None:
        self.runner = runner

    def bundle(
        self,
        input: Path,
        *,
        externals: list[DtsExternal],
        compiler_options: dict[str, Any],
        out_dir: Path,
    ) -> None:
        self.runner.call(
            "dts",
            {
                "input": str(input),
                "external": [_encode_external(item) for item in externals],
                "compilerOptions": compiler_options,
                "outDir": str(out_dir),
            },
        )


class NodeCodeFormatter:
    def __init__(self, runner: NodeRunner) -> None:
        self.runner = runner

    def minify(self, code: str) -> Optional[str]:
        return self.runner.call("minify", {"code": code}).get("code")

    def format(self, code: str, filepath: Path) -> str:
        return self.runner.call("format", {"code": code, "filepath": str(filepath)})["code"]


class NodeExportInspector:
    def __init__(self, runner: NodeRunner) -> None:
        self.runner = runner

    def export_keys(self, path: Path) -> list[str]:
        return list(self.runner.call("exports", {"path": str(path)})["keys"])


def _encode_external(item: DtsExternal) -> Any:
    if isinstance(item, re.Pattern):
        flags = "i" if item.flags & re.IGNORECASE else ""
        return {"regex": item.pattern, "flags": flags}
    return item


@dataclass
class Engines:
    """The set of external engines a pipeline run uses."""

    ncc: WholeProgramBundler
    esbuild: FormatBundler
    dts: DeclarationBundler
    formatter: CodeFormatter
    inspector: ExportInspector

    @classmethod
    def node(cls, cwd: Path, node: Optional[str] = None) -> "Engines":
        """Node-backed engines resolving packages from ``cwd``."""
        runner = NodeRunner(cwd, node=node)
        return cls(
            ncc=NodeNccBundler(runner),
            esbuild=NodeEsbuildBundler(runner),
            dts=NodeDtsBundler(runner),
            formatter=NodeCodeFormatter(runner),
            inspector=NodeExportInspector(runner),
        )
