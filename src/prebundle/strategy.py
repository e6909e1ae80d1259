# SPDX-License-Identifier: MIT
"""Build strategies: whole-program CommonJS bundling vs. format-targeted bundling.

The output format of a task picks exactly one strategy. Both return the same
shape, a BuildOutput, so the rest of the pipeline does not care which engine
produced the code.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol, Union

import structlog

from .engines import Engines, EntryOverride, ExportInspector, FormatBuildOptions
from .errors import BuildError, PrebundleError
from .externals import esbuild_externals
from .task import ParsedTask

log = structlog.get_logger("prebundle.strategy")

NCC_CACHE_DIR = Path("node_modules") / ".cache" / "ncc-cache"

# Keys that can be re-exported by name without ES2022 string export names
_EXPORT_NAME = re.compile(r"[A-Za-z_$][\w$]*", re.ASCII)


@dataclass
class BuildOutput:
    """Normalized result of a build strategy.

    Attributes:
        code: Bundled entry code
        assets: Side assets keyed by path relative to the output directory
        package_type: Module system of the output ("module"/"commonjs"), or
            None when the engine did not say
    """

    code: str
    assets: dict[str, bytes] = field(default_factory=dict)
    package_type: Optional[str] = None


class BuildStrategy(Protocol):
    def execute(self, task: ParsedTask) -> BuildOutput: ...


def build_cache_dir(cwd: Path, ci: bool) -> Union[Path, bool]:
    """Return the ncc cache directory, or False when caching is off.

    Caching needs a local node_modules and is always off under CI.
    """
    if ci or not (cwd / "node_modules").is_dir():
        return False
    return cwd / NCC_CACHE_DIR


def _asset_package_type(assets: dict[str, bytes]) -> Optional[str]:
    # ncc emits {"type":"module"} next to ESM output
    source = assets.get("package.json")
    if source is None:
        return None
    try:
        value = json.loads(source.decode("utf-8")).get("type")
    except (ValueError, AttributeError):
        return None
    return value if isinstance(value, str) else None


class WholeProgramStrategy:
    """Bundle the whole CommonJS dependency graph with ncc."""

    def __init__(self, engines: Engines, cache: Union[Path, bool] = False) -> None:
        self.engines = engines
        self.cache = cache

    def execute(self, task: ParsedTask) -> BuildOutput:
        try:
            result = self.engines.ncc.bundle(
                task.dep_entry,
                externals=task.externals,
                minify=task.minify,
                target=task.target,
                cache=self.cache,
            )
        except PrebundleError:
            raise
        except Exception as e:
            raise BuildError(f"ncc failed for {task.dep_name}: {e}") from e

        return BuildOutput(
            code=result.code,
            assets=dict(result.assets),
            package_type=_asset_package_type(result.assets),
        )


class EntryExportOverride:
    """Rewrites the bundle's entry into explicit re-exports.

    esbuild cannot enumerate the exports of a CommonJS entry statically, so
    the entry is replaced by a module re-exporting its runtime keys by name
    and, optionally, its whole namespace as default. Only the entry point is
    rewritten; it is the one module resolved with an empty importer.
    """

    def __init__(self, named: bool, star_as_default: bool) -> None:
        self.named = named
        self.star_as_default = star_as_default

    @property
    def enabled(self) -> bool:
        return self.named or self.star_as_default

    @staticmethod
    def applies_to(importer: str) -> bool:
        return importer == ""

    def render(self, path: str, keys: list[str]) -> str:
        spec = json.dumps(path)
        lines: list[str] = []
        if self.star_as_default:
            lines.append(f"import * as _default from {spec};")
        if self.named:
            names = [
                k
                for k in keys
                if _EXPORT_NAME.fullmatch(k) and not (self.star_as_default and k == "default")
            ]
            if names:
                lines.append(f"export {{ {', '.join(names)} }} from {spec};")
        if self.star_as_default:
            lines.append("export default _default;")
        return "\n".join(lines) + "\n"

    def build(self, entry: Path, inspector: ExportInspector) -> EntryOverride:
        keys = inspector.export_keys(entry) if self.named else []
        return EntryOverride(
            contents=self.render(str(entry), keys),
            resolve_dir=str(entry.parent),
        )


class FormatTargetedStrategy:
    """Bundle to an explicit module format with esbuild."""

    def __init__(self, engines: Engines) -> None:
        self.engines = engines

    def options(self, task: ParsedTask) -> FormatBuildOptions:
        override = EntryExportOverride(
            named=task.export_cjs_named_export,
            star_as_default=task.export_star_as_default,
        )
        return FormatBuildOptions(
            entry_points=[str(task.dep_entry)],
            format=task.format,
            platform=task.platform,
            target=task.target,
            minify=task.minify,
            alias=dict(task.alias),
            external=esbuild_externals(task),
            entry_override=(
                override.build(task.dep_entry, self.engines.inspector)
                if override.enabled
                else None
            ),
        )

    def execute(self, task: ParsedTask) -> BuildOutput:
        try:
            outputs = self.engines.esbuild.build(self.options(task))
        except PrebundleError:
            raise
        except Exception as e:
            raise BuildError(f"esbuild failed for {task.dep_name}: {e}") from e

        if not outputs:
            raise BuildError(f"esbuild produced no output for {task.dep_name}")

        return BuildOutput(
            code=outputs[0],
            package_type="module" if task.format == "esm" else "commonjs",
        )


def select_strategy(
    task: ParsedTask,
    engines: Engines,
    cache: Union[Path, bool] = False,
) -> BuildStrategy:
    """Pick the build strategy for a task from its output format."""
    if task.format == "cjs":
        log.debug("prebundle.strategy", dependency=task.dep_name, engine="ncc", cache=str(cache))
        return WholeProgramStrategy(engines, cache=cache)
    log.debug("prebundle.strategy", dependency=task.dep_name, engine="esbuild", format=task.format)
    return FormatTargetedStrategy(engines)
