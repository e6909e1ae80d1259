# SPDX-License-Identifier: MIT
"""Prebundle configuration loading.

Configuration lives either in a standalone ``prebundle.toml`` or in the
``[tool.prebundle]`` table of ``pyproject.toml``:

    [tool.prebundle]
    prettier = true
    externals = { "webpack" = "webpack" }
    dependencies = [
        "left-pad",
        { name = "chalk", format = "esm", export_cjs_named_export = true },
    ]
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Union

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .constants import FORMATS
from .errors import ConfigError

if TYPE_CHECKING:
    from .task import ParsedTask

CONFIG_FILENAME = "prebundle.toml"

DtsExternal = Union[str, re.Pattern]
Hook = Callable[["ParsedTask"], Optional[Awaitable[None]]]
HookSpec = Union[str, Hook]


@dataclass(frozen=True)
class EmitFile:
    """An extra file written verbatim into the output package."""

    path: str
    content: str


@dataclass(frozen=True)
class DependencyConfig:
    """User-authored configuration for a single dependency.

    Every field except ``name`` is optional. ``None`` means "not set" and is
    replaced by a default when the task is resolved.

    Attributes:
        name: Package name as installed in node_modules
        minify: Minify the bundled code
        externals: Module specifier -> replacement specifier
        dts_externals: Module names or patterns left external in index.d.ts
        prettier: Strip comments and reformat the bundled code
        emit_files: Extra files written into the output package
        package_json_field: Extra manifest fields copied to the output
        ignore_dts: Skip declaration bundling and emit the fallback
        target: ECMAScript target
        platform: esbuild platform
        before_bundle: Hook called before bundling
        after_bundle: Hook called after the package is written
        format: "cjs" (ncc) or "esm" (esbuild)
        alias: esbuild module alias table
        esbuild_external: Modules esbuild leaves unbundled
        export_star_as_default: Re-export the entry namespace as default
        export_cjs_named_export: Re-export the entry's CommonJS keys by name
        external_node_builtins: Leave every Node built-in external in esbuild
    """

    name: str
    minify: Optional[bool] = None
    externals: Optional[dict[str, str]] = None
    dts_externals: Optional[list[DtsExternal]] = None
    prettier: Optional[bool] = None
    emit_files: Optional[list[EmitFile]] = None
    package_json_field: Optional[list[str]] = None
    ignore_dts: Optional[bool] = None
    target: Optional[str] = None
    platform: Optional[str] = None
    before_bundle: Optional[HookSpec] = None
    after_bundle: Optional[HookSpec] = None
    format: Optional[str] = None
    alias: Optional[dict[str, str]] = None
    esbuild_external: Optional[list[str]] = None
    export_star_as_default: Optional[bool] = None
    export_cjs_named_export: Optional[bool] = None
    external_node_builtins: Optional[bool] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigError("Dependency name is required")
        if self.format is not None and self.format not in FORMATS:
            raise ConfigError(
                f"Invalid format for '{self.name}': {self.format!r} "
                f"(expected one of {', '.join(FORMATS)})"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DependencyConfig":
        """Create a DependencyConfig from a parsed TOML table.

        Raises:
            ConfigError: If a key is unknown or has the wrong type
        """
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ConfigError("Dependency entry is missing required key: name")

        unknown = sorted(set(data) - _DEPENDENCY_KEYS)
        if unknown:
            raise ConfigError(f"Unknown key(s) for dependency '{name}': {', '.join(unknown)}")

        kwargs: dict[str, Any] = {"name": name}
        for key in ("minify", "prettier", "ignore_dts", "export_star_as_default",
                    "export_cjs_named_export", "external_node_builtins"):
            if key in data:
                kwargs[key] = _expect(name, key, data[key], bool)
        for key in ("target", "platform", "format", "before_bundle", "after_bundle"):
            if key in data:
                kwargs[key] = _expect(name, key, data[key], str)
        for key in ("externals", "alias"):
            if key in data:
                kwargs[key] = _string_table(name, key, data[key])
        for key in ("package_json_field", "esbuild_external"):
            if key in data:
                kwargs[key] = _string_list(name, key, data[key])
        if "dts_externals" in data:
            kwargs["dts_externals"] = parse_dts_externals(data["dts_externals"], owner=name)
        if "emit_files" in data:
            kwargs["emit_files"] = _emit_files(name, data["emit_files"])

        return cls(**kwargs)


@dataclass(frozen=True)
class PrebundleConfig:
    """Top-level prebundle configuration.

    Attributes:
        dependencies: Dependency names or full configs, in build order
        externals: Externals applied to every dependency
        dts_externals: Declaration externals applied to every dependency
        prettier: Default for every dependency's prettier flag
    """

    dependencies: list[Union[str, DependencyConfig]] = field(default_factory=list)
    externals: dict[str, str] = field(default_factory=dict)
    dts_externals: list[DtsExternal] = field(default_factory=list)
    prettier: bool = False

    @property
    def dependency_names(self) -> list[str]:
        """Names of all configured dependencies, in order."""
        return [dep if isinstance(dep, str) else dep.name for dep in self.dependencies]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PrebundleConfig":
        """Create a PrebundleConfig from a parsed TOML table.

        Raises:
            ConfigError: If the table is malformed
        """
        unknown = sorted(set(data) - {"dependencies", "externals", "dts_externals", "prettier"})
        if unknown:
            raise ConfigError(f"Unknown key(s) in prebundle config: {', '.join(unknown)}")

        raw_deps = data.get("dependencies", [])
        if not isinstance(raw_deps, list):
            raise ConfigError("'dependencies' must be an array")

        dependencies: list[Union[str, DependencyConfig]] = []
        for entry in raw_deps:
            if isinstance(entry, str):
                if not entry:
                    raise ConfigError("Dependency name is required")
                dependencies.append(entry)
            elif isinstance(entry, dict):
                dependencies.append(DependencyConfig.from_dict(entry))
            else:
                raise ConfigError(f"Invalid dependency entry: {entry!r}")

        prettier = data.get("prettier", False)
        if not isinstance(prettier, bool):
            raise ConfigError("'prettier' must be a boolean")

        return cls(
            dependencies=dependencies,
            externals=_string_table("config", "externals", data.get("externals", {})),
            dts_externals=parse_dts_externals(data.get("dts_externals", []), owner="config"),
            prettier=prettier,
        )


_DEPENDENCY_KEYS = {f for f in DependencyConfig.__dataclass_fields__}


def parse_dts_externals(value: Any, owner: str = "config") -> list[DtsExternal]:
    """Parse declaration externals: plain strings or ``{regex = "..."}`` tables."""
    if not isinstance(value, list):
        raise ConfigError(f"'dts_externals' for '{owner}' must be an array")

    result: list[DtsExternal] = []
    for item in value:
        if isinstance(item, (str, re.Pattern)):
            result.append(item)
        elif isinstance(item, dict) and isinstance(item.get("regex"), str):
            try:
                result.append(re.compile(item["regex"]))
            except re.error as e:
                raise ConfigError(f"Invalid regex in 'dts_externals' for '{owner}': {e}") from e
        else:
            raise ConfigError(f"Invalid 'dts_externals' entry for '{owner}': {item!r}")
    return result


def _expect(owner: str, key: str, value: Any, kind: type) -> Any:
    if not isinstance(value, kind):
        raise ConfigError(f"'{key}' for '{owner}' must be a {kind.__name__}")
    return value


def _string_table(owner: str, key: str, value: Any) -> dict[str, str]:
    if not isinstance(value, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise ConfigError(f"'{key}' for '{owner}' must be a table of strings")
    return dict(value)


def _string_list(owner: str, key: str, value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{key}' for '{owner}' must be an array of strings")
    return list(value)


def _emit_files(owner: str, value: Any) -> list[EmitFile]:
    if not isinstance(value, list):
        raise ConfigError(f"'emit_files' for '{owner}' must be an array")
    files: list[EmitFile] = []
    for item in value:
        if (
            not isinstance(item, dict)
            or not isinstance(item.get("path"), str)
            or not isinstance(item.get("content"), str)
        ):
            raise ConfigError(f"'emit_files' entries for '{owner}' need 'path' and 'content'")
        files.append(EmitFile(path=item["path"], content=item["content"]))
    return files


def find_config_file(project_dir: Path) -> Optional[Path]:
    """Find the configuration file for a project.

    Prefers ``prebundle.toml``; falls back to ``pyproject.toml`` when it
    contains a ``[tool.prebundle]`` table.
    """
    candidate = project_dir / CONFIG_FILENAME
    if candidate.exists():
        return candidate

    pyproject = project_dir / "pyproject.toml"
    if pyproject.exists():
        try:
            data = _read_toml(pyproject)
        except ConfigError:
            return None
        if "prebundle" in data.get("tool", {}):
            return pyproject

    return None


def load_config(
    project_dir: str | Path,
    config_path: Optional[str | Path] = None,
) -> PrebundleConfig:
    """Load the prebundle configuration for a project.

    Args:
        project_dir: Project root (where node_modules lives)
        config_path: Explicit configuration file, overriding discovery

    Returns:
        PrebundleConfig instance

    Raises:
        ConfigError: If the configuration is invalid
        FileNotFoundError: If no configuration file exists
    """
    project = Path(project_dir)
    if config_path is not None:
        path = Path(config_path)
        if not path.is_absolute():
            path = project / path
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
    else:
        found = find_config_file(project)
        if found is None:
            raise FileNotFoundError(
                f"No {CONFIG_FILENAME} or [tool.prebundle] in pyproject.toml found in {project}"
            )
        path = found

    data = _read_toml(path)
    if path.name == "pyproject.toml":
        data = data.get("tool", {}).get("prebundle", {})

    return PrebundleConfig.from_dict(data)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax in {path.name}: {e}") from e
