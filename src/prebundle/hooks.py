# SPDX-License-Identifier: MIT
"""Before/after bundle hooks.

Hooks are plain callables taking the resolved task. They may be coroutine
functions; the returned awaitable is driven to completion before the
pipeline moves on. In TOML configuration a hook is written as an import
string, ``"package.module:function"``, importable either from the
environment or from the project directory.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from .errors import ConfigError

if TYPE_CHECKING:
    from .config import Hook, HookSpec
    from .task import ParsedTask

# sys.path is process-wide; parallel task resolution must not interleave edits
_IMPORT_LOCK = threading.Lock()


def _import_module(module_name: str, search_path: Optional[Union[str, Path]]) -> Any:
    if search_path is None:
        return importlib.import_module(module_name)

    entry = str(Path(search_path).resolve())
    with _IMPORT_LOCK:
        sys.path.insert(0, entry)
        try:
            importlib.invalidate_caches()
            return importlib.import_module(module_name)
        finally:
            sys.path.remove(entry)


def load_hook(spec: HookSpec, search_path: Optional[Union[str, Path]] = None) -> Hook:
    """Resolve a hook from a callable or a ``module:attr`` import string.

    Args:
        spec: Callable, or import string naming one
        search_path: Directory searched before the interpreter's path,
            usually the project directory

    Raises:
        ConfigError: If the import string is malformed, cannot be imported,
            or does not name a callable
    """
    if callable(spec):
        return spec

    module_name, sep, attr_path = spec.partition(":")
    if not sep or not module_name or not attr_path:
        raise ConfigError(f"Invalid hook '{spec}': expected 'module:function'")

    try:
        target: Any = _import_module(module_name, search_path)
    except ImportError as e:
        raise ConfigError(f"Cannot import hook module '{module_name}': {e}") from e

    for attr in attr_path.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as e:
            raise ConfigError(f"Hook '{spec}' not found") from e

    if not callable(target):
        raise ConfigError(f"Hook '{spec}' is not callable")
    return target


@dataclass(frozen=True)
class BundleHooks:
    """Optional user callbacks run around a dependency's bundle."""

    before: Optional[Hook] = None
    after: Optional[Hook] = None

    @classmethod
    def from_specs(
        cls,
        before: Optional[HookSpec] = None,
        after: Optional[HookSpec] = None,
        search_path: Optional[Union[str, Path]] = None,
    ) -> "BundleHooks":
        return cls(
            before=load_hook(before, search_path) if before is not None else None,
            after=load_hook(after, search_path) if after is not None else None,
        )

    def run_before(self, task: ParsedTask) -> None:
        _call(self.before, task)

    def run_after(self, task: ParsedTask) -> None:
        _call(self.after, task)


def _call(hook: Optional[Hook], task: ParsedTask) -> None:
    if hook is None:
        return
    result = hook(task)
    if inspect.isawaitable(result):
        asyncio.run(_await(result))


async def _await(awaitable: Any) -> None:
    await awaitable
