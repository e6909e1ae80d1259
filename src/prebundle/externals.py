# SPDX-License-Identifier: MIT
"""Merging of externals across the default, global and per-dependency layers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from .constants import DEFAULT_ESBUILD_EXTERNALS, NODE_BUILTINS

if TYPE_CHECKING:
    from .config import DtsExternal
    from .task import ParsedTask


def merge_externals(*layers: Optional[Mapping[str, str]]) -> dict[str, str]:
    """Shallow-merge externals mappings; later layers win key for key.

    Keys keep the position of their first appearance.
    """
    merged: dict[str, str] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged


def merge_dts_externals(*layers: Optional[Iterable[DtsExternal]]) -> list[DtsExternal]:
    """Concatenate declaration-externals layers in order."""
    merged: list[DtsExternal] = []
    for layer in layers:
        if layer:
            merged.extend(layer)
    return merged


def esbuild_externals(task: ParsedTask) -> list[str]:
    """Modules the format-targeted bundler must leave unbundled."""
    external = [*DEFAULT_ESBUILD_EXTERNALS, *task.esbuild_external]
    if task.external_node_builtins:
        external.extend(NODE_BUILTINS)
    return external


def declaration_externals(task: ParsedTask) -> list[DtsExternal]:
    """Modules the declaration bundler must leave as imports."""
    return [*task.externals.keys(), *task.dts_externals, *NODE_BUILTINS]
