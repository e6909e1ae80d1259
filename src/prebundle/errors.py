# SPDX-License-Identifier: MIT
"""Exception types raised by the prebundle pipeline."""

from __future__ import annotations


class PrebundleError(Exception):
    """Base class for every error raised while prebundling a dependency."""

    pass


class ConfigError(PrebundleError):
    """Raised when the prebundle configuration is invalid."""

    pass


class ResolutionError(PrebundleError):
    """Raised when a dependency or its entry file cannot be located on disk."""

    pass


class BuildError(PrebundleError):
    """Raised when a bundler fails to produce output for a dependency."""

    pass


class EngineError(BuildError):
    """Raised when an external Node engine exits abnormally.

    Attributes:
        op: Engine operation that failed (e.g. "ncc", "esbuild")
        stderr: Captured standard error of the engine process
    """

    def __init__(self, message: str, op: str = "", stderr: str = "") -> None:
        super().__init__(message)
        self.op = op
        self.stderr = stderr


class MaterializeError(PrebundleError):
    """Raised when the output package cannot be written."""

    pass
