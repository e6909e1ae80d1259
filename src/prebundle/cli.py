# SPDX-License-Identifier: MIT
"""CLI entry point for the prebundle command."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

import click

from .config import load_config
from .constants import DIST_DIR
from .engines import Engines
from .errors import ConfigError
from .logging import setup_logging
from .pipeline import RunOptions, Status, run


def echo_error(message: str) -> None:
    """Print an error message to stderr."""
    click.secho(f"Error: {message}", fg="red", err=True)


def echo_success(message: str) -> None:
    """Print a success message."""
    click.secho(message, fg="green")


def echo_info(message: str) -> None:
    """Print an info message."""
    click.echo(message)


def echo_warning(message: str) -> None:
    """Print a warning message."""
    click.secho(f"Warning: {message}", fg="yellow", err=True)


def build_engines(project_dir: Path) -> Engines:
    return Engines.node(project_dir)


@click.command()
@click.version_option(package_name="prebundle")
@click.argument("package", required=False)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (defaults to prebundle.toml or [tool.prebundle] in pyproject.toml).",
)
@click.option(
    "-C",
    "--directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Project directory containing node_modules.",
)
@click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of dependencies to build at once.",
)
@click.option(
    "--fail-fast/--keep-going",
    default=False,
    help="Stop after the first dependency that fails.",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    default=None,
    help="Log renderer (default: $PREBUNDLE_LOG_FORMAT or console).",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable debug logging.",
)
def cli(
    package: Optional[str],
    config_path: Optional[Path],
    directory: Path,
    jobs: int,
    fail_fast: bool,
    log_format: Optional[str],
    verbose: bool,
) -> None:
    """Prebundle third-party dependencies into self-contained packages.

    Builds every configured dependency into compiled/<name>. Pass PACKAGE to
    build only that dependency.

    \b
    Examples:
        prebundle                   # Build every dependency
        prebundle chalk             # Build only chalk
        prebundle -j 4 --fail-fast  # Build four at a time, stop on error
    """
    setup_logging(level="DEBUG" if verbose else None, fmt=log_format)

    project_dir = directory.resolve()
    try:
        config = load_config(project_dir, config_path)
    except (ConfigError, FileNotFoundError) as e:
        echo_error(str(e))
        raise SystemExit(1)

    if package and package not in config.dependency_names:
        echo_warning(f"'{package}' is not a configured dependency; nothing to build")

    options = RunOptions(
        cwd=project_dir,
        only=package,
        ci=bool(os.environ.get("CI")),
        jobs=jobs,
        fail_fast=fail_fast,
    )
    echo_info(f"Prebundling into {project_dir / DIST_DIR}")
    report = run(config, build_engines(project_dir), options)

    for result in report.results:
        if result.status is Status.SUCCESS:
            echo_success(f"  prebundled: {result.name} -> {result.dist_path}")
        elif result.status is Status.FAILED:
            echo_error(f"{result.name}: {result.error}")
        elif package is None or result.name == package:
            echo_info(f"  skipped: {result.name}")

    if not report.ok:
        echo_error(f"{len(report.failed)} of {len(report.results)} dependencies failed")
        raise SystemExit(1)

    echo_success(f"\nPrebundle complete! {len(report.succeeded)} package(s) written.")


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli()
    except Exception as e:
        echo_error(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
