"""Detect command -- report the frameworks a project uses."""

from __future__ import annotations

from pathlib import Path

import typer

from routelens.exceptions import InvalidUsageError, NoFrameworkError, RoutelensError
from routelens.output import error, get_output


def detect_command(
    path: Path = typer.Argument(Path("."), help="Project root to inspect."),
) -> None:
    """List the adapters whose framework the project depends on.

    Detection only reads manifests (``pyproject.toml``, ``pom.xml``,
    ``composer.json``, ...); no source file is parsed. Exits with code 4
    when nothing is recognised.

    Example::

        routelens detect ./service
    """
    from routelens.config import resolve_config
    from routelens.registry import create_default_registry

    try:
        if not path.is_dir():
            raise InvalidUsageError(f"Not a directory: {path}")
        registry = create_default_registry(resolve_config(path))
        names = registry.detect(path)
        if not names:
            raise NoFrameworkError(f"No supported framework detected in {path}")
    except RoutelensError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    rows = []
    for name in names:
        adapter = registry.get(name)
        rows.append([name, ", ".join(adapter.supported_frameworks)])
    get_output().print_table(["Adapter", "Frameworks"], rows, title="Detected frameworks")
