"""Frameworks command -- list registered adapters."""

from __future__ import annotations

import typer

from routelens.exceptions import RoutelensError
from routelens.output import error, get_output


def frameworks_command() -> None:
    """Show every registered adapter with its version and description.

    Includes adapters installed through the ``routelens.adapters`` entry
    point group.

    Example::

        routelens frameworks
    """
    from routelens.config import resolve_config
    from routelens.registry import create_default_registry

    try:
        registry = create_default_registry(resolve_config())
    except RoutelensError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    rows = [
        [info.name, info.version, ", ".join(info.supported_frameworks), info.description]
        for info in registry.list_adapters()
    ]
    get_output().print_table(
        ["Name", "Version", "Frameworks", "Description"], rows, title="Adapters"
    )
