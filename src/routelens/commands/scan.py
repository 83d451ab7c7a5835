"""Scan command -- extract routes and schemas from a project.

``routelens scan`` walks the project, detects its frameworks (unless they
are named with ``--framework``), runs the matching adapters and prints the
assembled OpenAPI document as JSON or YAML, or a route table.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
import yaml

from routelens.exceptions import InvalidUsageError, NoFrameworkError, RoutelensError
from routelens.models import Route
from routelens.output import debug, error, get_output, info, success

FORMATS = ("json", "yaml", "table")


def serialize_document(document: dict[str, Any], fmt: str) -> str:
    """Render an OpenAPI document as JSON or YAML text.

    Args:
        document: The document from :func:`~routelens.document.build_openapi`.
        fmt: ``"json"`` or ``"yaml"``.

    Returns:
        The serialised document. Key order is preserved in both formats.
    """
    if fmt == "yaml":
        return yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
    return json.dumps(document, indent=2, ensure_ascii=False)


def route_rows(routes: list[Route]) -> list[list[str]]:
    """Table rows (method, path, handler, source) for *routes*."""
    return [
        [
            route.method.value,
            route.path,
            route.handler,
            f"{route.source_file}:{route.source_line}" if route.source_file else "",
        ]
        for route in routes
    ]


def scan_command(
    path: Path = typer.Argument(
        Path("."), help="Project root to scan.", file_okay=False
    ),
    framework: Optional[list[str]] = typer.Option(
        None, "--framework", "-f", help="Adapter to run (repeatable). Skips detection."
    ),
    fmt: Optional[str] = typer.Option(
        None, "--format", help="Output format: json, yaml or table."
    ),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the document to this file instead of stdout."
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", help="Parallel per-file extraction workers."
    ),
) -> None:
    """Extract routes and data models and emit an OpenAPI document.

    Args:
        path: Project root directory.
        framework: Adapter names to run instead of auto-detection.
        fmt: Output format override.
        output_file: Destination file for the json/yaml document.
        workers: Thread pool size for per-file extraction.

    Example::

        routelens scan ./service
        routelens scan ./service -f flask --format yaml -o openapi.yaml
        routelens scan ./service --format table
    """
    try:
        _scan(path, framework, fmt, output_file, workers)
    except RoutelensError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _scan(
    path: Path,
    framework: Optional[list[str]],
    fmt: Optional[str],
    output_file: Optional[Path],
    workers: Optional[int],
) -> None:
    from routelens.config import resolve_config, write_text
    from routelens.discovery import discover_files
    from routelens.document import build_openapi
    from routelens.registry import create_default_registry

    if not path.is_dir():
        raise InvalidUsageError(f"Not a directory: {path}")

    config = resolve_config(path, cli_frameworks=framework, cli_format=fmt, cli_workers=workers)
    out_format = config.output.format.lower()
    if out_format not in FORMATS:
        raise InvalidUsageError(f"Unknown format '{out_format}'. Choose one of: {', '.join(FORMATS)}")
    if out_format == "table" and output_file is not None:
        raise InvalidUsageError("--output is only supported for json and yaml output")

    registry = create_default_registry(config)
    names = config.frameworks or registry.detect(path)
    if not names:
        raise NoFrameworkError(
            f"No supported framework detected in {path}. Use --framework to pick one of: "
            + ", ".join(registry.names())
        )
    debug(f"Using adapters: {', '.join(names)}")

    files = discover_files(path, config.scan)
    routes = registry.extract_routes(files, only=names)
    schemas = registry.extract_schemas(files, only=names)
    info(f"Found {len(routes)} routes and {len(schemas)} schemas in {len(files)} files")

    if out_format == "table":
        get_output().print_table(
            ["Method", "Path", "Handler", "Source"],
            route_rows(routes),
            title="Routes",
        )
        return

    document = build_openapi(routes, schemas, config.openapi, config.default_responses)
    text = serialize_document(document, out_format)
    if output_file is not None:
        write_text(output_file, text)
        success(f"Wrote {output_file}")
    else:
        get_output().print_document(text, out_format)
