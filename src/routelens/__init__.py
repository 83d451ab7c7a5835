"""routelens -- Normalize web-framework route declarations into OpenAPI.

This package scans a project's source tree, recognises the HTTP routes and
data models declared through each framework's own idiom (decorators,
annotations, attribute macros, routing DSLs) and folds them into one
framework-agnostic description that can be emitted as an OpenAPI document.

Typical workflow::

    routelens detect ./my-service         # which frameworks are in use
    routelens scan ./my-service -o api.yaml --format yaml

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration with precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    pipeline: Framework-independent normalization (paths, identifiers,
        types, schemas, route assembly).
    sources: Source fact extraction shared by the adapters.
    adapters: One adapter per supported web framework.
    registry: Adapter registry and extraction orchestrator.
    discovery: Project file walk honouring ``.gitignore``.
    document: OpenAPI document assembly.
"""

__version__ = "0.1.0"
