"""Route assembly shared by every adapter.

Adapters recognise *where* a route is declared and hand over the raw facts:
method, the path as written, the prefix chain that encloses it and the
handler name. :func:`build_route` applies the generic pipeline to those
facts -- composition, normalization, parameter extraction, operation id and
tag synthesis -- so no adapter re-implements any of it.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence, Union

from routelens.models import HTTPMethod, Parameter, RequestBody, Response, Route, Schema
from routelens.pipeline.identifiers import generate_operation_id, infer_tags, tag_from_identity
from routelens.pipeline.paths import (
    PathDialect,
    compose_path,
    extract_path_params,
    normalize_path_with_types,
)


def build_route(
    method: Union[HTTPMethod, str],
    raw_path: str,
    dialect: PathDialect,
    *,
    prefixes: Sequence[Optional[str]] = (),
    handler: str = "",
    operation_name: Optional[str] = None,
    identity: str = "",
    summary: Optional[str] = None,
    description: Optional[str] = None,
    param_types: Optional[Mapping[str, Schema]] = None,
    extra_parameters: Sequence[Parameter] = (),
    request_body: Optional[RequestBody] = None,
    responses: Optional[Mapping[str, Response]] = None,
    source_file: str = "",
    source_line: int = 0,
) -> Route:
    """Assemble a canonical :class:`Route` from one recognised declaration.

    Args:
        method: HTTP method, any case.
        raw_path: The path exactly as the declaration spells it.
        dialect: Path parameter syntax of the declaring framework.
        prefixes: Enclosing contributions, outermost first (router or
            blueprint prefix, class-level base path, scope paths).
        handler: Handler function or action name; may be empty.
        operation_name: Name the operation id is derived from when it should
            differ from *handler*; an empty string derives it from the path.
        identity: Controller or module name. When given, the tag comes from
            it and path-based inference is skipped.
        summary: One-line summary, usually the first docstring line.
        description: Longer free-text description.
        param_types: Schemas for path parameters known from the handler
            signature. Types spelled inside the path itself take precedence.
        extra_parameters: Query, header or cookie parameters. Any whose name
            collides with a path parameter or an earlier entry is dropped.
        request_body: Request body, if the declaration has one.
        responses: Responses by status code; empty when none are declared.
        source_file: File the declaration lives in.
        source_line: 1-based line of the declaration, 0 if unknown.

    Returns:
        The immutable route.

    Raises:
        ValueError: If *method* is not an HTTP method routes can carry.
    """
    verb = method if isinstance(method, HTTPMethod) else HTTPMethod(method.strip().upper())

    composed = compose_path([*prefixes, raw_path])
    normalized = normalize_path_with_types(composed, dialect)
    types: dict[str, Schema] = dict(param_types or {})
    types.update(normalized.param_types)

    parameters = extract_path_params(normalized.path, types)
    seen = {param.name for param in parameters}
    for param in extra_parameters:
        if param.name in seen:
            continue
        seen.add(param.name)
        parameters.append(param)

    tags = tag_from_identity(identity) if identity else infer_tags(normalized.path)

    return Route(
        method=verb,
        path=normalized.path,
        handler=handler,
        operation_id=generate_operation_id(
            verb, normalized.path, handler if operation_name is None else operation_name
        ),
        tags=tags,
        summary=summary,
        description=description,
        parameters=parameters,
        request_body=request_body,
        responses=dict(responses or {}),
        source_file=source_file,
        source_line=source_line,
    )
