"""OpenAPI document assembly.

Folds canonical routes and component schemas into an OpenAPI 3.0 document
(a plain dict ready for ``json.dumps`` or ``yaml.safe_dump``). Routes that
declare no responses get the configured default responses. Serialisation is
left to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from routelens.models import MediaType, OpenAPIInfoConfig, RequestBody, Response, Route, Schema

logger = logging.getLogger(__name__)

DEFAULT_RESPONSES: dict[str, str] = {"200": "Successful response"}


def _content(content: Mapping[str, MediaType]) -> dict[str, Any]:
    return {media: {"schema": item.schema_.to_openapi()} for media, item in content.items()}


def _request_body(body: RequestBody) -> dict[str, Any]:
    data: dict[str, Any] = {"required": body.required, "content": _content(body.content)}
    if body.description:
        data["description"] = body.description
    return data


def _response(response: Response) -> dict[str, Any]:
    data: dict[str, Any] = {"description": response.description}
    if response.content:
        data["content"] = _content(response.content)
    return data


def build_operation(route: Route, default_responses: Mapping[str, str]) -> dict[str, Any]:
    """One OpenAPI operation object for *route*."""
    operation: dict[str, Any] = {"operationId": route.operation_id}
    if route.tags:
        operation["tags"] = list(route.tags)
    if route.summary:
        operation["summary"] = route.summary
    if route.description:
        operation["description"] = route.description
    if route.parameters:
        operation["parameters"] = [param.to_openapi() for param in route.parameters]
    if route.request_body is not None:
        operation["requestBody"] = _request_body(route.request_body)
    if route.responses:
        operation["responses"] = {code: _response(r) for code, r in sorted(route.responses.items())}
    else:
        operation["responses"] = {code: {"description": text} for code, text in default_responses.items()}
    return operation


def build_openapi(
    routes: Sequence[Route],
    schemas: Sequence[Schema] = (),
    info: Optional[OpenAPIInfoConfig] = None,
    default_responses: Optional[Mapping[str, str]] = None,
) -> dict[str, Any]:
    """Assemble an OpenAPI document.

    Paths keep the order in which they were first seen; within a path,
    methods keep route order. When two routes share a method and path the
    first one wins. When two schemas share a title the first one wins.
    Duplicate operation ids are kept but logged as warnings.

    Args:
        routes: Canonical routes, typically from
            :meth:`~routelens.registry.AdapterRegistry.extract_routes`.
        schemas: Component schemas; each must have a ``title``.
        info: Title, version and description of the API.
        default_responses: Status code to description, used for routes
            without responses. Defaults to a single ``200``.

    Returns:
        The document as nested dicts and lists.
    """
    info = info or OpenAPIInfoConfig()
    defaults = DEFAULT_RESPONSES if default_responses is None else default_responses

    paths: dict[str, dict[str, Any]] = {}
    seen_ids: dict[str, Route] = {}
    for route in routes:
        method = route.method.value.lower()
        item = paths.setdefault(route.path, {})
        if method in item:
            logger.warning(
                "Duplicate route %s %s (%s:%d); keeping the first",
                route.method.value,
                route.path,
                route.source_file,
                route.source_line,
            )
            continue
        earlier = seen_ids.get(route.operation_id)
        if earlier is not None:
            logger.warning(
                "operationId '%s' is used by %s %s and %s %s",
                route.operation_id,
                earlier.method.value,
                earlier.path,
                route.method.value,
                route.path,
            )
        else:
            seen_ids[route.operation_id] = route
        item[method] = build_operation(route, defaults)

    components: dict[str, Any] = {}
    for schema in schemas:
        if not schema.title:
            logger.debug("Skipping untitled schema")
            continue
        if schema.title in components:
            logger.debug("Schema '%s' defined more than once; keeping the first", schema.title)
            continue
        components[schema.title] = schema.to_openapi()

    info_block: dict[str, Any] = {"title": info.title, "version": info.version}
    if info.description:
        info_block["description"] = info.description

    document: dict[str, Any] = {"openapi": info.openapi_version, "info": info_block, "paths": paths}
    if components:
        document["components"] = {"schemas": components}
    return document
