"""FastAPI adapter: path operation decorators on apps and routers.

Pass 1 resolves router prefixes from ``APIRouter(prefix=...)`` assignments
and ``include_router(router, prefix=...)`` calls anywhere in the file; an
include prefix composes outside the router's own prefix. Pass 2 turns each
``@<app|router>.<verb>(path)`` or ``@router.api_route(path, methods=[...])``
decorator into one route per method. Handler signatures supply path
parameter types, query, header and cookie parameters and the request body;
``response_model`` and ``status_code`` supply the response.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from routelens.adapters.base import PYTHON_MANIFESTS, FrameworkAdapter, json_response, parameter
from routelens.models import (
    PATH_TOKEN_RE,
    HTTPMethod,
    Parameter,
    ParameterLocation,
    RequestBody,
    Response,
    Route,
    Schema,
    SourceFile,
)
from routelens.pipeline.paths import PathDialect, normalize_path
from routelens.pipeline.typemap import PYTHON, split_generic
from routelens.sources.facts import FunctionFacts, ModuleFacts, ParameterFacts
from routelens.sources.python import (
    model_classes,
    parse_param_docs,
    pydantic_models,
    scan_python,
    split_docstring,
)
from routelens.sources.tokens import ArgumentList, parse_string_list

logger = logging.getLogger(__name__)

_VERBS = frozenset({"get", "post", "put", "delete", "patch", "head", "options"})
_INJECTED_NAMES = frozenset({"self", "request", "db", "session", "background_tasks", "response"})
_INJECTED_TYPES = frozenset(
    {"Request", "Response", "BackgroundTasks", "WebSocket", "Session", "AsyncSession", "HTTPConnection"}
)
_BUILTIN_TYPES = frozenset(
    {"str", "int", "float", "bool", "list", "dict", "set", "tuple", "bytes", "none", "any"}
)
_LOCATIONS = {
    "Query": ParameterLocation.QUERY,
    "Header": ParameterLocation.HEADER,
    "Cookie": ParameterLocation.COOKIE,
}


def _marker_call(default: Optional[str]) -> str:
    """``Query`` for ``Query(None, ...)``, ``""`` for anything that is not a call."""
    if not default or "(" not in default:
        return ""
    return default.split("(", 1)[0].rsplit(".", 1)[-1].strip()


def _marker_required(default: str) -> bool:
    """``Query()`` and ``Query(...)`` mark a parameter required."""
    inside = default.split("(", 1)[1].rsplit(")", 1)[0].strip()
    first = inside.split(",", 1)[0].strip()
    return not first or first == "..." or first.startswith(("alias=", "description=", "title="))


class FastAPIAdapter(FrameworkAdapter):
    """Routes and Pydantic schemas from FastAPI applications."""

    dialect = PathDialect.BRACE
    type_table = PYTHON
    languages = ("python",)
    extensions = (".py",)
    manifests = {manifest: ("fastapi",) for manifest in PYTHON_MANIFESTS}

    @property
    def name(self) -> str:
        return "fastapi"

    @property
    def description(self) -> str:
        return "FastAPI path operation decorators, routers and Pydantic models"

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        facts = scan_python(file.text(), file.path)
        chains = self._router_chains(facts)
        models = {cls.name for cls in model_classes(facts)}
        routes: list[Route] = []
        for func in facts.functions:
            for deco in func.decorators:
                receiver, _, verb = deco.name.rpartition(".")
                if not receiver:
                    continue
                if verb in _VERBS:
                    methods = [verb]
                elif verb == "api_route":
                    methods = parse_string_list(deco.arguments.get("methods")) or ["GET"]
                else:
                    continue
                path = deco.arguments.path("path")
                if path is None:
                    logger.debug("%s:%d: %s has no literal path", file.path, deco.line, deco.name)
                    continue
                for method in methods:
                    if HTTPMethod.parse(method) is None:
                        continue
                    routes.append(
                        self._route(file, func, method, path, chains.get(receiver, []), deco.arguments, models, deco.line)
                    )
        return routes

    def _router_chains(self, facts: ModuleFacts) -> dict[str, list[str]]:
        """Prefix chain, outermost first, for every router name in the file."""
        own: dict[str, str] = {}
        parents: dict[str, tuple[str, str]] = {}
        for call in facts.calls:
            if call.simple_name == "APIRouter" and call.assigned_to:
                own[call.assigned_to] = call.arguments.string("prefix") or ""
            elif call.simple_name == "include_router" and call.arguments.positional:
                child = call.arguments.positional[0]
                parents[child] = (call.receiver, call.arguments.string("prefix") or "")

        def _chain(name: str, seen: frozenset[str]) -> list[str]:
            chain: list[str] = []
            if name in parents and name not in seen:
                parent, include_prefix = parents[name]
                chain.extend(_chain(parent, seen | {name}))
                chain.append(include_prefix)
            chain.append(own.get(name, ""))
            return chain

        return {name: _chain(name, frozenset()) for name in set(own) | set(parents)}

    def _route(
        self,
        file: SourceFile,
        func: FunctionFacts,
        method: str,
        path: str,
        prefixes: list[str],
        arguments: ArgumentList,
        models: set[str],
        line: int,
    ) -> Route:
        path_names = set(PATH_TOKEN_RE.findall(normalize_path(path, self.dialect)))
        docs = parse_param_docs(func.docstring)
        summary, description = split_docstring(func.docstring)
        summary = arguments.string("summary") or summary
        description = arguments.string("description") or description

        param_types: dict[str, Schema] = {}
        extra: list[Parameter] = []
        body: Optional[RequestBody] = None
        for param in func.parameters:
            marker = _marker_call(param.default)
            if param.name in _INJECTED_NAMES or self._bare(param.annotation) in _INJECTED_TYPES:
                continue
            if marker in ("Depends", "Security", "File", "Form", "UploadFile"):
                continue
            if param.name in path_names:
                if param.annotation:
                    param_types[param.name] = self._strip_nullable(self.map_type(param.annotation))
                continue
            if marker in _LOCATIONS:
                extra.append(
                    parameter(
                        param.name,
                        _LOCATIONS[marker],
                        self._strip_nullable(self.map_type(param.annotation)) if param.annotation else None,
                        required=_marker_required(param.default or ""),
                        description=docs.get(param.name),
                    )
                )
                continue
            if body is None and (marker == "Body" or self._is_model(param.annotation, models)):
                body = RequestBody.json_body(
                    self._annotation_schema(param.annotation, models),
                    required=param.default is None or (marker == "Body" and _marker_required(param.default)),
                )
                continue
            query = self._query_parameter(param, docs.get(param.name))
            if query is not None:
                extra.append(query)

        return self.route(
            method,
            path,
            file,
            prefixes=prefixes,
            handler=func.name,
            summary=summary,
            description=description,
            param_types=param_types,
            extra_parameters=extra,
            request_body=body,
            responses=self._responses(arguments, models),
            source_line=line,
        )

    def _query_parameter(self, param: ParameterFacts, description: Optional[str]) -> Optional[Parameter]:
        """Plain arguments become query parameters when they are defaulted or scalar."""
        annotation = param.annotation
        if param.default is None and annotation and not PYTHON.is_primitive(self._bare(annotation)):
            return None
        schema = self._strip_nullable(self.map_type(annotation)) if annotation else None
        return parameter(
            param.name,
            ParameterLocation.QUERY,
            schema,
            required=param.default is None,
            description=description,
        )

    def _responses(self, arguments: ArgumentList, models: set[str]) -> dict[str, Response]:
        model = arguments.get("response_model")
        status = arguments.get("status_code")
        if model is None and status is None:
            return {}
        found = re.search(r"\d{3}", status or "")
        code = found.group(0) if found else "200"
        schema = self._annotation_schema(model, models) if model and model != "None" else None
        return {code: json_response("Successful Response", schema)}

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    @staticmethod
    def _bare(annotation: str) -> str:
        return annotation.strip().rsplit(".", 1)[-1]

    @staticmethod
    def _strip_nullable(schema: Schema) -> Schema:
        return schema.model_copy(update={"nullable": False}) if schema.nullable else schema

    def _is_model(self, annotation: str, models: set[str]) -> bool:
        """Capitalised, non-builtin annotations are taken as request models."""
        name = self._bare(annotation)
        if not name or "[" in name or "|" in name:
            return False
        if name in models:
            return True
        return name[0].isupper() and name.lower() not in _BUILTIN_TYPES and not PYTHON.is_primitive(name)

    def _annotation_schema(self, annotation: str, models: set[str]) -> Schema:
        """A ``$ref`` for model names, an array of refs for lists of models."""
        generic = split_generic(annotation.strip(), PYTHON.brackets)
        if generic is not None and PYTHON.is_list(generic[0]) and self._is_model(generic[1], models):
            return Schema(type="array", items=Schema.reference(self._bare(generic[1])))
        if self._is_model(annotation, models):
            return Schema.reference(self._bare(annotation))
        return self.map_type(annotation)

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        facts = scan_python(file.text(), file.path)
        return [self.schema(descriptor) for descriptor in pydantic_models(facts)]
