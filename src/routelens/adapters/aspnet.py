"""ASP.NET Core adapter: attribute-routed controllers and minimal APIs.

Controller routes combine the class ``[Route]`` template (with
``[controller]`` and ``[action]`` replaced by the lowercased controller and
action names) and the template of each ``[HttpGet]``-style attribute. A
method template starting with ``/`` or ``~/`` ignores the controller
template. Minimal API calls (``app.MapGet("/x", ...)``) are picked up too,
including prefixes from ``MapGroup``.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from routelens.adapters.base import FrameworkAdapter, json_response, parameter
from routelens.models import (
    PATH_TOKEN_RE,
    ModelDescriptor,
    ModelField,
    Parameter,
    ParameterLocation,
    RequestBody,
    Response,
    Route,
    Schema,
    SourceFile,
)
from routelens.pipeline.paths import PathDialect, normalize_path
from routelens.pipeline.typemap import CSHARP
from routelens.sources.declarations import Syntax, scan_declarations
from routelens.sources.facts import ClassFacts, FunctionFacts, ModuleFacts
from routelens.sources.tokens import CSHARP as CSHARP_LEXICON
from routelens.sources.tokens import blank_comments, line_of, unquote

logger = logging.getLogger(__name__)

_HTTP_ATTRIBUTES = {
    "HttpGet": "GET",
    "HttpPost": "POST",
    "HttpPut": "PUT",
    "HttpDelete": "DELETE",
    "HttpPatch": "PATCH",
    "HttpHead": "HEAD",
    "HttpOptions": "OPTIONS",
}
_BINDINGS = {
    "FromQuery": ParameterLocation.QUERY,
    "FromHeader": ParameterLocation.HEADER,
}
_SERVICES = frozenset({"CancellationToken", "HttpContext", "HttpRequest", "HttpResponse", "ILogger"})
_NO_BODY_RESULTS = frozenset({"void", "Task", "IActionResult", "ActionResult", "IResult", "Task<IActionResult>", "Task<IResult>"})

_MAP_GROUP_RE = re.compile(
    r"(?:var\s+)?(?P<name>\w+)\s*=\s*(?P<parent>\w+)\s*\.\s*MapGroup\s*\(\s*(?P<path>@?\"(?:[^\"\\]|\\.)*\")"
)
_MAP_VERB_RE = re.compile(
    r"\b(?P<target>\w+)\s*\.\s*Map(?P<verb>Get|Post|Put|Delete|Patch)\s*\(\s*(?P<path>@?\"(?:[^\"\\]|\\.)*\")"
)


def _is_controller(cls: ClassFacts) -> bool:
    if cls.decorator("ApiController", "Controller") is not None:
        return True
    if cls.decorator("NonController") is not None:
        return False
    return cls.name.endswith("Controller") or any(b.endswith(("Controller", "ControllerBase")) for b in cls.bases)


class AspNetAdapter(FrameworkAdapter):
    """Routes and model schemas from ASP.NET Core projects."""

    dialect = PathDialect.BRACE
    type_table = CSHARP
    languages = ("csharp",)
    extensions = (".cs",)
    manifests = {
        "*.csproj": ("Microsoft.AspNetCore", "Microsoft.NET.Sdk.Web"),
        "packages.config": ("Microsoft.AspNet",),
    }

    @property
    def name(self) -> str:
        return "aspnet"

    @property
    def description(self) -> str:
        return "ASP.NET Core attribute routing, minimal APIs and model classes"

    @property
    def supported_frameworks(self) -> list[str]:
        return ["aspnet-core"]

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        text = file.text()
        facts = scan_declarations(text, file.path, Syntax.CSHARP)
        routes: list[Route] = []
        for cls in facts.classes:
            if cls.kind == "class" and _is_controller(cls):
                routes.extend(self._controller_routes(file, cls))
        routes.extend(self._minimal_routes(file, text))
        return routes

    # ------------------------------------------------------------------
    # Controllers
    # ------------------------------------------------------------------

    def _controller_routes(self, file: SourceFile, cls: ClassFacts) -> list[Route]:
        controller = re.sub(r"Controller$", "", cls.name)
        route_attr = cls.decorator("Route")
        template = (route_attr.arguments.path("Template") or "") if route_attr is not None else ""
        template = template.replace("[controller]", controller.lower())

        routes = []
        for method in cls.methods:
            method_route = method.decorator("Route")
            for attr in method.decorators:
                verb = _HTTP_ATTRIBUTES.get(attr.simple_name)
                if verb is None:
                    continue
                path = attr.arguments.path("Template")
                if path is None and method_route is not None:
                    path = method_route.arguments.path("Template")
                path = (path or "").replace("[action]", method.name.lower())
                prefix = template.replace("[action]", method.name.lower())
                if path.startswith(("/", "~/")):
                    prefix, path = "", path.lstrip("~")
                routes.append(self._method_route(file, cls, method, verb, prefix, path, attr.line))
        return routes

    def _method_route(
        self,
        file: SourceFile,
        cls: ClassFacts,
        method: FunctionFacts,
        verb: str,
        prefix: str,
        path: str,
        line: int,
    ) -> Route:
        tokens = set(PATH_TOKEN_RE.findall(normalize_path(path, self.dialect)))
        tokens |= set(PATH_TOKEN_RE.findall(normalize_path(prefix, self.dialect)))
        param_types: dict[str, Schema] = {}
        extra: list[Parameter] = []
        body: Optional[RequestBody] = None
        for param in method.parameters:
            bare_type = param.annotation.rstrip("?").rsplit(".", 1)[-1]
            if bare_type in _SERVICES or param.decorator("FromServices") is not None:
                continue
            if param.decorator("FromBody") is not None:
                body = RequestBody.json_body(self.reference_schema(param.annotation))
                continue
            route_attr = param.decorator("FromRoute")
            if route_attr is not None or param.name in tokens:
                name = (route_attr.arguments.string("Name") if route_attr else None) or param.name
                param_types[name] = self.map_type(param.annotation).model_copy(update={"nullable": False})
                continue
            binding = param.decorator(*_BINDINGS)
            location = _BINDINGS[binding.simple_name] if binding is not None else ParameterLocation.QUERY
            schema = self.map_type(param.annotation)
            if binding is None and body is None and self.reference_schema(param.annotation).ref:
                body = RequestBody.json_body(self.reference_schema(param.annotation))
                continue
            extra.append(
                parameter(
                    (binding.arguments.string("Name") if binding else None) or param.name,
                    location,
                    schema.model_copy(update={"nullable": False}),
                    required=param.default is None and not schema.nullable,
                )
            )

        return self.route(
            verb,
            path,
            file,
            prefixes=[prefix],
            handler=method.name,
            identity=cls.name,
            param_types=param_types,
            extra_parameters=extra,
            request_body=body,
            responses=self._responses(method.return_type),
            source_line=line,
        )

    def _responses(self, return_type: str) -> dict[str, Response]:
        compact = return_type.replace(" ", "")
        if compact in _NO_BODY_RESULTS:
            return {}
        schema = self.reference_schema(return_type)
        if schema.ref is None and schema.type != "array":
            return {}
        return {"200": json_response("Success", schema)}

    # ------------------------------------------------------------------
    # Minimal APIs
    # ------------------------------------------------------------------

    def _minimal_routes(self, file: SourceFile, text: str) -> list[Route]:
        code = blank_comments(text, CSHARP_LEXICON)
        groups: dict[str, tuple[str, str]] = {}
        for match in _MAP_GROUP_RE.finditer(code):
            groups[match.group("name")] = (match.group("parent"), unquote(match.group("path")) or "")

        def _chain(name: str, depth: int = 0) -> list[str]:
            if name not in groups or depth > len(groups):
                return []
            parent, path = groups[name]
            return [*_chain(parent, depth + 1), path]

        routes = []
        for match in _MAP_VERB_RE.finditer(code):
            routes.append(
                self.route(
                    match.group("verb"),
                    unquote(match.group("path")) or "",
                    file,
                    prefixes=_chain(match.group("target")),
                    source_line=line_of(code, match.start()),
                )
            )
        return routes

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        facts = scan_declarations(file.text(), file.path, Syntax.CSHARP)
        return [self.schema(descriptor) for descriptor in self._models(facts)]

    @staticmethod
    def _models(facts: ModuleFacts) -> list[ModelDescriptor]:
        models = []
        for cls in facts.classes:
            if cls.kind not in ("class", "record", "struct") or _is_controller(cls):
                continue
            fields = [
                ModelField(
                    name=member.name,
                    type=member.type,
                    is_optional=member.type.endswith("?"),
                    has_default=member.default is not None,
                )
                for member in cls.fields
                if not member.is_static
            ]
            if fields:
                models.append(ModelDescriptor(name=cls.name, fields=fields))
            else:
                logger.debug("%s: %s has no data members", facts.path, cls.name)
        return models
