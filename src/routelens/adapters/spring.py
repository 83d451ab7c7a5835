"""Spring MVC / Spring Boot adapter.

Controllers are classes annotated ``@RestController`` or ``@Controller``.
A class-level ``@RequestMapping`` contributes the base path; each method
mapping annotation contributes the rest. ``@RequestMapping(method = ...)``
with several methods yields a route for the first one only.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from routelens.adapters.base import FrameworkAdapter, json_response, parameter
from routelens.models import (
    ModelDescriptor,
    ModelField,
    Parameter,
    ParameterLocation,
    RequestBody,
    Route,
    Schema,
    SourceFile,
)
from routelens.pipeline.paths import PathDialect
from routelens.pipeline.typemap import JAVA
from routelens.sources.declarations import Syntax, scan_declarations
from routelens.sources.facts import ClassFacts, Decorator, FunctionFacts
from routelens.sources.tokens import ArgumentList, parse_string_list

logger = logging.getLogger(__name__)

_MAPPINGS = {
    "GetMapping": "GET",
    "PostMapping": "POST",
    "PutMapping": "PUT",
    "DeleteMapping": "DELETE",
    "PatchMapping": "PATCH",
}
_CONTROLLERS = ("RestController", "Controller")
_DTO_SUFFIXES = ("Dto", "DTO", "Request", "Response")
_LOCATIONS = {
    "RequestParam": ParameterLocation.QUERY,
    "RequestHeader": ParameterLocation.HEADER,
    "CookieValue": ParameterLocation.COOKIE,
}
_VOID = frozenset({"void", "Void", ""})


def mapping_path(args: ArgumentList) -> str:
    """First path of a mapping annotation; ``""`` when it declares none."""
    raw = args.first() or args.get("value", "path")
    if raw is None:
        return ""
    paths = parse_string_list(raw)
    return paths[0] if paths else ""


def _request_method(args: ArgumentList) -> str:
    methods = parse_string_list(args.get("method"))
    if not methods:
        return "GET"
    return methods[0].rsplit(".", 1)[-1]


def _bound_name(deco: Decorator, fallback: str) -> str:
    return deco.arguments.string("value", "name") or deco.arguments.first_string() or fallback


class SpringAdapter(FrameworkAdapter):
    """Routes and DTO schemas from Spring controllers."""

    dialect = PathDialect.BRACE
    type_table = JAVA
    languages = ("java",)
    extensions = (".java",)
    manifests = {
        "pom.xml": ("spring-boot", "spring-webmvc", "spring-web"),
        "build.gradle": ("spring-boot", "org.springframework"),
        "build.gradle.kts": ("spring-boot", "org.springframework"),
    }

    @property
    def name(self) -> str:
        return "spring"

    @property
    def description(self) -> str:
        return "Spring MVC mapping annotations and DTO classes"

    @property
    def supported_frameworks(self) -> list[str]:
        return ["spring-boot", "spring-mvc"]

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        facts = scan_declarations(file.text(), file.path, Syntax.JAVA)
        routes: list[Route] = []
        for cls in facts.classes:
            if cls.decorator(*_CONTROLLERS) is None:
                continue
            base = cls.decorator("RequestMapping")
            prefix = mapping_path(base.arguments) if base is not None else ""
            for method in cls.methods:
                route = self._method_route(file, cls, method, prefix)
                if route is not None:
                    routes.append(route)
        return routes

    def _method_route(
        self, file: SourceFile, cls: ClassFacts, method: FunctionFacts, prefix: str
    ) -> Optional[Route]:
        verb = None
        deco = method.decorator(*_MAPPINGS)
        if deco is not None:
            verb = _MAPPINGS[deco.simple_name]
        else:
            deco = method.decorator("RequestMapping")
            if deco is not None:
                verb = _request_method(deco.arguments)
        if deco is None:
            return None
        if verb is None:
            logger.debug("%s: %s.%s has no usable request method", file.path, cls.name, method.name)
            return None

        param_types: dict[str, Schema] = {}
        extra: list[Parameter] = []
        body: Optional[RequestBody] = None
        for param in method.parameters:
            path_var = param.decorator("PathVariable")
            if path_var is not None:
                param_types[_bound_name(path_var, param.name)] = self.map_type(param.annotation)
                continue
            body_anno = param.decorator("RequestBody")
            if body_anno is not None:
                body = RequestBody.json_body(
                    self.reference_schema(param.annotation),
                    required=body_anno.arguments.get("required") != "false",
                )
                continue
            bound = param.decorator(*_LOCATIONS)
            if bound is not None:
                required = (
                    bound.arguments.get("required") != "false"
                    and bound.arguments.get("defaultValue") is None
                )
                extra.append(
                    parameter(
                        _bound_name(bound, param.name),
                        _LOCATIONS[bound.simple_name],
                        self.map_type(param.annotation),
                        required=required,
                    )
                )

        responses = {}
        if method.return_type not in _VOID:
            responses["200"] = json_response("Successful response", self._response_schema(method.return_type))

        return self.route(
            verb,
            mapping_path(deco.arguments),
            file,
            prefixes=[prefix],
            handler=method.name,
            identity=cls.name,
            param_types=param_types,
            extra_parameters=extra,
            request_body=body,
            responses=responses,
            source_line=deco.line,
        )

    def _response_schema(self, return_type: str) -> Optional[Schema]:
        schema = self.reference_schema(return_type)
        # ResponseEntity<?> and friends carry no usable type.
        if schema.ref is None and schema.type == "string" and "?" in return_type:
            return None
        return schema

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        facts = scan_declarations(file.text(), file.path, Syntax.JAVA)
        schemas = []
        for cls in facts.classes:
            if cls.kind not in ("class", "record") or not cls.name.endswith(_DTO_SUFFIXES):
                continue
            schemas.append(self.schema(self._descriptor(cls)))
        return schemas

    @staticmethod
    def _descriptor(cls: ClassFacts) -> ModelDescriptor:
        fields: dict[str, ModelField] = {}
        for member in cls.fields:
            if member.is_static:
                continue
            fields[member.name] = ModelField(
                name=member.name,
                type=member.type,
                is_optional=member.type.startswith("Optional<")
                or any(d.simple_name == "Nullable" for d in member.decorators),
                has_default=member.default is not None,
            )
        for method in cls.methods:
            match = re.fullmatch(r"(?:get|is)([A-Z]\w*)", method.name)
            if match is None or method.parameters or method.return_type in _VOID:
                continue
            name = match.group(1)[0].lower() + match.group(1)[1:]
            if name not in fields:
                fields[name] = ModelField(name=name, type=method.return_type)
        return ModelDescriptor(name=cls.name, fields=list(fields.values()))
