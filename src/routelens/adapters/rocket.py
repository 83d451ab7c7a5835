"""Rocket adapter: route attribute macros and mount tables.

A handler declared with ``#[get("/<id>")]`` only gets its full path once it
is mounted: ``.mount("/users", routes![list, show])``. Mounts usually live
in ``main.rs`` while handlers live elsewhere, so this adapter reads the
whole batch: pass 1 collects every mount, pass 2 emits one route per
(handler, mount prefix) pair. An unmounted handler keeps its bare path.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import Iterable, Optional, Sequence

from routelens.adapters.base import FrameworkAdapter, json_response, parameter
from routelens.models import (
    HTTPMethod,
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
from routelens.pipeline.typemap import RUST, split_generic
from routelens.sources.declarations import Syntax, scan_declarations
from routelens.sources.facts import ClassFacts, FunctionFacts, ParameterFacts
from routelens.sources.tokens import RUST as RUST_LEXICON
from routelens.sources.tokens import ArgumentList, blank_comments, identifier_tail, unquote

logger = logging.getLogger(__name__)

_VERBS = frozenset({"get", "post", "put", "delete", "patch", "head", "options"})
_MOUNT_RE = re.compile(r"\.mount\s*\(\s*(?P<prefix>\"(?:[^\"\\]|\\.)*\")\s*,\s*(?:rocket::)?routes!\s*\[(?P<handlers>[^\]]*)\]")
_QUERY_PARAM_RE = re.compile(r"<([A-Za-z_]\w*)(?:\.\.)?>")
_SERDE_DERIVES = frozenset({"Serialize", "Deserialize"})

Mounts = dict[str, list[tuple[tuple[str, ...], str]]]
"""Handler name to its mounts, each a (module qualifier, prefix) pair."""

_PATH_KEYWORDS = frozenset({"crate", "self", "super"})


def module_path(path: str) -> tuple[str, ...]:
    """The Rust module path of the file at *path*, relative to ``src``.

    ``src/api/users.rs`` and ``src/api/users/mod.rs`` are both
    ``("api", "users")``; ``main.rs`` and ``lib.rs`` are the crate root.
    """
    parts = PurePosixPath(path).with_suffix("").parts
    if "src" in parts:
        parts = parts[len(parts) - parts[::-1].index("src") :]
    if parts and parts[-1] in ("main", "lib", "mod"):
        parts = parts[:-1]
    return tuple(parts)


def mount_entry(handler: str) -> tuple[tuple[str, ...], str]:
    """Split ``crate::users::list`` into ``(("users",), "list")``."""
    segments = [s.strip() for s in handler.split("::") if s.strip()]
    qualifier = tuple(s for s in segments[:-1] if s not in _PATH_KEYWORDS)
    return qualifier, segments[-1] if segments else ""


def _mounted_under(qualifier: tuple[str, ...], owner: tuple[str, ...]) -> bool:
    return not qualifier or owner[-len(qualifier) :] == qualifier


def _rename(name: str, rule: Optional[str]) -> str:
    """Apply a ``#[serde(rename_all = ...)]`` rule to a snake_case field name."""
    words = [w for w in name.split("_") if w]
    if not rule or not words:
        return name
    if rule == "camelCase":
        return words[0] + "".join(w.capitalize() for w in words[1:])
    if rule == "PascalCase":
        return "".join(w.capitalize() for w in words)
    if rule == "kebab-case":
        return "-".join(words)
    if rule == "SCREAMING_SNAKE_CASE":
        return "_".join(w.upper() for w in words)
    if rule == "UPPERCASE":
        return name.upper()
    return name


class RocketAdapter(FrameworkAdapter):
    """Routes and serde schemas from Rocket applications."""

    dialect = PathDialect.ANGLE
    type_table = RUST
    languages = ("rust",)
    extensions = (".rs",)
    manifests = {"Cargo.toml": ("rocket",)}
    batch_files = True

    @property
    def name(self) -> str:
        return "rocket"

    @property
    def description(self) -> str:
        return "Rocket route attributes, mount tables and serde structs"

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def routes_from_batch(self, files: Sequence[SourceFile]) -> Iterable[Route]:
        mounts: Mounts = {}
        for file in files:
            for name, mount in self._guarded(self._mounts, file, file.path):
                mounts.setdefault(name, []).append(mount)
        routes: list[Route] = []
        for file in files:
            routes.extend(self._guarded(lambda f: self._routes(f, mounts), file, file.path))
        return routes

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        mounts: Mounts = {}
        for name, mount in self._mounts(file):
            mounts.setdefault(name, []).append(mount)
        return self._routes(file, mounts)

    @staticmethod
    def _mounts(file: SourceFile) -> list[tuple[str, tuple[tuple[str, ...], str]]]:
        code = blank_comments(file.text(), RUST_LEXICON)
        found = []
        for match in _MOUNT_RE.finditer(code):
            prefix = unquote(match.group("prefix")) or ""
            for handler in match.group("handlers").split(","):
                if handler.strip():
                    qualifier, name = mount_entry(handler)
                    found.append((name, (qualifier, prefix)))
        return found

    def _routes(self, file: SourceFile, mounts: Mounts) -> list[Route]:
        facts = scan_declarations(file.text(), file.path, Syntax.RUST)
        functions = list(facts.functions)
        for cls in facts.classes:
            functions.extend(cls.methods)
        functions.sort(key=lambda f: f.line)

        routes = []
        for func in functions:
            for deco in func.decorators:
                verb, uri = self._verb_and_uri(deco.simple_name, deco.arguments)
                if verb is None or uri is None:
                    continue
                owner = module_path(file.path) + tuple(func.modules)
                prefixes = [p for q, p in mounts.get(func.name, []) if _mounted_under(q, owner)]
                for prefix in prefixes or [""]:
                    routes.append(self._route(file, func, verb, uri, prefix, deco.arguments.string("data"), deco.line))
        return routes

    @staticmethod
    def _verb_and_uri(name: str, arguments: ArgumentList) -> tuple[Optional[str], Optional[str]]:
        if name in _VERBS:
            return name, arguments.path("uri")
        if name == "route":
            positional = arguments.positional
            verb = positional[0] if positional else None
            uri = arguments.string("uri")
            if uri is None and len(positional) > 1:
                uri = unquote(positional[1])
            if verb is not None and HTTPMethod.parse(verb) is not None:
                return verb, uri
        return None, None

    def _route(
        self,
        file: SourceFile,
        func: FunctionFacts,
        verb: str,
        uri: str,
        prefix: str,
        data: Optional[str],
        line: int,
    ) -> Route:
        path, _, query = uri.partition("?")
        params = {param.name: param for param in func.parameters}

        param_types: dict[str, Schema] = {}
        for name, param in params.items():
            if f"<{name}>" in path or f"<{name}..>" in path:
                param_types[name] = self._scalar(param)

        extra: list[Parameter] = []
        for name in _QUERY_PARAM_RE.findall(query):
            param = params.get(name)
            schema = self._scalar(param) if param is not None else None
            optional = param is not None and self._is_option(param.annotation)
            extra.append(parameter(name, ParameterLocation.QUERY, schema, required=not optional))

        body = None
        if data:
            match = _QUERY_PARAM_RE.fullmatch(data.strip())
            param = params.get(match.group(1)) if match else None
            if param is not None:
                body = RequestBody.json_body(self.reference_schema(param.annotation))

        responses = {}
        if func.return_type:
            schema = self.reference_schema(func.return_type)
            if schema.ref is not None or schema.type == "array":
                responses["200"] = json_response("Successful response", schema)

        return self.route(
            verb,
            path,
            file,
            prefixes=[prefix],
            handler=func.name,
            param_types=param_types,
            extra_parameters=extra,
            request_body=body,
            responses=responses,
            source_line=line,
        )

    def _scalar(self, param: ParameterFacts) -> Schema:
        schema = self.map_type(param.annotation)
        return schema.model_copy(update={"nullable": False}) if schema.nullable else schema

    @staticmethod
    def _is_option(annotation: str) -> bool:
        generic = split_generic(annotation.strip(), RUST.brackets)
        return generic is not None and RUST.is_optional(generic[0])

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        facts = scan_declarations(file.text(), file.path, Syntax.RUST)
        schemas = []
        for cls in facts.classes:
            if cls.kind != "struct":
                continue
            derive = cls.decorator("derive")
            derived = {identifier_tail(a) for a in derive.arguments.positional} if derive is not None else set()
            if not derived & _SERDE_DERIVES:
                continue
            schemas.append(self.schema(self._descriptor(cls)))
        return schemas

    def _descriptor(self, cls: ClassFacts) -> ModelDescriptor:
        container = cls.decorator("serde")
        rename_all = container.arguments.string("rename_all") if container is not None else None
        container_default = container is not None and "default" in container.arguments.positional

        fields = []
        for member in cls.fields:
            serde = next((d for d in member.decorators if d.simple_name == "serde"), None)
            flags = set(serde.arguments.positional) if serde is not None else set()
            if "skip" in flags or "skip_serializing" in flags:
                continue
            name = (serde.arguments.string("rename") if serde is not None else None) or _rename(
                member.name, rename_all
            )
            has_default = container_default or "default" in flags or (
                serde is not None and serde.arguments.get("default") is not None
            )
            fields.append(
                ModelField(
                    name=name,
                    type=member.type,
                    is_optional=self._is_option(member.type),
                    has_default=has_default,
                )
            )
        if not fields:
            logger.debug("%s has no named fields", cls.name)
        return ModelDescriptor(name=cls.name, fields=fields)
