"""Play Framework adapter: ``conf/routes`` files and Scala case classes.

A routes file is line oriented::

    GET     /users/:id          controllers.Users.show(id: Long)
    GET     /users              controllers.Users.list(page: Int ?= 1)
    ->      /admin              admin.Routes

``->`` lines mount another routes file under a prefix; ``admin.Routes`` is
generated from ``conf/admin.routes``. Includes are resolved across the whole
batch, so the adapter runs with :attr:`~FrameworkAdapter.batch_files` set.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import Iterable, NamedTuple, Optional, Sequence, Union

from routelens.adapters.base import FrameworkAdapter, parameter
from routelens.models import (
    PATH_TOKEN_RE,
    ModelDescriptor,
    ModelField,
    Parameter,
    ParameterLocation,
    Route,
    Schema,
    SourceFile,
)
from routelens.pipeline.paths import PathDialect, normalize_path
from routelens.pipeline.typemap import SCALA, split_generic
from routelens.sources.tokens import C_LIKE, blank_comments, line_of, read_balanced, split_arguments

logger = logging.getLogger(__name__)

ROUTES_LANGUAGE = "routes"

_ROUTE_RE = re.compile(
    r"^(?P<verb>GET|POST|PUT|DELETE|PATCH|HEAD|OPTIONS)\s+(?P<path>\S+)\s+@?(?P<action>[^\s(]+)"
    r"(?:\((?P<args>.*)\))?\s*$"
)
_INCLUDE_RE = re.compile(r"^->\s+(?P<prefix>\S+)\s+(?P<router>\S+)")
_ARGUMENT_RE = re.compile(
    r"^(?P<name>[A-Za-z_]\w*)\s*(?::\s*(?P<type>[^=?]+?))?\s*(?:(?P<op>\?=|=)\s*(?P<default>.+))?$",
    re.S,
)
_CASE_CLASS_RE = re.compile(r"\bcase\s+class\s+(?P<name>\w+)\s*(?:\[[^\]]*\]\s*)?\(")
_ANNOTATION_RE = re.compile(r"^(?:@\w+(?:\([^)]*\))?\s*)+")
_MODEL_SUFFIXES = ("Dto", "DTO", "Request", "Response", "Model", "Form")


class _Endpoint(NamedTuple):
    verb: str
    path: str
    controller: str
    action: str
    arguments: list[str]
    line: int


class _Include(NamedTuple):
    prefix: str
    router: str
    line: int


_Entry = Union[_Endpoint, _Include]


def parse_routes_file(text: str) -> list[_Entry]:
    """Endpoints and includes of one routes file, in file order.

    Comments, blank lines and ``+ modifier`` lines are skipped; unrecognised
    lines are logged and skipped.
    """
    entries: list[_Entry] = []
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith(("#", "+")):
            continue
        include = _INCLUDE_RE.match(line)
        if include is not None:
            entries.append(_Include(include.group("prefix"), include.group("router"), number))
            continue
        match = _ROUTE_RE.match(line)
        if match is None:
            logger.debug("unrecognised routes line %d: %s", number, line)
            continue
        controller, _, action = match.group("action").rpartition(".")
        arguments = split_arguments(match.group("args") or "", C_LIKE)
        entries.append(_Endpoint(match.group("verb"), match.group("path"), controller, action, arguments, number))
    return entries


def router_name(path: str) -> str:
    """Name an include refers to a routes file by: ``conf/api.routes`` -> ``api``."""
    name = PurePosixPath(path.replace("\\", "/")).name
    return "" if name == "routes" else name.removesuffix(".routes")


def _included_router(reference: str) -> str:
    """``admin.Routes`` -> ``admin``; a bare ``Routes`` is the main file."""
    return reference.removesuffix("Routes").rstrip(".")


class PlayAdapter(FrameworkAdapter):
    """Routes from Play routes files and schemas from Scala case classes."""

    dialect = PathDialect.DOLLAR
    type_table = SCALA
    languages = (ROUTES_LANGUAGE, "scala")
    extensions = (".scala", ".sc", ".routes")
    manifests = {
        "build.sbt": ("com.typesafe.play", "org.playframework", "play-"),
        "project/plugins.sbt": ("com.typesafe.play", "org.playframework"),
    }
    marker_paths = ("conf/routes",)
    batch_files = True

    @property
    def name(self) -> str:
        return "play"

    @property
    def description(self) -> str:
        return "Play Framework routes files and Scala case classes"

    @property
    def supported_frameworks(self) -> list[str]:
        return ["play", "play-framework"]

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def routes_from_batch(self, files: Sequence[SourceFile]) -> Iterable[Route]:
        route_files = [f for f in files if f.language == ROUTES_LANGUAGE]
        routers = {router_name(f.path): f for f in route_files}
        parsed = {f.path: self._guarded(self._parse, f, f.path) for f in route_files}

        included = set()
        for entries in parsed.values():
            for entry in entries:
                target = routers.get(_included_router(entry.router)) if isinstance(entry, _Include) else None
                if target is not None:
                    included.add(target.path)

        routes: list[Route] = []
        for file in route_files:
            if file.path not in included:
                self._walk(file, [], parsed, routers, (file.path,), routes)
        return routes

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        if file.language != ROUTES_LANGUAGE:
            return []
        routes: list[Route] = []
        self._walk(file, [], {file.path: self._parse(file)}, {}, (file.path,), routes)
        return routes

    @staticmethod
    def _parse(file: SourceFile) -> list[_Entry]:
        return parse_routes_file(file.text())

    def _walk(
        self,
        file: SourceFile,
        prefixes: list[str],
        parsed: dict[str, list[_Entry]],
        routers: dict[str, SourceFile],
        chain: tuple[str, ...],
        out: list[Route],
    ) -> None:
        for entry in parsed.get(file.path, []):
            if isinstance(entry, _Endpoint):
                out.append(self._route(file, entry, prefixes))
                continue
            target = routers.get(_included_router(entry.router))
            if target is None:
                logger.debug("%s:%d: no routes file for %s", file.path, entry.line, entry.router)
            elif target.path in chain:
                logger.warning("%s:%d: include cycle through %s", file.path, entry.line, target.path)
            else:
                self._walk(target, [*prefixes, entry.prefix], parsed, routers, (*chain, target.path), out)

    def _route(self, file: SourceFile, entry: _Endpoint, prefixes: list[str]) -> Route:
        tokens = set(PATH_TOKEN_RE.findall(normalize_path(entry.path, self.dialect)))
        param_types: dict[str, Schema] = {}
        extra: list[Parameter] = []
        for raw in entry.arguments:
            match = _ARGUMENT_RE.match(raw.strip())
            # A fixed "= value" argument is not supplied by the client.
            if match is None or match.group("op") == "=":
                continue
            name = match.group("name")
            schema = self.map_type(match.group("type") or "String")
            if name in tokens:
                param_types[name] = schema.model_copy(update={"nullable": False})
                continue
            extra.append(
                parameter(
                    name,
                    ParameterLocation.QUERY,
                    schema.model_copy(update={"nullable": False}),
                    required=match.group("op") is None and not schema.nullable,
                )
            )

        handler = f"{entry.controller}.{entry.action}" if entry.controller else entry.action
        return self.route(
            entry.verb,
            entry.path,
            file,
            prefixes=prefixes,
            handler=handler,
            operation_name=entry.action,
            identity=entry.controller,
            param_types=param_types,
            extra_parameters=extra,
            source_line=entry.line,
        )

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        if file.language != "scala":
            return []
        code = blank_comments(file.text(), C_LIKE)
        schemas = []
        for match in _CASE_CLASS_RE.finditer(code):
            name = match.group("name")
            if not name.endswith(_MODEL_SUFFIXES):
                continue
            paren = match.end() - 1
            close = read_balanced(code, paren, C_LIKE)
            if close < 0:
                logger.debug("%s:%d: unterminated case class %s", file.path, line_of(code, paren), name)
                continue
            fields = [f for f in map(self._field, split_arguments(code[paren + 1 : close - 1], C_LIKE)) if f]
            schemas.append(self.schema(ModelDescriptor(name=name, fields=fields)))
        return schemas

    @staticmethod
    def _field(raw: str) -> Optional[ModelField]:
        text = _ANNOTATION_RE.sub("", raw.strip())
        text = re.sub(r"^(?:(?:private|protected|override|implicit)\s+)*(?:val|var)\s+", "", text)
        name, colon, rest = text.partition(":")
        if not colon or not name.strip():
            return None
        type_text, eq, _ = rest.partition("=")
        generic = split_generic(type_text.strip(), SCALA.brackets)
        return ModelField(
            name=name.strip(),
            type=type_text.strip(),
            is_optional=generic is not None and SCALA.is_optional(generic[0]),
            has_default=bool(eq),
        )
