"""Sinatra adapter: route blocks, ``namespace`` nesting and constant fixtures.

Routes are blocks (``get '/users/:id' do ... end`` or ``get('/') { ... }``);
a verb call without a block, such as a Rails ``get 'x', to: 'c#a'``, is not a
Sinatra route. ``namespace '/api' do`` blocks from sinatra-contrib prefix the
routes inside them. Spec and test files are skipped.

Sinatra apps rarely declare models, so schemas come from constant fixtures
(``USERS = [{ id: 1, name: 'Alice' }]`` becomes ``User``), with property
types inferred from the literal values and, failing that, the key names.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import Iterable, Optional

from routelens.adapters.base import FrameworkAdapter
from routelens.models import ModelDescriptor, ModelField, Route, Schema, SourceFile
from routelens.pipeline.identifiers import ANONYMOUS_HANDLER
from routelens.pipeline.paths import PathDialect
from routelens.pipeline.typemap import RUBY
from routelens.sources.blocks import RUBY_OPENERS, statements
from routelens.sources.tokens import HASH, blank_comments, line_of, parse_arguments, read_balanced, unquote

logger = logging.getLogger(__name__)

_ROUTE_RE = re.compile(
    r"^(?P<verb>get|post|put|patch|delete|options|head)\s*(?:\(\s*(?P<pargs>[^)]*)\)|\s(?P<args>[^{]*?))\s*(?P<block>do\b.*|\{.*)?$",
    re.S,
)
_NAMESPACE_RE = re.compile(r"^namespace\s*\(?\s*(?P<path>(['\"]).*?\2)")
_CONSTANT_RE = re.compile(r"^\s*(?P<name>[A-Z][A-Z0-9_]*)\s*=\s*(?P<open>[\[{])", re.M)
_INTEGER_RE = re.compile(r"^-?\d[\d_]*$")
_FLOAT_RE = re.compile(r"^-?\d[\d_]*\.\d+$")


def is_test_file(path: str) -> bool:
    """Whether *path* looks like an RSpec or Minitest file."""
    posix = "/" + path.replace("\\", "/")
    name = PurePosixPath(posix).name
    return (
        "/spec/" in posix
        or "/test/" in posix
        or name.endswith(("_spec.rb", "_test.rb"))
        or name in ("spec_helper.rb", "test_helper.rb")
    )


def _splat(path: str) -> str:
    """Name bare ``*`` segments the way Sinatra exposes them (``splat``)."""
    return re.sub(r"(?<=/)\*(?=/|$)", "*splat", path)


def literal_type(key: str, value: str) -> tuple[str, bool]:
    """Ruby type name for a fixture value, and whether the value is ``nil``."""
    text = value.strip()
    if _INTEGER_RE.match(text):
        return "Integer", False
    if _FLOAT_RE.match(text):
        return "Float", False
    if text in ("true", "false"):
        return "TrueClass", False
    if text == "nil":
        return "String", True
    if text.startswith("["):
        return "Array[String]", False
    if text.startswith("{"):
        return "Hash", False
    if text.startswith(("Time.", "DateTime.")):
        return "Time", False
    if unquote(text) is not None or text.startswith(":"):
        return "String", False

    lowered = key.lower()
    if lowered == "id" or lowered.endswith("_id"):
        return "Integer", False
    if "date" in lowered or lowered.endswith("_at"):
        return "Time", False
    if lowered.startswith(("is_", "has_", "can_")):
        return "TrueClass", False
    return "String", False


def singular(name: str) -> str:
    """English singular of a resource name (``Categories`` -> ``Category``)."""
    if name.endswith("ies"):
        return name[:-3] + "y"
    if name.endswith(("sses", "xes", "zes", "ches", "shes")):
        return name[:-2]
    if name.endswith("s") and not name.endswith("ss"):
        return name[:-1]
    return name


def schema_name(constant: str, plural: bool) -> str:
    """``ORDER_ITEMS`` -> ``OrderItem`` (singular for fixture lists)."""
    name = "".join(part.capitalize() for part in constant.lower().split("_") if part)
    return singular(name) if plural else name


class SinatraAdapter(FrameworkAdapter):
    """Routes from Sinatra applications."""

    dialect = PathDialect.COLON
    type_table = RUBY
    languages = ("ruby",)
    extensions = (".rb", ".ru")
    manifests = {"Gemfile": ("sinatra",), "Gemfile.lock": ("sinatra",)}

    @property
    def name(self) -> str:
        return "sinatra"

    @property
    def description(self) -> str:
        return "Sinatra route blocks, namespaces and constant fixtures"

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        if is_test_file(file.path):
            return []
        code = blank_comments(file.text(), HASH)
        stack: list[str] = []
        routes: list[Route] = []
        for statement in statements(code, RUBY_OPENERS, HASH):
            del stack[max(0, len(stack) - statement.closes) :]
            pushed = ""
            namespace = _NAMESPACE_RE.match(statement.text)
            route = _ROUTE_RE.match(statement.text)
            if namespace is not None:
                pushed = unquote(namespace.group("path")) or ""
            elif route is not None and route.group("block"):
                args = parse_arguments(route.group("pargs") or route.group("args") or "", HASH)
                path = args.first_string()
                if path is None:
                    logger.debug("%s:%d: route without a string path", file.path, statement.line)
                else:
                    routes.append(
                        self.route(
                            route.group("verb"),
                            _splat(path),
                            file,
                            prefixes=list(stack),
                            handler=ANONYMOUS_HANDLER,
                            source_line=statement.line,
                        )
                    )
            for _ in range(statement.opens):
                stack.append(pushed)
                pushed = ""
        return routes

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        if is_test_file(file.path):
            return []
        code = blank_comments(file.text(), HASH)
        schemas = []
        for match in _CONSTANT_RE.finditer(code):
            start = match.start("open")
            plural = match.group("open") == "["
            if plural:
                start = code.find("{", start)
                if start < 0 or code[match.start("open") + 1 : start].strip():
                    continue
            close = read_balanced(code, start, HASH)
            if close < 0:
                logger.debug("%s:%d: unterminated constant", file.path, line_of(code, start))
                continue
            descriptor = self._descriptor(schema_name(match.group("name"), plural), code[start + 1 : close - 1])
            if descriptor is not None:
                schemas.append(self.schema(descriptor))
        return schemas

    @staticmethod
    def _descriptor(name: str, body: str) -> Optional[ModelDescriptor]:
        fields = []
        for key, value in parse_arguments(body, HASH).keywords.items():
            type_name, nil = literal_type(key, value)
            fields.append(ModelField(name=key, type=type_name, is_optional=nil))
        return ModelDescriptor(name=name, fields=fields) if fields else None
