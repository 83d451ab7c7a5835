"""Slim adapter: ``$app->verb(...)`` calls and nested ``group`` closures.

Routes are method calls on a route collector variable (``$app``,
``$group``, ``$r``...). ``->group('/prefix', function ($group) {...})``
opens a span over its argument list; routes declared inside the closure
inherit the prefix, and groups nest.

* ``->map(['GET', 'POST'], '/path', ...)`` yields one route per method.
* ``->any('/path', ...)`` yields GET, POST, PUT, PATCH and DELETE.
* Optional segments (``/archive[/{year}]``) are kept with their brackets
  removed; FastRoute constraints (``{id:\\d+}``) are dropped by the path
  normalizer.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from routelens.adapters.base import FrameworkAdapter
from routelens.adapters.laravel import class_name, php_string
from routelens.models import HTTPMethod, Route, SourceFile
from routelens.pipeline.identifiers import ANONYMOUS_HANDLER
from routelens.pipeline.paths import PathDialect
from routelens.pipeline.typemap import PHP
from routelens.sources.tokens import PHP as PHP_LEXICON
from routelens.sources.tokens import blank_comments, line_of, parse_arguments, parse_string_list, read_balanced

logger = logging.getLogger(__name__)

_ANY_VERBS = ("GET", "POST", "PUT", "PATCH", "DELETE")
# Receivers that are HTTP clients or PSR-7 messages rather than route collectors.
_NOT_COLLECTORS = frozenset({"this", "response", "request", "client", "http", "browser"})

_CALL_RE = re.compile(
    r"\$(?P<receiver>\w+)\s*->\s*(?P<verb>get|post|put|patch|delete|options|any|map|group)\s*\(",
    re.I,
)
_CONCAT_ACTION_RE = re.compile(r"^(?P<cls>[\w\\]+)::class\s*\.\s*(['\"]):(?P<method>\w+)\2$")


@dataclass
class _Group:
    end: int
    prefix: str


def drop_optional_brackets(path: str) -> str:
    """``/archive[/{year:[0-9]{4}}]`` -> ``/archive/{year:[0-9]{4}}``.

    Brackets inside ``{...}`` belong to a constraint and are kept.
    """
    out = []
    depth = 0
    for char in path:
        if char == "{":
            depth += 1
        elif char == "}":
            depth = max(0, depth - 1)
        elif char in "[]" and depth == 0:
            continue
        out.append(char)
    return "".join(out)


def slim_action(raw: Optional[str]) -> tuple[str, str]:
    """``(handler, operation name)`` for the callable argument of a route.

    Controller actions are named ``Class:method``, the way Slim spells them in
    strings; invokable classes keep the path-based operation id.
    """
    text = (raw or "").strip()
    if not text or text.startswith(("function", "fn", "static")):
        return ANONYMOUS_HANDLER, ""
    if text.startswith("["):
        items = parse_string_list(text, PHP_LEXICON)
        if len(items) >= 2:
            return f"{class_name(items[0])}:{items[1]}", items[1]
        return (class_name(items[0]), "") if items else (ANONYMOUS_HANDLER, "")
    concat = _CONCAT_ACTION_RE.match(text)
    if concat is not None:
        return f"{class_name(concat.group('cls'))}:{concat.group('method')}", concat.group("method")
    literal = php_string(text)
    if literal is not None:
        cls, _, method = literal.partition(":")
        if method:
            return f"{class_name(cls)}:{method}", method
        return class_name(literal), ""
    return class_name(text), ""


class SlimAdapter(FrameworkAdapter):
    """Routes from Slim applications."""

    dialect = PathDialect.BRACE
    type_table = PHP
    languages = ("php",)
    extensions = (".php",)
    manifests = {"composer.json": ("slim/slim",)}

    @property
    def name(self) -> str:
        return "slim"

    @property
    def description(self) -> str:
        return "Slim route collector calls, groups and map()"

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        code = blank_comments(file.text(), PHP_LEXICON)
        groups: list[_Group] = []
        routes: list[Route] = []

        position = 0
        while True:
            match = _CALL_RE.search(code, position)
            if match is None:
                break
            at = match.start()
            position = match.end()
            if match.group("receiver").lower() in _NOT_COLLECTORS:
                continue
            while groups and groups[-1].end <= at:
                groups.pop()

            paren = match.end() - 1
            close = read_balanced(code, paren, PHP_LEXICON)
            if close < 0:
                logger.debug("%s:%d: unterminated route call", file.path, line_of(code, at))
                break
            args = parse_arguments(code[paren + 1 : close - 1], PHP_LEXICON)
            verb = match.group("verb").lower()
            prefixes = [group.prefix for group in groups]

            if verb == "group":
                groups.append(_Group(close, php_string(args.first()) or ""))
                continue
            if verb == "map":
                methods = [
                    m.upper() for m in parse_string_list(args.first(), PHP_LEXICON) if HTTPMethod.parse(m) is not None
                ]
                path_token, action = args.positional[1:2], args.positional[2:3]
            else:
                methods = list(_ANY_VERBS) if verb == "any" else [verb.upper()]
                path_token, action = args.positional[0:1], args.positional[1:2]

            path = php_string(path_token[0]) if path_token else None
            if path is None:
                logger.debug("%s:%d: route without a string path", file.path, line_of(code, at))
                position = close
                continue
            handler, operation = slim_action(action[0] if action else None)
            line = line_of(code, at)
            for method in methods:
                routes.append(
                    self.route(
                        method,
                        drop_optional_brackets(path),
                        file,
                        prefixes=prefixes,
                        handler=handler,
                        operation_name=operation,
                        source_line=line,
                    )
                )
            position = close
        return routes
