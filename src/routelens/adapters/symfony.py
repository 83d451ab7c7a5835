"""Symfony adapter: ``Route`` attributes, annotations and YAML route files.

Controllers declare routes with the PHP 8 attribute
(``#[Route('/users/{id}', name: 'user_show', methods: ['GET'])]``) or the
older docblock annotation (``@Route("/users/{id}", methods={"GET"})``). A
declaration that precedes a class is that class's prefix; one that precedes
a method is a route handled by it. Routes listing several methods yield one
route per method, and a route without ``methods`` is a GET.

``config/routes.yaml`` and the files under ``config/routes/`` declare routes
as ``name: {path: ..., controller: Class::method, methods: [...]}`` entries;
imports (entries with a ``resource``) are not followed.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, NamedTuple, Optional

import yaml

from routelens.adapters.base import FrameworkAdapter
from routelens.adapters.laravel import class_name, php_string
from routelens.models import HTTPMethod, Route, SourceFile
from routelens.pipeline.paths import PathDialect
from routelens.pipeline.typemap import PHP
from routelens.sources.tokens import PHP as PHP_LEXICON
from routelens.sources.tokens import ArgumentList, blank_comments, line_of, parse_arguments, parse_string_list, read_balanced

logger = logging.getLogger(__name__)

_ATTRIBUTE_RE = re.compile(r"#\[\s*(?:[\w\\]*\\)?Route\s*\(")
_DOCBLOCK_RE = re.compile(r"/\*\*.*?\*/", re.S)
_ANNOTATION_RE = re.compile(r"@(?:[\w\\]*\\)?Route\s*\(")
_DOC_MARGIN_RE = re.compile(r"(?m)^(\s*)\*")
_DECLARATION_RE = re.compile(r"\b(?P<kind>class|function)\s+(?P<name>\w+)")


class _Declaration(NamedTuple):
    start: int
    end: int
    arguments: ArgumentList


def route_methods(raw: Any) -> list[str]:
    """HTTP methods of a declaration, GET when none are listed.

    Accepts a PHP list literal, a YAML list, or a ``GET|POST`` string.
    """
    if raw is None or raw == "":
        return ["GET"]
    if isinstance(raw, str) and raw.strip()[:1] in ("[", "{", "'", '"'):
        items = parse_string_list(raw, PHP_LEXICON)
    elif isinstance(raw, str):
        items = [raw]
    else:
        items = [str(item) for item in raw]
    methods = []
    for item in items:
        for name in re.split(r"[|,\s]+", item):
            method = HTTPMethod.parse(name) if name else None
            if method is not None and method.value not in methods:
                methods.append(method.value)
    return methods or ["GET"]


def split_controller(controller: str) -> tuple[str, str]:
    """``App\\Controller\\BlogController::list`` -> ``("BlogController", "list")``."""
    cls, _, action = controller.strip().partition("::")
    return class_name(cls), action


class SymfonyAdapter(FrameworkAdapter):
    """Routes from Symfony controllers and route configuration."""

    dialect = PathDialect.BRACE
    type_table = PHP
    languages = ("php", "yaml")
    extensions = (".php", ".yaml", ".yml")
    manifests = {"composer.json": ("symfony/framework-bundle",)}
    marker_paths = ("bin/console",)

    @property
    def name(self) -> str:
        return "symfony"

    @property
    def description(self) -> str:
        return "Symfony Route attributes, annotations and YAML route files"

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        if file.language == "yaml":
            if "/config/routes" not in "/" + file.path.replace("\\", "/"):
                return []
            return self._yaml_routes(file)
        return self._controller_routes(file)

    # ------------------------------------------------------------------
    # Controllers
    # ------------------------------------------------------------------

    def _controller_routes(self, file: SourceFile) -> list[Route]:
        text = file.text()
        code = blank_comments(text, PHP_LEXICON)
        declarations = sorted(self._attributes(code) + self._annotations(text))

        prefixes: dict[str, str] = {}
        handlers: list[tuple[_Declaration, str, str]] = []
        for declaration in declarations:
            target = _DECLARATION_RE.search(code, declaration.end)
            if target is None:
                continue
            path = self._path(declaration.arguments)
            if target.group("kind") == "class":
                prefixes[target.group("name")] = path or ""
                continue
            owner = self._owner(code, declaration.start)
            handlers.append((declaration, owner, target.group("name")))

        routes = []
        for declaration, owner, action in handlers:
            path = self._path(declaration.arguments)
            if path is None:
                logger.debug("%s:%d: route without a string path", file.path, line_of(code, declaration.start))
                continue
            line = line_of(code, declaration.start)
            for method in route_methods(declaration.arguments.get("methods")):
                routes.append(
                    self.route(
                        method,
                        path,
                        file,
                        prefixes=[prefixes.get(owner, "")],
                        handler=f"{owner}::{action}" if owner else action,
                        operation_name=action,
                        identity=owner,
                        source_line=line,
                    )
                )
        return routes

    @staticmethod
    def _attributes(code: str) -> list[_Declaration]:
        found = []
        for match in _ATTRIBUTE_RE.finditer(code):
            paren = match.end() - 1
            close = read_balanced(code, paren, PHP_LEXICON)
            if close > 0:
                found.append(_Declaration(match.start(), close, parse_arguments(code[paren + 1 : close - 1], PHP_LEXICON)))
        return found

    @staticmethod
    def _annotations(text: str) -> list[_Declaration]:
        found = []
        for block in _DOCBLOCK_RE.finditer(text):
            body = _DOC_MARGIN_RE.sub(lambda m: m.group(1) + " ", block.group(0)[3:-2])
            for match in _ANNOTATION_RE.finditer(body):
                paren = match.end() - 1
                close = read_balanced(body, paren, PHP_LEXICON)
                if close > 0:
                    arguments = parse_arguments(body[paren + 1 : close - 1], PHP_LEXICON)
                    found.append(_Declaration(block.start() + 3 + match.start(), block.end(), arguments))
        return found

    @staticmethod
    def _path(arguments: ArgumentList) -> Optional[str]:
        raw = arguments.first()
        if raw is None or "path" in arguments.keywords:
            raw = arguments.get("path", "value")
        return php_string(raw)

    @staticmethod
    def _owner(code: str, position: int) -> str:
        owner = ""
        for match in _DECLARATION_RE.finditer(code, 0, position):
            if match.group("kind") == "class":
                owner = match.group("name")
        return owner

    # ------------------------------------------------------------------
    # Route configuration
    # ------------------------------------------------------------------

    def _yaml_routes(self, file: SourceFile) -> list[Route]:
        text = file.text()
        document = yaml.safe_load(text)
        if not isinstance(document, dict):
            return []
        routes = []
        for name, entry in document.items():
            if not isinstance(entry, dict):
                continue
            path = entry.get("path")
            if isinstance(path, dict):
                path = next(iter(path.values()), None)
            if not isinstance(path, str):
                logger.debug("%s: %s is an import or has no path", file.path, name)
                continue
            defaults = entry.get("defaults") if isinstance(entry.get("defaults"), dict) else {}
            controller = entry.get("controller") or defaults.get("_controller") or ""
            owner, action = split_controller(str(controller)) if controller else ("", "")
            found = re.search(rf"(?m)^{re.escape(str(name))}\s*:", text)
            line = line_of(text, found.start()) if found else 0
            for method in route_methods(entry.get("methods")):
                routes.append(
                    self.route(
                        method,
                        path,
                        file,
                        handler=f"{owner}::{action}" if action else owner,
                        operation_name=action,
                        identity=owner,
                        source_line=line,
                    )
                )
        return routes
