"""Phoenix adapter: router macros and Ecto schemas.

The router is read statement by statement while a stack mirrors its
``do ... end`` blocks. ``scope`` blocks contribute a path and a module alias,
``resources`` blocks contribute ``/<path>/:<resource>_id`` to the resources
nested inside them, and any other block contributes nothing.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from routelens.adapters.base import FrameworkAdapter
from routelens.models import ModelDescriptor, ModelField, Route, Schema, SourceFile
from routelens.pipeline.paths import PathDialect
from routelens.pipeline.typemap import ELIXIR
from routelens.sources.blocks import ELIXIR_OPENERS, Statement, statements
from routelens.sources.tokens import ELIXIR as ELIXIR_LEXICON
from routelens.sources.tokens import (
    ArgumentList,
    blank_comments,
    parse_arguments,
    parse_string_list,
    read_balanced,
    unquote,
)

logger = logging.getLogger(__name__)

_VERBS = frozenset({"get", "post", "put", "patch", "delete", "options", "head"})
_RESOURCE_ACTIONS = (
    ("GET", "", "index"),
    ("GET", "/new", "new"),
    ("POST", "", "create"),
    ("GET", "/:id", "show"),
    ("GET", "/:id/edit", "edit"),
    ("PUT", "/:id", "update"),
    ("PATCH", "/:id", "update"),
    ("DELETE", "/:id", "delete"),
)
_MACRO_RE = re.compile(r"^(?P<macro>[a-z_]\w*[?!]?)\b\s*(?P<rest>.*)$", re.S)
_TRAILING_DO_RE = re.compile(r"\s*(?<![\w:.])do\s*$")


@dataclass
class _Block:
    path: str = ""
    alias: str = ""
    module: str = ""
    schema: Optional[list[ModelField]] = None


def _macro(statement: Statement) -> tuple[str, ArgumentList]:
    """Macro name and arguments of a statement such as ``get "/", C, :index do``."""
    match = _MACRO_RE.match(statement.text)
    if match is None:
        return "", ArgumentList()
    rest = _TRAILING_DO_RE.sub("", match.group("rest")).strip()
    if rest.startswith("(") and read_balanced(rest, 0, ELIXIR_LEXICON) == len(rest):
        rest = rest[1:-1]
    return match.group("macro"), parse_arguments(rest, ELIXIR_LEXICON)


def _atom(token: str) -> str:
    return token.strip().lstrip(":")


def _atoms(raw: Optional[str]) -> list[str]:
    return [_atom(item) for item in parse_string_list(raw, ELIXIR_LEXICON)]


def resource_name(controller: str) -> str:
    """``MyAppWeb.UserPostController`` -> ``user_post``."""
    tail = controller.rsplit(".", 1)[-1].removesuffix("Controller")
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", tail).lower()


def ecto_type(raw: str) -> str:
    """Ecto type term as a type expression: ``{:array, :string}`` -> ``array(string)``."""
    text = raw.strip()
    if text.startswith("{") and text.endswith("}"):
        parts = parse_string_list(text, ELIXIR_LEXICON)
        if len(parts) == 2:
            return f"{_atom(parts[0])}({ecto_type(parts[1])})"
    return _atom(text)


class PhoenixAdapter(FrameworkAdapter):
    """Routes from Phoenix routers and schemas from Ecto schema modules."""

    dialect = PathDialect.COLON
    type_table = ELIXIR
    languages = ("elixir",)
    extensions = (".ex", ".exs")
    manifests = {"mix.exs": (":phoenix",)}

    @property
    def name(self) -> str:
        return "phoenix"

    @property
    def description(self) -> str:
        return "Phoenix router scopes, verb macros, resources and Ecto schemas"

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        code = blank_comments(file.text(), ELIXIR_LEXICON)
        stack: list[_Block] = []
        routes: list[Route] = []
        for statement in statements(code, ELIXIR_OPENERS, ELIXIR_LEXICON):
            del stack[max(0, len(stack) - statement.closes) :]
            macro, args = _macro(statement)
            block = _Block()
            if macro == "scope":
                block = self._scope(args)
            elif macro in _VERBS:
                routes.extend(self._verb(file, statement, macro, args, stack))
            elif macro == "resources":
                found, block = self._resources(file, statement, args, stack)
                routes.extend(found)
            for _ in range(statement.opens):
                stack.append(block)
                block = _Block()
        return routes

    @staticmethod
    def _scope(args: ArgumentList) -> _Block:
        positional = list(args.positional)
        path = unquote(positional[0]) if positional else None
        if path is not None:
            positional.pop(0)
        else:
            path = args.string("path") or ""
        alias = positional[0].strip() if positional else (args.get("alias") or "")
        if alias.startswith(":"):
            alias = ""
        return _Block(path=path, alias=alias)

    @staticmethod
    def _alias(stack: list[_Block], controller: str) -> str:
        return ".".join([*(b.alias for b in stack if b.alias), controller.strip()])

    def _verb(
        self, file: SourceFile, statement: Statement, verb: str, args: ArgumentList, stack: list[_Block]
    ) -> list[Route]:
        path = args.first_string()
        if path is None or len(args.positional) < 3:
            logger.debug("%s:%d: incomplete %s route", file.path, statement.line, verb)
            return []
        controller = self._alias(stack, args.positional[1])
        action = _atom(args.positional[2])
        return [
            self.route(
                verb,
                path,
                file,
                prefixes=[b.path for b in stack],
                handler=f"{controller}.{action}",
                operation_name=action,
                source_line=statement.line,
            )
        ]

    def _resources(
        self, file: SourceFile, statement: Statement, args: ArgumentList, stack: list[_Block]
    ) -> tuple[list[Route], _Block]:
        path = args.first_string()
        if path is None or len(args.positional) < 2:
            logger.debug("%s:%d: incomplete resources", file.path, statement.line)
            return [], _Block()
        controller = self._alias(stack, args.positional[1])
        only = _atoms(args.get("only"))
        excluded = _atoms(args.get("except"))
        param = unquote(args.get("param")) or "id"
        singleton = args.get("singleton") == "true"
        base = "/" + path.strip("/")

        routes = []
        for method, suffix, action in _RESOURCE_ACTIONS:
            if (only and action not in only) or action in excluded:
                continue
            if singleton:
                if action == "index":
                    continue
                suffix = suffix.replace("/:id", "")
            routes.append(
                self.route(
                    method,
                    base + suffix.replace(":id", ":" + param),
                    file,
                    prefixes=[b.path for b in stack],
                    handler=f"{controller}.{action}",
                    operation_name=action,
                    source_line=statement.line,
                )
            )
        nested = base if singleton else f"{base}/:{resource_name(controller)}_{param}"
        return routes, _Block(path=nested)

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        code = blank_comments(file.text(), ELIXIR_LEXICON)
        stack: list[_Block] = []
        schemas: list[Schema] = []
        for statement in statements(code, ELIXIR_OPENERS, ELIXIR_LEXICON):
            for _ in range(min(statement.closes, len(stack))):
                self._close(stack, schemas)
            macro, args = _macro(statement)
            block = _Block()
            if macro == "defmodule" and args.positional:
                block = _Block(module=args.positional[0].strip())
            elif macro in ("schema", "embedded_schema"):
                block = _Block(schema=[])
            elif macro == "field":
                self._field(stack, args)
            for _ in range(statement.opens):
                stack.append(block)
                block = _Block()
        return schemas

    @staticmethod
    def _field(stack: list[_Block], args: ArgumentList) -> None:
        target = next((b for b in reversed(stack) if b.schema is not None), None)
        if target is None or target.schema is None or not args.positional:
            return
        raw_type = args.positional[1] if len(args.positional) > 1 else ":string"
        target.schema.append(
            ModelField(
                name=_atom(args.positional[0]),
                type=ecto_type(raw_type),
                has_default="default" in args.keywords,
            )
        )

    def _close(self, stack: list[_Block], schemas: list[Schema]) -> None:
        block = stack.pop()
        if block.schema is None:
            return
        module = next((b.module for b in reversed(stack) if b.module), "")
        name = module.rsplit(".", 1)[-1]
        if not name or not block.schema:
            logger.debug("skipping Ecto schema without module or fields (%s)", module or "?")
            return
        schemas.append(self.schema(ModelDescriptor(name=name, fields=block.schema)))
