"""Laravel adapter: the ``Route::`` facade DSL and Eloquent models.

Route files are read as a flat sequence of ``Route::...`` call chains
(``Route::prefix('admin')->middleware('auth')->group(function () {...})``).
A chain ending in ``group`` opens a span covering its argument list; every
route declared inside the span inherits the span's prefix and controller.
Spans nest, so prefixes compose outermost first.

Expansion rules:

* ``Route::match(['get', 'post'], ...)`` yields one route per method and
  ``Route::any`` one per standard verb.
* ``Route::resource`` yields index, store, show, update (PUT and PATCH),
  destroy, create and edit; ``Route::apiResource`` omits create and edit.
  ``only``/``except`` filter actions, as chained calls or as an options
  array.
* Routes declared in ``routes/api.php`` get the implicit ``/api`` prefix.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple, Optional

from routelens.adapters.base import FrameworkAdapter
from routelens.models import ModelDescriptor, ModelField, Route, Schema, SourceFile
from routelens.pipeline.identifiers import ANONYMOUS_HANDLER
from routelens.pipeline.paths import PathDialect
from routelens.pipeline.typemap import PHP
from routelens.sources.tokens import PHP as PHP_LEXICON
from routelens.sources.tokens import (
    ArgumentList,
    blank_comments,
    line_of,
    parse_arguments,
    parse_string_list,
    read_balanced,
    split_arguments,
    unquote,
)

logger = logging.getLogger(__name__)

_VERBS = ("get", "post", "put", "patch", "delete", "options")
_ANY_VERBS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
_RESOURCE_ACTIONS = (
    ("GET", "", "index"),
    ("POST", "", "store"),
    ("GET", "/{id}", "show"),
    ("PUT", "/{id}", "update"),
    ("PATCH", "/{id}", "update"),
    ("DELETE", "/{id}", "destroy"),
)
_FORM_ACTIONS = (
    ("GET", "/create", "create"),
    ("GET", "/{id}/edit", "edit"),
)
_IMPLEMENTATION_SUFFIXES = (
    "Controller", "Service", "Repository", "Factory", "Seeder", "Middleware", "Provider",
    "Request", "Resource", "Policy", "Observer", "Event", "Listener", "Job", "Mail",
    "Notification", "Console", "Command", "Exception", "Handler", "Kernel", "Test",
)
_MODEL_BASES = frozenset({"Model", "Authenticatable", "Pivot"})

_ROUTE_RE = re.compile(r"\bRoute\s*::\s*")
_CALL_RE = re.compile(r"\s*([A-Za-z_]\w*)\s*\(")
_CLASS_RE = re.compile(
    r"\b(?:(?:final|abstract|readonly)\s+)*class\s+(?P<name>\w+)"
    r"(?:\s+extends\s+(?P<base>[\w\\]+))?(?:\s+implements\s+[^{]+)?\s*\{"
)
_PROPERTY_RE = re.compile(
    r"\bpublic\s+(?P<mods>(?:(?:readonly|static)\s+)*)(?P<type>\??[\w\\|]+\s+)?\$(?P<name>\w+)"
    r"\s*(?:=\s*(?P<default>[^;]+))?;"
)
_PROMOTED_RE = re.compile(
    r"^(?P<visibility>public|protected|private)\s+(?:readonly\s+)?(?P<type>\??[\w\\|]+\s+)?\$(?P<name>\w+)"
    r"\s*(?:=\s*(?P<default>.+))?$",
    re.S,
)


class _Call(NamedTuple):
    name: str
    arguments: ArgumentList
    start: int  # index of "("
    end: int  # index just past ")"


@dataclass
class _Span:
    start: int
    end: int
    prefix: str = ""
    controller: str = ""


@dataclass
class _Chain:
    calls: list[_Call] = field(default_factory=list)

    def find(self, *names: str) -> Optional[_Call]:
        for call in self.calls:
            if call.name in names:
                return call
        return None

    @property
    def end(self) -> int:
        return self.calls[-1].end


def _read_chain(code: str, start: int) -> _Chain:
    """Parse ``name(args)->name(args)...`` starting right after ``Route::``."""
    chain = _Chain()
    i = start
    while True:
        match = _CALL_RE.match(code, i)
        if match is None:
            break
        paren = match.end() - 1
        close = read_balanced(code, paren, PHP_LEXICON)
        if close < 0:
            break
        chain.calls.append(
            _Call(match.group(1), parse_arguments(code[paren + 1 : close - 1], PHP_LEXICON), paren, close)
        )
        arrow = re.compile(r"\s*->\s*").match(code, close)
        if arrow is None:
            break
        i = arrow.end()
    return chain


def php_string(token: Optional[str]) -> Optional[str]:
    """Decode a PHP string literal; single quotes only escape quote and backslash."""
    text = (token or "").strip()
    if len(text) >= 2 and text[0] == text[-1] == "'":
        return text[1:-1].replace("\\'", "'").replace("\\\\", "\\")
    return unquote(token)


def class_name(token: str) -> str:
    """``App\\Http\\UserController::class`` -> ``UserController``."""
    return token.strip().removesuffix("::class").rsplit("\\", 1)[-1]


def _array_options(raw: Optional[str]) -> dict[str, str]:
    """``['prefix' => 'admin', 'only' => [...]]`` as raw values by key."""
    if not raw or not raw.strip().startswith("["):
        return {}
    return parse_arguments(raw.strip()[1:-1], PHP_LEXICON).keywords


class LaravelAdapter(FrameworkAdapter):
    """Routes from Laravel route files and schemas from Eloquent models."""

    dialect = PathDialect.BRACE
    type_table = PHP
    languages = ("php",)
    extensions = (".php",)
    manifests = {"composer.json": ("laravel/framework", "laravel/lumen")}

    @property
    def name(self) -> str:
        return "laravel"

    @property
    def description(self) -> str:
        return "Laravel Route facade, groups, resources and Eloquent models"

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        code = blank_comments(file.text(), PHP_LEXICON)
        base = "/api" if file.path.replace("\\", "/").endswith("routes/api.php") else ""
        spans: list[_Span] = []
        routes: list[Route] = []

        position = 0
        while True:
            match = _ROUTE_RE.search(code, position)
            if match is None:
                break
            at = match.start()
            while spans and spans[-1].end <= at:
                spans.pop()
            chain = _read_chain(code, match.end())
            if not chain.calls:
                position = match.end()
                continue

            group = chain.calls[-1] if chain.calls[-1].name == "group" else None
            if group is not None:
                spans.append(self._span(chain, group))
                position = group.start + 1
                continue

            prefixes = [base, *(span.prefix for span in spans)]
            controller = next((s.controller for s in reversed(spans) if s.controller), "")
            line = line_of(code, at)
            routes.extend(self._chain_routes(file, chain, prefixes, controller, line))
            position = chain.end
        return routes

    @staticmethod
    def _span(chain: _Chain, group: _Call) -> _Span:
        options = _array_options(group.arguments.first())
        prefix_call = chain.find("prefix")
        prefix = (prefix_call.arguments.first_string() if prefix_call else None) or unquote(
            options.get("prefix")
        )
        controller_call = chain.find("controller")
        controller = ""
        if controller_call is not None and controller_call.arguments.positional:
            controller = class_name(controller_call.arguments.positional[0])
        elif options.get("controller"):
            controller = class_name(php_string(options["controller"]) or options["controller"])
        return _Span(group.start, group.end, prefix or "", controller)

    def _chain_routes(
        self,
        file: SourceFile,
        chain: _Chain,
        prefixes: list[str],
        controller: str,
        line: int,
    ) -> list[Route]:
        head = chain.calls[0]
        args = head.arguments
        if head.name in _VERBS:
            return self._routes(file, [head.name], args.first_string(), args.positional[1:2], prefixes, controller, line)
        if head.name == "any":
            return self._routes(file, list(_ANY_VERBS), args.first_string(), args.positional[1:2], prefixes, controller, line)
        if head.name == "match":
            methods = parse_string_list(args.first(), PHP_LEXICON)
            path = unquote(args.positional[1]) if len(args.positional) > 1 else None
            return self._routes(file, methods, path, args.positional[2:3], prefixes, controller, line)
        if head.name in ("resource", "apiResource"):
            return self._resource(file, chain, prefixes, line, api=head.name == "apiResource")
        if head.name in ("resources", "apiResources"):
            routes = []
            for name, target in _array_options(args.first()).items():
                single = _Chain([_Call(head.name[:-1], ArgumentList([repr(name), target]), head.start, head.end)])
                routes.extend(self._resource(file, single, prefixes, line, api=head.name == "apiResources"))
            return routes
        return []

    def _routes(
        self,
        file: SourceFile,
        methods: list[str],
        path: Optional[str],
        action: list[str],
        prefixes: list[str],
        controller: str,
        line: int,
    ) -> list[Route]:
        if path is None:
            return []
        handler, operation = self._action(action[0] if action else "", controller)
        return [
            self.route(
                method,
                path,
                file,
                prefixes=prefixes,
                handler=handler,
                operation_name=operation,
                source_line=line,
            )
            for method in methods
        ]

    @staticmethod
    def _action(raw: str, controller: str) -> tuple[str, str]:
        """``(handler, operation name)`` for the action argument of a route."""
        text = raw.strip()
        if not text or text.startswith(("function", "fn", "static")):
            return ANONYMOUS_HANDLER, ""
        if text.startswith("["):
            items = parse_string_list(text, PHP_LEXICON)
            if len(items) >= 2:
                return f"{class_name(items[0])}@{items[1]}", items[1]
            return class_name(items[0]) if items else "", ""
        literal = php_string(text)
        if literal is not None:
            if "@" in literal:
                cls, _, action = literal.partition("@")
                return f"{class_name(cls)}@{action}", action
            return (f"{controller}@{literal}" if controller else literal), literal
        return class_name(text), ""

    def _resource(
        self, file: SourceFile, chain: _Chain, prefixes: list[str], line: int, api: bool
    ) -> list[Route]:
        args = chain.calls[0].arguments
        name = args.first_string()
        if not name or len(args.positional) < 2:
            return []
        controller = class_name(php_string(args.positional[1]) or args.positional[1])
        options = _array_options(args.positional[2] if len(args.positional) > 2 else None)

        only_call = chain.find("only")
        except_call = chain.find("except")
        only = parse_string_list(only_call.arguments.first() if only_call else options.get("only"), PHP_LEXICON)
        excluded = parse_string_list(
            except_call.arguments.first() if except_call else options.get("except"), PHP_LEXICON
        )

        actions = _RESOURCE_ACTIONS if api else _RESOURCE_ACTIONS + _FORM_ACTIONS
        routes = []
        for method, suffix, action in actions:
            if only and action not in only:
                continue
            if action in excluded:
                continue
            routes.append(
                self.route(
                    method,
                    "/" + name.strip("/") + suffix,
                    file,
                    prefixes=prefixes,
                    handler=f"{controller}@{action}",
                    operation_name=action,
                    source_line=line,
                )
            )
        return routes

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        code = blank_comments(file.text(), PHP_LEXICON)
        schemas = []
        for match in _CLASS_RE.finditer(code):
            name = match.group("name")
            if name.endswith(_IMPLEMENTATION_SUFFIXES):
                continue
            brace = match.end() - 1
            close = read_balanced(code, brace, PHP_LEXICON)
            body = code[brace + 1 : close - 1] if close > 0 else code[brace + 1 :]
            base = (match.group("base") or "").rsplit("\\", 1)[-1]
            descriptor = self._eloquent(name, body) if base in _MODEL_BASES else self._plain(name, body)
            if descriptor.fields:
                schemas.append(self.schema(descriptor))
            else:
                logger.debug("%s: %s declares no public properties", file.path, name)
        return schemas

    @staticmethod
    def _array_property(body: str, name: str) -> Optional[str]:
        """Raw inside of ``$name = [...]`` or of ``function name() { return [...]; }``."""
        pattern = re.compile(
            rf"(?:\${name}\s*=\s*|function\s+{name}\s*\(\s*\)\s*(?::\s*array\s*)?\{{\s*return\s+)\["
        )
        match = pattern.search(body)
        if match is None:
            return None
        close = read_balanced(body, match.end() - 1, PHP_LEXICON)
        return body[match.end() : close - 1] if close > 0 else None

    def _eloquent(self, name: str, body: str) -> ModelDescriptor:
        fillable = self._array_property(body, "fillable")
        casts_raw = self._array_property(body, "casts")
        casts = {}
        if casts_raw:
            for key, value in parse_arguments(casts_raw, PHP_LEXICON).keywords.items():
                cast = unquote(value) or value
                casts[key] = class_name(cast).split(":", 1)[0]
        names = parse_string_list("[" + fillable + "]", PHP_LEXICON) if fillable else []
        for key in casts:
            if key not in names:
                names.append(key)
        return ModelDescriptor(
            name=name,
            fields=[ModelField(name=n, type=casts.get(n, "string"), has_default=True) for n in names],
        )

    def _plain(self, name: str, body: str) -> ModelDescriptor:
        fields: dict[str, ModelField] = {}
        constructor = re.search(r"function\s+__construct\s*\(", body)
        if constructor is not None:
            close = read_balanced(body, constructor.end() - 1, PHP_LEXICON)
            for member in split_arguments(body[constructor.end() : close - 1] if close > 0 else "", PHP_LEXICON):
                match = _PROMOTED_RE.match(member)
                if match is None or match.group("visibility") != "public":
                    continue
                fields[match.group("name")] = self._field(match.group("name"), match.group("type"), match.group("default"))
        for match in _PROPERTY_RE.finditer(body):
            if "static" in match.group("mods"):
                continue
            fields.setdefault(
                match.group("name"), self._field(match.group("name"), match.group("type"), match.group("default"))
            )
        return ModelDescriptor(name=name, fields=list(fields.values()))

    @staticmethod
    def _field(name: str, type_text: Optional[str], default: Optional[str]) -> ModelField:
        type_text = (type_text or "mixed").strip()
        nullable = type_text.startswith("?") or "null" in type_text.lower().split("|")
        members = [t for t in type_text.lstrip("?").split("|") if t.lower() != "null"]
        return ModelField(
            name=name,
            type=members[0] if members else "mixed",
            is_optional=nullable,
            has_default=default is not None,
        )
