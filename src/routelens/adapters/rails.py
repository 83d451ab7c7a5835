"""Rails adapter: ``config/routes.rb`` and controller schemas.

The routing DSL is walked statement by statement, keeping a stack of the
blocks it opens:

* ``namespace :admin do`` prefixes paths with ``/admin`` and controllers
  with ``admin/``; ``scope`` adds only what it names (a path, ``path:`` or
  ``module:``) and ``controller :photos do`` sets the controller.
* ``resources :photos`` yields index, new, create, show, edit, update (PUT
  and PATCH) and destroy; ``resource :profile`` the singular set without
  index or ``:id``. ``only:`` and ``except:`` filter the actions,
  ``controller:``, ``path:`` and ``param:`` rename. Blocks nest their
  routes under ``/photos/:photo_id``, or ``/photos/:id`` inside ``member``
  and ``/photos`` inside ``collection``.
* ``get 'search', to: 'photos#search'`` (or ``'search' => 'photos#search'``,
  or ``controller:``/``action:`` options), ``match ... via: [:get, :post]``
  and ``root 'pages#home'``.

Optional segments such as ``(.:format)`` are dropped. Only files under
``config/routes`` are read for routes.

Schemas come from controllers: the first ``render json: { ... }`` hash of a
controller names a schema after it (``UsersController`` -> ``User``) and
``params.require(:user).permit(...)`` names ``UserRequest``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from routelens.adapters.base import FrameworkAdapter
from routelens.adapters.sinatra import is_test_file, literal_type, singular
from routelens.models import ModelDescriptor, ModelField, Route, Schema, SourceFile
from routelens.pipeline.paths import PathDialect
from routelens.pipeline.typemap import RUBY
from routelens.sources.blocks import RUBY_OPENERS, statements
from routelens.sources.tokens import HASH, ArgumentList, blank_comments, parse_arguments, parse_string_list, read_balanced, unquote

logger = logging.getLogger(__name__)

_CALL_RE = re.compile(r"^(?P<verb>[a-z_]+)\b(?!\.|:(?!:)|\s*=(?!>))\s*(?P<rest>.*)$", re.S)
_BLOCK_RE = re.compile(r"\s*\bdo\b(?:\s*\|[^|]*\|)?\s*$")
_OPTIONAL_RE = re.compile(r"\([^()]*\)")
_SYMBOL_LIST_RE = re.compile(r"^%[iwIW][\[({<](?P<body>.*)[\])}>]$", re.S)
_CONTROLLER_RE = re.compile(r"\bclass\s+(?:\w+::)*(?P<name>\w+?)Controller\b")
_RENDER_RE = re.compile(r"\brender\s*\(?\s*json:\s*(?=[\[{])")
_PERMIT_RE = re.compile(r"\bparams(?:\.require\(\s*:(?P<root>\w+)\s*\))?\.permit\(")

_VERBS = ("get", "post", "put", "patch", "delete", "options", "head")
_ALL_VERBS = ("GET", "POST", "PUT", "PATCH", "DELETE")
_OPTIONS = frozenset(
    ("to", "via", "as", "controller", "action", "on", "constraints", "defaults", "format", "path", "module")
)

# action, method, suffix; ":id" is replaced by the resource's param
_PLURAL_ACTIONS = (
    ("index", "GET", ""),
    ("new", "GET", "/new"),
    ("create", "POST", ""),
    ("show", "GET", "/:id"),
    ("edit", "GET", "/:id/edit"),
    ("update", "PUT", "/:id"),
    ("update", "PATCH", "/:id"),
    ("destroy", "DELETE", "/:id"),
)
_SINGULAR_ACTIONS = tuple((a, m, s.replace("/:id", "")) for a, m, s in _PLURAL_ACTIONS if a != "index")


def symbols(raw: Optional[str]) -> list[str]:
    """Names from ``:index``, ``[:index, :show]``, ``%i[index show]`` or strings."""
    if raw is None:
        return []
    text = raw.strip()
    sigil = _SYMBOL_LIST_RE.match(text)
    if sigil is not None:
        return sigil.group("body").split()
    return [item.lstrip(":") for item in parse_string_list(text, HASH) if item.strip(":")]


def _name(raw: Optional[str]) -> Optional[str]:
    """A symbol or string argument as plain text."""
    if raw is None:
        return None
    value = unquote(raw)
    if value is not None:
        return value
    text = raw.strip()
    return text[1:] if re.match(r"^:\w+$", text) else None


def strip_optional(path: str) -> str:
    """``/photos(.:format)`` -> ``/photos``."""
    previous = None
    while previous != path:
        previous, path = path, _OPTIONAL_RE.sub("", path)
    return path


@dataclass
class _Frame:
    """One open block of the routing DSL.

    Attributes:
        path: Path the block adds.
        module: Controller namespace the block adds.
        controller: Controller that bare routes inside the block use.
        replaces: ``member``/``collection`` blocks replace their resource's
            nested path with their own instead of adding to it.
    """

    path: str = ""
    module: str = ""
    controller: str = ""
    replaces: bool = False
    member: str = ""
    collection: str = ""


class RailsAdapter(FrameworkAdapter):
    """Routes from a Rails ``config/routes.rb``."""

    dialect = PathDialect.COLON
    type_table = RUBY
    languages = ("ruby",)
    extensions = (".rb",)
    manifests = {"Gemfile": ("'rails'", '"rails"'), "Gemfile.lock": (" rails (",)}
    marker_paths = ("config/routes.rb",)

    @property
    def name(self) -> str:
        return "rails"

    @property
    def description(self) -> str:
        return "Rails routes.rb resources, namespaces and verb routes"

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        if "/config/routes" not in "/" + file.path.replace("\\", "/"):
            return []
        code = blank_comments(file.text(), HASH)
        stack: list[_Frame] = []
        routes: list[Route] = []
        for statement in statements(code, RUBY_OPENERS, HASH):
            del stack[max(0, len(stack) - statement.closes) :]
            pushed = self._statement(statement.text, statement.line, file, stack, routes)
            for _ in range(statement.opens):
                stack.append(pushed or _Frame())
                pushed = None
        return routes

    # ------------------------------------------------------------------
    # Routing DSL
    # ------------------------------------------------------------------

    def _statement(
        self, text: str, line: int, file: SourceFile, stack: list[_Frame], routes: list[Route]
    ) -> Optional[_Frame]:
        call = _CALL_RE.match(text)
        if call is None:
            return None
        verb = call.group("verb")
        rest = _BLOCK_RE.sub("", call.group("rest"))
        if rest.startswith("(") and read_balanced(rest, 0, HASH) == len(rest):
            rest = rest[1:-1]
        args = parse_arguments(rest, HASH)

        if verb == "namespace":
            name = _name(args.first()) or ""
            path = args.string("path")
            return _Frame(path="/" + name if path is None else path, module=name)
        if verb == "scope":
            path = _name(args.first()) or args.string("path") or ""
            return _Frame(path=path, module=_name(args.get("module")) or "")
        if verb == "controller":
            return _Frame(controller=_name(args.first()) or "")
        if verb in ("member", "collection"):
            resource = next((frame for frame in reversed(stack) if frame.member), None)
            if resource is None:
                return None
            path = resource.member if verb == "member" else resource.collection
            return _Frame(path=path, controller=resource.controller, replaces=True)
        if verb in ("resources", "resource"):
            return self._resources(verb == "resources", args, line, file, stack, routes)
        if verb == "root":
            target = _name(args.first()) or args.string("to") or ""
            self._add(routes, ["GET"], "", target, line, file, stack)
            return None
        if verb in _VERBS or verb == "match":
            self._verb_route(verb, args, line, file, stack, routes)
        return None

    def _verb_route(
        self, verb: str, args: ArgumentList, line: int, file: SourceFile, stack: list[_Frame], routes: list[Route]
    ) -> None:
        path = _name(args.first())
        target = args.string("to")
        if path is None:
            # 'path' => 'controller#action'
            for key, value in args.keywords.items():
                if key not in _OPTIONS:
                    path, target = key, unquote(value)
                    break
        if path is None:
            logger.debug("%s:%d: %s without a path", file.path, line, verb)
            return
        if verb == "match":
            via = symbols(args.get("via"))
            methods = list(_ALL_VERBS) if "all" in via else [m.upper() for m in via] or ["GET"]
        else:
            methods = [verb.upper()]
        if not target:
            action = args.string("action") or _name(args.get("action")) or path.strip("/").split("/")[-1]
            controller = _name(args.get("controller"))
            if controller is None and not self._context(stack)[2] and "/" in path.strip("/"):
                controller = path.strip("/").split("/")[-2]
            target = f"{controller}#{action}" if controller else f"#{action}"
        self._add(routes, methods, path, target, line, file, stack)

    def _resources(
        self, plural: bool, args: ArgumentList, line: int, file: SourceFile, stack: list[_Frame], routes: list[Route]
    ) -> Optional[_Frame]:
        names = [name for name in (_name(arg) for arg in args.positional) if name]
        only = symbols(args.get("only"))
        excluded = set(symbols(args.get("except")))
        param = _name(args.get("param")) or "id"
        frame = None
        for name in names:
            segment = "/" + (args.string("path") or name).strip("/")
            controller = _name(args.get("controller")) or name
            for action, method, suffix in _PLURAL_ACTIONS if plural else _SINGULAR_ACTIONS:
                if (only and action not in only) or action in excluded:
                    continue
                target = f"{controller}#{action}"
                self._add(routes, [method], segment + suffix.replace(":id", ":" + param), target, line, file, stack)
            nested = f"{segment}/:{singular(name)}_{param}" if plural else segment
            frame = _Frame(
                path=nested,
                controller=controller,
                member=f"{segment}/:{param}" if plural else segment,
                collection=segment,
            )
        return frame

    @staticmethod
    def _context(stack: list[_Frame]) -> tuple[list[str], str, str]:
        """Path prefixes, controller module and controller of the open blocks."""
        paths: list[str] = []
        modules: list[str] = []
        controller = ""
        for frame in stack:
            if frame.replaces and paths:
                paths[-1] = frame.path
            elif frame.path:
                paths.append(frame.path)
            if frame.module:
                modules.append(frame.module)
            if frame.controller:
                controller = frame.controller
        return paths, "/".join(modules), controller

    def _add(
        self,
        routes: list[Route],
        methods: list[str],
        path: str,
        target: str,
        line: int,
        file: SourceFile,
        stack: list[_Frame],
    ) -> None:
        prefixes, module, scoped = self._context(stack)
        controller, _, action = target.partition("#")
        controller = controller or scoped
        if module and controller and "/" not in controller:
            controller = f"{module}/{controller}"
        handler = f"{controller}#{action}" if controller else action
        for method in methods:
            routes.append(
                self.route(
                    method,
                    strip_optional(path),
                    file,
                    prefixes=prefixes,
                    handler=handler,
                    operation_name=action,
                    source_line=line,
                )
            )

    # ------------------------------------------------------------------
    # Controller schemas
    # ------------------------------------------------------------------

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        if is_test_file(file.path) or "controller" not in file.path.lower():
            return []
        code = blank_comments(file.text(), HASH)
        owner = _CONTROLLER_RE.search(code)
        if owner is None:
            return []
        resource = singular(owner.group("name"))
        descriptors: dict[str, ModelDescriptor] = {}

        for match in _RENDER_RE.finditer(code):
            start = code.find("{", match.end())
            if start < 0 or code[match.end() : start].strip() not in ("", "["):
                continue
            close = read_balanced(code, start, HASH)
            if close < 0 or resource in descriptors:
                continue
            fields = []
            for key, value in parse_arguments(code[start + 1 : close - 1], HASH).keywords.items():
                type_name, nil = literal_type(key, value)
                fields.append(ModelField(name=key, type=type_name, is_optional=nil))
            if fields:
                descriptors[resource] = ModelDescriptor(name=resource, fields=fields)

        for match in _PERMIT_RE.finditer(code):
            close = read_balanced(code, match.end() - 1, HASH)
            if close < 0:
                continue
            root = match.group("root")
            base = "".join(part.capitalize() for part in root.split("_")) if root else resource
            name = base + "Request"
            if name in descriptors:
                continue
            permitted = parse_arguments(code[match.end() : close - 1], HASH)
            fields = []
            for symbol in permitted.positional:
                key = _name(symbol)
                if key:
                    fields.append(ModelField(name=key, type=literal_type(key, "")[0], is_optional=False))
            for key, value in permitted.keywords.items():
                fields.append(ModelField(name=key, type=literal_type(key, value)[0], is_optional=False))
            if fields:
                descriptors[name] = ModelDescriptor(name=name, fields=fields)

        return [self.schema(descriptor) for descriptor in descriptors.values()]
