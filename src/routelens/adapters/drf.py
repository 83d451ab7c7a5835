"""Django REST framework adapter: routers, URL confs, views and serializers.

URL confs are read across the whole batch. ``router.register('users',
UserViewSet)`` binds a viewset to a prefix, ``path()`` and ``re_path()``
entries bind function and class views to routes, and ``include()`` of a
router or of another URL module prefixes everything it pulls in.

* ``@api_view(['GET', 'POST'])`` functions yield one route per method.
* ViewSets yield the standard actions their bases provide
  (``ModelViewSet``: list, create, retrieve, update, partial_update and
  destroy; ``ReadOnlyModelViewSet``: list and retrieve; each ``*ModelMixin``
  its own) plus every ``@action``.
* ``APIView`` subclasses yield one route per HTTP method they define, and
  generic views (``ListCreateAPIView``...) the methods their name implies.

A view no URL conf mentions is still reported, at a path derived from its
name (``/user-list`` for ``user_list``, ``/user`` for ``UserViewSet``).

Schemas come from serializers, named without the ``Serializer`` suffix, and
from Pydantic models.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple, Optional, Sequence

from routelens.adapters.base import PYTHON_MANIFESTS, FrameworkAdapter, json_response
from routelens.models import HTTPMethod, ModelDescriptor, ModelField, RequestBody, Response, Route, Schema, SourceFile
from routelens.pipeline.paths import PathDialect
from routelens.pipeline.typemap import PYTHON
from routelens.sources.facts import ClassFacts, FieldFacts, FunctionFacts, ModuleFacts
from routelens.sources.python import find_calls, model_classes, pydantic_models, scan_python, split_docstring
from routelens.sources.tokens import identifier_tail, parse_arguments, parse_string_list, split_arguments, unquote

logger = logging.getLogger(__name__)

_ROUTERS = frozenset({"DefaultRouter", "SimpleRouter"})
_URL_FUNCTIONS = ("path", "re_path", "url")
_VIEW_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")
_BODY_METHODS = frozenset({"post", "put", "patch"})
_SERIALIZER_ROOTS = ("Serializer", "ModelSerializer", "HyperlinkedModelSerializer")


class _Action(NamedTuple):
    method: str
    detail: bool
    name: str


_STANDARD_ACTIONS = (
    _Action("GET", False, "list"),
    _Action("POST", False, "create"),
    _Action("GET", True, "retrieve"),
    _Action("PUT", True, "update"),
    _Action("PATCH", True, "partial_update"),
    _Action("DELETE", True, "destroy"),
)
_BASE_ACTIONS = {
    "ModelViewSet": frozenset(action.name for action in _STANDARD_ACTIONS),
    "ReadOnlyModelViewSet": frozenset({"list", "retrieve"}),
    "ListModelMixin": frozenset({"list"}),
    "CreateModelMixin": frozenset({"create"}),
    "RetrieveModelMixin": frozenset({"retrieve"}),
    "UpdateModelMixin": frozenset({"update", "partial_update"}),
    "DestroyModelMixin": frozenset({"destroy"}),
}
_GENERIC_VERBS = {
    "List": ("get",),
    "Create": ("post",),
    "Retrieve": ("get",),
    "Update": ("put", "patch"),
    "Destroy": ("delete",),
}

_FIELD_TYPES = {
    "CharField": "str",
    "SlugField": "str",
    "RegexField": "str",
    "ChoiceField": "str",
    "IPAddressField": "str",
    "StringRelatedField": "str",
    "SerializerMethodField": "str",
    "FileField": "str",
    "ImageField": "str",
    "EmailField": "EmailStr",
    "URLField": "HttpUrl",
    "HyperlinkedRelatedField": "HttpUrl",
    "HyperlinkedIdentityField": "HttpUrl",
    "UUIDField": "UUID",
    "IntegerField": "int",
    "PrimaryKeyRelatedField": "int",
    "FloatField": "float",
    "DecimalField": "Decimal",
    "BooleanField": "bool",
    "DateTimeField": "datetime",
    "DateField": "date",
    "TimeField": "time",
    "DictField": "dict",
    "JSONField": "dict",
    "HStoreField": "dict",
    "ListField": "list",
    "MultipleChoiceField": "List[str]",
}
_FIELD_CALL_RE = re.compile(r"^(?:[\w.]+\.)?(?P<kind>\w+)\((?P<args>.*)\)$", re.S)
_NAMED_GROUP_RE = re.compile(r"\(\?P<(\w+)>(?:[^()]|\([^()]*\))*\)")


def regex_route(pattern: str) -> str:
    """``^users/(?P<pk>[0-9]+)/$`` -> ``users/<pk>/``."""
    text = _NAMED_GROUP_RE.sub(lambda m: f"<{m.group(1)}>", pattern.strip())
    text = text.removeprefix("^").removesuffix("$")
    return re.sub(r"\\(.)", r"\1", text)


def schema_name(serializer: str) -> str:
    """``UserSerializer`` -> ``User``."""
    name = identifier_tail(serializer)
    return name.removesuffix("Serializer") or name


def _is_false(raw: Optional[str]) -> bool:
    return raw is not None and raw.strip() in ("False", "''", '""')


def _is_true(raw: Optional[str]) -> bool:
    return raw is not None and raw.strip() == "True"


# ---------------------------------------------------------------------------
# URL configuration
# ---------------------------------------------------------------------------


@dataclass
class UrlConf:
    """Routing facts gathered from every URL conf of a batch.

    Attributes:
        views: View name to its ``(url conf file, route)`` mounts.
        registrations: Viewset name to its ``(url conf file, router, prefix)``
            registrations.
        routers: ``(file, router variable)`` to whether its routes end with
            a slash.
        router_mounts: ``(file, router variable)`` to the route the router's
            URLs are included under.
        includes: Dotted URL module to the ``(including file, route)`` that
            pulls it in.
    """

    views: dict[str, list[tuple[str, str]]] = field(default_factory=dict)
    registrations: dict[str, list[tuple[str, str, str]]] = field(default_factory=dict)
    routers: dict[tuple[str, str], bool] = field(default_factory=dict)
    router_mounts: dict[tuple[str, str], str] = field(default_factory=dict)
    includes: dict[str, tuple[str, str]] = field(default_factory=dict)

    def read(self, file: SourceFile) -> None:
        """Record the routers, registrations and URL patterns of *file*."""
        text = file.text()
        if "urlpatterns" not in text and "Router(" not in text:
            return
        facts = scan_python(text, file.path)
        for call in facts.calls:
            if call.simple_name in _ROUTERS and call.assigned_to:
                self.routers[(file.path, call.assigned_to)] = not _is_false(call.arguments.get("trailing_slash"))
        for call in facts.calls:
            key = (file.path, call.receiver)
            if call.simple_name != "register" or key not in self.routers or len(call.arguments.positional) < 2:
                continue
            prefix = call.arguments.first_string()
            if prefix is not None:
                viewset = identifier_tail(call.arguments.positional[1])
                self.registrations.setdefault(viewset, []).append((file.path, call.receiver, prefix))
        for call in find_calls(text, _URL_FUNCTIONS, file.path):
            route = call.arguments.first_string()
            view = call.arguments.positional[1] if len(call.arguments.positional) > 1 else call.arguments.get("view")
            if route is None or view is None:
                continue
            if call.simple_name != "path":
                route = regex_route(route)
            self._mount(file.path, route, view)

    def _mount(self, file: str, route: str, view: str) -> None:
        include = re.match(r"^include\((?P<args>.*)\)$", view.strip(), re.S)
        if include is None:
            name = re.sub(r"\.as_view\(.*\)$", "", view.strip(), flags=re.S)
            self.views.setdefault(identifier_tail(name), []).append((file, route))
            return
        target = parse_arguments(include.group("args")).first() or ""
        if target.startswith("("):
            members = split_arguments(target[1:-1])
            target = members[0] if members else ""
        if target.endswith(".urls") and unquote(target) is None:
            self.router_mounts[(file, target.removesuffix(".urls"))] = route
            return
        module = unquote(target)
        if module:
            self.includes.setdefault(module, (file, route))

    def chain(self, file: str) -> list[str]:
        """Include routes leading to URL conf *file*, outermost first."""
        routes: list[str] = []
        seen = {file}
        parent = self._including(file)
        while parent is not None and parent[0] not in seen:
            seen.add(parent[0])
            routes.insert(0, parent[1])
            parent = self._including(parent[0])
        return routes

    def _including(self, file: str) -> Optional[tuple[str, str]]:
        module = file.replace("\\", "/").removesuffix(".py").replace("/", ".")
        for name, parent in self.includes.items():
            if module == name or module.endswith("." + name):
                return parent
        return None

    def view_mounts(self, name: str) -> list[tuple[list[str], str]]:
        """``(prefix chain, route)`` for every mount of the view *name*."""
        return [(self.chain(file), route) for file, route in self.views.get(name, [])]

    def viewset_mounts(self, name: str) -> list[tuple[list[str], str, bool]]:
        """``(prefix chain, prefix, trailing slash)`` for every registration of *name*."""
        mounts = []
        for file, router, prefix in self.registrations.get(name, []):
            chain = [*self.chain(file), self.router_mounts.get((file, router), "")]
            mounts.append((chain, prefix, self.routers.get((file, router), True)))
        return mounts


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------


def serializer_field(member: FieldFacts) -> Optional[ModelField]:
    """The model field a ``name = serializers.XField(...)`` declaration stands for."""
    match = _FIELD_CALL_RE.match(member.default or "")
    if match is None:
        return None
    kind = match.group("kind")
    args = parse_arguments(match.group("args"))
    if kind.endswith("Serializer"):
        type_name = "dict"
    elif kind in _FIELD_TYPES:
        type_name = _FIELD_TYPES[kind]
    elif kind.endswith("Field"):
        type_name = "str"
    else:
        return None
    if kind == "ListField" and args.get("child"):
        child = serializer_field(FieldFacts(name=member.name, default=args.get("child")))
        type_name = f"List[{child.type}]" if child else "list"
    if _is_true(args.get("many")):
        type_name = f"List[{type_name}]"
    return ModelField(
        name=member.name,
        type=type_name,
        is_optional=_is_true(args.get("allow_null")),
        has_default=(
            _is_false(args.get("required")) or "default" in args.keywords or _is_true(args.get("read_only"))
        ),
        description=unquote(args.get("help_text")),
    )


def _guessed_type(name: str) -> str:
    if name == "id" or name.endswith("_id"):
        return "int"
    if name.endswith("_at"):
        return "datetime"
    if name == "email":
        return "EmailStr"
    return "str"


def serializer_models(facts: ModuleFacts) -> list[ModelDescriptor]:
    """Model descriptors for the serializers declared in the file.

    Declared fields are typed by their field class. A ``ModelSerializer``
    lists the rest in ``Meta.fields``; those come from the Django model, so
    they are typed from their names and never required.
    """
    descriptors = []
    for cls in model_classes(facts, _SERIALIZER_ROOTS):
        declared = {}
        for member in cls.fields:
            model_field = serializer_field(member)
            if model_field is not None:
                declared[model_field.name] = model_field
        meta = cls.inner_class("Meta")
        listed = meta.field_named("fields") if meta is not None else None
        names = parse_string_list(listed.default) if listed is not None else []
        if names == ["__all__"]:
            names = []
        fields = [
            declared.get(name) or ModelField(name=name, type=_guessed_type(name), has_default=True)
            for name in names
        ]
        fields.extend(f for name, f in declared.items() if name not in names)
        descriptors.append(
            ModelDescriptor(
                name=schema_name(cls.name),
                fields=fields,
                description=split_docstring(cls.docstring)[0],
            )
        )
    return descriptors


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class DRFAdapter(FrameworkAdapter):
    """Routes and serializer schemas from Django REST framework projects."""

    dialect = PathDialect.ANGLE
    type_table = PYTHON
    languages = ("python",)
    extensions = (".py",)
    manifests = {manifest: ("djangorestframework",) for manifest in PYTHON_MANIFESTS}
    batch_files = True

    @property
    def name(self) -> str:
        return "drf"

    @property
    def description(self) -> str:
        return "Django REST framework routers, viewsets, API views and serializers"

    @property
    def supported_frameworks(self) -> list[str]:
        return ["djangorestframework", "Django REST framework"]

    def routes_from_batch(self, files: Sequence[SourceFile]) -> Iterable[Route]:
        conf = UrlConf()
        for file in files:
            self._guarded(lambda f: conf.read(f) or [], file, file.path)
        routes: list[Route] = []
        for file in files:
            routes.extend(self._guarded(lambda f: self._routes(f, conf), file, file.path))
        return routes

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        conf = UrlConf()
        conf.read(file)
        return self._routes(file, conf)

    def _routes(self, file: SourceFile, conf: UrlConf) -> list[Route]:
        text = file.text()
        if "rest_framework" not in text:
            return []
        facts = scan_python(text, file.path)
        routes: list[Route] = []
        for func in facts.functions:
            routes.extend(self._function_routes(file, func, conf))
        for cls in facts.classes:
            bases = [identifier_tail(base) for base in cls.bases]
            if any(base.endswith("ViewSet") or base in _BASE_ACTIONS for base in bases):
                routes.extend(self._viewset_routes(file, cls, bases, conf))
            elif any(base.endswith("APIView") for base in bases):
                routes.extend(self._view_routes(file, cls, bases, conf))
        return routes

    # ------------------------------------------------------------------
    # Function views

    def _function_routes(self, file: SourceFile, func: FunctionFacts, conf: UrlConf) -> list[Route]:
        deco = func.decorator("api_view")
        if deco is None:
            return []
        raw = deco.arguments.first() or deco.arguments.get("http_method_names")
        methods = [m for m in parse_string_list(raw) if HTTPMethod.parse(m) is not None] or ["GET"]
        mounts = conf.view_mounts(func.name) or [([], "/" + func.name.lower().replace("_", "-"))]
        summary, description = split_docstring(func.docstring)
        return [
            self.route(
                method,
                route,
                file,
                prefixes=chain,
                handler=func.name,
                summary=summary,
                description=description,
                source_line=func.line,
            )
            for chain, route in mounts
            for method in methods
        ]

    # ------------------------------------------------------------------
    # Class views

    def _view_routes(self, file: SourceFile, cls: ClassFacts, bases: list[str], conf: UrlConf) -> list[Route]:
        defined = {method.name: method for method in cls.methods if method.name in _VIEW_METHODS}
        verbs = list(defined)
        for base in bases:
            for word in re.findall(r"[A-Z][a-z]+", base.removesuffix("APIView")):
                verbs.extend(v for v in _GENERIC_VERBS.get(word, ()) if v not in verbs)
        fallback = "/" + re.sub(r"(APIView|View)$", "", cls.name).lower()
        mounts = conf.view_mounts(cls.name) or [([], fallback)]
        model = self._serializer(cls)

        routes = []
        for chain, route in mounts:
            for verb in verbs:
                method = defined.get(verb)
                summary, description = split_docstring(method.docstring if method else None)
                body = RequestBody.json_body(model) if model is not None and verb in _BODY_METHODS else None
                routes.append(
                    self.route(
                        verb,
                        route,
                        file,
                        prefixes=chain,
                        handler=f"{cls.name}.{verb}",
                        operation_name="",
                        identity=cls.name,
                        summary=summary,
                        description=description,
                        request_body=body,
                        source_line=method.line if method else cls.line,
                    )
                )
        return routes

    def _viewset_routes(self, file: SourceFile, cls: ClassFacts, bases: list[str], conf: UrlConf) -> list[Route]:
        provided: set[str] = set()
        for base in bases:
            provided |= _BASE_ACTIONS.get(base, frozenset())
        methods = {method.name: method for method in cls.methods}
        actions = [a for a in _STANDARD_ACTIONS if a.name in provided or a.name in methods]

        lookup = self._lookup(cls)
        mounts = conf.viewset_mounts(cls.name)
        if not mounts:
            name = cls.name.removesuffix("ViewSet").lower().removesuffix("view")
            mounts = [([], "/" + name, False)]
        model = self._serializer(cls)

        routes = []
        for chain, base, slash in mounts:
            tail = "/" if slash else ""

            def _path(detail: bool, suffix: str = "") -> str:
                path = base.rstrip("/") + (f"/<{lookup}>" if detail else "")
                return path + (f"/{suffix}" if suffix else "") + tail

            for action in actions:
                method = methods.get(action.name)
                summary, description = split_docstring(method.docstring if method else None)
                routes.append(
                    self.route(
                        action.method,
                        _path(action.detail),
                        file,
                        prefixes=chain,
                        handler=f"{cls.name}.{action.name}",
                        operation_name=action.name,
                        identity=cls.name,
                        summary=summary,
                        description=description,
                        request_body=self._body(action.name, model),
                        responses=self._responses(action.name, model),
                        source_line=method.line if method else cls.line,
                    )
                )
            for method in cls.methods:
                deco = method.decorator("action")
                if deco is None:
                    continue
                verbs = [m for m in parse_string_list(deco.arguments.get("methods")) if HTTPMethod.parse(m)] or ["GET"]
                url_path = deco.arguments.string("url_path") or method.name
                summary, description = split_docstring(method.docstring)
                for verb in verbs:
                    routes.append(
                        self.route(
                            verb,
                            _path(_is_true(deco.arguments.get("detail")), url_path),
                            file,
                            prefixes=chain,
                            handler=f"{cls.name}.{method.name}",
                            operation_name=method.name,
                            identity=cls.name,
                            summary=summary,
                            description=description,
                            source_line=method.line,
                        )
                    )
        return routes

    @staticmethod
    def _lookup(cls: ClassFacts) -> str:
        for name in ("lookup_url_kwarg", "lookup_field"):
            member = cls.field_named(name)
            value = unquote(member.default) if member is not None else None
            if value:
                return value
        return "pk"

    def _serializer(self, cls: ClassFacts) -> Optional[Schema]:
        member = cls.field_named("serializer_class")
        if member is None or not member.default:
            return None
        name = schema_name(member.default)
        return self.reference_schema(name, {name})

    @staticmethod
    def _body(action: str, model: Optional[Schema]) -> Optional[RequestBody]:
        if model is None or action not in ("create", "update", "partial_update"):
            return None
        return RequestBody.json_body(model, required=action != "partial_update")

    @staticmethod
    def _responses(action: str, model: Optional[Schema]) -> dict[str, Response]:
        if model is None:
            return {}
        if action == "destroy":
            return {"204": json_response("No Content")}
        if action == "list":
            return {"200": json_response("OK", Schema(type="array", items=model))}
        if action == "create":
            return {"201": json_response("Created", model)}
        return {"200": json_response("OK", model)}

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        facts = scan_python(file.text(), file.path)
        descriptors = serializer_models(facts) + pydantic_models(facts)
        return [self.schema(descriptor) for descriptor in descriptors if descriptor.fields]
