"""Flask adapter: ``route`` decorators, blueprints and ``MethodView`` classes.

Only the first entry of ``methods=[...]`` produces a route; a decorator
without ``methods`` is a GET. Blueprint prefixes come from
``Blueprint(..., url_prefix=...)`` and are replaced by the ``url_prefix`` of
``register_blueprint`` when one is given.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from routelens.adapters.base import PYTHON_MANIFESTS, FrameworkAdapter
from routelens.models import HTTPMethod, Route, Schema, SourceFile
from routelens.pipeline.paths import PathDialect
from routelens.pipeline.typemap import PYTHON
from routelens.sources.facts import CallFacts, ClassFacts, ModuleFacts
from routelens.sources.python import pydantic_models, scan_python, split_docstring
from routelens.sources.tokens import parse_string_list

logger = logging.getLogger(__name__)

_SHORTCUTS = frozenset({"get", "post", "put", "delete", "patch"})
_VIEW_BASES = frozenset({"MethodView"})
_VIEW_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")


class FlaskAdapter(FrameworkAdapter):
    """Routes and Pydantic schemas from Flask applications."""

    dialect = PathDialect.ANGLE
    type_table = PYTHON
    languages = ("python",)
    extensions = (".py",)
    manifests = {manifest: ("flask",) for manifest in PYTHON_MANIFESTS}

    @property
    def name(self) -> str:
        return "flask"

    @property
    def description(self) -> str:
        return "Flask route decorators, blueprints and MethodView classes"

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        facts = scan_python(file.text(), file.path)
        prefixes = self._blueprint_prefixes(facts)
        routes: list[Route] = []

        for func in facts.functions:
            for deco in func.decorators:
                receiver, _, verb = deco.name.rpartition(".")
                if not receiver:
                    continue
                if verb == "route":
                    methods = parse_string_list(deco.arguments.get("methods"))
                    method = methods[0] if methods else "GET"
                elif verb in _SHORTCUTS:
                    method = verb
                else:
                    continue
                path = deco.arguments.path("rule")
                if path is None or HTTPMethod.parse(method) is None:
                    continue
                summary, description = split_docstring(func.docstring)
                routes.append(
                    self.route(
                        method,
                        path,
                        file,
                        prefixes=[prefixes.get(receiver, "")],
                        handler=func.name,
                        summary=summary,
                        description=description,
                        source_line=deco.line,
                    )
                )

        registrations = self._view_registrations(facts)
        for cls in facts.classes:
            if not any(base.rsplit(".", 1)[-1] in _VIEW_BASES for base in cls.bases):
                continue
            routes.extend(self._view_routes(file, cls, registrations.get(cls.name), prefixes))
        return routes

    def _blueprint_prefixes(self, facts: ModuleFacts) -> dict[str, str]:
        prefixes: dict[str, str] = {}
        for call in facts.calls:
            if call.simple_name == "Blueprint" and call.assigned_to:
                prefixes[call.assigned_to] = call.arguments.string("url_prefix") or ""
        for call in facts.calls:
            if call.simple_name == "register_blueprint" and call.arguments.positional:
                override = call.arguments.string("url_prefix")
                if override is not None:
                    prefixes[call.arguments.positional[0]] = override
        return prefixes

    @staticmethod
    def _view_registrations(facts: ModuleFacts) -> dict[str, CallFacts]:
        """``add_url_rule`` calls keyed by the view class they register."""
        found: dict[str, CallFacts] = {}
        for call in facts.calls:
            if call.simple_name != "add_url_rule":
                continue
            view = call.arguments.get("view_func")
            if view is None and len(call.arguments.positional) >= 3:
                view = call.arguments.positional[2]
            match = re.match(r"\s*([\w.]+)\.as_view\(", view or "")
            if match:
                found.setdefault(match.group(1).rsplit(".", 1)[-1], call)
        return found

    def _view_routes(
        self,
        file: SourceFile,
        cls: ClassFacts,
        registration: Optional[CallFacts],
        prefixes: dict[str, str],
    ) -> list[Route]:
        prefix = ""
        path = None
        if registration is not None:
            path = registration.arguments.path("rule")
            prefix = prefixes.get(registration.receiver, "")
        if path is None:
            logger.debug("%s: %s is not registered with add_url_rule", file.path, cls.name)
            name = re.sub(r"(View|API|Resource)$", "", cls.name)
            path = "/" + name.lower()

        routes = []
        for method in cls.methods:
            verb = method.name
            if verb not in _VIEW_METHODS:
                continue
            summary, description = split_docstring(method.docstring)
            routes.append(
                self.route(
                    verb,
                    path,
                    file,
                    prefixes=[prefix],
                    handler=f"{cls.name}.{verb}",
                    operation_name="",
                    identity=cls.name,
                    summary=summary,
                    description=description,
                    source_line=method.line,
                )
            )
        return routes

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        facts = scan_python(file.text(), file.path)
        return [self.schema(descriptor) for descriptor in pydantic_models(facts)]
