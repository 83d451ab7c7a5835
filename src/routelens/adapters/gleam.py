"""Gleam adapter: Wisp ``path_segments`` dispatch and public custom types.

Wisp applications route by pattern matching::

    case wisp.path_segments(req) {
      [] -> home(req)
      ["users"] -> users.list(req)
      ["users", id] -> show_user(req, id)
      _ -> wisp.not_found()
    }

String literals are literal segments, bound names are path parameters and
``..rest`` is a catch-all. The methods of each arm come from the handler: a
``case req.method { http.Get -> ... }`` in the arm itself or in a handler
function of the same file, or a ``wisp.require_method(req, Post)`` guard.
Without either the arm is a GET.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, NamedTuple, Optional

from routelens.adapters.base import FrameworkAdapter
from routelens.models import ModelDescriptor, ModelField, Route, Schema, SourceFile
from routelens.pipeline.identifiers import ANONYMOUS_HANDLER
from routelens.pipeline.paths import PathDialect
from routelens.pipeline.typemap import GLEAM, split_generic
from routelens.sources.tokens import GLEAM as GLEAM_LEXICON
from routelens.sources.tokens import (
    blank_comments,
    is_string_start,
    line_of,
    read_balanced,
    skip_string,
    split_arguments,
    unquote,
)

logger = logging.getLogger(__name__)

_DISPATCH_RE = re.compile(r"\bcase\s+(?:wisp\.)?path_segments\s*\(\s*\w+\s*\)\s*\{")
_METHOD_CASE_RE = re.compile(r"\bcase\s+\w+\.method\s*\{")
_METHOD_RE = re.compile(r"\b(?:http\.)?(Get|Post|Put|Patch|Delete|Head|Options)\b(?=\s*(?:\||->|if\b))")
_REQUIRE_RE = re.compile(r"require_method\s*\(\s*\w+\s*,\s*(?:http\.)?(Get|Post|Put|Patch|Delete|Head|Options)\s*\)")
_CALL_RE = re.compile(r"(?<![\w.])(?P<name>[a-z_]\w*(?:\.[a-z_]\w*)*)\s*\(")
_FUNCTION_RE = r"\bfn\s+{name}\s*\("
_TYPE_RE = re.compile(r"\bpub\s+type\s+(?P<name>[A-Z]\w*)\s*(?:\([^)]*\)\s*)?\{")
_CONSTRUCTOR_RE = re.compile(r"(?P<name>[A-Z]\w*)\s*\(")
_LIBRARY_CALLS = ("wisp.", "response.", "request.", "http.", "json.", "io.", "string.", "int.", "list.")


class _Arm(NamedTuple):
    segments: list[str]
    body: str
    offset: int


def _skip_space(text: str, i: int) -> int:
    while i < len(text) and text[i].isspace():
        i += 1
    return i


def _expression_end(text: str, i: int) -> int:
    """End of the arm expression starting at *i*: a block or the rest of the line."""
    if i < len(text) and text[i] == "{":
        end = read_balanced(text, i, GLEAM_LEXICON)
        return len(text) if end < 0 else end
    while i < len(text) and text[i] != "\n":
        if is_string_start(text, i, GLEAM_LEXICON):
            i = skip_string(text, i, GLEAM_LEXICON)
            continue
        if text[i] in "([{":
            end = read_balanced(text, i, GLEAM_LEXICON)
            if end < 0:
                return len(text)
            i = end
            continue
        i += 1
    return i


def dispatch_arms(body: str) -> list[_Arm]:
    """Arms of a ``case`` body whose patterns are lists; other arms are skipped."""
    arms: list[_Arm] = []
    i = _skip_space(body, 0)
    while i < len(body):
        patterns: list[str] = []
        start = i
        while i < len(body) and body[i] == "[":
            end = read_balanced(body, i, GLEAM_LEXICON)
            if end < 0:
                return arms
            patterns.append(body[i + 1 : end - 1])
            i = _skip_space(body, end)
            if body.startswith("|", i):
                i = _skip_space(body, i + 1)
        arrow = body.find("->", i)
        if arrow < 0:
            break
        expr_start = _skip_space(body, arrow + 2)
        expr_end = _expression_end(body, expr_start)
        for pattern in patterns:
            arms.append(_Arm(split_arguments(pattern, GLEAM_LEXICON), body[expr_start:expr_end], start))
        i = _skip_space(body, expr_end)
    return arms


def segment_path(segments: list[str]) -> Optional[str]:
    """``["users", id]`` -> ``/users/:id``; ``None`` for an unnamed wildcard."""
    parts = []
    for segment in segments:
        literal = unquote(segment)
        if literal is not None:
            parts.append(literal)
            continue
        name = segment.strip()
        if name.startswith(".."):
            parts.append("*" + (name[2:].lstrip("_") or "rest"))
            continue
        if "<>" in name:
            # "prefix" <> rest matches a segment by its prefix
            return None
        name = name.lstrip("_")
        if not name:
            return None
        parts.append(":" + name)
    return "/" + "/".join(parts)


class GleamAdapter(FrameworkAdapter):
    """Routes from Wisp ``path_segments`` dispatch and schemas from custom types."""

    dialect = PathDialect.COLON
    type_table = GLEAM
    languages = ("gleam",)
    extensions = (".gleam",)
    manifests = {"gleam.toml": ("wisp", "mist", "gleam_http")}

    @property
    def name(self) -> str:
        return "gleam"

    @property
    def description(self) -> str:
        return "Wisp path_segments dispatch and Gleam custom types"

    @property
    def supported_frameworks(self) -> list[str]:
        return ["wisp", "mist"]

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        code = blank_comments(file.text(), GLEAM_LEXICON)
        routes: list[Route] = []
        for match in _DISPATCH_RE.finditer(code):
            brace = match.end() - 1
            close = read_balanced(code, brace, GLEAM_LEXICON)
            if close < 0:
                logger.debug("%s: unterminated path_segments case", file.path)
                continue
            base = brace + 1
            for arm in dispatch_arms(code[base : close - 1]):
                path = segment_path(arm.segments)
                if path is None:
                    continue
                handler = self._handler(arm.body)
                line = line_of(code, base + arm.offset)
                for method in self._methods(code, arm.body, handler):
                    routes.append(
                        self.route(
                            method,
                            path,
                            file,
                            handler=handler or ANONYMOUS_HANDLER,
                            operation_name=handler.rsplit(".", 1)[-1] if handler else "",
                            source_line=line,
                        )
                    )
        return routes

    @staticmethod
    def _handler(body: str) -> str:
        for call in _CALL_RE.finditer(body):
            name = call.group("name")
            if not name.startswith(_LIBRARY_CALLS) and name not in ("case", "fn", "use"):
                return name
        return ""

    @staticmethod
    def _methods(code: str, body: str, handler: str) -> list[str]:
        sources = [body]
        if handler and "." not in handler:
            definition = re.search(_FUNCTION_RE.format(name=re.escape(handler)), code)
            if definition is not None:
                brace = code.find("{", definition.end())
                close = read_balanced(code, brace, GLEAM_LEXICON) if brace >= 0 else -1
                if close > 0:
                    sources.append(code[brace:close])

        methods: list[str] = []
        for text in sources:
            for case in _METHOD_CASE_RE.finditer(text):
                close = read_balanced(text, case.end() - 1, GLEAM_LEXICON)
                block = text[case.end() : close - 1] if close > 0 else text[case.end() :]
                methods.extend(m for m in _METHOD_RE.findall(block) if m not in methods)
            methods.extend(m for m in _REQUIRE_RE.findall(text) if m not in methods)
            if methods:
                break
        return [m.upper() for m in methods] or ["GET"]

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        code = blank_comments(file.text(), GLEAM_LEXICON)
        schemas = []
        for match in _TYPE_RE.finditer(code):
            brace = match.end() - 1
            close = read_balanced(code, brace, GLEAM_LEXICON)
            if close < 0:
                continue
            fields = self._fields(code[brace + 1 : close - 1])
            if fields:
                schemas.append(self.schema(ModelDescriptor(name=match.group("name"), fields=fields)))
            else:
                logger.debug("%s: type %s has no labelled fields", file.path, match.group("name"))
        return schemas

    @staticmethod
    def _fields(body: str) -> list[ModelField]:
        """Labelled fields across all constructors.

        A field missing from some constructor is optional.
        """
        variants: list[dict[str, str]] = []
        i = 0
        while True:
            match = _CONSTRUCTOR_RE.search(body, i)
            if match is None:
                break
            paren = match.end() - 1
            close = read_balanced(body, paren, GLEAM_LEXICON)
            if close < 0:
                break
            labelled = {}
            for member in split_arguments(body[paren + 1 : close - 1], GLEAM_LEXICON):
                label, colon, type_text = member.partition(":")
                if colon and re.fullmatch(r"[a-z_]\w*", label.strip()):
                    labelled[label.strip()] = type_text.strip()
            variants.append(labelled)
            i = close

        merged: dict[str, str] = {}
        for labelled in variants:
            for name, type_text in labelled.items():
                merged.setdefault(name, type_text)
        fields = []
        for name, type_text in merged.items():
            generic = split_generic(type_text, GLEAM.brackets)
            optional = generic is not None and GLEAM.is_optional(generic[0])
            fields.append(
                ModelField(
                    name=name,
                    type=type_text,
                    is_optional=optional or any(name not in v for v in variants),
                )
            )
        return fields
