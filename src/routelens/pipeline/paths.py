"""Path syntax normalization, parameter extraction and prefix composition.

Every framework spells path parameters its own way. This module reduces each
spelling to the canonical ``{name}`` form and composes prefix chains (router
prefixes, class-level base paths, nested scopes) into one path.

Dialects form a closed lookup table (:class:`PathDialect`); each dialect has
exactly one substitution pattern and a path is only ever rewritten with the
pattern of the dialect its adapter declares, so a literal ``:`` in a brace
dialect path or a ``<`` in a colon dialect path is left alone.

Example::

    >>> normalize_path("/users/<int:user_id>", PathDialect.ANGLE)
    '/users/{user_id}'
    >>> compose_path(["/api", "/v1/", "items"])
    '/api/v1/items'
"""

from __future__ import annotations

import enum
import re
from typing import Iterable, NamedTuple, Optional

from routelens.models import PATH_TOKEN_RE, Parameter, ParameterLocation, Schema


class PathDialect(str, enum.Enum):
    """The path parameter syntaxes understood by :func:`normalize_path`.

    * ``BRACE`` -- ``{id}``, ``{id:int}``, ``{id:\\d+}``, ``{id?}``, ``{*rest}``
      (FastAPI, Spring, ASP.NET, Laravel).
    * ``ANGLE`` -- ``<id>``, ``<int:id>``, ``<rest..>`` (Flask, Rocket).
    * ``COLON`` -- ``:id`` and ``*rest`` at the start of a segment (Phoenix,
      Sinatra, Gleam).
    * ``DOLLAR`` -- ``$id<[0-9]+>``, ``:id``, ``*rest`` (Play routes files).
    """

    BRACE = "brace"
    ANGLE = "angle"
    COLON = "colon"
    DOLLAR = "dollar"


class NormalizedPath(NamedTuple):
    """A canonical path plus the parameter types its raw spelling declared."""

    path: str
    param_types: dict[str, Schema]


# ---------------------------------------------------------------------------
# Dialect table
# ---------------------------------------------------------------------------

_NAME = r"[A-Za-z_][\w-]*"

_PATTERNS: dict[PathDialect, re.Pattern[str]] = {
    # The constraint may hold one level of nested braces (regex quantifiers).
    PathDialect.BRACE: re.compile(
        r"\{\*{0,2}(?P<name>" + _NAME + r")\??"
        r"(?::(?P<constraint>(?:[^{}]|\{[^{}]*\})*))?\}"
    ),
    PathDialect.ANGLE: re.compile(
        r"<(?:(?P<converter>[A-Za-z_]\w*(?:\([^()<>]*\))?):)?"
        r"(?P<name>[A-Za-z_]\w*)(?:\.\.)?>"
    ),
    PathDialect.COLON: re.compile(r"(?<=/)[:*](?P<name>[A-Za-z_]\w*)"),
    PathDialect.DOLLAR: re.compile(
        r"\$(?P<dollar>[A-Za-z_]\w*)(?:<[^<>]*>)?|(?<=/)[:*](?P<name>[A-Za-z_]\w*)"
    ),
}

_CONVERTER_TYPES: dict[str, str] = {
    "int": "integer",
    "integer": "integer",
    "long": "integer",
    "float": "number",
    "double": "number",
    "decimal": "number",
    "bool": "boolean",
    "boolean": "boolean",
    "path": "string",
    "string": "string",
    "str": "string",
    "uuid": "string",
    "guid": "string",
    "any": "string",
    "alpha": "string",
}


def _converter_schema(converter: Optional[str]) -> Optional[Schema]:
    """Schema implied by a converter word such as ``int`` or ``int(signed=True)``.

    Regex constraints and unknown words imply nothing.
    """
    if not converter:
        return None
    word = converter.split("(", 1)[0].split(":", 1)[0].rstrip("?").strip().lower()
    openapi_type = _CONVERTER_TYPES.get(word)
    if openapi_type is None:
        return None
    return Schema(type=openapi_type)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize_path_with_types(raw: str, dialect: PathDialect) -> NormalizedPath:
    """Rewrite every parameter token of *dialect* in *raw* to ``{name}``.

    Type hints carried by the token (``<int:id>``, ``{id:int}``) are returned
    in ``param_types``; regex constraints are discarded. Text that does not
    form a complete token (an unmatched brace, a stray ``<``) stays literal.

    Args:
        raw: The path as written in the source.
        dialect: The dialect the declaring framework uses.

    Returns:
        The canonical path and the inferred parameter schemas by name.
    """
    pattern = _PATTERNS[PathDialect(dialect)]
    param_types: dict[str, Schema] = {}

    def _replace(match: re.Match[str]) -> str:
        groups = match.groupdict()
        name = groups.get("dollar") or groups["name"]
        hint = groups.get("converter") or groups.get("constraint")
        schema = _converter_schema(hint)
        if schema is not None:
            param_types[name] = schema
        return "{" + name + "}"

    return NormalizedPath(pattern.sub(_replace, raw), param_types)


def normalize_path(raw: str, dialect: PathDialect) -> str:
    """Canonical form of *raw*; see :func:`normalize_path_with_types`."""
    return normalize_path_with_types(raw, dialect).path


def extract_path_params(
    path: str, param_types: Optional[dict[str, Schema]] = None
) -> list[Parameter]:
    """Build one required path :class:`Parameter` per ``{name}`` token.

    Parameters come out in left-to-right token order. A name absent from
    *param_types* is typed ``string``.
    """
    param_types = param_types or {}
    return [
        Parameter(
            name=name,
            location=ParameterLocation.PATH,
            required=True,
            schema=param_types.get(name) or Schema(type="string"),
        )
        for name in PATH_TOKEN_RE.findall(path)
    ]


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def _with_leading_slash(path: str) -> str:
    return path if path.startswith("/") else "/" + path


def combine_paths(prefix: str, path: str) -> str:
    """Join a prefix and a relative path with exactly one slash between them.

    An empty *prefix* yields *path* with a leading slash. Otherwise one
    trailing slash is dropped from *prefix* and *path* gains a leading slash
    if it lacks one.
    """
    if prefix == "":
        return _with_leading_slash(path)
    if prefix.endswith("/"):
        prefix = prefix[:-1]
    return prefix + _with_leading_slash(path)


def compose_path(parts: Iterable[Optional[str]]) -> str:
    """Fold a prefix chain, outermost first, into one path.

    Empty or ``None`` members contribute nothing. A chain with no
    contributions at all is the root path ``"/"``.
    """
    result = ""
    for part in parts:
        if not part:
            continue
        result = combine_paths(result, part)
    return result or "/"
