"""Operation id and tag synthesis.

Both functions are deterministic and expect canonical paths (see
:mod:`routelens.pipeline.paths`), so ``{`` is the only parameter marker
they need to recognise.
"""

from __future__ import annotations

from typing import Union

from routelens.models import PATH_TOKEN_RE, HTTPMethod

ANONYMOUS_HANDLER = "<anonymous>"
"""Handler name adapters use for inline closures; never used in operation ids."""

_SKIP_SEGMENTS = frozenset({"api", "v1", "v2", "v3"})
_IDENTITY_SUFFIXES = ("Controller", "Module", "API")


def generate_operation_id(method: Union[HTTPMethod, str], path: str, handler: str = "") -> str:
    """Derive an ``operationId`` for a route.

    A named handler wins: ``lowercase(method)`` followed by the handler with
    only its first character uppercased (``get_users`` -> ``getGet_users``).
    Without one, the id is built from the path: each ``{name}`` becomes
    ``By<name>`` and every segment word is title-cased
    (``GET /users/{id}`` -> ``getUsersByid``). The root path yields the bare
    method.

    Args:
        method: HTTP method of the route.
        path: Canonical route path.
        handler: Handler name, empty or :data:`ANONYMOUS_HANDLER` if unknown.

    Returns:
        A non-empty identifier.
    """
    verb = (method.value if isinstance(method, HTTPMethod) else str(method)).lower()
    if handler and handler != ANONYMOUS_HANDLER:
        return verb + handler[0].upper() + handler[1:]

    words = PATH_TOKEN_RE.sub(lambda m: "By" + m.group(1), path).replace("/", " ").split()
    if not words:
        return verb
    return verb + "".join(word[:1].upper() + word[1:].lower() for word in words)


def infer_tags(path: str) -> list[str]:
    """Tag a route by the first meaningful literal segment of its path.

    Empty segments, ``api``, ``v1``, ``v2``, ``v3`` and parameter tokens are
    skipped. Returns an empty list when nothing qualifies.
    """
    for segment in path.removeprefix("/").split("/"):
        if not segment or segment in _SKIP_SEGMENTS or segment.startswith("{"):
            continue
        return [segment]
    return []


def tag_from_identity(identity: str) -> list[str]:
    """Tag a route by the controller or module that declares it.

    Namespace qualifiers are dropped (``App.Http.UsersController``,
    ``MyAppWeb.UserController``, ``controllers.Users``) and one trailing
    ``Controller``, ``Module`` or ``API`` suffix is stripped.

    Returns:
        A one-element list, or an empty list if nothing is left.
    """
    name = identity.replace("\\", ".").replace("::", ".").rsplit(".", 1)[-1].strip()
    for suffix in _IDENTITY_SUFFIXES:
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    return [name] if name else []
