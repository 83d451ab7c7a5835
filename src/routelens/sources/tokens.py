"""Small lexical helpers shared by the source scanners.

None of this is a full tokenizer for any language. It only knows enough to
step over string literals and comments so that bracket matching and argument
splitting are not fooled by a ``)`` or ``,`` inside a literal:

* :func:`blank_comments` -- replace comments with spaces, keeping newlines
  so line numbers survive.
* :func:`skip_string` / :func:`read_balanced` -- cursor helpers.
* :func:`split_arguments` / :func:`parse_arguments` -- argument lists into
  positional and keyword members, in the C, Python, PHP and Elixir spellings.
* :func:`unquote` / :func:`parse_string_list` -- literal decoding.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Optional

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}


class CommentStyle(str, enum.Enum):
    """Comment syntax families."""

    C = "c"  # // line, /* block */
    HASH = "hash"  # # line
    PHP = "php"  # //, /* */ and # (but not #[ attributes)
    ELIXIR = "elixir"  # # line, sigils and charlists left alone


@dataclass(frozen=True)
class Lexicon:
    """Which quote characters delimit strings in a language.

    Rust uses ``'`` for lifetimes as well as chars, so it opts out of
    single-quoted strings and only char literals of one (escaped) character
    are skipped.
    """

    comments: CommentStyle
    single_quote_strings: bool = True
    verbatim_strings: bool = False  # C# @"..."


C_LIKE = Lexicon(CommentStyle.C)
CSHARP = Lexicon(CommentStyle.C, verbatim_strings=True)
RUST = Lexicon(CommentStyle.C, single_quote_strings=False)
PHP = Lexicon(CommentStyle.PHP)
HASH = Lexicon(CommentStyle.HASH)
ELIXIR = Lexicon(CommentStyle.ELIXIR)
GLEAM = Lexicon(CommentStyle.C, single_quote_strings=False)


# ---------------------------------------------------------------------------
# Cursor helpers
# ---------------------------------------------------------------------------


def skip_string(text: str, start: int, lexicon: Lexicon = C_LIKE) -> int:
    """Return the index just past the string literal opening at *start*.

    ``text[start]`` must be a quote character (or ``@`` of a C# verbatim
    string). An unterminated literal runs to the end of *text*.
    """
    verbatim = False
    if lexicon.verbatim_strings and text.startswith('@"', start):
        verbatim = True
        start += 1
    quote = text[start]
    if text.startswith(quote * 3, start) and quote in "\"'":
        end = text.find(quote * 3, start + 3)
        return len(text) if end < 0 else end + 3
    i = start + 1
    while i < len(text):
        char = text[i]
        if verbatim:
            if char == '"':
                if text.startswith('""', i):
                    i += 2
                    continue
                return i + 1
        elif char == "\\":
            i += 2
            continue
        elif char == quote:
            return i + 1
        i += 1
    return len(text)


def _rust_char_end(text: str, start: int) -> int:
    """End of a Rust char literal at *start*, or ``start + 1`` for a lifetime."""
    match = re.match(r"'(?:\\(?:u\{[0-9a-fA-F]+\}|x[0-9a-fA-F]{2}|.)|[^\\'])'", text[start:])
    return start + match.end() if match else start + 1


def is_string_start(text: str, i: int, lexicon: Lexicon) -> bool:
    char = text[i]
    if char == '"' or char == "`":
        return True
    if char == "'" and lexicon.single_quote_strings:
        return True
    return lexicon.verbatim_strings and text.startswith('@"', i)


def _advance_literal(text: str, i: int, lexicon: Lexicon) -> int:
    """If a literal starts at *i*, return its end; otherwise ``i``."""
    if is_string_start(text, i, lexicon):
        return skip_string(text, i, lexicon)
    if text[i] == "'" and not lexicon.single_quote_strings:
        return _rust_char_end(text, i)
    return i


def read_balanced(text: str, start: int, lexicon: Lexicon = C_LIKE) -> int:
    """Return the index just past the bracket that closes ``text[start]``.

    Nested ``()``, ``[]`` and ``{}`` pairs are matched and string literals
    are skipped. Returns ``-1`` if the bracket is never closed.
    """
    stack = [_OPENERS[text[start]]]
    i = start + 1
    while i < len(text):
        end = _advance_literal(text, i, lexicon)
        if end != i:
            i = end
            continue
        char = text[i]
        if char in _OPENERS:
            stack.append(_OPENERS[char])
        elif char in _CLOSERS:
            if char != stack[-1]:
                return -1
            stack.pop()
            if not stack:
                return i + 1
        i += 1
    return -1


def line_of(text: str, index: int) -> int:
    """1-based line number of *index* in *text*."""
    return text.count("\n", 0, index) + 1


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def _blank(segment: str) -> str:
    return re.sub(r"[^\n]", " ", segment)


def blank_comments(text: str, lexicon: Lexicon = C_LIKE) -> str:
    """Replace every comment in *text* with spaces, preserving newlines.

    String literals are left intact, so ``"http://x"`` is not mistaken for
    a line comment.
    """
    style = lexicon.comments
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        end = _advance_literal(text, i, lexicon)
        if end != i:
            out.append(text[i:end])
            i = end
            continue
        if style in (CommentStyle.C, CommentStyle.PHP):
            if text.startswith("//", i):
                stop = text.find("\n", i)
                stop = n if stop < 0 else stop
                out.append(_blank(text[i:stop]))
                i = stop
                continue
            if text.startswith("/*", i):
                stop = text.find("*/", i + 2)
                stop = n if stop < 0 else stop + 2
                out.append(_blank(text[i:stop]))
                i = stop
                continue
        if text[i] == "#" and style != CommentStyle.C:
            if not (style == CommentStyle.PHP and text.startswith("#[", i)):
                stop = text.find("\n", i)
                stop = n if stop < 0 else stop
                out.append(_blank(text[i:stop]))
                i = stop
                continue
        out.append(text[i])
        i += 1
    return "".join(out)


# ---------------------------------------------------------------------------
# Argument lists
# ---------------------------------------------------------------------------


def split_arguments(
    text: str, lexicon: Lexicon = C_LIKE, separator: str = ",", angle: bool = False
) -> list[str]:
    """Split *text* on *separator* at bracket depth zero.

    Args:
        text: The inside of an argument list, without the outer brackets.
        lexicon: String syntax of the language.
        separator: Single separator character.
        angle: Also treat ``<...>`` as brackets (generic type arguments).

    Returns:
        Stripped, non-empty members in order.
    """
    parts: list[str] = []
    depth = 0
    start = 0
    i = 0
    while i < len(text):
        end = _advance_literal(text, i, lexicon)
        if end != i:
            i = end
            continue
        char = text[i]
        if char in _OPENERS or (angle and char == "<"):
            depth += 1
        elif char in _CLOSERS or (angle and char == ">" and text[i - 1 : i] != "-"):
            depth = max(0, depth - 1)
        elif char == separator and depth == 0:
            parts.append(text[start:i].strip())
            start = i + 1
        i += 1
    parts.append(text[start:].strip())
    return [part for part in parts if part]


@dataclass
class ArgumentList:
    """Positional and keyword members of one call's argument list.

    Values are kept as raw source text; decode them with :func:`unquote` or
    :func:`parse_string_list`.
    """

    positional: list[str] = field(default_factory=list)
    keywords: dict[str, str] = field(default_factory=dict)

    def first(self) -> Optional[str]:
        return self.positional[0] if self.positional else None

    def get(self, *names: str) -> Optional[str]:
        """Raw value of the first keyword in *names* that is present."""
        for name in names:
            if name in self.keywords:
                return self.keywords[name]
        return None

    def string(self, *names: str) -> Optional[str]:
        """Decoded string value of the first present keyword in *names*."""
        raw = self.get(*names)
        return unquote(raw) if raw is not None else None

    def first_string(self) -> Optional[str]:
        """The first positional member if it is a string literal."""
        raw = self.first()
        return unquote(raw) if raw is not None else None

    def path(self, *names: str) -> Optional[str]:
        """The route path: first positional string, else one of *names*."""
        value = self.first_string()
        if value is None and names:
            value = self.string(*names)
        return value


_KEYWORD_PATTERNS = (
    # 'key' => value (PHP arrays)
    re.compile(r"""^(['"])(?P<key>[^'"]+)\1\s*=>\s*(?P<value>.+)$""", re.S),
    # key = value (Python, Java, C#, Rust); not ==, =>, <=, >=, !=
    re.compile(r"^(?P<key>[A-Za-z_][\w.]*)\s*=(?![=>])\s*(?P<value>.+)$", re.S),
    # key: value (Elixir keywords, C# named arguments); not ::
    re.compile(r"^(?P<key>[A-Za-z_]\w*):(?!:)\s*(?P<value>.+)$", re.S),
)


def parse_arguments(text: str, lexicon: Lexicon = C_LIKE) -> ArgumentList:
    """Split an argument list into positional and keyword members."""
    args = ArgumentList()
    for part in split_arguments(text, lexicon):
        for pattern in _KEYWORD_PATTERNS:
            match = pattern.match(part)
            if match:
                args.keywords[match.group("key")] = match.group("value").strip()
                break
        else:
            args.positional.append(part)
    return args


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------

_STRING_PREFIX = re.compile(r"^(?:[rRbBuUfF]{1,2}|@|\$)?(?=[\"'`])")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}
_WORD_SIGIL_RE = re.compile(r"""~w[(\[{<|/'"](.*)[)\]}>|/'"][a-z]*$""", re.S)


def unquote(token: Optional[str]) -> Optional[str]:
    """Decode a single string literal, or return ``None`` if *token* is not one.

    Handles ``'...'``, ``"..."``, triple-quoted and backtick strings plus the
    common prefixes (``r``, ``b``, ``u``, ``f``, C# ``@``). Escapes other than
    ``\\n``, ``\\t``, ``\\r`` and ``\\0`` resolve to the escaped character, so
    regex constraints such as ``\\d+`` survive as ``\\d+``.
    """
    if token is None:
        return None
    text = token.strip()
    prefix = _STRING_PREFIX.match(text)
    if prefix is None:
        return None
    marker = prefix.group(0)
    raw = "r" in marker.lower() or marker == "@"
    body = text[len(marker) :]
    for quote in ('"""', "'''", '"', "'", "`"):
        if len(body) >= 2 * len(quote) and body.startswith(quote) and body.endswith(quote):
            inner = body[len(quote) : -len(quote)]
            break
    else:
        return None
    if raw:
        return inner.replace('""', '"') if marker == "@" else inner
    return re.sub(
        r"\\(.)",
        lambda m: _ESCAPES.get(m.group(1), "\\" + m.group(1) if m.group(1) in "dwsDWS.+*?()[]{}|^$" else m.group(1)),
        inner,
    )


def parse_string_list(token: Optional[str], lexicon: Lexicon = C_LIKE) -> list[str]:
    """Decode a list literal such as ``["GET", "POST"]`` or ``{RequestMethod.GET}``.

    Members that are string literals are unquoted; other members (atoms,
    enum constants) are returned as stripped source text. A bare scalar is
    treated as a one-element list.
    """
    if token is None:
        return []
    text = token.strip()
    if text[:1] in ("[", "(", "{") and read_balanced(text, 0, lexicon) == len(text):
        text = text[1:-1]
    else:
        sigil = _WORD_SIGIL_RE.match(text)
        if sigil is not None:
            return sigil.group(1).split()
    items = []
    for member in split_arguments(text, lexicon):
        value = unquote(member)
        items.append(value if value is not None else member.strip())
    return items


def identifier_tail(name: str) -> str:
    """Last component of a dotted or namespaced name."""
    return re.split(r"\.|::|\\", name.strip())[-1]
