"""Statement splitting for ``do ... end`` languages (Elixir, Ruby).

The router DSLs of Phoenix and Sinatra nest through ``do``/``end`` blocks
(``scope "/api" do``, ``namespace '/v1' do``). :func:`statements` turns
comment-free source into logical statements, joining lines inside open
brackets or after a trailing comma, and reports how each statement changes
block depth. Blocks opened and closed within one statement cancel out.
"""

from __future__ import annotations

import re
from typing import NamedTuple, Pattern

from routelens.sources.tokens import C_LIKE, Lexicon, is_string_start, skip_string

ELIXIR_OPENERS = re.compile(r"(?<![\w:.])(?:do\b(?!:)|fn\b)")
RUBY_OPENERS = re.compile(
    r"(?<![\w:.])do\b(?!:)|^\s*(?:if|unless|while|until|case|def|class|module|begin)\b"
    r"|=\s*(?:if|unless|case|begin)\b",
    re.M,
)
END = re.compile(r"(?<![\w:.])end\b(?!:)")


class Statement(NamedTuple):
    """One logical statement.

    Attributes:
        line: 1-based line the statement starts on.
        text: Statement text, lines joined with a space and stripped.
        closes: Enclosing blocks the statement closes before anything else.
        opens: Blocks left open once the statement ends.
    """

    line: int
    text: str
    closes: int
    opens: int


def mask_strings(text: str, lexicon: Lexicon = C_LIKE) -> str:
    """Replace string literal contents with spaces; quotes and length are kept."""
    out: list[str] = []
    i = 0
    while i < len(text):
        if is_string_start(text, i, lexicon):
            end = skip_string(text, i, lexicon)
            literal = text[i:end]
            out.append(literal[0] + re.sub(r"[^\n]", " ", literal[1:-1]) + literal[-1:] if end - i > 1 else literal)
            i = end
            continue
        out.append(text[i])
        i += 1
    return "".join(out)


def _depth(masked: str) -> int:
    return sum(masked.count(c) for c in "([{") - sum(masked.count(c) for c in ")]}")


def statements(code: str, openers: Pattern[str], lexicon: Lexicon = C_LIKE) -> list[Statement]:
    """Split comment-free *code* into logical statements with block changes."""
    masked_lines = mask_strings(code, lexicon).split("\n")
    lines = code.split("\n")
    result: list[Statement] = []
    i = 0
    while i < len(lines):
        start = i
        text = [lines[i].strip()]
        masked = [masked_lines[i].strip()]
        while i + 1 < len(lines) and (_depth(" ".join(masked)) > 0 or masked[-1].endswith((",", "\\"))):
            i += 1
            text.append(lines[i].strip())
            masked.append(masked_lines[i].strip())
        i += 1
        joined = " ".join(masked)
        if not joined:
            continue

        events = sorted(
            [(m.start(), 1) for m in openers.finditer(joined)] + [(m.start(), -1) for m in END.finditer(joined)]
        )
        closes = opens = 0
        for _, kind in events:
            if kind > 0:
                opens += 1
            elif opens:
                opens -= 1
            else:
                closes += 1
        result.append(Statement(start + 1, " ".join(text).strip(), closes, opens))
    return result
