"""Declaration scanner for brace-delimited, annotation-driven languages.

Java (``@GetMapping("/x")``), C# (``[HttpGet("x")]``) and Rust
(``#[get("/x")]``) share a shape: metadata attached to a declaration header
that ends at ``{`` or ``;``. :func:`scan_declarations` walks a file once,
tracking brace nesting, and records

* classes, records, structs and impl blocks, with their annotations, bases
  and data members (Java fields, C# auto-properties, record components,
  Rust struct fields);
* methods and free functions, with annotations, typed parameters (and the
  annotations on each parameter) and return type.

Method bodies are skipped wholesale; nothing inside them is a declaration
the adapters care about. Comments are blanked first, strings are honoured
while matching brackets.
"""

from __future__ import annotations

import enum
import re
from typing import Optional

from routelens.sources.facts import (
    ClassFacts,
    Decorator,
    FieldFacts,
    FunctionFacts,
    ModuleFacts,
    ParameterFacts,
)
from routelens.sources.tokens import (
    CSHARP,
    C_LIKE,
    RUST,
    ArgumentList,
    Lexicon,
    blank_comments,
    line_of,
    parse_arguments,
    read_balanced,
    skip_string,
    split_arguments,
    is_string_start,
)


class Syntax(str, enum.Enum):
    """Annotation syntax family of a source file."""

    JAVA = "java"
    CSHARP = "csharp"
    RUST = "rust"


_LEXICONS: dict[Syntax, Lexicon] = {
    Syntax.JAVA: C_LIKE,
    Syntax.CSHARP: CSHARP,
    Syntax.RUST: RUST,
}

_MODIFIERS = frozenset(
    {
        "public", "private", "protected", "internal", "static", "final", "abstract",
        "sealed", "override", "virtual", "async", "readonly", "const", "transient",
        "volatile", "synchronized", "native", "default", "strictfp", "partial",
        "required", "new", "extern", "unsafe", "pub", "open", "data", "fn",
    }
)
_STATIC_MODIFIERS = frozenset({"static", "const"})
_CONTROL_WORDS = frozenset(
    {"if", "for", "foreach", "while", "switch", "catch", "using", "lock", "return",
     "new", "throw", "synchronized", "try", "else", "do", "match", "loop", "fixed"}
)

_CLASS_RE = re.compile(
    r"(?:^|[\s@])(?P<kind>class|interface|record|enum|struct|trait|impl|mod|union)\b"
    r"(?:\s+(?P<name>[A-Za-z_]\w*))?"
)
_RUST_FN_RE = re.compile(r"\bfn\s+(?P<name>[A-Za-z_]\w*)")
_IDENT_BEFORE_RE = re.compile(r"([A-Za-z_]\w*)\s*(?:<[^()]*>)?\s*$")
_ANNOTATION_NAME_RE = re.compile(r"@(?!interface\b)([A-Za-z_][\w.]*)")


def scan_declarations(source: str, path: str, syntax: Syntax) -> ModuleFacts:
    """Extract class, member and function facts from *source*.

    Args:
        source: File text.
        path: File path recorded on the facts.
        syntax: The annotation family of the file's language.

    Returns:
        The file's facts; unrecognised constructs are simply absent.
    """
    return _Scanner(source, path, Syntax(syntax)).scan()


class _Scanner:
    def __init__(self, source: str, path: str, syntax: Syntax) -> None:
        self.syntax = syntax
        self.lexicon = _LEXICONS[syntax]
        self.text = blank_comments(source, self.lexicon)
        self.facts = ModuleFacts(path=path)
        self.pending: list[Decorator] = []
        # One entry per open brace: the class it opened, or None.
        self.stack: list[Optional[ClassFacts]] = []
        # Open inline modules as (brace depth inside the module, name).
        self.modules: list[tuple[int, str]] = []

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def scan(self) -> ModuleFacts:
        text = self.text
        i = 0
        while i < len(text):
            char = text[i]
            if char.isspace():
                i += 1
            elif char == "}":
                if self.stack:
                    if self.modules and self.modules[-1][0] == len(self.stack):
                        self.modules.pop()
                    self.stack.pop()
                self.pending.clear()
                i += 1
            elif char in ";,":
                self.pending.clear()
                i += 1
            elif self.syntax == Syntax.CSHARP and char == "#":
                stop = text.find("\n", i)
                i = len(text) if stop < 0 else stop
            else:
                after = self._annotation(i)
                i = after if after is not None else self._statement(i)
        return self.facts

    @property
    def current_class(self) -> Optional[ClassFacts]:
        for entry in reversed(self.stack):
            if entry is not None:
                return entry
        return None

    @property
    def directly_in_class(self) -> bool:
        return bool(self.stack) and self.stack[-1] is not None

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------

    def _annotation(self, i: int) -> Optional[int]:
        """Consume annotations at *i* into ``self.pending``; return the new index."""
        text = self.text
        if self.syntax == Syntax.JAVA and text[i] == "@":
            match = _ANNOTATION_NAME_RE.match(text, i)
            if match is None:
                return None
            end = match.end()
            args = ArgumentList()
            k = _skip_ws(text, end)
            if k < len(text) and text[k] == "(":
                close = read_balanced(text, k, self.lexicon)
                if close < 0:
                    return len(text)
                args = parse_arguments(text[k + 1 : close - 1], self.lexicon)
                end = close
            self.pending.append(Decorator(match.group(1), args, line_of(text, i)))
            return end

        if self.syntax == Syntax.CSHARP and text[i] == "[":
            close = read_balanced(text, i, self.lexicon)
            if close < 0:
                return len(text)
            self.pending.extend(self._attribute_list(text[i + 1 : close - 1], line_of(text, i)))
            return close

        if self.syntax == Syntax.RUST and text.startswith("#", i):
            k = i + 1
            inner_attr = text.startswith("!", k)
            if inner_attr:
                k += 1
            if not text.startswith("[", k):
                return None
            close = read_balanced(text, k, self.lexicon)
            if close < 0:
                return len(text)
            if not inner_attr:
                deco = _rust_attribute(text[k + 1 : close - 1], line_of(text, i), self.lexicon)
                if deco is not None:
                    self.pending.append(deco)
            return close
        return None

    def _attribute_list(self, inner: str, line: int) -> list[Decorator]:
        decorators = []
        for member in split_arguments(inner, self.lexicon):
            member = re.sub(r"^(?:assembly|module|return|method|field|param|type|property)\s*:\s*", "", member)
            deco = _call_like(member, line, self.lexicon)
            if deco is not None:
                decorators.append(deco)
        return decorators

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _header_end(self, i: int) -> int:
        """Index of the ``{``, ``;`` or ``}`` ending the header that starts at *i*."""
        text = self.text
        depth = 0
        k = i
        while k < len(text):
            if is_string_start(text, k, self.lexicon):
                k = skip_string(text, k, self.lexicon)
                continue
            char = text[k]
            if char in "([":
                depth += 1
            elif char in ")]":
                depth = max(0, depth - 1)
            elif depth == 0 and char in "{;}":
                return k
            k += 1
        return len(text)

    def _statement(self, i: int) -> int:
        text = self.text
        end = self._header_end(i)
        header = text[i:end].strip()
        line = line_of(text, i)
        terminator = text[end] if end < len(text) else ""
        decorators, self.pending = self.pending, []

        if terminator == "}":
            return end

        body_end = len(text)
        if terminator == "{":
            close = read_balanced(text, end, self.lexicon)
            body_end = len(text) if close < 0 else close

        class_match = _CLASS_RE.search(" " + header)
        if (
            class_match
            and (class_match.group("name") or class_match.group("kind") == "impl")
            and not _paren_before(header, class_match.start())
        ):
            return self._class(header, class_match, decorators, line, terminator, end, body_end)

        function = self._function(header, decorators, line)
        if function is not None:
            function.modules = [name for _, name in self.modules]
            owner = self.current_class if self.directly_in_class else None
            if owner is not None:
                owner.methods.append(function)
            else:
                self.facts.functions.append(function)
            return body_end if terminator == "{" else end + 1

        if self.directly_in_class:
            owner = self.stack[-1]
            if owner is None:
                return end + 1
            if terminator == ";" and self.syntax != Syntax.RUST:
                member = _field(header, decorators, line, self.lexicon)
                if member is not None:
                    owner.fields.append(member)
                return end + 1
            if terminator == "{" and self.syntax == Syntax.CSHARP:
                body = text[end + 1 : body_end - 1]
                if re.search(r"\b(get|set|init)\b", body):
                    member = _field(header, decorators, line, self.lexicon)
                    after = _skip_ws(text, body_end)
                    if text.startswith("=", after) and not text.startswith("=>", after):
                        stop = self._header_end(after + 1)
                        if member is not None:
                            member.default = text[after + 1 : stop].strip()
                        body_end = stop + 1
                    if member is not None:
                        owner.fields.append(member)
                    return body_end

        if terminator == "{":
            self.stack.append(None)
            return end + 1
        return end + 1 if end < len(text) else end

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def _class(
        self,
        header: str,
        match: re.Match[str],
        decorators: list[Decorator],
        line: int,
        terminator: str,
        end: int,
        body_end: int,
    ) -> int:
        kind = match.group("kind")
        name = match.group("name") or ""
        rest = header[match.end() - 1 :] if match.end() > 0 else ""

        if kind == "impl":
            name = _impl_target(header)
        if kind == "mod":
            if terminator == "{":
                self.stack.append(None)
                self.modules.append((len(self.stack), name))
            return end + 1

        cls = ClassFacts(
            name=name,
            kind=kind,
            bases=_bases(rest, self.syntax),
            decorators=decorators,
            line=decorators[0].line if decorators else line,
        )
        self.facts.classes.append(cls)

        if kind == "record":
            cls.fields.extend(self._record_components(rest, line))

        if terminator != "{":
            return end + 1
        if kind == "enum":
            return body_end
        if self.syntax == Syntax.RUST and kind in ("struct", "union"):
            cls.fields.extend(self._struct_fields(end + 1, body_end - 1))
            return body_end
        self.stack.append(cls)
        return end + 1

    def _record_components(self, rest: str, line: int) -> list[FieldFacts]:
        paren = rest.find("(")
        if paren < 0:
            return []
        close = read_balanced(rest, paren, self.lexicon)
        if close < 0:
            return []
        members = []
        for param in self._parameters(rest[paren + 1 : close - 1]):
            members.append(
                FieldFacts(
                    name=param.name,
                    type=param.annotation,
                    default=param.default,
                    decorators=param.decorators,
                    line=line,
                )
            )
        return members

    def _struct_fields(self, start: int, stop: int) -> list[FieldFacts]:
        text = self.text
        members = []
        cursor = start
        for entry in split_arguments(text[start:stop], self.lexicon, angle=True):
            offset = text.find(entry, cursor, stop)
            if offset >= 0:
                cursor = offset + len(entry)
            decorators: list[Decorator] = []
            body = entry
            while body.startswith("#"):
                bracket = body.find("[")
                close = read_balanced(body, bracket, self.lexicon) if bracket >= 0 else -1
                if close < 0:
                    break
                deco = _rust_attribute(body[bracket + 1 : close - 1], 0, self.lexicon)
                if deco is not None:
                    decorators.append(deco)
                body = body[close:].strip()
            body = re.sub(r"^pub(?:\s*\([^)]*\))?\s+", "", body)
            name, sep, type_text = body.partition(":")
            if not sep or not re.fullmatch(r"[A-Za-z_]\w*", name.strip()):
                continue
            line = line_of(text, offset) if offset >= 0 else 0
            for deco in decorators:
                deco.line = line
            members.append(
                FieldFacts(name=name.strip(), type=type_text.strip(), decorators=decorators, line=line)
            )
        return members

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def _function(
        self, header: str, decorators: list[Decorator], line: int
    ) -> Optional[FunctionFacts]:
        if self.syntax == Syntax.RUST:
            match = _RUST_FN_RE.search(header)
            if match is None:
                return None
            name = match.group("name")
            paren = header.find("(", match.end())
            prefix = ""
        else:
            paren = _first_top_level_paren(header)
            if paren < 0:
                return None
            before = header[:paren]
            if "=" in before or "=>" in before:
                return None
            ident = _IDENT_BEFORE_RE.search(before)
            if ident is None:
                return None
            name = ident.group(1)
            if name in _CONTROL_WORDS or name in _MODIFIERS:
                return None
            prefix = before[: ident.start()]
            owner = self.current_class
            if owner is not None and name == owner.name:
                return None
            if not prefix.strip() and self.syntax == Syntax.JAVA:
                return None
        if paren < 0:
            return None
        close = read_balanced(header, paren, self.lexicon)
        if close < 0:
            return None

        if self.syntax == Syntax.RUST:
            tail = header[close:]
            arrow = tail.find("->")
            return_type = ""
            if arrow >= 0:
                return_type = re.split(r"\bwhere\b", tail[arrow + 2 :])[0].strip()
        else:
            inline, prefix = _strip_inline_annotations(prefix, line, self.lexicon)
            decorators = decorators + inline
            return_type = " ".join(w for w in prefix.split() if w not in _MODIFIERS).strip()
            return_type = re.sub(r"^<[^()]*>\s*", "", return_type)

        return FunctionFacts(
            name=name,
            decorators=decorators,
            parameters=self._parameters(header[paren + 1 : close - 1]),
            return_type=return_type,
            line=decorators[0].line if decorators else line,
        )

    def _parameters(self, text: str) -> list[ParameterFacts]:
        params = []
        for raw in split_arguments(text, self.lexicon, angle=True):
            if self.syntax == Syntax.RUST:
                param = _rust_param(raw)
            else:
                param = _typed_param(raw, self.syntax, self.lexicon)
            if param is not None:
                params.append(param)
        return params


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _skip_ws(text: str, i: int) -> int:
    while i < len(text) and text[i].isspace():
        i += 1
    return i


def _first_top_level_paren(header: str) -> int:
    depth = 0
    for k, char in enumerate(header):
        if char == "<":
            depth += 1
        elif char == ">":
            depth = max(0, depth - 1)
        elif char == "(" and depth == 0:
            return k
    return -1


def _paren_before(header: str, position: int) -> bool:
    paren = header.find("(")
    return 0 <= paren < position - 1


def _call_like(member: str, line: int, lexicon: Lexicon) -> Optional[Decorator]:
    """``Name`` or ``Name(args)`` as a :class:`Decorator`."""
    match = re.match(r"\s*([A-Za-z_][\w.:]*)\s*", member)
    if match is None:
        return None
    rest = member[match.end() :]
    args = ArgumentList()
    if rest.startswith("("):
        close = read_balanced(rest, 0, lexicon)
        if close > 0:
            args = parse_arguments(rest[1 : close - 1], lexicon)
    return Decorator(match.group(1), args, line)


def _rust_attribute(inner: str, line: int, lexicon: Lexicon) -> Optional[Decorator]:
    eq = re.match(r"\s*([A-Za-z_][\w:]*)\s*=\s*(.+)$", inner, re.S)
    if eq:
        return Decorator(eq.group(1), ArgumentList(positional=[eq.group(2).strip()]), line)
    return _call_like(inner, line, lexicon)


def _strip_inline_annotations(
    prefix: str, line: int, lexicon: Lexicon
) -> tuple[list[Decorator], str]:
    """Pull ``@Annotation(...)`` tokens out of a method header prefix."""
    decorators = []
    out = prefix
    while True:
        match = _ANNOTATION_NAME_RE.search(out)
        if match is None:
            break
        end = match.end()
        args = ArgumentList()
        k = _skip_ws(out, end)
        if k < len(out) and out[k] == "(":
            close = read_balanced(out, k, lexicon)
            if close > 0:
                args = parse_arguments(out[k + 1 : close - 1], lexicon)
                end = close
        decorators.append(Decorator(match.group(1), args, line))
        out = out[: match.start()] + " " + out[end:]
    return decorators, out


def _bases(rest: str, syntax: Syntax) -> list[str]:
    rest = re.split(r"\bwhere\b", rest)[0]
    if syntax == Syntax.JAVA:
        bases = []
        for keyword in ("extends", "implements"):
            match = re.search(rf"\b{keyword}\s+(.+?)(?=\bimplements\b|\bextends\b|$)", rest, re.S)
            if match:
                bases.extend(split_arguments(match.group(1), C_LIKE, angle=True))
        return [_strip_generics(b) for b in bases]
    if syntax == Syntax.CSHARP:
        depth = 0
        for k, char in enumerate(rest):
            if char in "(<":
                depth += 1
            elif char in ")>":
                depth = max(0, depth - 1)
            elif char == ":" and depth == 0:
                return [_strip_generics(b) for b in split_arguments(rest[k + 1 :], CSHARP, angle=True)]
    return []


def _strip_generics(name: str) -> str:
    return re.sub(r"<.*>$", "", name.strip(), flags=re.S).strip()


def _impl_target(header: str) -> str:
    body = re.sub(r"^.*?\bimpl\b\s*(?:<[^{]*?>)?", "", header, flags=re.S)
    if " for " in body:
        body = body.split(" for ", 1)[1]
    match = re.match(r"\s*([A-Za-z_][\w:]*)", body)
    return match.group(1).rsplit("::", 1)[-1] if match else ""


def _split_default(text: str) -> tuple[str, Optional[str]]:
    depth = 0
    for k, char in enumerate(text):
        if char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth = max(0, depth - 1)
        elif char == "=" and depth == 0 and text[k + 1 : k + 2] not in ("=", ">"):
            return text[:k].strip(), text[k + 1 :].strip()
    return text.strip(), None


def _typed_param(raw: str, syntax: Syntax, lexicon: Lexicon) -> Optional[ParameterFacts]:
    """``@Ann Type name`` (Java) or ``[Attr] Type name = default`` (C#)."""
    text = raw.strip()
    decorators: list[Decorator] = []
    while text:
        if syntax == Syntax.JAVA and text.startswith("@"):
            match = _ANNOTATION_NAME_RE.match(text)
            if match is None:
                break
            end = match.end()
            args = ArgumentList()
            k = _skip_ws(text, end)
            if k < len(text) and text[k] == "(":
                close = read_balanced(text, k, lexicon)
                if close > 0:
                    args = parse_arguments(text[k + 1 : close - 1], lexicon)
                    end = close
            decorators.append(Decorator(match.group(1), args))
            text = text[end:].strip()
        elif syntax == Syntax.CSHARP and text.startswith("["):
            close = read_balanced(text, 0, lexicon)
            if close < 0:
                break
            for member in split_arguments(text[1 : close - 1], lexicon):
                deco = _call_like(member, 0, lexicon)
                if deco is not None:
                    decorators.append(deco)
            text = text[close:].strip()
        else:
            break

    declaration, default = _split_default(text)
    words = declaration.split()
    while words and words[0] in ("final", "this", "ref", "out", "in", "params", "scoped"):
        words.pop(0)
    declaration = " ".join(words)
    match = re.match(r"^(?P<type>.+?)\s*(?:\.\.\.)?\s*\b(?P<name>[A-Za-z_]\w*)$", declaration, re.S)
    if match is None:
        return None
    return ParameterFacts(
        name=match.group("name"),
        annotation=match.group("type").strip(),
        default=default,
        decorators=decorators,
    )


def _rust_param(raw: str) -> Optional[ParameterFacts]:
    text = raw.strip()
    if re.fullmatch(r"&?\s*(?:'\w+\s+)?(?:mut\s+)?self", text):
        return None
    pattern, sep, type_text = text.partition(":")
    if not sep:
        return None
    pattern = re.sub(r"^mut\s+", "", pattern.strip())
    # Destructuring patterns such as `Json(body)` bind the inner name.
    inner = re.search(r"\(\s*(?:mut\s+)?([A-Za-z_]\w*)\s*\)$", pattern)
    name = inner.group(1) if inner else pattern
    if not re.fullmatch(r"[A-Za-z_]\w*", name):
        return None
    return ParameterFacts(name=name, annotation=type_text.strip())


def _field(
    header: str, decorators: list[Decorator], line: int, lexicon: Lexicon
) -> Optional[FieldFacts]:
    """A Java/C# field or C# property declaration header."""
    declaration, default = _split_default(header)
    if "(" in declaration:
        return None
    words = declaration.split()
    is_static = any(word in _STATIC_MODIFIERS for word in words)
    words = [word for word in words if word not in _MODIFIERS]
    if len(words) < 2:
        return None
    name = words[-1]
    if not re.fullmatch(r"[A-Za-z_]\w*", name):
        return None
    return FieldFacts(
        name=name,
        type=" ".join(words[:-1]),
        default=default,
        decorators=decorators,
        line=decorators[0].line if decorators else line,
        is_static=is_static,
    )
