"""Language-neutral facts produced by the source scanners.

Adapters for decorator and annotation frameworks consume these records
instead of raw text, so the same route logic serves both the ``ast`` based
Python scanner and the declaration scanner for Java, C# and Rust.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from routelens.sources.tokens import ArgumentList, identifier_tail


@dataclass
class Decorator:
    """A decorator, annotation or attribute attached to a declaration.

    ``name`` is the dotted name as written (``app.get``, ``GetMapping``,
    ``HttpGet``, ``serde``).
    """

    name: str
    arguments: ArgumentList = field(default_factory=ArgumentList)
    line: int = 0

    @property
    def simple_name(self) -> str:
        return identifier_tail(self.name)


@dataclass
class ParameterFacts:
    """One parameter of a function or method."""

    name: str
    annotation: str = ""
    default: Optional[str] = None
    decorators: list[Decorator] = field(default_factory=list)

    def decorator(self, *names: str) -> Optional[Decorator]:
        for deco in self.decorators:
            if deco.simple_name in names:
                return deco
        return None


@dataclass
class FunctionFacts:
    """A function or method declaration."""

    name: str
    decorators: list[Decorator] = field(default_factory=list)
    parameters: list[ParameterFacts] = field(default_factory=list)
    return_type: str = ""
    docstring: Optional[str] = None
    line: int = 0
    modules: list[str] = field(default_factory=list)
    """Enclosing inline modules, outermost first (Rust ``mod x { ... }``)."""

    def decorator(self, *names: str) -> Optional[Decorator]:
        for deco in self.decorators:
            if deco.simple_name in names:
                return deco
        return None


@dataclass
class FieldFacts:
    """A data member of a class, struct or record."""

    name: str
    type: str = ""
    default: Optional[str] = None
    decorators: list[Decorator] = field(default_factory=list)
    description: Optional[str] = None
    line: int = 0
    is_static: bool = False


@dataclass
class ClassFacts:
    """A class-like declaration with its members."""

    name: str
    kind: str = "class"
    bases: list[str] = field(default_factory=list)
    decorators: list[Decorator] = field(default_factory=list)
    methods: list[FunctionFacts] = field(default_factory=list)
    fields: list[FieldFacts] = field(default_factory=list)
    docstring: Optional[str] = None
    line: int = 0
    inner: list["ClassFacts"] = field(default_factory=list)
    """Classes declared in the body (Django's ``Meta``)."""

    def decorator(self, *names: str) -> Optional[Decorator]:
        for deco in self.decorators:
            if deco.simple_name in names:
                return deco
        return None

    def inner_class(self, name: str) -> Optional["ClassFacts"]:
        for cls in self.inner:
            if cls.name == name:
                return cls
        return None

    def field_named(self, name: str) -> Optional[FieldFacts]:
        for member in self.fields:
            if member.name == name:
                return member
        return None


@dataclass
class CallFacts:
    """A call statement, optionally assigned to a name.

    ``x = APIRouter(prefix="/v1")`` yields ``target="APIRouter"`` and
    ``assigned_to="x"``; ``app.include_router(x)`` yields
    ``target="app.include_router"``.
    """

    target: str
    arguments: ArgumentList = field(default_factory=ArgumentList)
    assigned_to: Optional[str] = None
    line: int = 0

    @property
    def simple_name(self) -> str:
        return identifier_tail(self.target)

    @property
    def receiver(self) -> str:
        """Everything before the last dot (``app`` for ``app.include_router``)."""
        return self.target.rsplit(".", 1)[0] if "." in self.target else ""


@dataclass
class ModuleFacts:
    """Everything a scanner recognised in one file."""

    path: str
    functions: list[FunctionFacts] = field(default_factory=list)
    classes: list[ClassFacts] = field(default_factory=list)
    calls: list[CallFacts] = field(default_factory=list)

    def class_named(self, name: str) -> Optional[ClassFacts]:
        for cls in self.classes:
            if cls.name == name:
                return cls
        return None
