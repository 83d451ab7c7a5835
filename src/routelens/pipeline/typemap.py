"""Source-language type expressions to OpenAPI schemas.

Each supported language has a :class:`TypeTable` describing its primitive
names and the spellings of its list, optional, map and pass-through wrappers.
:func:`map_type` peels exactly one wrapper level per call (recursing into the
inner text) and looks the remaining name up in the primitive table.

Names that are not in the table map to ``string``; model types are turned
into ``$ref`` schemas by the adapters, not here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

from routelens.models import Schema

_DEFAULT_PRIMITIVE = ("string", "")


@dataclass(frozen=True)
class TypeTable:
    """Per-language type vocabulary consumed by :func:`map_type`.

    Attributes:
        language: Language tag the table belongs to.
        primitives: Name to ``(type, format)``; an empty format means none.
        list_wrappers: Generic names producing ``array`` schemas.
        optional_wrappers: Generic names producing nullable schemas.
        map_wrappers: Generic names producing free-form ``object`` schemas.
        transparent_wrappers: Generic names mapped as their inner type
            (futures, JSON extractors, boxes).
        brackets: Opening/closing pairs that delimit generic arguments.
        case_insensitive: Look names up ignoring case.
        nullable_prefix: A leading ``?`` marks a nullable type (PHP).
        nullable_suffix: A trailing ``?`` marks a nullable type (C#).
        array_suffix: A trailing ``[]`` marks an array (Java, C#).
        none_names: Union members meaning "no value" (Python ``X | None``).
        strip_prefixes: Reference markers dropped before mapping (Rust ``&``).
    """

    language: str
    primitives: Mapping[str, tuple[str, str]]
    list_wrappers: frozenset[str] = frozenset()
    optional_wrappers: frozenset[str] = frozenset()
    map_wrappers: frozenset[str] = frozenset()
    transparent_wrappers: frozenset[str] = frozenset()
    brackets: tuple[tuple[str, str], ...] = (("[", "]"), ("<", ">"))
    case_insensitive: bool = False
    nullable_prefix: bool = False
    nullable_suffix: bool = False
    array_suffix: bool = False
    none_names: frozenset[str] = frozenset()
    strip_prefixes: tuple[str, ...] = ()
    _index: dict[str, tuple[str, str]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        index = {self._key(name): value for name, value in self.primitives.items()}
        object.__setattr__(self, "_index", index)

    def _key(self, name: str) -> str:
        return name.lower() if self.case_insensitive else name

    def _matches(self, name: str, spellings: frozenset[str]) -> bool:
        if self.case_insensitive:
            return name.lower() in {s.lower() for s in spellings}
        return name in spellings

    def lookup(self, name: str) -> tuple[str, str]:
        """Primitive mapping of *name*, trying the qualified then the bare name."""
        name = name.strip()
        for candidate in (name, _bare_name(name)):
            found = self._index.get(self._key(candidate))
            if found is not None:
                return found
        return _DEFAULT_PRIMITIVE

    def is_list(self, name: str) -> bool:
        return self._matches(_bare_name(name), self.list_wrappers)

    def is_optional(self, name: str) -> bool:
        return self._matches(_bare_name(name), self.optional_wrappers)

    def is_map(self, name: str) -> bool:
        return self._matches(_bare_name(name), self.map_wrappers)

    def is_transparent(self, name: str) -> bool:
        return self._matches(_bare_name(name), self.transparent_wrappers)

    def is_primitive(self, name: str) -> bool:
        """Whether *name* (bare or qualified) is in the primitive table."""
        name = name.strip()
        return any(
            self._key(candidate) in self._index for candidate in (name, _bare_name(name))
        )


def _bare_name(name: str) -> str:
    """Drop module/package qualifiers: ``typing.List`` -> ``List``."""
    return name.replace("::", ".").rsplit(".", 1)[-1].strip()


def split_generic(expr: str, brackets: tuple[tuple[str, str], ...]) -> Optional[tuple[str, str]]:
    """Split ``Wrapper<inner>`` into ``("Wrapper", "inner")``.

    The first opening bracket of any known pair is paired with the last
    occurrence of its closing bracket, which must end the expression. Inner
    text is returned unsplit, so ``Dict[str, int]`` yields ``"str, int"``.

    Returns:
        ``None`` if *expr* has no complete generic wrapper.
    """
    closers = dict(brackets)
    positions = [(expr.find(opener), opener) for opener in closers if opener in expr]
    if not positions:
        return None
    start, opener = min(positions)
    end = expr.rfind(closers[opener])
    if end <= start or expr[end + 1 :].strip():
        return None
    return expr[:start].strip(), expr[start + 1 : end].strip()


def split_top_level(text: str, separator: str = ",") -> list[str]:
    """Split *text* on *separator* outside any bracket pair."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth = max(0, depth - 1)
        if char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    parts.append("".join(current).strip())
    return [part for part in parts if part]


def _nullable(schema: Schema) -> Schema:
    return schema.model_copy(update={"nullable": True})


def map_type(expr: str, table: TypeTable) -> Schema:
    """Map one source type expression to an OpenAPI :class:`Schema`.

    Example::

        >>> map_type("List[str]", PYTHON).to_openapi()
        {'type': 'array', 'items': {'type': 'string'}}
        >>> map_type("Optional[int]", PYTHON).to_openapi()
        {'type': 'integer', 'nullable': True}

    Args:
        expr: The type as written in the source.
        table: The vocabulary of the source language.

    Returns:
        A schema carrying ``type``, ``format``, ``nullable`` and ``items``.
    """
    text = expr.strip()
    for prefix in table.strip_prefixes:
        if text.startswith(prefix):
            text = text[len(prefix) :].strip()
    if not text:
        return Schema(type=_DEFAULT_PRIMITIVE[0])

    if table.none_names and "|" in text:
        members = split_top_level(text, "|")
        present = [m for m in members if m not in table.none_names]
        if len(present) < len(members):
            if len(present) == 1:
                return _nullable(map_type(present[0], table))
            return Schema(type=_DEFAULT_PRIMITIVE[0], nullable=True)
    if table.nullable_prefix and text.startswith("?"):
        return _nullable(map_type(text[1:], table))
    if table.nullable_suffix and text.endswith("?"):
        return _nullable(map_type(text[:-1], table))
    if table.array_suffix and text.endswith("[]") and not table.is_primitive(text):
        return Schema(type="array", items=map_type(text[:-2], table))

    generic = split_generic(text, table.brackets)
    if generic is not None:
        wrapper, inner = generic
        if table.is_list(wrapper):
            return Schema(type="array", items=map_type(inner, table))
        if table.is_optional(wrapper):
            return _nullable(map_type(inner, table))
        if table.is_map(wrapper):
            return Schema(type="object")
        if table.is_transparent(wrapper):
            args = split_top_level(inner)
            return map_type(args[0] if args else "", table)
        text = wrapper

    openapi_type, fmt = table.lookup(text)
    return Schema(type=openapi_type, format=fmt or None)


# ---------------------------------------------------------------------------
# Language tables
# ---------------------------------------------------------------------------

_DATE_TIME = ("string", "date-time")
_DATE = ("string", "date")
_TIME = ("string", "time")
_UUID = ("string", "uuid")
_BINARY = ("string", "binary")
_STRING = ("string", "")
_INTEGER = ("integer", "")
_INT32 = ("integer", "int32")
_INT64 = ("integer", "int64")
_NUMBER = ("number", "")
_FLOAT = ("number", "float")
_DOUBLE = ("number", "double")
_BOOLEAN = ("boolean", "")
_OBJECT = ("object", "")
_ARRAY = ("array", "")

PYTHON = TypeTable(
    language="python",
    primitives={
        "str": _STRING,
        "int": _INTEGER,
        "float": _NUMBER,
        "Decimal": _NUMBER,
        "bool": _BOOLEAN,
        "datetime": _DATE_TIME,
        "date": _DATE,
        "time": _TIME,
        "UUID": _UUID,
        "bytes": _BINARY,
        "EmailStr": ("string", "email"),
        "HttpUrl": ("string", "uri"),
        "AnyUrl": ("string", "uri"),
        "Any": _OBJECT,
        "dict": _OBJECT,
        "Dict": _OBJECT,
        "object": _OBJECT,
        "list": _ARRAY,
        "List": _ARRAY,
        "set": _ARRAY,
        "Set": _ARRAY,
        "tuple": _ARRAY,
        "Tuple": _ARRAY,
        "frozenset": _ARRAY,
    },
    list_wrappers=frozenset({"List", "list", "Set", "set", "Sequence", "tuple", "Tuple", "FrozenSet", "frozenset"}),
    optional_wrappers=frozenset({"Optional"}),
    map_wrappers=frozenset({"Dict", "dict", "Mapping"}),
    transparent_wrappers=frozenset({"Annotated"}),
    brackets=(("[", "]"),),
    none_names=frozenset({"None", "NoneType"}),
)

JAVA = TypeTable(
    language="java",
    primitives={
        "String": _STRING,
        "char": _STRING,
        "Character": _STRING,
        "int": _INT32,
        "Integer": _INT32,
        "short": _INTEGER,
        "Short": _INTEGER,
        "byte": _INTEGER,
        "Byte": _INTEGER,
        "long": _INT64,
        "Long": _INT64,
        "BigInteger": _INTEGER,
        "float": _FLOAT,
        "Float": _FLOAT,
        "double": _DOUBLE,
        "Double": _DOUBLE,
        "BigDecimal": _NUMBER,
        "boolean": _BOOLEAN,
        "Boolean": _BOOLEAN,
        "LocalDateTime": _DATE_TIME,
        "ZonedDateTime": _DATE_TIME,
        "OffsetDateTime": _DATE_TIME,
        "Instant": _DATE_TIME,
        "Date": _DATE_TIME,
        "LocalDate": _DATE,
        "LocalTime": _TIME,
        "OffsetTime": _TIME,
        "UUID": _UUID,
        "byte[]": _BINARY,
        "Object": _OBJECT,
    },
    list_wrappers=frozenset({"List", "ArrayList", "LinkedList", "Collection", "Set", "HashSet", "Iterable", "Flux"}),
    optional_wrappers=frozenset({"Optional"}),
    map_wrappers=frozenset({"Map", "HashMap", "LinkedHashMap", "TreeMap"}),
    transparent_wrappers=frozenset({"ResponseEntity", "CompletableFuture", "Mono", "HttpEntity"}),
    brackets=(("<", ">"),),
    array_suffix=True,
)

SCALA = TypeTable(
    language="scala",
    primitives={
        "String": _STRING,
        "Char": _STRING,
        "Int": _INT32,
        "Integer": _INT32,
        "Short": _INTEGER,
        "Byte": _INTEGER,
        "Long": _INT64,
        "BigInt": _INTEGER,
        "Float": _FLOAT,
        "Double": _DOUBLE,
        "BigDecimal": _NUMBER,
        "Boolean": _BOOLEAN,
        "LocalDateTime": _DATE_TIME,
        "ZonedDateTime": _DATE_TIME,
        "Instant": _DATE_TIME,
        "DateTime": _DATE_TIME,
        "LocalDate": _DATE,
        "LocalTime": _TIME,
        "UUID": _UUID,
        "JsValue": _OBJECT,
    },
    list_wrappers=frozenset({"List", "Seq", "Vector", "Array", "Set", "IndexedSeq", "Iterable"}),
    optional_wrappers=frozenset({"Option"}),
    map_wrappers=frozenset({"Map"}),
    transparent_wrappers=frozenset({"Future"}),
    brackets=(("[", "]"),),
)

CSHARP = TypeTable(
    language="csharp",
    primitives={
        "string": _STRING,
        "String": _STRING,
        "char": _STRING,
        "int": _INT32,
        "Int32": _INT32,
        "uint": _INTEGER,
        "UInt32": _INTEGER,
        "short": _INTEGER,
        "Int16": _INTEGER,
        "ushort": _INTEGER,
        "byte": _INTEGER,
        "long": _INT64,
        "Int64": _INT64,
        "ulong": _INTEGER,
        "UInt64": _INTEGER,
        "float": _FLOAT,
        "Single": _FLOAT,
        "double": _DOUBLE,
        "Double": _DOUBLE,
        "decimal": _NUMBER,
        "Decimal": _NUMBER,
        "bool": _BOOLEAN,
        "Boolean": _BOOLEAN,
        "DateTime": _DATE_TIME,
        "DateTimeOffset": _DATE_TIME,
        "DateOnly": _DATE,
        "TimeOnly": _TIME,
        "TimeSpan": _TIME,
        "Guid": _UUID,
        "byte[]": _BINARY,
        "object": _OBJECT,
        "IActionResult": _OBJECT,
    },
    list_wrappers=frozenset({"List", "IList", "IEnumerable", "ICollection", "IReadOnlyList", "IReadOnlyCollection", "HashSet", "ISet"}),
    optional_wrappers=frozenset({"Nullable"}),
    map_wrappers=frozenset({"Dictionary", "IDictionary", "IReadOnlyDictionary"}),
    transparent_wrappers=frozenset({"ActionResult", "Task", "ValueTask"}),
    brackets=(("<", ">"),),
    nullable_suffix=True,
    array_suffix=True,
)

PHP = TypeTable(
    language="php",
    primitives={
        "string": _STRING,
        "int": _INTEGER,
        "integer": _INTEGER,
        "float": _NUMBER,
        "double": _NUMBER,
        "decimal": _NUMBER,
        "real": _NUMBER,
        "bool": _BOOLEAN,
        "boolean": _BOOLEAN,
        "array": ("array", ""),
        "iterable": ("array", ""),
        "collection": ("array", ""),
        "DateTime": _DATE_TIME,
        "DateTimeInterface": _DATE_TIME,
        "DateTimeImmutable": _DATE_TIME,
        "Carbon": _DATE_TIME,
        "datetime": _DATE_TIME,
        "immutable_datetime": _DATE_TIME,
        "timestamp": _DATE_TIME,
        "date": _DATE,
        "immutable_date": _DATE,
        "object": _OBJECT,
        "mixed": _OBJECT,
        "json": _OBJECT,
    },
    list_wrappers=frozenset({"array", "list"}),
    brackets=(("<", ">"),),
    case_insensitive=True,
    nullable_prefix=True,
    array_suffix=True,
)

RUST = TypeTable(
    language="rust",
    primitives={
        "String": _STRING,
        "str": _STRING,
        "char": _STRING,
        "i8": _INTEGER,
        "i16": _INTEGER,
        "i32": _INT32,
        "i64": _INT64,
        "i128": _INTEGER,
        "isize": _INTEGER,
        "u8": _INTEGER,
        "u16": _INTEGER,
        "u32": _INT32,
        "u64": _INT64,
        "u128": _INTEGER,
        "usize": _INTEGER,
        "f32": _FLOAT,
        "f64": _DOUBLE,
        "bool": _BOOLEAN,
        "Uuid": _UUID,
        "DateTime": _DATE_TIME,
        "NaiveDateTime": _DATE_TIME,
        "NaiveDate": _DATE,
        "NaiveTime": _TIME,
        "Value": _OBJECT,
    },
    list_wrappers=frozenset({"Vec", "VecDeque", "HashSet", "BTreeSet"}),
    optional_wrappers=frozenset({"Option"}),
    map_wrappers=frozenset({"HashMap", "BTreeMap"}),
    transparent_wrappers=frozenset({"Json", "Box", "Rc", "Arc", "Form", "Cow"}),
    brackets=(("<", ">"),),
    strip_prefixes=("&", "mut "),
)

ELIXIR = TypeTable(
    language="elixir",
    primitives={
        "string": _STRING,
        "binary": _STRING,
        "id": _INTEGER,
        "integer": _INTEGER,
        "float": _NUMBER,
        "decimal": _NUMBER,
        "boolean": _BOOLEAN,
        "binary_id": _UUID,
        "uuid": _UUID,
        "date": _DATE,
        "time": _TIME,
        "naive_datetime": _DATE_TIME,
        "naive_datetime_usec": _DATE_TIME,
        "utc_datetime": _DATE_TIME,
        "utc_datetime_usec": _DATE_TIME,
        "map": _OBJECT,
    },
    list_wrappers=frozenset({"array"}),
    map_wrappers=frozenset({"map"}),
    brackets=(("(", ")"),),
)

GLEAM = TypeTable(
    language="gleam",
    primitives={
        "String": _STRING,
        "Int": _INTEGER,
        "Float": _NUMBER,
        "Bool": _BOOLEAN,
        "BitArray": _BINARY,
        "Json": _OBJECT,
    },
    list_wrappers=frozenset({"List", "Set"}),
    optional_wrappers=frozenset({"Option"}),
    map_wrappers=frozenset({"Dict"}),
    brackets=(("(", ")"),),
)

RUBY = TypeTable(
    language="ruby",
    primitives={
        "String": _STRING,
        "Symbol": _STRING,
        "Integer": _INTEGER,
        "Float": _NUMBER,
        "BigDecimal": _NUMBER,
        "TrueClass": _BOOLEAN,
        "FalseClass": _BOOLEAN,
        "Boolean": _BOOLEAN,
        "Time": _DATE_TIME,
        "DateTime": _DATE_TIME,
        "Date": _DATE,
        "Hash": _OBJECT,
    },
    list_wrappers=frozenset({"Array"}),
    map_wrappers=frozenset({"Hash"}),
)

TABLES: dict[str, TypeTable] = {
    table.language: table
    for table in (PYTHON, JAVA, SCALA, CSHARP, PHP, RUST, ELIXIR, GLEAM, RUBY)
}
"""Type tables by language tag."""
