"""AST-based fact extraction for Python source files.

Parses a module with :mod:`ast` and records, as plain
:mod:`routelens.sources.facts` records:

* decorated functions (module level, nested in app factories, or methods),
* classes with their bases, methods, nested classes and fields (plain class
  attributes are recorded as static fields),
* call statements, both bare (``app.include_router(r)``) and assigned
  (``r = APIRouter(prefix="/v1")``).

Argument values are kept as source text (via :func:`ast.unparse`) so the
same decoding helpers serve every language. :func:`pydantic_models` turns
classes derived from ``BaseModel`` into model descriptors.
"""

from __future__ import annotations

import ast
import re
from typing import Iterable, Optional

from routelens.exceptions import SourceParseError
from routelens.models import ModelDescriptor, ModelField
from routelens.sources.facts import (
    CallFacts,
    ClassFacts,
    Decorator,
    FieldFacts,
    FunctionFacts,
    ModuleFacts,
    ParameterFacts,
)
from routelens.sources.tokens import ArgumentList

_FunctionNode = (ast.FunctionDef, ast.AsyncFunctionDef)


def scan_python(source: str, path: str = "") -> ModuleFacts:
    """Extract facts from Python *source*.

    Args:
        source: Module text.
        path: File path recorded on the facts and in errors.

    Returns:
        The module's facts.

    Raises:
        SourceParseError: If *source* is not valid Python.
    """
    try:
        tree = ast.parse(source, filename=path or "<source>")
    except SyntaxError as exc:
        raise SourceParseError(f"Cannot parse {path or 'source'}: {exc}", path) from exc

    facts = ModuleFacts(path=path)
    methods: set[int] = set()

    for node in ast.walk(tree):
        if isinstance(node, ast.ClassDef):
            cls = _class_facts(node)
            facts.classes.append(cls)
            methods.update(id(child) for child in node.body if isinstance(child, _FunctionNode))

    for node in ast.walk(tree):
        if isinstance(node, _FunctionNode) and id(node) not in methods:
            facts.functions.append(_function_facts(node))
        elif isinstance(node, ast.Assign) and isinstance(node.value, ast.Call):
            if len(node.targets) == 1 and isinstance(node.targets[0], ast.Name):
                call = _call_facts(node.value)
                if call is not None:
                    call.assigned_to = node.targets[0].id
                    facts.calls.append(call)
        elif isinstance(node, ast.AnnAssign) and isinstance(node.value, ast.Call):
            if isinstance(node.target, ast.Name):
                call = _call_facts(node.value)
                if call is not None:
                    call.assigned_to = node.target.id
                    facts.calls.append(call)
        elif isinstance(node, ast.Expr) and isinstance(node.value, ast.Call):
            call = _call_facts(node.value)
            if call is not None:
                facts.calls.append(call)

    facts.calls.sort(key=lambda c: c.line)
    facts.functions.sort(key=lambda f: f.line)
    return facts


def find_calls(source: str, names: Iterable[str], path: str = "") -> list[CallFacts]:
    """Every call to one of *names*, wherever it appears, in source order.

    Unlike :func:`scan_python` this also finds calls nested in literals and
    other calls, such as the ``path(...)`` entries of a Django
    ``urlpatterns`` list.

    Raises:
        SourceParseError: If *source* is not valid Python.
    """
    try:
        tree = ast.parse(source, filename=path or "<source>")
    except SyntaxError as exc:
        raise SourceParseError(f"Cannot parse {path or 'source'}: {exc}", path) from exc
    wanted = set(names)
    found = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Call) and dotted_name(node.func).rsplit(".", 1)[-1] in wanted:
            call = _call_facts(node)
            if call is not None:
                found.append(call)
    return sorted(found, key=lambda c: c.line)


# ---------------------------------------------------------------------------
# Node conversion
# ---------------------------------------------------------------------------


def dotted_name(node: ast.AST) -> str:
    """``a.b.c`` for Name/Attribute chains, ``""`` for anything else."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = dotted_name(node.value)
        return f"{base}.{node.attr}" if base else ""
    return ""


def _arguments(call: ast.Call) -> ArgumentList:
    args = ArgumentList()
    for arg in call.args:
        args.positional.append(ast.unparse(arg))
    for kw in call.keywords:
        if kw.arg is not None:
            args.keywords[kw.arg] = ast.unparse(kw.value)
    return args


def _call_facts(call: ast.Call) -> Optional[CallFacts]:
    target = dotted_name(call.func)
    if not target:
        return None
    return CallFacts(target=target, arguments=_arguments(call), line=call.lineno)


def _decorator(node: ast.expr) -> Optional[Decorator]:
    if isinstance(node, ast.Call):
        name = dotted_name(node.func)
        return Decorator(name=name, arguments=_arguments(node), line=node.lineno) if name else None
    name = dotted_name(node)
    return Decorator(name=name, line=node.lineno) if name else None


def _function_facts(node: ast.FunctionDef | ast.AsyncFunctionDef) -> FunctionFacts:
    args = node.args
    positional = [*args.posonlyargs, *args.args]
    defaults: list[Optional[ast.expr]] = [None] * (len(positional) - len(args.defaults))
    defaults.extend(args.defaults)
    pairs = list(zip(positional, defaults)) + list(zip(args.kwonlyargs, args.kw_defaults))

    parameters = [
        ParameterFacts(
            name=arg.arg,
            annotation=ast.unparse(arg.annotation) if arg.annotation is not None else "",
            default=ast.unparse(default) if default is not None else None,
        )
        for arg, default in pairs
        if arg.arg not in ("self", "cls")
    ]
    return FunctionFacts(
        name=node.name,
        decorators=[d for d in (_decorator(n) for n in node.decorator_list) if d is not None],
        parameters=parameters,
        return_type=ast.unparse(node.returns) if node.returns is not None else "",
        docstring=ast.get_docstring(node),
        line=node.decorator_list[0].lineno if node.decorator_list else node.lineno,
    )


def _class_facts(node: ast.ClassDef) -> ClassFacts:
    cls = ClassFacts(
        name=node.name,
        bases=[dotted_name(base) or ast.unparse(base) for base in node.bases],
        decorators=[d for d in (_decorator(n) for n in node.decorator_list) if d is not None],
        docstring=ast.get_docstring(node),
        line=node.lineno,
    )
    for child in node.body:
        if isinstance(child, _FunctionNode):
            cls.methods.append(_function_facts(child))
        elif isinstance(child, ast.AnnAssign) and isinstance(child.target, ast.Name):
            cls.fields.append(_field_facts(child.target.id, child.annotation, child.value, child.lineno))
        elif isinstance(child, ast.Assign) and len(child.targets) == 1 and isinstance(child.targets[0], ast.Name):
            # Unannotated class attributes: serializer fields, view options.
            cls.fields.append(
                FieldFacts(
                    name=child.targets[0].id,
                    default=ast.unparse(child.value),
                    line=child.lineno,
                    is_static=True,
                )
            )
        elif isinstance(child, ast.ClassDef):
            cls.inner.append(_class_facts(child))
    return cls


def _field_facts(
    name: str, annotation: ast.expr, value: Optional[ast.expr], line: int
) -> FieldFacts:
    type_text = ast.unparse(annotation)
    is_class_var = type_text.startswith(("ClassVar", "typing.ClassVar"))
    default: Optional[str] = None
    description: Optional[str] = None

    if isinstance(value, ast.Call) and dotted_name(value.func).rsplit(".", 1)[-1] == "Field":
        for kw in value.keywords:
            if kw.arg == "description" and isinstance(kw.value, ast.Constant):
                description = str(kw.value.value)
            elif kw.arg in ("default", "default_factory"):
                default = ast.unparse(kw.value)
        if default is None and value.args and not _is_ellipsis(value.args[0]):
            default = ast.unparse(value.args[0])
    elif value is not None:
        default = ast.unparse(value)

    return FieldFacts(
        name=name,
        type=type_text,
        default=default,
        description=description,
        line=line,
        is_static=is_class_var,
    )


def _is_ellipsis(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is Ellipsis


# ---------------------------------------------------------------------------
# Models and docstrings
# ---------------------------------------------------------------------------

_OPTIONAL_RE = re.compile(r"^(?:typing\.)?Optional\[|\|\s*None\b|\bNone\s*\||^(?:typing\.)?Union\[.*\bNone\b")


def is_optional_annotation(annotation: str) -> bool:
    """Whether a Python annotation admits ``None``."""
    return bool(_OPTIONAL_RE.search(annotation.strip()))


def model_classes(facts: ModuleFacts, roots: Iterable[str] = ("BaseModel",)) -> list[ClassFacts]:
    """Classes deriving, directly or through other classes of the file, from *roots*."""
    known = set(roots)
    found: list[ClassFacts] = []
    changed = True
    while changed:
        changed = False
        for cls in facts.classes:
            if cls.name in known:
                continue
            if any(base.rsplit(".", 1)[-1] in known for base in cls.bases):
                known.add(cls.name)
                found.append(cls)
                changed = True
    return sorted(found, key=lambda c: c.line)


def pydantic_models(facts: ModuleFacts) -> list[ModelDescriptor]:
    """Model descriptors for every Pydantic model declared in the file.

    Fields inherited from a model of the same file come first, in
    declaration order, and are overridden by redeclarations.
    """
    classes = {cls.name: cls for cls in model_classes(facts)}

    def _fields(cls: ClassFacts, seen: set[str]) -> dict[str, ModelField]:
        merged: dict[str, ModelField] = {}
        for base in cls.bases:
            parent = classes.get(base.rsplit(".", 1)[-1])
            if parent is not None and parent.name not in seen:
                merged.update(_fields(parent, seen | {parent.name}))
        for fld in cls.fields:
            if fld.is_static or fld.name.startswith("_") or fld.name == "model_config":
                continue
            merged[fld.name] = ModelField(
                name=fld.name,
                type=fld.type,
                is_optional=is_optional_annotation(fld.type),
                has_default=fld.default is not None,
                description=fld.description,
            )
        return merged

    return [
        ModelDescriptor(
            name=cls.name,
            fields=list(_fields(cls, {cls.name}).values()),
            description=split_docstring(cls.docstring)[0],
        )
        for cls in classes.values()
    ]


def split_docstring(docstring: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Return ``(summary, description)`` for a docstring.

    The summary is the first line; the description is the whole text.
    """
    if not docstring:
        return None, None
    text = docstring.strip()
    return text.splitlines()[0].strip(), text


def parse_param_docs(docstring: Optional[str]) -> dict[str, str]:
    """Parse an ``Args:`` or ``Parameters:`` section from a Google-style docstring.

    Parameter entries are indented lines of the form ``name: description``
    or ``name (type): description``, with optional continuation lines at
    deeper indentation.

    Example::

        >>> parse_param_docs('''List users.
        ...
        ... Args:
        ...     limit: Page size.
        ... ''')
        {'limit': 'Page size.'}
    """
    if not docstring:
        return {}
    docs: dict[str, str] = {}
    in_params = False
    current: Optional[str] = None
    current_lines: list[str] = []
    param_indent: Optional[int] = None

    def _flush() -> None:
        if current:
            docs[current] = " ".join(current_lines).strip()

    for line in docstring.splitlines():
        stripped = line.strip()
        leading = len(line) - len(line.lstrip())

        if re.match(r"^(Args|Arguments|Parameters|Params)\s*:\s*$", stripped):
            in_params = True
            continue
        if not in_params:
            continue

        if stripped and param_indent is not None and leading < param_indent:
            _flush()
            current = None
            in_params = False
            continue

        match = re.match(r"^(\s+)(\w+)(?:\s*\([^)]*\))?\s*:\s*(.*)", line)
        if match and (param_indent is None or len(match.group(1)) == param_indent):
            _flush()
            param_indent = len(match.group(1))
            current = match.group(2)
            current_lines = [match.group(3).strip()] if match.group(3).strip() else []
            continue

        if current and stripped and param_indent is not None and leading > param_indent:
            current_lines.append(stripped)

    _flush()
    return docs
