"""Source fact extraction.

Turns source text into the language-neutral records of
:mod:`~routelens.sources.facts` that the annotation and decorator adapters
consume:

* :mod:`~routelens.sources.python` -- Python via the standard ``ast`` module.
* :mod:`~routelens.sources.declarations` -- Java, C# and Rust declarations.
* :mod:`~routelens.sources.tokens` -- lexical helpers shared by the scanners
  and by the DSL adapters (string-aware bracket matching, argument lists).
"""

from routelens.sources.declarations import Syntax, scan_declarations
from routelens.sources.facts import (
    CallFacts,
    ClassFacts,
    Decorator,
    FieldFacts,
    FunctionFacts,
    ModuleFacts,
    ParameterFacts,
)
from routelens.sources.python import pydantic_models, scan_python

__all__ = [
    "CallFacts",
    "ClassFacts",
    "Decorator",
    "FieldFacts",
    "FunctionFacts",
    "ModuleFacts",
    "ParameterFacts",
    "Syntax",
    "pydantic_models",
    "scan_declarations",
    "scan_python",
]
