"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~routelens.exceptions.RoutelensError` subclass.
External tooling (CI scripts, shell wrappers) can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ routelens scan ./empty-dir
    $ echo $?
    4   # EXIT_NO_FRAMEWORK -- nothing recognisable in the project
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_SOURCE_ERROR = 3
"""A source file could not be read or parsed."""

EXIT_NO_FRAMEWORK = 4
"""No supported web framework was detected in the project."""

EXIT_ADAPTER_ERROR = 10
"""An adapter failed to load, register, or inspect the project."""
