"""Exception hierarchy for routelens.

All exceptions inherit from :class:`RoutelensError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`routelens.exit_codes`.
The top-level error handler in :func:`routelens.app.main` catches
``RoutelensError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    RoutelensError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- SourceParseError    (exit 3)
    +-- NoFrameworkError    (exit 4)
    +-- AdapterError        (exit 10)
    |   +-- RegistryError   (exit 10)
    +-- ConfigError         (exit 1)

Inside the extraction pipeline :class:`SourceParseError` never reaches the
user: adapters swallow it per file so one broken file cannot abort a scan.
"""

from routelens.exit_codes import (
    EXIT_ADAPTER_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NO_FRAMEWORK,
    EXIT_SOURCE_ERROR,
)


class RoutelensError(Exception):
    """Base exception for all routelens errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`routelens.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(RoutelensError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class SourceParseError(RoutelensError):
    """Raised when a source file cannot be decoded or parsed into facts.

    Args:
        message: Description of the failure.
        path: The offending source file, when known.
    """

    exit_code = EXIT_SOURCE_ERROR

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class NoFrameworkError(RoutelensError):
    """Raised when a scan finds no framework to extract routes with."""

    exit_code = EXIT_NO_FRAMEWORK


class AdapterError(RoutelensError):
    """Raised when an adapter cannot inspect a project (unexpected I/O failure)."""

    exit_code = EXIT_ADAPTER_ERROR


class RegistryError(AdapterError):
    """Raised on registry misuse: duplicate names, unknown adapters, late registration."""


class ConfigError(RoutelensError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
