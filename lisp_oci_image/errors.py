"""Error taxonomy for lisp_oci_image.

Every error carries a stable ``code`` for programmatic handling and the
process ``exit_code`` the CLI returns for it. All errors end the
invocation: nothing is retried and no partial tag is applied.

Errors are Click exceptions, so the CLI reports any of them as one
``ERROR:`` line on stderr and exits with its ``exit_code``.
"""

from typing import IO, Any

import click

# Error code constants
VALIDATION_ERROR = "validation"
PRECONDITION_ERROR = "precondition_error"
BUILD_ERROR = "build_failed"
BUILD_TIMEOUT = "build_timeout"
EXECUTION_ERROR = "execution_error"
VERSION_QUERY_ERROR = "version_query_failed"
TAG_ERROR = "tag_failed"
INTERRUPTED = "interrupted"

# Process exit codes, one per error kind
EXIT_OK = 0
EXIT_VALIDATION = 2
EXIT_ENVIRONMENT = 3
EXIT_BUILD = 4
EXIT_INTERRUPTED = 130


def _sentence(text: str) -> str:
    """Upper-case the first character only; paths and names keep their case."""
    return text[:1].upper() + text[1:]


class LispImageError(click.ClickException):
    """Base class for all lisp_oci_image errors."""

    exit_code = 1

    def __init__(self, message: str, code: str = "error") -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def show(self, file: IO[Any] | None = None) -> None:
        """Print the error as a single line prefixed 'ERROR:'."""
        click.echo(f"ERROR: {self.format_message()}", file=file, err=True)


class ValidationError(LispImageError):
    """Raised for bad or missing command-line input."""

    exit_code = EXIT_VALIDATION

    def __init__(self, message: str, code: str = VALIDATION_ERROR) -> None:
        super().__init__(message, code=code)


class MissingValueError(ValidationError):
    """Raised when an option that takes a value has none."""

    def __init__(self, option: str, reason: str | None = None) -> None:
        """Initialize MissingValueError.

        Args:
            option: The option as it was spelled on the command line.
            reason: Optional override for the message.
        """
        super().__init__(reason or f"Missing value for {option}")
        self.option = option


class UnknownOptionError(ValidationError):
    """Raised for an unrecognized option starting with '-'."""

    def __init__(self, option: str) -> None:
        super().__init__(f"Unknown option: {option}")
        self.option = option


class MissingRequiredOptionError(ValidationError):
    """Raised when a mandatory option was not given."""

    def __init__(self, option: str) -> None:
        super().__init__(f"{option} is mandatory")
        self.option = option


class BuildEnvironmentError(LispImageError):
    """Raised when the build engine cannot be used at all."""

    exit_code = EXIT_ENVIRONMENT

    def __init__(self, message: str, code: str = PRECONDITION_ERROR) -> None:
        super().__init__(message, code=code)


class EngineNotFoundError(BuildEnvironmentError):
    """Raised when the engine executable is not on PATH."""

    def __init__(self, executable: str) -> None:
        super().__init__(_sentence(f"{executable} is not installed or not on PATH"))
        self.executable = executable


class EngineUnreachableError(BuildEnvironmentError):
    """Raised when the engine's daemon does not answer."""

    def __init__(self, executable: str) -> None:
        super().__init__(
            _sentence(f"{executable} daemon not reachable (is it running?)")
        )
        self.executable = executable


class BuildFailure(LispImageError):
    """Raised when the build or a post-build step fails."""

    exit_code = EXIT_BUILD

    def __init__(
        self,
        message: str,
        engine_exit_code: int | None = None,
        code: str = BUILD_ERROR,
    ) -> None:
        """Initialize BuildFailure.

        Args:
            message: Error description.
            engine_exit_code: Exit code of the failed engine command, if any.
            code: Error code for structured error handling.
        """
        super().__init__(message, code=code)
        self.engine_exit_code = engine_exit_code


class VersionQueryError(BuildFailure):
    """Raised when the built image cannot report its Lisp version."""

    def __init__(self, message: str, engine_exit_code: int | None = None) -> None:
        super().__init__(message, engine_exit_code, code=VERSION_QUERY_ERROR)


class TagError(BuildFailure):
    """Raised when the derived tag cannot be applied."""

    def __init__(self, message: str, engine_exit_code: int | None = None) -> None:
        super().__init__(message, engine_exit_code, code=TAG_ERROR)


class BuildInterrupted(LispImageError):
    """Raised when the user interrupts a running build."""

    exit_code = EXIT_INTERRUPTED

    def __init__(self) -> None:
        super().__init__("Interrupted", code=INTERRUPTED)


__all__ = [
    "BUILD_ERROR",
    "BUILD_TIMEOUT",
    "EXECUTION_ERROR",
    "INTERRUPTED",
    "EXIT_BUILD",
    "EXIT_ENVIRONMENT",
    "EXIT_INTERRUPTED",
    "EXIT_OK",
    "EXIT_VALIDATION",
    "PRECONDITION_ERROR",
    "TAG_ERROR",
    "VALIDATION_ERROR",
    "VERSION_QUERY_ERROR",
    "BuildEnvironmentError",
    "BuildFailure",
    "BuildInterrupted",
    "EngineNotFoundError",
    "EngineUnreachableError",
    "LispImageError",
    "MissingRequiredOptionError",
    "MissingValueError",
    "TagError",
    "UnknownOptionError",
    "ValidationError",
    "VersionQueryError",
]
