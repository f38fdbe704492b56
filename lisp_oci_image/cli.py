"""Thin CLI wrapper for lisp_oci_image.

This module provides the command-line interface using Typer. Progress
goes to stdout prefixed '==>', errors to stderr as a single line
prefixed 'ERROR:'. All build logic is delegated to the orchestrator.
"""

import logging
import signal
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

import pydantic
import typer
from rich.console import Console
from rich.logging import RichHandler

from lisp_oci_image.config import DEFAULT_IMAGE_NAME, Settings, get_settings
from lisp_oci_image.errors import (
    BuildInterrupted,
    MissingRequiredOptionError,
    ValidationError,
)
from lisp_oci_image.options import (
    CONTEXT_SETTINGS,
    ExtraArgs,
    HelpOption,
    ImplOption,
    NameOption,
    Options,
    OptionsCommand,
    QuietOption,
    TagOption,
    options_from_params,
    usage,
)
from lisp_oci_image.orchestrator import build_image

PROG = "build-al2023-lisp-oci-image"

# Errors are printed by the exceptions themselves, not by rich.
app = typer.Typer(
    name=PROG,
    add_completion=False,
    rich_markup_mode=None,
    pretty_exceptions_enable=False,
)

# Messages are printed verbatim: they may contain brackets, colons, or
# long docker argument lists.
console = Console(markup=False, emoji=False, highlight=False, soft_wrap=True)
err_console = Console(
    stderr=True, markup=False, emoji=False, highlight=False, soft_wrap=True
)


def log(message: str) -> None:
    """Print a progress line."""
    console.print(f"==> {message}")


def print_usage(image_name: str) -> None:
    """Print the help text, showing image_name as the default name."""
    console.print(usage(PROG, image_name), end="")


def setup_logging(level: str) -> None:
    """Route diagnostic logging to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def load_settings() -> Settings:
    """Load settings, reporting the first invalid field as a validation error."""
    try:
        return get_settings()
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise ValidationError(
            f"Invalid configuration for {field}: {first['msg']}"
        ) from None


@contextmanager
def terminate_as_exit() -> Iterator[None]:
    """Turn SIGTERM into SystemExit so that cleanup handlers run."""

    def handler(signum: int, frame: object) -> None:
        raise SystemExit(128 + signum)

    previous = signal.signal(signal.SIGTERM, handler)
    try:
        yield
    finally:
        # None means the previous handler was not installed from Python
        signal.signal(
            signal.SIGTERM, signal.SIG_DFL if previous is None else previous
        )


@app.command(
    cls=OptionsCommand,
    add_help_option=False,
    context_settings=CONTEXT_SETTINGS,
)
def build(
    impl: ImplOption = None,
    image_name: NameOption = None,
    tag: TagOption = None,
    quiet: QuietOption = False,
    show_help: HelpOption = False,
    extra_args: ExtraArgs = None,
) -> None:
    """Build an Amazon Linux 2023 image with a Common Lisp implementation."""
    settings = load_settings()
    setup_logging(settings.log_level)

    try:
        options = options_from_params(
            impl=impl,
            image_name=image_name,
            tag=tag,
            quiet=quiet,
            show_help=show_help,
            extra_args=extra_args,
            default_image_name=settings.default_image_name,
        )
    except MissingRequiredOptionError:
        print_usage(settings.default_image_name)
        raise

    if options is None:
        print_usage(settings.default_image_name)
        return

    with terminate_as_exit():
        try:
            build_image(options, settings, report=log)
        except KeyboardInterrupt:
            raise BuildInterrupted() from None


def parse_options(
    args: Sequence[str],
    default_image_name: str = DEFAULT_IMAGE_NAME,
) -> Options | None:
    """Parse command-line arguments into Options without running a build.

    Value options take the next token verbatim, even if it starts with
    '-'. Later occurrences of an option override earlier ones.

    Args:
        args: Arguments without the program name.
        default_image_name: Image name used when -n/--name is absent.

    Returns:
        Parsed Options, or None when help was requested (including when
        no arguments were given at all).

    Raises:
        MissingValueError: If a value option is last, or --impl is empty.
        UnknownOptionError: If an unrecognized option is found.
        MissingRequiredOptionError: If --impl was never given.
    """
    command = typer.main.get_command(app)
    ctx = command.make_context(PROG, list(args))
    return options_from_params(default_image_name=default_image_name, **ctx.params)


if __name__ == "__main__":
    app()
