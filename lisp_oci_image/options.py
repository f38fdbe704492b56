"""Command-line options for the image build.

The option surface is declared with typer. Parsing stops at the first
token that is not an option; a bare ``--`` is dropped and everything
after it is forwarded to ``docker build`` untouched.
"""

from collections.abc import Sequence
from typing import Annotated

import click
import typer
from pydantic import BaseModel, ConfigDict, Field
from typer.core import TyperCommand

from lisp_oci_image.config import DEFAULT_IMAGE_NAME
from lisp_oci_image.errors import (
    MissingRequiredOptionError,
    MissingValueError,
    UnknownOptionError,
    ValidationError,
)

IMPL_FLAG = "--impl"

# Options stop at the first positional token, which is forwarded with
# everything after it.
CONTEXT_SETTINGS = {"allow_interspersed_args": False}

ImplOption = Annotated[
    str | None,
    typer.Option(IMPL_FLAG, help="Common Lisp implementation (required)"),
]
NameOption = Annotated[
    str | None,
    typer.Option("-n", "--name", help="Docker image name"),
]
TagOption = Annotated[
    str | None,
    typer.Option("-t", "--tag", help="Docker image tag (default: auto)"),
]
QuietOption = Annotated[
    bool,
    typer.Option("-q", "--quiet", help="Reduce verbosity"),
]
HelpOption = Annotated[
    bool,
    typer.Option("-h", "--help", help="Show this help text and exit"),
]
ExtraArgs = Annotated[
    list[str] | None,
    typer.Argument(help="Arguments forwarded to docker build", show_default=False),
]


class Options(BaseModel):
    """Options for a single build invocation.

    Attributes:
        image_name: Name of the image to produce.
        tag: Explicit tag; None means the tag is derived after the build.
        impl: Common Lisp implementation, ``name`` or ``name/version``.
        extra_args: Arguments forwarded verbatim to ``docker build``.
        quiet: Suppress verbose build progress.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    image_name: str = Field(default=DEFAULT_IMAGE_NAME)
    tag: str | None = Field(default=None)
    impl: str = Field(min_length=1)
    extra_args: tuple[str, ...] = Field(default=())
    quiet: bool = Field(default=False)

    @property
    def tag_explicit(self) -> bool:
        """Whether the caller supplied a tag."""
        return self.tag is not None


class OptionsCommand(TyperCommand):
    """Typer command that reports parse failures as validation errors.

    No arguments at all are treated like ``--help``.
    """

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        if not args:
            args = ["--help"]
        try:
            return super().parse_args(ctx, args)
        except click.NoSuchOption as e:
            raise UnknownOptionError(e.option_name) from e
        except click.BadOptionUsage as e:
            # A value option in last position has nothing to take
            if args[-1:] == [e.option_name]:
                raise MissingValueError(e.option_name) from e
            raise ValidationError(e.format_message()) from e
        except click.UsageError as e:
            raise ValidationError(e.format_message()) from e


def options_from_params(
    *,
    impl: str | None,
    image_name: str | None,
    tag: str | None,
    quiet: bool,
    show_help: bool,
    extra_args: Sequence[str] | None,
    default_image_name: str = DEFAULT_IMAGE_NAME,
) -> Options | None:
    """Turn parsed command-line values into Options.

    Args:
        impl: Value of --impl, None when absent.
        image_name: Value of -n/--name, None when absent.
        tag: Value of -t/--tag, None when absent.
        quiet: Whether -q/--quiet was given.
        show_help: Whether -h/--help was given.
        extra_args: Tokens forwarded to ``docker build``.
        default_image_name: Image name used when -n/--name is absent.

    Returns:
        Options, or None when help was requested.

    Raises:
        MissingRequiredOptionError: If --impl was never given.
        MissingValueError: If --impl is empty.
    """
    if show_help:
        return None
    if impl is None:
        raise MissingRequiredOptionError(IMPL_FLAG)
    if not impl:
        raise MissingValueError(IMPL_FLAG, f"{IMPL_FLAG} must not be empty")

    return Options(
        image_name=default_image_name if image_name is None else image_name,
        tag=tag,
        impl=impl,
        extra_args=tuple(extra_args or ()),
        quiet=quiet,
    )


def usage(prog: str, image_name: str = DEFAULT_IMAGE_NAME) -> str:
    """Render the help text.

    Args:
        prog: Program name shown in the usage line and examples.
        image_name: Default image name to display.

    Returns:
        Multi-line usage text.
    """
    return f"""\
Usage: {prog} [OPTIONS] --impl IMPLEMENTATION [-- [DOCKER_BUILD_ARGS...]]

Build an Amazon Linux 2023 container image with a Common Lisp implementation.

Options:
  -n, --name NAME           Docker image name            (default: {image_name})
  -t, --tag TAG             Docker image tag             (default: auto)
  --impl IMPLEMENTATION     Common Lisp implementation   (required)
  -q, --quiet               Reduce verbosity
  -h, --help                Show this help text and exit

Environment:
  DOCKER_BUILDKIT           Default is 0 for the legacy builder.
                            Set to 1 to enable BuildKit (if you have it).

Examples:
  {prog} --impl sbcl-bin                     # use latest SBCL binary
  {prog} --impl sbcl/2.5.9                   # build SBCL 2.5.9 from source
  DOCKER_BUILDKIT=1 {prog} --impl sbcl-bin   # enable BuildKit
  {prog} -n myname -t v2 --impl ecl/24.5.10
  {prog} --impl ccl-bin -- --no-cache        # extra docker args
  {prog} -q --impl sbcl-bin/2.3.7            # quiet docker build
"""


__all__ = [
    "CONTEXT_SETTINGS",
    "ExtraArgs",
    "HelpOption",
    "ImplOption",
    "NameOption",
    "Options",
    "OptionsCommand",
    "QuietOption",
    "TagOption",
    "options_from_params",
    "usage",
]
