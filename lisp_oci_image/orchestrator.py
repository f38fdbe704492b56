"""Build orchestration.

Runs the fixed sequence for one invocation: pre-flight checks, a single
build, and, when no tag was given, tag derivation followed by a separate
`docker tag`. Either a fully tagged image is reported or an error is
raised; nothing is retried.
"""

import logging
import shlex
from collections.abc import Callable
from dataclasses import dataclass

from lisp_oci_image.config import Settings
from lisp_oci_image.engine import READY_FORM, DockerEngine, ros_eval_command
from lisp_oci_image.options import Options
from lisp_oci_image.tagging import derive_tag

logger = logging.getLogger(__name__)

Reporter = Callable[[str], None]


@dataclass
class ImageReference:
    """Final, human-readable result of a build.

    Attributes:
        image_name: Image name.
        tag: Applied tag.
        artifact_id: Image ID for auto-tagged builds, ``name:tag`` otherwise.
        derived: Whether the tag was derived after the build.
        elapsed_seconds: Build duration in whole seconds.
    """

    image_name: str
    tag: str
    artifact_id: str
    derived: bool
    elapsed_seconds: int = 0

    @property
    def reference(self) -> str:
        """The ``name:tag`` reference."""
        return f"{self.image_name}:{self.tag}"


def _silent(message: str) -> None:
    """Discard a progress message."""


def engine_from_settings(settings: Settings) -> DockerEngine:
    """Create a DockerEngine configured from settings."""
    return DockerEngine(
        docker_bin=settings.docker_bin,
        build_timeout=settings.build_timeout,
        query_timeout=settings.query_timeout,
    )


def build_image(
    options: Options,
    settings: Settings,
    engine: DockerEngine | None = None,
    report: Reporter = _silent,
) -> ImageReference:
    """Build and tag the image described by options.

    Args:
        options: Parsed command-line options.
        settings: Effective settings.
        engine: Docker engine; created from settings if not provided.
        report: Receives one progress message at a time.

    Returns:
        ImageReference for the tagged image.

    Raises:
        BuildEnvironmentError: If docker is missing or unreachable.
        BuildFailure: If the build, version query, or tagging fails.
    """
    if engine is None:
        engine = engine_from_settings(settings)

    docker_version = engine.check_preconditions()
    report(f"Docker found: {docker_version}")

    if options.tag_explicit:
        report(f"Building image {options.image_name}:{options.tag}")
    else:
        report(
            f"Building image {options.image_name} "
            "(tag will be determined after build)"
        )
    report(f"Using CL_IMPLEMENTATION={options.impl}")
    if settings.docker_buildkit:
        report("BuildKit is ENABLED (export DOCKER_BUILDKIT=0 to disable)")
    else:
        report("BuildKit is DISABLED")
    if options.quiet:
        report("Docker build quiet mode ENABLED (-q)")
    if options.extra_args:
        report(f"Forwarding extra docker build args: {' '.join(options.extra_args)}")

    report("Starting actual build. Uncached builds may take a couple minutes...")
    if not options.quiet and settings.inside_emacs is not None:
        report("WARNING: Verbose builds inside Emacs may hang.")

    target = f"{options.image_name}:{options.tag}" if options.tag_explicit else None
    result = engine.build(
        settings.context_dir,
        options.impl,
        quiet=options.quiet,
        target=target,
        extra_args=options.extra_args,
        buildkit=settings.docker_buildkit,
    )
    report(f"Build finished successfully in {result.elapsed_seconds} seconds.")

    if options.tag is not None:
        image = ImageReference(
            image_name=options.image_name,
            tag=options.tag,
            artifact_id=result.artifact_id,
            derived=False,
            elapsed_seconds=result.elapsed_seconds,
        )
    else:
        tag = derive_tag(
            options.impl,
            lambda: engine.query_lisp_version(result.artifact_id),
        )
        image = ImageReference(
            image_name=options.image_name,
            tag=tag,
            artifact_id=result.artifact_id,
            derived=True,
            elapsed_seconds=result.elapsed_seconds,
        )
        engine.tag(result.artifact_id, image.reference)
        report(f"Tagged image as {image.reference}")

    logger.info("Image ready: %s", image.reference)
    run_hint = shlex.join(
        [engine.docker_bin, "run", "--rm", image.reference, *ros_eval_command(READY_FORM)]
    )
    report(f"You can now test run your image: {run_hint}")
    return image


__all__ = ["ImageReference", "Reporter", "build_image", "engine_from_settings"]
