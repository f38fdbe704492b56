"""Docker engine collaborator.

This module handles:
- Pre-flight checks (executable on PATH, daemon reachable)
- Composing `docker build` commands
- Executing builds with subprocess, with or without an explicit tag
- The scoped image-ID file used by untagged builds
- Tagging an image and querying the Lisp version inside it
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from lisp_oci_image.errors import (
    BUILD_TIMEOUT,
    EXECUTION_ERROR,
    BuildFailure,
    EngineNotFoundError,
    EngineUnreachableError,
    TagError,
    VersionQueryError,
)

logger = logging.getLogger(__name__)

BUILD_ARG_NAME = "CL_IMPLEMENTATION"
IIDFILE_PREFIX = "lisp-oci-image-"
IIDFILE_SUFFIX = ".iid"

LISP_VERSION_FORM = '(format t "~A" (lisp-implementation-version))'
READY_FORM = (
    '(format t "Image with ~A/~A ready for use!~%" '
    "(lisp-implementation-type) (lisp-implementation-version))"
)


@dataclass
class BuildResult:
    """Result of a successful build.

    Attributes:
        artifact_id: ``name:tag`` for tagged builds, otherwise the image ID.
        elapsed_seconds: Wall-clock build duration in whole seconds.
        command: The command that was executed.
    """

    artifact_id: str
    elapsed_seconds: int
    command: str


def ros_eval_command(form: str) -> list[str]:
    """Compose a Roswell command that evaluates a form and exits."""
    return ["ros", "run", "--eval", form, "-q"]


def compose_build_command(
    docker_bin: str,
    context_dir: Path,
    impl: str,
    quiet: bool = False,
    target: str | None = None,
    iidfile: Path | None = None,
    extra_args: Sequence[str] = (),
) -> list[str]:
    """Compose the `docker build` command.

    Caller-supplied ``extra_args`` go after this module's own arguments so
    that docker's last-wins handling lets them override earlier values.

    Args:
        docker_bin: Engine executable.
        context_dir: Build context directory.
        impl: Implementation spec passed as the CL_IMPLEMENTATION build arg.
        quiet: Pass -q to suppress build progress.
        target: ``name:tag`` to tag the image with.
        iidfile: File docker writes the image ID to.
        extra_args: Arguments forwarded verbatim.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [docker_bin, "build"]

    if quiet:
        cmd.append("-q")

    cmd.extend(["--build-arg", f"{BUILD_ARG_NAME}={impl}"])

    if target is not None:
        cmd.extend(["-t", target])
    if iidfile is not None:
        cmd.extend(["--iidfile", str(iidfile)])

    cmd.extend(extra_args)
    cmd.append(str(context_dir))
    return cmd


@contextmanager
def iidfile_scope(tmp_dir: Path | None = None) -> Iterator[Path]:
    """Provide a unique image-ID file that is removed on every exit path.

    The file is created with mkstemp (owner-only permissions) so that
    concurrent invocations never share it.

    Args:
        tmp_dir: Directory for the file (system default if None).

    Yields:
        Path to the image-ID file.
    """
    fd, name = tempfile.mkstemp(
        prefix=IIDFILE_PREFIX, suffix=IIDFILE_SUFFIX, dir=tmp_dir
    )
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


class DockerEngine:
    """Synchronous wrapper around the docker command line."""

    def __init__(
        self,
        docker_bin: str = "docker",
        build_timeout: int | None = None,
        query_timeout: int | None = None,
    ) -> None:
        self.docker_bin = docker_bin
        self.build_timeout = build_timeout
        self.query_timeout = query_timeout

    def check_preconditions(self) -> str:
        """Verify that docker is installed and its daemon answers.

        Returns:
            The `docker --version` line.

        Raises:
            EngineNotFoundError: If the executable is not on PATH.
            EngineUnreachableError: If `docker info` fails.
        """
        if shutil.which(self.docker_bin) is None:
            raise EngineNotFoundError(self.docker_bin)

        try:
            info = subprocess.run(
                [self.docker_bin, "info"],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError as e:
            raise EngineUnreachableError(self.docker_bin) from e
        if info.returncode != 0:
            logger.debug("docker info exited with %d", info.returncode)
            raise EngineUnreachableError(self.docker_bin)

        return self.version()

    def version(self) -> str:
        """Return the engine's version line, or an empty string."""
        try:
            result = subprocess.run(
                [self.docker_bin, "--version"],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            logger.warning("Could not run %s --version: %s", self.docker_bin, e)
            return ""
        return result.stdout.strip()

    def build(
        self,
        context_dir: Path,
        impl: str,
        quiet: bool = False,
        target: str | None = None,
        extra_args: Sequence[str] = (),
        buildkit: bool = False,
    ) -> BuildResult:
        """Run a build.

        With a ``target`` the image is tagged by the build itself and the
        target is returned as the artifact ID. Without one, the image ID is
        read from a scoped iidfile that is gone once this method returns.

        Args:
            context_dir: Build context directory.
            impl: Implementation spec.
            quiet: Suppress build progress.
            target: Optional ``name:tag``.
            extra_args: Arguments forwarded verbatim to docker build.
            buildkit: Exported to the build as DOCKER_BUILDKIT.

        Returns:
            BuildResult for the built image.

        Raises:
            BuildFailure: If the build fails, times out, or cannot start.
        """
        if target is not None:
            cmd = compose_build_command(
                self.docker_bin,
                context_dir,
                impl,
                quiet=quiet,
                target=target,
                extra_args=extra_args,
            )
            elapsed = self._run_build(cmd, buildkit)
            return BuildResult(target, elapsed, shlex.join(cmd))

        with iidfile_scope() as iidfile:
            cmd = compose_build_command(
                self.docker_bin,
                context_dir,
                impl,
                quiet=quiet,
                iidfile=iidfile,
                extra_args=extra_args,
            )
            elapsed = self._run_build(cmd, buildkit)
            image_id = iidfile.read_text().strip()

        if not image_id:
            raise BuildFailure("Build succeeded but reported no image ID")
        logger.info("Built image %s", image_id)
        return BuildResult(image_id, elapsed, shlex.join(cmd))

    def _run_build(self, cmd: list[str], buildkit: bool) -> int:
        """Execute a build command and return its duration in seconds."""
        cmd_str = shlex.join(cmd)
        logger.info("Executing build: %s", cmd_str)

        env = dict(os.environ)
        env["DOCKER_BUILDKIT"] = "1" if buildkit else "0"

        started = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                env=env,
                timeout=self.build_timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            message = f"Build timed out after {self.build_timeout} seconds"
            logger.debug(message)
            raise BuildFailure(message, code=BUILD_TIMEOUT) from e
        except OSError as e:
            message = f"Failed to execute build: {e}"
            logger.debug(message)
            raise BuildFailure(message, code=EXECUTION_ERROR) from e

        if result.returncode != 0:
            logger.debug("Build failed with exit code %d", result.returncode)
            raise BuildFailure(
                f"docker build failed with exit code {result.returncode}",
                engine_exit_code=result.returncode,
            )

        return int(time.monotonic() - started)

    def tag(self, artifact_id: str, target: str) -> None:
        """Assign ``target`` to an existing image.

        Raises:
            TagError: If `docker tag` fails.
        """
        cmd = [self.docker_bin, "tag", artifact_id, target]
        logger.info("Tagging: %s", shlex.join(cmd))
        try:
            result = subprocess.run(cmd, check=False)
        except OSError as e:
            raise TagError(f"Failed to run docker tag: {e}") from e
        if result.returncode != 0:
            raise TagError(
                f"docker tag {target} failed with exit code {result.returncode}",
                engine_exit_code=result.returncode,
            )

    def query_lisp_version(self, artifact_id: str) -> str:
        """Ask the Lisp inside an image for its version string.

        Returns:
            Raw standard output of the query.

        Raises:
            VersionQueryError: If the container run fails or times out.
        """
        cmd = [
            self.docker_bin,
            "run",
            "--rm",
            artifact_id,
            *ros_eval_command(LISP_VERSION_FORM),
        ]
        logger.info("Querying Lisp version: %s", shlex.join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.query_timeout,
                check=True,
            )
        except subprocess.TimeoutExpired as e:
            raise VersionQueryError(
                f"Version query timed out after {self.query_timeout} seconds"
            ) from e
        except subprocess.CalledProcessError as e:
            logger.debug("Version query stderr: %s", e.stderr)
            raise VersionQueryError(
                f"Version query in image {artifact_id} failed "
                f"with exit code {e.returncode}",
                engine_exit_code=e.returncode,
            ) from e
        except OSError as e:
            raise VersionQueryError(f"Failed to run version query: {e}") from e

        return result.stdout


__all__ = [
    "BUILD_ARG_NAME",
    "LISP_VERSION_FORM",
    "READY_FORM",
    "BuildResult",
    "DockerEngine",
    "compose_build_command",
    "iidfile_scope",
    "ros_eval_command",
]
