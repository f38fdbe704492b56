"""Shared fixtures for lisp_oci_image tests."""

import subprocess
from unittest.mock import MagicMock

import pytest

from lisp_oci_image.config import Settings

# Variables that change behaviour when inherited from the developer's shell
_HOST_ENV = (
    "DOCKER_BUILDKIT",
    "INSIDE_EMACS",
    "LISP_OCI_IMAGE_DOCKER_BIN",
    "LISP_OCI_IMAGE_CONTEXT_DIR",
    "LISP_OCI_IMAGE_DEFAULT_IMAGE_NAME",
    "LISP_OCI_IMAGE_BUILD_TIMEOUT",
    "LISP_OCI_IMAGE_QUERY_TIMEOUT",
    "LISP_OCI_IMAGE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the host environment and any .env file."""
    for name in _HOST_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with a throwaway build context."""
    context = tmp_path / "context"
    context.mkdir()
    (context / "Dockerfile").write_text("FROM scratch\n")
    return Settings(context_dir=context)


class FakeDocker:
    """Stand-in for subprocess.run that emulates the docker CLI.

    Records every command. `docker build --iidfile` writes ``image_id``
    into the requested file, `docker run` prints ``version_output``.
    """

    def __init__(
        self,
        image_id: str = "sha256:0123456789abcdef",
        version_output: str = "2.5.5\n",
        build_returncode: int = 0,
        run_returncode: int = 0,
        tag_returncode: int = 0,
        info_returncode: int = 0,
    ) -> None:
        self.image_id = image_id
        self.version_output = version_output
        self.build_returncode = build_returncode
        self.run_returncode = run_returncode
        self.tag_returncode = tag_returncode
        self.info_returncode = info_returncode
        self.calls: list[list[str]] = []
        self.kwargs: list[dict] = []
        self.iidfiles: list[str] = []

    def commands(self, subcommand: str) -> list[list[str]]:
        """Return recorded commands for one docker subcommand."""
        return [c for c in self.calls if len(c) > 1 and c[1] == subcommand]

    def __call__(self, cmd, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        self.kwargs.append(kwargs)
        sub = cmd[1]

        if sub == "info":
            return MagicMock(returncode=self.info_returncode)
        if sub == "--version":
            return MagicMock(returncode=0, stdout="Docker version 27.0.3\n")
        if sub == "build":
            if "--iidfile" in cmd:
                path = cmd[cmd.index("--iidfile") + 1]
                self.iidfiles.append(path)
                if self.build_returncode == 0:
                    with open(path, "w") as f:
                        f.write(self.image_id)
            return MagicMock(returncode=self.build_returncode)
        if sub == "run":
            if self.run_returncode != 0:
                if kwargs.get("check"):
                    raise subprocess.CalledProcessError(
                        self.run_returncode, cmd, output="", stderr="boom"
                    )
                return MagicMock(returncode=self.run_returncode, stdout="")
            return MagicMock(returncode=0, stdout=self.version_output)
        if sub == "tag":
            return MagicMock(returncode=self.tag_returncode)
        raise AssertionError(f"unexpected docker command: {cmd}")


@pytest.fixture
def fake_docker() -> FakeDocker:
    """A fresh FakeDocker with default behaviour."""
    return FakeDocker()


@pytest.fixture
def make_fake_docker():
    """Factory for FakeDocker instances with custom behaviour."""
    return FakeDocker
