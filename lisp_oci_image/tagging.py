"""Tag derivation for auto-tagged builds.

An implementation spec is ``name`` or ``name/version``. The derived tag is
``<name>-<release>``, where the release is the version part of the spec or,
when there is none, the version reported by the built image.
"""

import logging
import re
from collections.abc import Callable

logger = logging.getLogger(__name__)

IMPL_SEPARATOR = "/"
TAG_SEPARATOR = "-"
UNKNOWN_RELEASE = "unknown"

_WHITESPACE = re.compile(r"\s+")
_TAG_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


def split_impl(impl: str) -> tuple[str, str | None]:
    """Split an implementation spec on its first '/'.

    Returns:
        Tuple of (implementation name, version or None).
    """
    name, sep, version = impl.partition(IMPL_SEPARATOR)
    return name, (version if sep else None)


def sanitize_release(raw: str) -> str:
    """Make a release string safe for use in a Docker tag.

    Removes all whitespace, then replaces every character outside
    ``[A-Za-z0-9_.-]`` with '-'. An empty result becomes ``unknown``.
    """
    release = _TAG_UNSAFE.sub("-", _WHITESPACE.sub("", raw))
    return release or UNKNOWN_RELEASE


def derive_tag(impl: str, query_version: Callable[[], str]) -> str:
    """Derive the image tag for an implementation spec.

    Args:
        impl: Implementation spec, ``name`` or ``name/version``.
        query_version: Called once, only when the spec carries no version,
            to obtain the version reported by the built image.

    Returns:
        Tag of the form ``<name>-<sanitized release>``.
    """
    name, version = split_impl(impl)
    if version is None:
        version = query_version()
        logger.debug("Queried release for %s: %r", name, version)
    return f"{name}{TAG_SEPARATOR}{sanitize_release(version)}"


__all__ = [
    "UNKNOWN_RELEASE",
    "derive_tag",
    "sanitize_release",
    "split_impl",
]
