"""Abstract data types for container image references found in workloads.

The grammar follows the Docker reference format:
``[registry-host[:port]/]path[:tag][@algorithm:hex]``.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Self

DOCKER_DEFAULT_TAG = "latest"
"""Implicit tag used by Docker/Kubernetes when no tag is specified."""

__all__ = [
    "DOCKER_DEFAULT_TAG",
    "ImageReference",
    "ReferencePolicy",
    "parse_reference",
]


class ReferencePolicy(Enum):
    """How to treat references that carry no explicit tag.

    Digest-only references (``repo@sha256:...``) never yield a tag under
    either policy.  Whether their digests should be protected is decided
    separately, when the in-use set is built.
    """

    EXPLICIT_TAG = "explicit_tag"
    IMPLICIT_LATEST = "implicit_latest"


# Regular expression components used to construct the parsing regexes.

# team-a, app_server, my.repo
_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*"
# v1.2.3, tag-1, 2024_05_01
_TAG = r"[\w][\w.-]{0,127}"
# sha256:4f5c0f6e...
_DIGEST = (
    r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"
)

_PATH_REGEX = re.compile(_COMPONENT + r"(?:/" + _COMPONENT + r")*$")
_TAG_REGEX = re.compile(_TAG + "$")
_DIGEST_REGEX = re.compile(_DIGEST + "$")


@dataclass(frozen=True)
class ImageReference:
    """A parsed reference to a tagged image in a repository.

    Both ``repository`` and ``tag`` are non-empty for every instance
    produced by `parse`.
    """

    repository: str
    """Repository path, without the registry host."""

    tag: str
    """Tag within the repository."""

    registry: str | None = None
    """Registry host (and port), if the reference named one."""

    digest: str | None = None
    """Digest pinned alongside the tag, if any."""

    def __str__(self) -> str:
        ref = f"{self.repository}:{self.tag}"
        if self.registry:
            ref = f"{self.registry}/{ref}"
        if self.digest:
            ref += f"@{self.digest}"
        return ref

    @classmethod
    def parse(
        cls, raw: str, policy: ReferencePolicy = ReferencePolicy.EXPLICIT_TAG
    ) -> Self | None:
        """Parse a raw image reference.

        Parameters
        ----------
        raw
            Image reference as it appears in a container spec.
        policy
            How to treat references without an explicit tag.

        Returns
        -------
        ImageReference or None
            The parsed reference, or `None` if the reference cannot be
            parsed or carries no usable tag under ``policy``.
        """
        parsed = split_reference(raw)
        if parsed is None:
            return None
        registry, repository, tag, digest = parsed
        if tag is None:
            if digest is not None or policy != ReferencePolicy.IMPLICIT_LATEST:
                return None
            tag = DOCKER_DEFAULT_TAG
        return cls(
            repository=repository, tag=tag, registry=registry, digest=digest
        )


def split_reference(
    raw: str,
) -> tuple[str | None, str, str | None, str | None] | None:
    """Split a reference into registry, repository, tag, and digest.

    Returns `None` if the reference is malformed.  Tag and digest are
    `None` when absent.
    """
    ref = raw.strip()
    if not ref:
        return None

    digest: str | None = None
    if "@" in ref:
        ref, digest = ref.split("@", 1)
        if not _DIGEST_REGEX.match(digest):
            return None

    # A tag can only follow the last path separator; a colon before that
    # belongs to a registry port.
    tag: str | None = None
    slash_pos = ref.rfind("/")
    colon_pos = ref.rfind(":")
    if colon_pos > slash_pos:
        ref, tag = ref[:colon_pos], ref[colon_pos + 1 :]
        if not _TAG_REGEX.match(tag):
            return None

    registry: str | None = None
    first, sep, rest = ref.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        registry, ref = first, rest

    if not _PATH_REGEX.match(ref):
        return None
    return registry, ref, tag, digest


def parse_reference(
    raw: str, policy: ReferencePolicy = ReferencePolicy.EXPLICIT_TAG
) -> ImageReference | None:
    """Parse ``raw`` into an `ImageReference`, or `None` if it has none."""
    return ImageReference.parse(raw, policy)
