"""Build the set of tags referenced by running workloads."""

import dataclasses
from collections.abc import Iterable

import structlog

from ..models.inuse import InUseSet
from ..models.reference import (
    ImageReference,
    ReferencePolicy,
    split_reference,
)
from ..models.workload import WorkloadSpec


def build_in_use_set(
    workloads: Iterable[WorkloadSpec],
    policy: ReferencePolicy = ReferencePolicy.EXPLICIT_TAG,
    *,
    registry: str | None = None,
    repository_prefix: str | None = None,
    protect_pinned_digests: bool = False,
) -> InUseSet:
    """Collect the tags every container of every workload refers to.

    Parameters
    ----------
    workloads
        Running workloads, across all scanned namespaces.
    policy
        How to treat references without an explicit tag.
    registry
        If given, only references to this registry host are counted.
        References with no host never match a configured registry.
    repository_prefix
        If given, only references whose repository path starts with this
        prefix are counted, and the prefix is removed so that the
        remainder matches the registry client's repository names.
    protect_pinned_digests
        Also record digests of digest-pinned references, so images pinned
        that way are never selected for deletion.

    Returns
    -------
    InUseSet
        Frozen in-use set.  Images that cannot be parsed are skipped: a
        workload may well use images outside the managed repositories.
    """
    logger = structlog.get_logger(__name__)
    in_use = InUseSet()
    skipped = 0
    for workload in workloads:
        for container in workload.containers:
            if protect_pinned_digests:
                _add_pinned_digest(
                    in_use, container.image, registry, repository_prefix
                )
            ref = ImageReference.parse(container.image, policy)
            repository = None
            if ref is not None and not (registry and ref.registry != registry):
                repository = _strip_prefix(ref.repository, repository_prefix)
            if ref is None or repository is None:
                skipped += 1
                logger.debug(
                    f"Ignoring image '{container.image}' in "
                    f"{workload.namespace}/{workload.name}"
                )
                continue
            in_use.add(dataclasses.replace(ref, repository=repository))
    in_use.freeze()
    logger.debug(
        f"Found {len(in_use)} tags in use across "
        f"{len(in_use.repositories())} repositories; skipped {skipped}"
    )
    return in_use


def _strip_prefix(repository: str, prefix: str | None) -> str | None:
    if not prefix:
        return repository
    if not repository.startswith(prefix) or repository == prefix:
        return None
    return repository[len(prefix) :]


def _add_pinned_digest(
    in_use: InUseSet,
    image: str,
    registry: str | None,
    repository_prefix: str | None,
) -> None:
    parsed = split_reference(image)
    if parsed is None:
        return
    host, repository, _, digest = parsed
    if digest is None or (registry and host != registry):
        return
    stripped = _strip_prefix(repository, repository_prefix)
    if stripped is not None:
        in_use.add_digest(stripped, digest)
