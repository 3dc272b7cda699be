"""The set of image tags (and pinned digests) referenced by workloads."""

from collections import defaultdict

from .reference import ImageReference


class InUseSet:
    """Map from repository name to the tags running workloads reference.

    The set is built incrementally during one pass and then frozen; after
    `freeze` it is read-only and safe to share between threads.
    """

    def __init__(self) -> None:
        self._tags: defaultdict[str, set[str]] = defaultdict(set)
        self._digests: defaultdict[str, set[str]] = defaultdict(set)
        self._frozen = False

    def add(self, ref: ImageReference) -> None:
        """Record a tagged reference."""
        self._check_mutable()
        self._tags[ref.repository].add(ref.tag)

    def add_digest(self, repository: str, digest: str) -> None:
        """Record a digest-pinned reference."""
        self._check_mutable()
        self._digests[repository].add(digest)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def tags(self, repository: str) -> frozenset[str]:
        """Tags in use for ``repository`` (empty if none)."""
        return frozenset(self._tags.get(repository, ()))

    def digests(self, repository: str) -> frozenset[str]:
        """Pinned digests in use for ``repository`` (empty if none)."""
        return frozenset(self._digests.get(repository, ()))

    def repositories(self) -> list[str]:
        return sorted(set(self._tags) | set(self._digests))

    def __contains__(self, item: object) -> bool:
        if isinstance(item, ImageReference):
            return item.tag in self._tags.get(item.repository, ())
        return False

    def __len__(self) -> int:
        return sum(len(x) for x in self._tags.values())

    def __repr__(self) -> str:
        tags = {k: sorted(v) for k, v in sorted(self._tags.items())}
        return f"InUseSet({tags!r})"

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("InUseSet is frozen and cannot be modified")
