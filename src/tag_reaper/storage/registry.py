"""Abstract superclass for container registry clients."""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from typing import TypeVar

import structlog

from ..config import RegistryConfig
from ..exceptions import RepositoryResolutionError
from ..models.image import ImageDetail, RepositoryRecord

T = TypeVar("T")


class ContainerRegistryClient(ABC):
    """Collection of methods we expect any registry client to provide.

    Note that these are synchronous.  That's on purpose.  Registries
    generally rate-limit requests, and a daily run removes no more than a
    handful of images, so there is nothing to gain from async clients.
    Repositories can still be processed in parallel by the caller; each
    client method call is independent.

    Every method raises on failure; callers decide whether that failure
    ends the run.
    """

    @abstractmethod
    def list_repositories(
        self, names: Sequence[str]
    ) -> list[RepositoryRecord]:
        """Resolve repository names in one query.  Unknown names fail."""
        ...

    @abstractmethod
    def list_images(self, repository_name: str) -> list[ImageDetail]:
        """List every image in a repository, most recently pushed first."""
        ...

    @abstractmethod
    def batch_remove_images(self, images: Sequence[ImageDetail]) -> None:
        """Delete images by digest.  Any failed deletion raises."""
        ...

    def __init__(self, cfg: RegistryConfig) -> None:
        # Because multiple inheritance makes running super().__init__() ugly,
        # we do the work in a method that is not likely to exist on a different
        # class.
        self._extract_registry_config(cfg)

    def _extract_registry_config(self, cfg: RegistryConfig) -> None:
        self._dry_run = cfg.dry_run
        self._category = cfg.category
        self._timeout = cfg.timeout
        self._logger = structlog.get_logger(__name__)

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def _dry(self) -> str:
        return " (not really)" if self._dry_run else ""

    def _group_by_repository(
        self, images: Sequence[ImageDetail]
    ) -> dict[str, list[ImageDetail]]:
        retval: dict[str, list[ImageDetail]] = {}
        for img in images:
            retval.setdefault(img.repository, []).append(img)
        return retval

    def _chunk(self, inp: Sequence[T], n: int) -> Iterator[list[T]]:
        for i in range(0, len(inp), n):
            yield list(inp[i : i + n])


def resolve_repositories(
    client: ContainerRegistryClient, names: Sequence[str]
) -> tuple[list[RepositoryRecord], RepositoryResolutionError | None]:
    """Resolve configured repository names to registry records.

    Returns
    -------
    tuple
        The records, and `None`; or an empty list and the failure.
    """
    logger = structlog.get_logger(__name__)
    try:
        records = client.list_repositories(names)
    except Exception as exc:
        return [], RepositoryResolutionError.from_exception(exc)
    logger.debug(f"Resolved {len(records)} repositories")
    return records, None
