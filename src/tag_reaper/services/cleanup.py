"""Reconcile running workloads against registry repositories."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Self

import structlog

from ..config import RepositoryConfig, TaskConfig
from ..exceptions import (
    ImageDeletionError,
    ImageListError,
    ReaperError,
    WorkloadListError,
)
from ..models.image import ImageDetail, RepositoryRecord
from ..models.inuse import InUseSet
from ..models.reference import ReferencePolicy
from ..storage.registry import ContainerRegistryClient, resolve_repositories
from ..workload.source import WorkloadSource
from .inuse import build_in_use_set
from .retention import select_for_deletion


@dataclass
class RepositoryOutcome:
    """What happened to one repository during a run."""

    repository: str
    selected: list[ImageDetail] = field(default_factory=list)
    error: ReaperError | None = None


@dataclass
class CleanupResult:
    """Result of one reconciliation pass.

    ``errors`` holds every failure, fatal or not; it is empty only if the
    whole pass succeeded.
    """

    errors: list[ReaperError] = field(default_factory=list)
    outcomes: list[RepositoryOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class CleanupTask:
    """Reconcile running workloads against registry repositories.

    The task holds configuration only.  The workload source and registry
    client are passed to each run, never kept.
    """

    namespaces: tuple[str, ...]
    repositories: tuple[RepositoryConfig, ...]
    reference_policy: ReferencePolicy = ReferencePolicy.EXPLICIT_TAG
    registry_host: str | None = None
    repository_prefix: str | None = None
    protect_pinned_digests: bool = False
    max_workers: int = 1

    @classmethod
    def from_config(cls, cfg: TaskConfig) -> Self:
        return cls(
            namespaces=tuple(cfg.namespaces),
            repositories=tuple(cfg.repositories),
            reference_policy=cfg.reference_policy,
            registry_host=cfg.registry.host,
            repository_prefix=cfg.registry.repository_prefix,
            protect_pinned_digests=cfg.protect_pinned_digests,
            max_workers=cfg.max_workers,
        )

    def remove_old_images(
        self,
        workload_source: WorkloadSource,
        registry_client: ContainerRegistryClient,
    ) -> list[ReaperError]:
        """Delete stale images from every configured repository.

        Returns
        -------
        list of ReaperError
            Every failure encountered.  An empty list means success.
        """
        return self.reconcile(workload_source, registry_client).errors

    def reconcile(
        self,
        workload_source: WorkloadSource,
        registry_client: ContainerRegistryClient,
    ) -> CleanupResult:
        """Run one pass and report per-repository outcomes as well."""
        logger = structlog.get_logger(__name__)

        # Phase one: either step failing leaves nothing safe to clean.
        in_use, workload_error = self._scan_workloads(workload_source)
        if workload_error is not None:
            return self._abort(workload_error)
        names = [x.name for x in self.repositories]
        records, resolve_error = resolve_repositories(registry_client, names)
        if resolve_error is not None:
            return self._abort(resolve_error)

        # Phase two: repositories are independent of one another.
        policies = {x.name: x for x in self.repositories}
        work: list[tuple[RepositoryRecord, RepositoryConfig]] = []
        for record in records:
            if record.name not in policies:
                logger.warning(
                    f"Registry returned unrequested repository {record.name}"
                )
                continue
            work.append((record, policies[record.name]))

        def _clean(
            item: tuple[RepositoryRecord, RepositoryConfig],
        ) -> RepositoryOutcome:
            return self._clean_repository(
                item[0], item[1], in_use, registry_client
            )

        if self.max_workers > 1 and len(work) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                outcomes = list(pool.map(_clean, work))
        else:
            outcomes = [_clean(x) for x in work]

        errors = [x.error for x in outcomes if x.error is not None]
        logger.info(
            f"Processed {len(outcomes)} repositories with "
            f"{len(errors)} errors"
        )
        return CleanupResult(errors=errors, outcomes=outcomes)

    def _abort(self, err: ReaperError) -> CleanupResult:
        structlog.get_logger(__name__).error(
            str(err), exc_info=err.__cause__
        )
        return CleanupResult(errors=[err])

    def _scan_workloads(
        self, workload_source: WorkloadSource
    ) -> tuple[InUseSet, WorkloadListError | None]:
        try:
            workloads = workload_source.list_all_workloads(
                list(self.namespaces)
            )
        except Exception as exc:
            return InUseSet(), WorkloadListError.from_exception(exc)
        in_use = build_in_use_set(
            workloads,
            self.reference_policy,
            registry=self.registry_host,
            repository_prefix=self.repository_prefix,
            protect_pinned_digests=self.protect_pinned_digests,
        )
        return in_use, None

    def _clean_repository(
        self,
        record: RepositoryRecord,
        policy: RepositoryConfig,
        in_use: InUseSet,
        registry_client: ContainerRegistryClient,
    ) -> RepositoryOutcome:
        logger = structlog.get_logger(__name__).bind(repository=record.name)
        outcome = RepositoryOutcome(repository=record.name)
        try:
            inventory = registry_client.list_images(record.name)
        except Exception as exc:
            outcome.error = ImageListError.from_exception(exc, record.name)
            logger.error(str(outcome.error), exc_info=exc)
            return outcome

        outcome.selected = select_for_deletion(
            inventory,
            in_use.tags(record.name),
            policy.max_images,
            pinned=in_use.digests(record.name),
        )
        logger.debug(
            f"Selected {len(outcome.selected)} of {len(inventory)} images "
            f"(keeping {policy.max_images} unused)"
        )
        if not outcome.selected:
            return outcome

        try:
            registry_client.batch_remove_images(outcome.selected)
        except Exception as exc:
            outcome.error = ImageDeletionError.from_exception(exc, record.name)
            logger.error(str(outcome.error), exc_info=exc)
        return outcome


