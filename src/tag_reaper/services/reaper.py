"""Provides reaping services for a set of cleanup task configurations."""

import logging
from collections.abc import Sequence

import structlog

from ..config import Config, TaskConfig
from ..exceptions import (
    ReaperError,
    RepositoryResolutionError,
    WorkloadListError,
)
from ..factory import Factory
from .cleanup import CleanupResult


class Reaper:
    """The Reaper is in charge of all the cleanup tasks."""

    def __init__(self, cfg: Config) -> None:
        log_level = logging.DEBUG if cfg.debug else logging.INFO
        structlog.configure(
            wrapper_class=structlog.make_filtering_bound_logger(log_level)
        )
        self._logger = structlog.get_logger(__name__)
        self._logger.debug("Initialized logging")
        self.tasks: dict[str, TaskConfig] = {x.name: x for x in cfg.tasks}
        self.results: dict[str, CleanupResult] = {}

    def run(
        self, names: Sequence[str] | None = None
    ) -> dict[str, CleanupResult]:
        """Run the named tasks (all of them by default), one after another.

        Returns
        -------
        dict
            Cleanup result, keyed by task name.

        Raises
        ------
        ValueError
            Raised if a requested task is not configured.
        """
        selected = list(names) if names else list(self.tasks)
        unknown = [x for x in selected if x not in self.tasks]
        if unknown:
            raise ValueError(f"Unknown tasks: {', '.join(unknown)}")
        for name in selected:
            self.results[name] = self._run_task(self.tasks[name])
        return self.results

    def _run_task(self, cfg: TaskConfig) -> CleanupResult:
        logger = self._logger.bind(task=cfg.name)
        factory = Factory(cfg, logger)
        dry = " (dry run)" if cfg.registry.dry_run else ""
        logger.info(f"Starting cleanup task {cfg.name}{dry}")
        # A client that cannot even be built fails the same way as its
        # first call would.
        err: ReaperError
        try:
            workload_source = factory.create_workload_source()
        except Exception as exc:
            err = WorkloadListError.from_exception(exc)
            logger.error(str(err), exc_info=exc)
            return CleanupResult(errors=[err])
        try:
            registry_client = factory.create_registry_client()
        except Exception as exc:
            err = RepositoryResolutionError.from_exception(exc)
            logger.error(str(err), exc_info=exc)
            return CleanupResult(errors=[err])
        task = factory.create_task()
        return task.reconcile(workload_source, registry_client)

    def errors(self) -> dict[str, list[ReaperError]]:
        return {k: v.errors for k, v in self.results.items()}

    def report(self) -> None:
        """Report on images which were (or would have been) purged."""
        for name, result in self.results.items():
            dry = " (not really)" if self.tasks[name].registry.dry_run else ""
            for outcome in result.outcomes:
                headline = f"Images to purge from {outcome.repository}{dry}:"
                print(headline)
                print("-" * len(headline))
                imgsplits = [str(x).split(" ", 1) for x in outcome.selected]
                if not imgsplits:
                    print("(none)\n")
                    continue
                maxlen = max([len(x[0]) for x in imgsplits])
                for imgsplit in imgsplits:
                    print(
                        imgsplit[0],
                        " " * (maxlen + 1 - len(imgsplit[0])),
                        imgsplit[1],
                    )
                print("\n")
            for err in result.errors:
                print(f"ERROR [{name}]: {err}")
