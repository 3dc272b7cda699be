"""Component factory."""

import structlog
from structlog.stdlib import BoundLogger

from .config import TaskConfig
from .models.registry_category import RegistryCategory
from .services.cleanup import CleanupTask
from .storage.ecr import ECRClient
from .storage.gar import GARClient
from .storage.preloaded import PreloadedClient
from .storage.registry import ContainerRegistryClient
from .workload.kubernetes import KubernetesWorkloadSource
from .workload.source import WorkloadSource


class Factory:
    """Build reaper components for one cleanup task.

    Clients are created fresh on every call, so each run gets current
    credentials and nothing is shared between runs.

    Parameters
    ----------
    config
        Task configuration.
    logger
        Logger to use for messages.
    """

    def __init__(
        self, config: TaskConfig, logger: BoundLogger | None = None
    ) -> None:
        self._config = config
        self._logger = logger or structlog.get_logger(__name__)

    def create_task(self) -> CleanupTask:
        return CleanupTask.from_config(self._config)

    def create_registry_client(self) -> ContainerRegistryClient:
        cfg = self._config.registry
        self._logger.debug(f"Creating {cfg.category.value} registry client")
        match cfg.category:
            case RegistryCategory.ECR:
                return ECRClient(cfg=cfg)
            case RegistryCategory.GAR:
                return GARClient(cfg=cfg)
            case RegistryCategory.PRELOADED:
                return PreloadedClient(cfg=cfg)
            case _:
                raise NotImplementedError(
                    f"Storage driver for {cfg.category} not implemented yet"
                )

    def create_workload_source(self) -> WorkloadSource:
        self._logger.debug(
            f"Creating workload source for namespaces "
            f"{', '.join(self._config.namespaces)}"
        )
        return KubernetesWorkloadSource(cfg=self._config.kubernetes)
