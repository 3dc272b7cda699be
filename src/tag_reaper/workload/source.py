"""Abstract superclass for sources of running workloads."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ..models.workload import WorkloadSpec


class WorkloadSource(ABC):
    """Anything that can list the workloads running in a set of namespaces.

    `list_all_workloads` raises on failure.  A source is never stored by
    the cleanup task; it is handed to each run.
    """

    @abstractmethod
    def list_all_workloads(
        self, namespaces: Sequence[str]
    ) -> list[WorkloadSpec]: ...
