"""Models for running workloads and the images their containers use."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Container:
    """A single container within a workload."""

    name: str
    image: str
    """Raw image reference, exactly as written in the container spec."""


@dataclass(frozen=True)
class WorkloadSpec:
    """A running unit of compute (for Kubernetes, a pod).

    A workload may have no containers at all; it then references no images.
    """

    namespace: str
    name: str
    containers: tuple[Container, ...] = field(default_factory=tuple)

    @property
    def images(self) -> list[str]:
        return [x.image for x in self.containers]
