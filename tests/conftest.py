"""Test fixtures for registry tag reaper."""

from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Any

import pytest
import yaml

from tag_reaper.config import RegistryConfig, RepositoryConfig
from tag_reaper.models.image import ImageDetail, RepositoryRecord
from tag_reaper.models.registry_category import RegistryCategory
from tag_reaper.models.workload import Container, WorkloadSpec
from tag_reaper.services.cleanup import CleanupTask
from tag_reaper.storage.preloaded import PreloadedClient
from tag_reaper.storage.registry import ContainerRegistryClient
from tag_reaper.workload.source import WorkloadSource

SUPPORT_DIR = Path(__file__).parent / "support"


class FakeWorkloadSource(WorkloadSource):
    """Workload source returning canned workloads and recording calls."""

    def __init__(
        self,
        workloads: list[WorkloadSpec] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.workloads = workloads or []
        self.error = error
        self.calls: list[list[str]] = []

    def list_all_workloads(
        self, namespaces: Sequence[str]
    ) -> list[WorkloadSpec]:
        self.calls.append(list(namespaces))
        if self.error:
            raise self.error
        return self.workloads


class FakeRegistryClient(ContainerRegistryClient):
    """Registry client with canned inventories and per-call failures."""

    def __init__(
        self,
        images: dict[str, list[ImageDetail]] | None = None,
        *,
        list_repositories_error: Exception | None = None,
        list_images_errors: dict[str, Exception] | None = None,
        remove_errors: dict[str, Exception] | None = None,
    ) -> None:
        self.images = images or {}
        self.list_repositories_error = list_repositories_error
        self.list_images_errors = list_images_errors or {}
        self.remove_errors = remove_errors or {}
        self.repository_calls: list[list[str]] = []
        self.image_calls: list[str] = []
        self.remove_calls: list[list[ImageDetail]] = []

    @property
    def calls(self) -> int:
        return (
            len(self.repository_calls)
            + len(self.image_calls)
            + len(self.remove_calls)
        )

    def list_repositories(
        self, names: Sequence[str]
    ) -> list[RepositoryRecord]:
        self.repository_calls.append(list(names))
        if self.list_repositories_error:
            raise self.list_repositories_error
        return [
            RepositoryRecord(name=x, identifier=f"arn:{x}")
            for x in names
            if x in self.images
        ]

    def list_images(self, repository_name: str) -> list[ImageDetail]:
        self.image_calls.append(repository_name)
        if repository_name in self.list_images_errors:
            raise self.list_images_errors[repository_name]
        return list(self.images[repository_name])

    def batch_remove_images(self, images: Sequence[ImageDetail]) -> None:
        self.remove_calls.append(list(images))
        repo = images[0].repository
        if repo in self.remove_errors:
            raise self.remove_errors[repo]

    def removed_digests(self) -> list[str]:
        return [x.digest for call in self.remove_calls for x in call]


def make_pod(
    *images: str, namespace: str = "namespace", name: str = "pod"
) -> WorkloadSpec:
    return WorkloadSpec(
        namespace=namespace,
        name=name,
        containers=tuple(
            Container(name=f"c{i}", image=x) for i, x in enumerate(images)
        ),
    )


def make_image(
    digest: str, *tags: str, repository: str = "repo"
) -> ImageDetail:
    return ImageDetail(
        digest=digest, repository=repository, tags=frozenset(tags)
    )


@pytest.fixture
def workload_source() -> FakeWorkloadSource:
    """One namespace running one container from the managed repository."""
    return FakeWorkloadSource(
        [make_pod("id.dkr.ecr.region.amazonaws.com/repo:tag-1")]
    )


@pytest.fixture
def registry_client() -> FakeRegistryClient:
    """One repository holding one untagged image."""
    return FakeRegistryClient({"repo": [make_image("image-digest")]})


@pytest.fixture
def task_factory() -> Callable[..., CleanupTask]:
    """Build a task over the given repositories (default: 'repo')."""

    def _factory(
        max_images: int, *names: str, **kwargs: Any
    ) -> CleanupTask:
        repos = names or ("repo",)
        return CleanupTask(
            namespaces=("namespace",),
            repositories=tuple(
                RepositoryConfig(name=x, max_images=max_images) for x in repos
            ),
            **kwargs,
        )

    return _factory


@pytest.fixture
def preloaded_cfg() -> RegistryConfig:
    """Config for the preloaded registry."""
    return RegistryConfig(
        category=RegistryCategory.PRELOADED,
        input_file=SUPPORT_DIR / "inventory.json",
        dry_run=False,
    )


@pytest.fixture
def preloaded_client(preloaded_cfg: RegistryConfig) -> PreloadedClient:
    """Client for the preloaded registry."""
    return PreloadedClient(cfg=preloaded_cfg)


@pytest.fixture(scope="session")
def test_config() -> Iterator[Path]:
    """YAML configuration file."""
    with TemporaryDirectory() as td:
        new_config = Path(td) / "config.yaml"
        config = yaml.safe_load((SUPPORT_DIR / "config.yaml").read_text())
        config["tasks"][0]["registry"]["inputFile"] = str(
            SUPPORT_DIR / "inventory.json"
        )
        new_config.write_text(yaml.dump(config))

        yield new_config
