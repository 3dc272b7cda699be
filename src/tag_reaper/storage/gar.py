"""Storage client for Google Artifact Registry."""

import datetime
import threading
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote, unquote

from google.cloud.artifactregistry_v1 import (
    ArtifactRegistryClient,
    BatchDeleteVersionsRequest,
    ListDockerImagesRequest,
    ListPackagesRequest,
)
from google.cloud.artifactregistry_v1.types import DockerImage
from google.protobuf.empty_pb2 import Empty

from ..config import RegistryConfig
from ..models.image import ImageDetail, RepositoryRecord, newest_first
from ..models.registry_category import RegistryCategory
from .registry import ContainerRegistryClient


class GARClient(ContainerRegistryClient):
    """Client for Google Artifact Registry.

    An Artifact Registry repository holds many images, each stored as a
    package; the package is what the rest of the reaper calls a
    repository.  Package IDs are URL-encoded image paths.
    """

    def __init__(
        self,
        cfg: RegistryConfig,
        client: ArtifactRegistryClient | None = None,
    ) -> None:
        if cfg.category != RegistryCategory.GAR:
            raise ValueError(
                "GAR registry client must have value "
                f"'{RegistryCategory.GAR.value}', not '{cfg.category.value}'"
            )
        super()._extract_registry_config(cfg)
        self._parent: str = (
            f"projects/{cfg.project}/locations/{cfg.location}"
            f"/repositories/{cfg.repository}"
        )
        # In production, we will use Workload Identity.  For testing, we
        # will use application default credentials.
        self._client = client or ArtifactRegistryClient()
        self._inventory: dict[str, list[ImageDetail]] | None = None
        self._inventory_lock = threading.Lock()

    def _call_kwargs(self) -> dict[str, Any]:
        if self._timeout:
            return {"timeout": self._timeout}
        return {}

    def _package_name(self, repository_name: str) -> str:
        return f"{self._parent}/packages/{quote(repository_name, safe='')}"

    def list_repositories(
        self, names: Sequence[str]
    ) -> list[RepositoryRecord]:
        request = ListPackagesRequest(parent=self._parent, page_size=100)
        found: dict[str, RepositoryRecord] = {}
        for pkg in self._client.list_packages(
            request=request, **self._call_kwargs()
        ):
            name = unquote(pkg.name.rsplit("/packages/", 1)[-1])
            if name in names:
                found[name] = RepositoryRecord(
                    name=name, identifier=pkg.name, uri=None
                )
        missing = [x for x in names if x not in found]
        if missing:
            raise LookupError(
                f"Packages not found in {self._parent}: {', '.join(missing)}"
            )
        return [found[x] for x in names]

    def list_images(self, repository_name: str) -> list[ImageDetail]:
        # Docker images can only be listed for a whole Artifact Registry
        # repository, so the listing is fetched once and split by package.
        with self._inventory_lock:
            if self._inventory is None:
                self._inventory = self._gar_to_images(self._scan())
        retval = self._inventory.get(repository_name, [])
        self._logger.debug(
            f"Found {len(retval)} images in repository {repository_name}"
        )
        return newest_first(retval)

    def _scan(self) -> list[DockerImage]:
        images: list[DockerImage] = []
        page_size = 100
        request = ListDockerImagesRequest(
            parent=self._parent, page_size=page_size
        )
        count = 0
        while True:
            self._logger.debug(
                f"Requesting {self._parent}: images "
                f"{count*page_size + 1}-{(count+1) * page_size}"
            )
            resp = self._client.list_docker_images(
                request=request, **self._call_kwargs()
            )
            images.extend(list(resp.docker_images))
            if not resp.next_page_token:
                break
            request = ListDockerImagesRequest(
                parent=self._parent,
                page_token=resp.next_page_token,
                page_size=page_size,
            )
            count += 1
        return images

    def _gar_to_images(
        self, images: list[DockerImage]
    ) -> dict[str, list[ImageDetail]]:
        ret: dict[str, list[ImageDetail]] = {}
        for img in images:
            repo_path, digest = img.name.split("@", 1)
            repo = unquote(repo_path.split("/")[-1])
            ret.setdefault(repo, []).append(
                ImageDetail(
                    digest=digest,
                    repository=repo,
                    tags=frozenset(img.tags),
                    pushed_at=self._to_datetime(img.upload_time),
                )
            )
        return ret

    def _to_datetime(self, ut: Any) -> datetime.datetime | None:
        if not ut:
            return None
        micros = int(getattr(ut, "nanosecond", ut.microsecond * 1000) / 1000)
        return datetime.datetime(
            year=ut.year,
            month=ut.month,
            day=ut.day,
            hour=ut.hour,
            minute=ut.minute,
            second=ut.second,
            microsecond=micros,
            tzinfo=datetime.UTC,
        )

    def _image_to_name(self, img: ImageDetail) -> str:
        return f"{self._package_name(img.repository)}/versions/{img.digest}"

    def batch_remove_images(self, images: Sequence[ImageDetail]) -> None:
        dry = self._dry()
        # Empirical:
        #
        # google.api_core.exceptions.InvalidArgument: 400
        # A maximum of 50 versions are allowed per request
        limit = 50
        for repo, imgs in self._group_by_repository(images).items():
            for chunk in self._chunk(imgs, limit):
                names = [self._image_to_name(x) for x in chunk]
                req = BatchDeleteVersionsRequest(
                    parent=self._package_name(repo),
                    names=names,
                    validate_only=self._dry_run,
                )
                self._logger.debug(f"Request: {req}")
                self._logger.info(f"Deleting images {names}{dry}")
                operation = self._client.batch_delete_versions(
                    request=req, **self._call_kwargs()
                )
                resp = operation.result()
                if not isinstance(resp, Empty):
                    raise RuntimeError(
                        f"Something went wrong with batch deletion: {resp}"
                    )
            if not self._dry_run:
                self._forget(repo, {x.digest for x in imgs})
            self._logger.info(f"Deleted {len(imgs)} images from {repo}{dry}")

    def _forget(self, repository_name: str, digests: set[str]) -> None:
        with self._inventory_lock:
            if self._inventory and repository_name in self._inventory:
                self._inventory[repository_name] = [
                    x
                    for x in self._inventory[repository_name]
                    if x.digest not in digests
                ]
