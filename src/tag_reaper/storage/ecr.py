"""Storage client for Amazon Elastic Container Registry."""

from collections.abc import Sequence
from typing import Any

import boto3
from botocore.config import Config as BotoConfig

from ..config import RegistryConfig
from ..models.image import ImageDetail, RepositoryRecord, newest_first
from ..models.registry_category import RegistryCategory
from .registry import ContainerRegistryClient


class ECRClient(ContainerRegistryClient):
    """Client for Amazon ECR.

    ECR does not promise any order for ``DescribeImages``, so images are
    sorted by push time, newest first, before being returned.
    """

    def __init__(self, cfg: RegistryConfig, client: Any = None) -> None:
        if cfg.category != RegistryCategory.ECR:
            raise ValueError(
                "ECR registry client must have value "
                f"'{RegistryCategory.ECR.value}', not '{cfg.category.value}'"
            )
        super()._extract_registry_config(cfg)
        self._registry_id = cfg.registry_id
        if client is None:
            session = boto3.Session(
                profile_name=cfg.profile, region_name=cfg.region
            )
            boto_cfg = None
            if self._timeout:
                boto_cfg = BotoConfig(
                    connect_timeout=self._timeout, read_timeout=self._timeout
                )
            client = session.client("ecr", config=boto_cfg)
        self._client = client

    def _registry_kwargs(self) -> dict[str, str]:
        if self._registry_id:
            return {"registryId": self._registry_id}
        return {}

    def list_repositories(
        self, names: Sequence[str]
    ) -> list[RepositoryRecord]:
        # Unknown names raise RepositoryNotFoundException.
        paginator = self._client.get_paginator("describe_repositories")
        retval: list[RepositoryRecord] = []
        # DescribeRepositories accepts at most 100 repository names.
        for chunk in self._chunk(names, 100):
            for page in paginator.paginate(
                repositoryNames=chunk, **self._registry_kwargs()
            ):
                retval.extend(
                    RepositoryRecord(
                        name=x["repositoryName"],
                        identifier=x["repositoryArn"],
                        uri=x.get("repositoryUri"),
                    )
                    for x in page.get("repositories", [])
                )
        self._logger.debug(f"Found {len(retval)} repositories")
        return retval

    def list_images(self, repository_name: str) -> list[ImageDetail]:
        paginator = self._client.get_paginator("describe_images")
        images: list[ImageDetail] = []
        page_count = 0
        for page in paginator.paginate(
            repositoryName=repository_name, **self._registry_kwargs()
        ):
            page_count += 1
            self._logger.debug(
                f"Requesting {repository_name}: page {page_count}"
            )
            images.extend(
                ImageDetail(
                    digest=x["imageDigest"],
                    repository=repository_name,
                    tags=frozenset(x.get("imageTags", [])),
                    pushed_at=x.get("imagePushedAt"),
                )
                for x in page.get("imageDetails", [])
            )
        self._logger.debug(
            f"Found {len(images)} images in repository {repository_name}"
        )
        return newest_first(images)

    def batch_remove_images(self, images: Sequence[ImageDetail]) -> None:
        dry = self._dry()
        # Empirical: BatchDeleteImage accepts at most 100 image IDs.
        limit = 100
        for repo, imgs in self._group_by_repository(images).items():
            count = 0
            for chunk in self._chunk(imgs, limit):
                digests = [x.digest for x in chunk]
                self._logger.info(f"Deleting images {digests}{dry}")
                if not self._dry_run:
                    resp = self._client.batch_delete_image(
                        repositoryName=repo,
                        imageIds=[{"imageDigest": x} for x in digests],
                        **self._registry_kwargs(),
                    )
                    failures = resp.get("failures", [])
                    if failures:
                        reasons = [
                            f"{x.get('imageId', {}).get('imageDigest')}: "
                            f"{x.get('failureReason', x.get('failureCode'))}"
                            for x in failures
                        ]
                        raise RuntimeError(
                            f"Failed to delete {len(failures)} images from "
                            f"{repo}: {'; '.join(reasons)}"
                        )
                count += len(chunk)
            self._logger.info(f"Deleted {count} images from {repo}{dry}")
