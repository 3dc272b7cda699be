"""Tests for the Amazon ECR registry client."""

import datetime
from collections.abc import Iterator

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from tag_reaper.config import RegistryConfig
from tag_reaper.models.image import ImageDetail
from tag_reaper.models.registry_category import RegistryCategory
from tag_reaper.storage.ecr import ECRClient

REGISTRY_ID = "123456789012"
ARN = f"arn:aws:ecr:us-east-1:{REGISTRY_ID}:repository/team/app"
URI = f"{REGISTRY_ID}.dkr.ecr.us-east-1.amazonaws.com/team/app"


def _digest(n: int) -> str:
    return "sha256:" + f"{n:02d}" * 32


def _pushed(day: int) -> datetime.datetime:
    return datetime.datetime(2024, 3, day, tzinfo=datetime.UTC)


@pytest.fixture
def ecr_cfg() -> RegistryConfig:
    """Config for ECR, with deletions enabled."""
    return RegistryConfig(
        category=RegistryCategory.ECR,
        region="us-east-1",
        registry_id=REGISTRY_ID,
        dry_run=False,
    )


@pytest.fixture
def stubbed() -> Iterator[tuple[object, Stubber]]:
    client = boto3.client(
        "ecr",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


def test_list_repositories(
    ecr_cfg: RegistryConfig, stubbed: tuple[object, Stubber]
) -> None:
    client, stubber = stubbed
    stubber.add_response(
        "describe_repositories",
        {
            "repositories": [
                {
                    "repositoryName": "team/app",
                    "repositoryArn": ARN,
                    "repositoryUri": URI,
                    "registryId": REGISTRY_ID,
                }
            ]
        },
        {"repositoryNames": ["team/app"], "registryId": REGISTRY_ID},
    )
    ecr = ECRClient(cfg=ecr_cfg, client=client)
    records = ecr.list_repositories(["team/app"])
    assert len(records) == 1
    assert records[0].name == "team/app"
    assert records[0].identifier == ARN
    assert records[0].uri == URI


def test_list_repositories_chunked(
    ecr_cfg: RegistryConfig, stubbed: tuple[object, Stubber]
) -> None:
    client, stubber = stubbed
    names = [f"team/app-{n:03d}" for n in range(101)]
    for chunk in (names[:100], names[100:]):
        stubber.add_response(
            "describe_repositories",
            {
                "repositories": [
                    {
                        "repositoryName": x,
                        "repositoryArn": f"{ARN}-{x}",
                        "registryId": REGISTRY_ID,
                    }
                    for x in chunk
                ]
            },
            {"repositoryNames": chunk, "registryId": REGISTRY_ID},
        )
    ecr = ECRClient(cfg=ecr_cfg, client=client)
    records = ecr.list_repositories(names)
    assert [x.name for x in records] == names


def test_list_repositories_not_found(
    ecr_cfg: RegistryConfig, stubbed: tuple[object, Stubber]
) -> None:
    client, stubber = stubbed
    stubber.add_client_error(
        "describe_repositories",
        service_error_code="RepositoryNotFoundException",
        service_message="The repository does not exist",
    )
    ecr = ECRClient(cfg=ecr_cfg, client=client)
    with pytest.raises(ClientError):
        ecr.list_repositories(["missing"])


def test_list_images_newest_first(
    ecr_cfg: RegistryConfig, stubbed: tuple[object, Stubber]
) -> None:
    client, stubber = stubbed
    stubber.add_response(
        "describe_images",
        {
            "imageDetails": [
                {
                    "repositoryName": "team/app",
                    "imageDigest": _digest(1),
                    "imageTags": ["v1"],
                    "imagePushedAt": _pushed(1),
                },
                {
                    "repositoryName": "team/app",
                    "imageDigest": _digest(3),
                    "imagePushedAt": _pushed(3),
                },
            ],
            "nextToken": "page-2",
        },
        {"repositoryName": "team/app", "registryId": REGISTRY_ID},
    )
    stubber.add_response(
        "describe_images",
        {
            "imageDetails": [
                {
                    "repositoryName": "team/app",
                    "imageDigest": _digest(2),
                    "imageTags": ["v2", "stable"],
                    "imagePushedAt": _pushed(2),
                },
            ]
        },
        {
            "repositoryName": "team/app",
            "registryId": REGISTRY_ID,
            "nextToken": "page-2",
        },
    )
    ecr = ECRClient(cfg=ecr_cfg, client=client)
    imgs = ecr.list_images("team/app")
    assert [x.digest for x in imgs] == [_digest(3), _digest(2), _digest(1)]
    assert imgs[0].tags == frozenset()
    assert imgs[1].tags == {"v2", "stable"}
    assert all(x.repository == "team/app" for x in imgs)


def test_batch_remove_images(
    ecr_cfg: RegistryConfig, stubbed: tuple[object, Stubber]
) -> None:
    client, stubber = stubbed
    imgs = [
        ImageDetail(digest=_digest(n), repository="team/app")
        for n in range(1, 4)
    ]
    ids = [{"imageDigest": x.digest} for x in imgs]
    stubber.add_response(
        "batch_delete_image",
        {"imageIds": ids, "failures": []},
        {
            "repositoryName": "team/app",
            "imageIds": ids,
            "registryId": REGISTRY_ID,
        },
    )
    ECRClient(cfg=ecr_cfg, client=client).batch_remove_images(imgs)


def test_batch_remove_images_chunked(
    ecr_cfg: RegistryConfig, stubbed: tuple[object, Stubber]
) -> None:
    client, stubber = stubbed
    imgs = [
        ImageDetail(digest=f"sha256:{n:064x}", repository="team/app")
        for n in range(150)
    ]
    for chunk in (imgs[:100], imgs[100:]):
        ids = [{"imageDigest": x.digest} for x in chunk]
        stubber.add_response(
            "batch_delete_image",
            {"imageIds": ids, "failures": []},
            {
                "repositoryName": "team/app",
                "imageIds": ids,
                "registryId": REGISTRY_ID,
            },
        )
    ECRClient(cfg=ecr_cfg, client=client).batch_remove_images(imgs)


def test_batch_remove_images_failure(
    ecr_cfg: RegistryConfig, stubbed: tuple[object, Stubber]
) -> None:
    client, stubber = stubbed
    img = ImageDetail(digest=_digest(1), repository="team/app")
    stubber.add_response(
        "batch_delete_image",
        {
            "imageIds": [],
            "failures": [
                {
                    "imageId": {"imageDigest": img.digest},
                    "failureCode": "ImageReferencedByManifestList",
                    "failureReason": "Image is referenced by a manifest list",
                }
            ],
        },
        {
            "repositoryName": "team/app",
            "imageIds": [{"imageDigest": img.digest}],
            "registryId": REGISTRY_ID,
        },
    )
    ecr = ECRClient(cfg=ecr_cfg, client=client)
    with pytest.raises(RuntimeError, match="manifest list"):
        ecr.batch_remove_images([img])


def test_batch_remove_images_dry_run(
    ecr_cfg: RegistryConfig, stubbed: tuple[object, Stubber]
) -> None:
    """A dry run makes no deletion call at all."""
    client, _ = stubbed
    cfg = ecr_cfg.model_copy(update={"dry_run": True})
    ecr = ECRClient(cfg=cfg, client=client)
    ecr.batch_remove_images(
        [ImageDetail(digest=_digest(1), repository="team/app")]
    )
