"""Configuration for reaping stale tags from container registries."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Self

import yaml
from pydantic import BaseModel, Field, model_validator
from safir.pydantic import CamelCaseModel

from .models.reference import ReferencePolicy
from .models.registry_category import RegistryCategory


class RepositoryConfig(CamelCaseModel):
    """A registry repository to clean, and how many unused tags to keep."""

    name: Annotated[
        str,
        Field(
            title="Name",
            description="Repository name as known to the registry.",
            examples=["team/app"],
            min_length=1,
        ),
    ]

    max_images: Annotated[
        int,
        Field(
            title="Maximum images",
            description=(
                "Maximum number of images not referenced by any running "
                "workload to retain.  `0` means delete all of them."
            ),
            examples=[10],
            ge=0,
        ),
    ]


class RegistryConfig(CamelCaseModel):
    """Configuration to talk to a particular container registry."""

    category: Annotated[
        RegistryCategory,
        Field(
            title="Category",
            description="Category of registry",
            examples=[RegistryCategory.ECR],
        ),
    ]

    host: Annotated[
        str | None,
        Field(
            title="Host",
            description=(
                "Registry host as it appears in image references.  If set, "
                "references to other registries are not counted as in use."
            ),
            examples=["123456789012.dkr.ecr.us-east-1.amazonaws.com"],
        ),
    ] = None

    region: Annotated[
        str | None,
        Field(
            title="Region",
            description="AWS region of the ECR registry",
            examples=["us-east-1"],
        ),
    ] = None

    registry_id: Annotated[
        str | None,
        Field(
            title="Registry ID",
            description=(
                "AWS account ID owning the ECR registry; defaults to the "
                "caller's account"
            ),
            examples=["123456789012"],
        ),
    ] = None

    profile: Annotated[
        str | None,
        Field(
            title="Profile",
            description="AWS profile to use for ECR credentials",
        ),
    ] = None

    project: Annotated[
        str | None,
        Field(
            title="Project",
            description="Google Cloud project ID (Artifact Registry)",
            examples=["my-project"],
        ),
    ] = None

    location: Annotated[
        str | None,
        Field(
            title="Location",
            description="Artifact Registry location",
            examples=["us-central1"],
        ),
    ] = None

    repository: Annotated[
        str | None,
        Field(
            title="Repository",
            description=(
                "Artifact Registry repository holding the image packages"
            ),
            examples=["containers"],
        ),
    ] = None

    timeout: Annotated[
        float | None,
        Field(
            title="Timeout",
            description="Per-call timeout, in seconds, for registry requests",
            gt=0,
        ),
    ] = None

    dry_run: Annotated[
        bool,
        Field(
            title="Dry run",
            description="Do not actually delete any images from registry.",
        ),
    ] = True

    input_file: Annotated[
        Path | None,
        Field(
            title="Input file",
            description=(
                "Repository inventory to use for the preloaded registry, "
                "rather than scanning an actual registry."
            ),
        ),
    ] = None

    @property
    def repository_prefix(self) -> str | None:
        """Image path prefix that is not part of a repository name.

        Artifact Registry images are addressed as
        ``<host>/<project>/<repository>/<package>``, while the client names
        repositories by package alone.
        """
        if self.category == RegistryCategory.GAR:
            return f"{self.project}/{self.repository}/"
        return None

    @model_validator(mode="after")
    def check_category_fields(self) -> Self:
        match self.category:
            case RegistryCategory.GAR:
                missing = [
                    x
                    for x in ("project", "location", "repository")
                    if getattr(self, x) is None
                ]
                if missing:
                    raise ValueError(
                        f"GAR registry requires {', '.join(missing)}"
                    )
            case RegistryCategory.PRELOADED:
                if self.input_file is None:
                    raise ValueError("Preloaded registry requires input_file")
        return self


class KubernetesConfig(CamelCaseModel):
    """How to reach the cluster whose workloads are scanned."""

    kubeconfig: Annotated[
        Path | None,
        Field(
            title="Kubeconfig",
            description=(
                "Path to a kubeconfig file.  If unset, in-cluster "
                "configuration is tried first, then the default kubeconfig."
            ),
        ),
    ] = None

    context: Annotated[
        str | None,
        Field(title="Context", description="Kubeconfig context to use"),
    ] = None

    request_timeout: Annotated[
        float | None,
        Field(
            title="Request timeout",
            description="Per-call timeout, in seconds, for API requests",
            gt=0,
        ),
    ] = None


class TaskConfig(CamelCaseModel):
    """One reconciliation: a set of namespaces against a set of
    repositories in one registry.
    """

    name: Annotated[
        str,
        Field(
            title="Name",
            description="Name of this task, used in logs and reports",
            examples=["production"],
        ),
    ]

    namespaces: Annotated[
        list[str],
        Field(
            title="Namespaces",
            description="Namespaces whose workloads are scanned",
            examples=[["default"]],
            min_length=1,
        ),
    ]

    registry: Annotated[
        RegistryConfig,
        Field(title="Registry", description="Registry to clean"),
    ]

    repositories: Annotated[
        list[RepositoryConfig],
        Field(
            title="Repositories",
            description="Repositories to clean, with retention counts",
        ),
    ]

    kubernetes: Annotated[
        KubernetesConfig,
        Field(title="Kubernetes", description="Cluster access settings"),
    ] = KubernetesConfig()

    reference_policy: Annotated[
        ReferencePolicy,
        Field(
            title="Reference policy",
            description=(
                "Whether a reference with no tag counts as using `latest` "
                "(implicit_latest) or nothing at all (explicit_tag)"
            ),
        ),
    ] = ReferencePolicy.EXPLICIT_TAG

    protect_pinned_digests: Annotated[
        bool,
        Field(
            title="Protect pinned digests",
            description=(
                "Never delete an image whose digest a running workload "
                "references directly"
            ),
        ),
    ] = False

    max_workers: Annotated[
        int,
        Field(
            title="Maximum workers",
            description="Repositories processed in parallel",
            ge=1,
        ),
    ] = 1

    @model_validator(mode="after")
    def check_unique_repositories(self) -> Self:
        names = [x.name for x in self.repositories]
        dups = sorted({x for x in names if names.count(x) > 1})
        if dups:
            raise ValueError(f"Duplicate repositories: {', '.join(dups)}")
        return self


class Config(BaseModel):
    """Configuration for multiple cleanup tasks."""

    tasks: Annotated[
        list[TaskConfig],
        Field(
            title="Tasks",
            description="List of cleanup tasks to run.",
        ),
    ]

    debug: Annotated[
        bool,
        Field(
            title="Debug",
            description="Much more verbose logging.",
        ),
    ] = False

    @classmethod
    def from_file(cls, path: Path) -> Self:
        return cls.model_validate(yaml.safe_load(path.read_text()))
