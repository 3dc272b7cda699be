"""Model for necessary information about container images."""

import datetime
import json
from dataclasses import dataclass, field
from typing import Self, TypeAlias, cast

DATEFMT = "%Y-%m-%dT%H:%M:%S.%f%z"

JSONImage: TypeAlias = dict[str, str | list[str] | None]


@dataclass(frozen=True)
class RepositoryRecord:
    """Registry-side identity of a repository.

    ``identifier`` is whatever the registry uses internally: an ARN at ECR,
    a package resource name at Artifact Registry.
    """

    name: str
    identifier: str
    uri: str | None = None


@dataclass(frozen=True)
class ImageDetail:
    """Class representing the things about an OCI image we care about.

    An image is identified by its digest.  It may carry any number of tags,
    including none at all.
    """

    digest: str
    repository: str
    tags: frozenset[str] = field(default_factory=frozenset)
    pushed_at: datetime.datetime | None = None

    def __str__(self) -> str:
        """Pretty(?)-printed version.  Humans care about tags, and digests
        not so much.
        """
        colon_pos = self.digest.find(":")
        dig = self.digest
        if colon_pos > -1:
            dig = self.digest[1 + colon_pos :]
        if len(dig) > 8:
            dig = dig[:8] + "..."
        dig = f"<{dig}>"
        if self.tags:
            return f"[{','.join(sorted(self.tags))}] {dig}"
        return f"[<untagged>] {dig}"

    def to_dict(self) -> JSONImage:
        # frozenset and datetime aren't JSON-serializable, so we make them
        # a list and a string.
        return {
            "digest": self.digest,
            "repository": self.repository,
            "tags": sorted(self.tags),
            "date": (
                None
                if self.pushed_at is None
                else self.pushed_at.strftime(DATEFMT)
            ),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, inp: JSONImage | str, repository: str = "") -> Self:
        """Much painful assertion that each field is the right type."""
        if isinstance(inp, str):
            obj = json.loads(inp)
            inp = cast("JSONImage", obj)
        if not isinstance(inp.get("digest"), str):
            raise TypeError(f"'digest' field of {inp} must be a string")
        repo = inp.get("repository") or repository
        if not isinstance(repo, str) or not repo:
            raise TypeError(f"'repository' field of {inp} must be a string")
        new_date: datetime.datetime | None = None
        d_s = inp.get("date")
        if d_s and isinstance(d_s, str):
            new_date = datetime.datetime.strptime(d_s, DATEFMT).astimezone(
                datetime.UTC
            )
        new_tags: frozenset[str] = frozenset()
        t_s = inp.get("tags")
        if t_s and isinstance(t_s, list):
            new_tags = frozenset(t_s)
        return cls(
            digest=cast("str", inp["digest"]),
            repository=repo,
            tags=new_tags,
            pushed_at=new_date,
        )


def newest_first(images: list[ImageDetail]) -> list[ImageDetail]:
    """Sort images by push time, newest first.

    Images without a push time sort after all dated images.  Ties are
    broken by digest so the order is stable across calls.
    """
    epoch = datetime.datetime.fromtimestamp(0, tz=datetime.UTC)

    def _age(img: ImageDetail) -> tuple[datetime.timedelta, str]:
        pushed = cast("datetime.datetime", img.pushed_at)
        return (epoch - pushed, img.digest)

    dated = sorted((x for x in images if x.pushed_at is not None), key=_age)
    undated = sorted(
        (x for x in images if x.pushed_at is None), key=lambda x: x.digest
    )
    return dated + undated
