"""Registry client backed by a previously captured inventory file.

The file looks like::

    {
      "metadata": {"category": "preloaded"},
      "data": {
        "team/app": [
          {"digest": "sha256:...", "tags": ["v2"], "date": "..."},
          ...
        ]
      }
    }

Images are listed in file order, which is taken to be most recent first.
Deletions only affect the in-memory copy.
"""

import json
from collections.abc import Sequence
from pathlib import Path
from typing import cast

from ..config import RegistryConfig
from ..models.image import ImageDetail, JSONImage, RepositoryRecord
from ..models.registry_category import RegistryCategory
from .registry import ContainerRegistryClient


class PreloadedClient(ContainerRegistryClient):
    """Registry client reading its inventory from a JSON file."""

    def __init__(self, cfg: RegistryConfig) -> None:
        if cfg.category != RegistryCategory.PRELOADED:
            raise ValueError(
                "Preloaded registry client must have value "
                f"'{RegistryCategory.PRELOADED.value}', not "
                f"'{cfg.category.value}'"
            )
        if cfg.input_file is None:
            raise ValueError("Preloaded registry client requires input_file")
        super()._extract_registry_config(cfg)
        self._input_file = cfg.input_file
        self._images: dict[str, list[ImageDetail]] = {}
        self.debug_load_images(cfg.input_file)

    def debug_load_images(self, inputfile: Path) -> None:
        """Read image map from JSON."""
        inp = json.loads(inputfile.read_text())
        if inp["metadata"]["category"] != RegistryCategory.PRELOADED.value:
            raise ValueError(
                f"Dump is from {inp['metadata']['category']}, "
                f"not {RegistryCategory.PRELOADED.value}"
            )
        self._images = {}
        count = 0
        for repo, objs in inp["data"].items():
            self._images[repo] = [
                ImageDetail.from_json(cast("JSONImage", x), repository=repo)
                for x in objs
            ]
            count += len(objs)
        self._logger.debug(
            f"Ingested {count} image{'s' if count != 1 else ''} in "
            f"{len(self._images)} repositories"
        )

    def debug_dump_images(self, outputfile: Path) -> None:
        """Write JSON of image map."""
        dd = {
            "metadata": {"category": RegistryCategory.PRELOADED.value},
            "data": {
                repo: [x.to_dict() for x in imgs]
                for repo, imgs in self._images.items()
            },
        }
        outputfile.write_text(json.dumps(dd, indent=2))

    def list_repositories(
        self, names: Sequence[str]
    ) -> list[RepositoryRecord]:
        missing = [x for x in names if x not in self._images]
        if missing:
            raise LookupError(
                f"Repositories not found in {self._input_file}: "
                f"{', '.join(missing)}"
            )
        return [
            RepositoryRecord(
                name=x, identifier=x, uri=f"{self._input_file}#{x}"
            )
            for x in names
        ]

    def list_images(self, repository_name: str) -> list[ImageDetail]:
        if repository_name not in self._images:
            raise LookupError(
                f"Repository {repository_name} not found in "
                f"{self._input_file}"
            )
        imgs = list(self._images[repository_name])
        self._logger.debug(
            f"Found {len(imgs)} images in repository {repository_name}"
        )
        return imgs

    def batch_remove_images(self, images: Sequence[ImageDetail]) -> None:
        dry = self._dry()
        for repo, imgs in self._group_by_repository(images).items():
            present = {x.digest for x in self._images.get(repo, [])}
            absent = [x.digest for x in imgs if x.digest not in present]
            if absent:
                raise LookupError(
                    f"Images not found in repository {repo}: "
                    f"{', '.join(absent)}"
                )
            self._logger.info(
                f"Deleting {len(imgs)} images from {repo}{dry}",
                digests=[x.digest for x in imgs],
            )
            if not self._dry_run:
                doomed = {x.digest for x in imgs}
                self._images[repo] = [
                    x for x in self._images[repo] if x.digest not in doomed
                ]
