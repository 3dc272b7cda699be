"""Errors collected (not raised) by a cleanup run.

The orchestrator turns every collaborator failure into one of these and
returns it to the caller.  The original exception is preserved as
``__cause__``.
"""

from typing import Self

__all__ = [
    "ImageDeletionError",
    "ImageListError",
    "ReaperError",
    "RepositoryResolutionError",
    "WorkloadListError",
]


class ReaperError(Exception):
    """Base class for failures of a cleanup run.

    Parameters
    ----------
    message
        Human-readable description of the failure.
    repository
        Repository the failure applies to, if it applies to just one.
    """

    fatal = False
    """Whether this failure ends the run before any repository is visited."""

    def __init__(self, message: str, repository: str | None = None) -> None:
        super().__init__(message)
        self.repository = repository

    @classmethod
    def from_exception(
        cls, exc: BaseException, repository: str | None = None
    ) -> Self:
        """Wrap a collaborator exception, keeping it as the cause."""
        msg = cls._describe(repository)
        detail = str(exc) or type(exc).__name__
        err = cls(f"{msg}: {detail}", repository=repository)
        err.__cause__ = exc
        return err

    @classmethod
    def _describe(cls, repository: str | None) -> str:
        return "Cleanup failed"


class WorkloadListError(ReaperError):
    """Running workloads could not be listed."""

    fatal = True

    @classmethod
    def _describe(cls, repository: str | None) -> str:
        return "Cannot list workloads"


class RepositoryResolutionError(ReaperError):
    """Configured repositories could not be resolved at the registry."""

    fatal = True

    @classmethod
    def _describe(cls, repository: str | None) -> str:
        return "Cannot resolve repositories"


class ImageListError(ReaperError):
    """The image inventory of one repository could not be listed."""

    @classmethod
    def _describe(cls, repository: str | None) -> str:
        return f"Cannot list images in repository {repository}"


class ImageDeletionError(ReaperError):
    """Selected images in one repository could not be deleted."""

    @classmethod
    def _describe(cls, repository: str | None) -> str:
        return f"Cannot delete images from repository {repository}"
