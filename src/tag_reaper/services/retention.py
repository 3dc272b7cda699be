"""Decide which images in a repository are beyond the retention budget."""

from collections.abc import Iterable, Sequence

from ..models.image import ImageDetail


def is_in_use(
    image: ImageDetail,
    in_use: frozenset[str],
    pinned: frozenset[str] = frozenset(),
) -> bool:
    """Whether any of the image's tags, or its digest, is in use."""
    return not image.tags.isdisjoint(in_use) or image.digest in pinned


def select_for_deletion(
    inventory: Sequence[ImageDetail],
    in_use: Iterable[str],
    max_images: int,
    pinned: Iterable[str] = frozenset(),
) -> list[ImageDetail]:
    """Select the images to delete from one repository.

    Parameters
    ----------
    inventory
        Every image in the repository, in the registry's order (most
        recent first).  That order is authoritative and is not changed.
    in_use
        Tags referenced by running workloads.  An image carrying any of
        them is always kept.
    max_images
        How many images not in use to keep.  The first ``max_images`` of
        them in inventory order are kept and the rest are selected.
    pinned
        Digests referenced directly by running workloads.  Those images
        are always kept too.

    Returns
    -------
    list of ImageDetail
        Images to delete, in inventory order.

    Raises
    ------
    ValueError
        Raised if ``max_images`` is negative.
    """
    if max_images < 0:
        raise ValueError(f"max_images must not be negative: {max_images}")
    tags = frozenset(in_use)
    digests = frozenset(pinned)
    unused = [x for x in inventory if not is_in_use(x, tags, digests)]
    return unused[max_images:]
