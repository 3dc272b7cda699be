from enum import Enum


class RegistryCategory(Enum):
    """Each registry category has its own way of listing and deleting
    images.  ``preloaded`` reads a previously captured inventory from a
    JSON file instead of talking to a registry.
    """

    ECR = "ecr"
    GAR = "gar"
    PRELOADED = "preloaded"
