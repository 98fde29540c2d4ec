"""Container registry retention pipeline.

Submodules:
    client     -- RegistryClient ABC with az-CLI and OCI distribution backends.
    enumerator -- RegistryEnumerator: repositories with tags newest-first.
    pruner     -- ImagePruner: keep-count retention and tag deletion.
"""

from fleetkeeper.registry.client import (
    AzureCliRegistryClient,
    DistributionRegistryClient,
    RegistryClient,
    RegistryError,
    TagInfo,
)
from fleetkeeper.registry.enumerator import RegistryEnumerator
from fleetkeeper.registry.pruner import ImagePruner

__all__ = [
    "AzureCliRegistryClient",
    "DistributionRegistryClient",
    "ImagePruner",
    "RegistryClient",
    "RegistryEnumerator",
    "RegistryError",
    "TagInfo",
]
