"""
Hub domain: repositories, packages, metadata files and collaborator contracts.
"""

from .models import (
    RepositoryKind,
    Repository,
    RepositoryMetadata,
    Owner,
    IgnoreEntry,
    Package,
    package_key,
    split_package_key
)
from .interfaces import (
    HTTPGetter,
    ErrorsCollector,
    ClonedRepository,
    RepositoryCloner,
    RepositoryManager,
    PackageManager,
    IndexLoader,
    ImageStore
)

__all__ = [
    'RepositoryKind',
    'Repository',
    'RepositoryMetadata',
    'Owner',
    'IgnoreEntry',
    'Package',
    'package_key',
    'split_package_key',
    'HTTPGetter',
    'ErrorsCollector',
    'ClonedRepository',
    'RepositoryCloner',
    'RepositoryManager',
    'PackageManager',
    'IndexLoader',
    'ImageStore'
]
