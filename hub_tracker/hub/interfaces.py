"""
Contracts of the collaborators used by trackers.

Trackers only depend on these interfaces; concrete implementations are
provided by the data layer and the trackers infrastructure modules, and tests
replace them with fakes.
"""

import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from hub_tracker.hub.models import Package, Repository, RepositoryKind, RepositoryMetadata


class HTTPGetter(ABC):
    """Minimal fetch capability: URL to response."""

    @abstractmethod
    def get(self, url: str) -> Any:
        """
        Fetch a URL.

        Returns:
            Response object exposing status_code, content and text

        Raises:
            Exception: If the request cannot be performed
        """
        pass


class ErrorsCollector(ABC):
    """Sink of per-repository tracking errors, safe for concurrent use."""

    @abstractmethod
    def init(self, repository_id: str) -> None:
        """Prepare the collector to receive errors for a repository."""
        pass

    @abstractmethod
    def append(self, repository_id: str, err: Exception) -> None:
        """Record an error for a repository."""
        pass

    @abstractmethod
    def get_errors(self) -> Dict[str, List[str]]:
        """Snapshot of the collected errors per repository."""
        pass

    @abstractmethod
    def flush(self) -> int:
        """Persist the collected errors; returns the number of failures."""
        pass


@dataclass
class ClonedRepository:
    """Local copy of a repository produced by a RepositoryCloner."""
    path: str
    packages_path: str
    digest: Optional[str] = None

    def cleanup(self) -> None:
        shutil.rmtree(self.path, ignore_errors=True)


class RepositoryCloner(ABC):
    """Materializes a repository's content locally."""

    @abstractmethod
    def clone_repository(self, ctx, r: Repository) -> ClonedRepository:
        """
        Clone the repository.

        Raises:
            TrackerError: If the repository cannot be retrieved
        """
        pass


class RepositoryManager(ABC):
    """Access to the repositories stored in the hub."""

    @abstractmethod
    def get_all(
        self,
        names: Optional[List[str]] = None,
        kinds: Optional[List[RepositoryKind]] = None,
        include_disabled: bool = False
    ) -> List[Repository]:
        pass

    @abstractmethod
    def get_metadata(self, path: str) -> RepositoryMetadata:
        """
        Load the repository metadata file at the given path or URL.

        Raises:
            MetadataError: If the file is missing, malformed or unreachable
        """
        pass

    @abstractmethod
    def set_verified_publisher(self, ctx, repository_id: str, verified: bool) -> None:
        pass

    @abstractmethod
    def set_last_tracking_results(self, ctx, repository_id: str, errors: str) -> None:
        pass

    @abstractmethod
    def update_digest(self, ctx, repository_id: str, digest: str) -> None:
        pass


class PackageManager(ABC):
    """Registration of packages in the hub."""

    @abstractmethod
    def get_packages_digest(self, ctx, repository_id: str) -> Dict[str, str]:
        """Digest of every registered package version, keyed by name@version."""
        pass

    @abstractmethod
    def register(self, ctx, package: Package) -> None:
        pass

    @abstractmethod
    def unregister(self, ctx, repository_id: str, name: str, version: str) -> None:
        pass


class IndexLoader(ABC):
    """Loads a chart repository index."""

    @abstractmethod
    def load_index(self, ctx, r: Repository) -> Tuple[Dict[str, List[Dict[str, Any]]], str]:
        """
        Load the index of the repository.

        Returns:
            Tuple of (entries by chart name, index digest)
        """
        pass


class ImageStore(ABC):
    """Stores images such as package logos."""

    @abstractmethod
    def save_image(self, ctx, data: bytes) -> str:
        """Store the image and return its identifier."""
        pass
