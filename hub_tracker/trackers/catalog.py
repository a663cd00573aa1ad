"""
Tracker for git repositories describing their packages with metadata files.
"""

from typing import List, Optional

from hub_tracker.hub.interfaces import ClonedRepository
from hub_tracker.hub.metadata import (
    find_package_metadata_files,
    load_package_metadata,
    repository_metadata_location
)
from hub_tracker.hub.models import Package
from hub_tracker.utils.errors import MetadataError, PackageError, TrackerError, TrackingCancelledError
from .base import Discovery, Tracker


class CatalogTracker(Tracker):
    """
    Tracks repositories laid out as a tree of package directories, each
    holding an artifacthub-pkg.yml file.
    """

    def __init__(self, svc, r, *opts):
        super().__init__(svc, r, *opts)
        self._clone: Optional[ClonedRepository] = None

    def discover(self) -> Discovery:
        try:
            self._clone = self.svc.repository_cloner.clone_repository(self.svc.ctx, self.r)
        except (TrackerError, TrackingCancelledError):
            raise
        except Exception as e:
            raise TrackerError(
                "Error cloning repository",
                {"repository": self.r.name, "url": self.r.url, "error": str(e)}
            ) from e

        return Discovery(
            digest=self._clone.digest,
            metadata_file=repository_metadata_location(self._clone.packages_path)
        )

    def get_packages(self) -> List[Package]:
        packages = []
        for path in find_package_metadata_files(self._clone.packages_path):
            self.svc.ctx.raise_if_cancelled()
            try:
                packages.append(load_package_metadata(path, self.r.repository_id))
            except MetadataError as e:
                self.warn(PackageError(
                    f"Error loading package metadata file {self._relative(path)}",
                    {"repository": self.r.name, "error": str(e)}
                ))
        return packages

    def close(self) -> None:
        if self._clone is not None:
            self._clone.cleanup()
            self._clone = None

    def _relative(self, path: str) -> str:
        prefix = self._clone.path.rstrip("/") + "/"
        return path[len(prefix):] if path.startswith(prefix) else path
