"""
Tracker for chart repositories served over HTTP with an index file.
"""

import hashlib
import json
from typing import Any, Dict, List

from hub_tracker.hub.metadata import repository_metadata_location
from hub_tracker.hub.models import Package
from hub_tracker.utils.errors import PackageError, TrackerError, TrackingCancelledError
from .base import Discovery, Tracker


class HelmTracker(Tracker):
    """Tracks a chart repository through its index.yaml."""

    def __init__(self, svc, r, *opts):
        super().__init__(svc, r, *opts)
        self._entries: Dict[str, List[Dict[str, Any]]] = {}

    def discover(self) -> Discovery:
        try:
            entries, digest = self.svc.index_loader.load_index(self.svc.ctx, self.r)
        except TrackingCancelledError:
            raise
        except Exception as e:
            raise TrackerError(
                "Error loading repository index",
                {"repository": self.r.name, "url": self.r.url, "error": str(e)}
            ) from e

        self._entries = entries or {}
        return Discovery(digest=digest, metadata_file=repository_metadata_location(self.r.url))

    def get_packages(self) -> List[Package]:
        packages = []
        for name, versions in self._entries.items():
            if not isinstance(versions, list):
                self.warn(PackageError(
                    f"Invalid index entry for chart {name}",
                    {"repository": self.r.name, "error": "chart versions must be a list"}
                ))
                continue
            for entry in versions:
                try:
                    packages.append(self._entry_to_package(name, entry))
                except (PackageError, TypeError, AttributeError) as e:
                    self.warn(PackageError(
                        f"Invalid index entry for chart {name}",
                        {"repository": self.r.name, "error": str(e)}
                    ))
        return packages

    def _entry_to_package(self, name: str, entry: Dict[str, Any]) -> Package:
        version = entry.get("version")
        if not version:
            raise PackageError("version not provided")

        # Charts without digest get one computed from their index entry
        digest = entry.get("digest") or hashlib.sha256(
            json.dumps(entry, sort_keys=True, default=str).encode("utf-8")
        ).hexdigest()

        urls = entry.get("urls") or []
        app_version = entry.get("appVersion")

        return Package(
            repository_id=self.r.repository_id,
            name=name,
            version=str(version),
            digest=digest,
            description=entry.get("description"),
            app_version=str(app_version) if app_version is not None else None,
            logo_url=entry.get("icon"),
            content_url=self._absolute_url(urls[0]) if urls else None,
            data={"api_version": entry.get("apiVersion")} if entry.get("apiVersion") else {}
        )

    def _absolute_url(self, url: str) -> str:
        if url.startswith("http://") or url.startswith("https://"):
            return url
        return f"{self.r.url.rstrip('/')}/{url.lstrip('/')}"
