"""
Services shared by every tracker of a run.
"""

from dataclasses import dataclass
from typing import Any

from hub_tracker.concurrent.context import TrackingContext
from hub_tracker.hub.interfaces import (
    ErrorsCollector,
    HTTPGetter,
    ImageStore,
    IndexLoader,
    PackageManager,
    RepositoryCloner,
    RepositoryManager
)


@dataclass(frozen=True)
class Services:
    """
    Collaborators a tracker needs to do its job.

    Built once per run before any tracker starts and shared by reference
    across all of them; it must not be modified afterwards.
    """
    ctx: TrackingContext
    cfg: Any
    repository_cloner: RepositoryCloner
    repository_manager: RepositoryManager
    package_manager: PackageManager
    index_loader: IndexLoader
    image_store: ImageStore
    errors_collector: ErrorsCollector
    http_getter: HTTPGetter
