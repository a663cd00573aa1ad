"""
Repository trackers and the factory creating them.
"""

from typing import Dict, List, Type

from hub_tracker.hub.models import Repository, RepositoryKind
from hub_tracker.utils.errors import TrackerError
from hub_tracker.utils.logging import get_business_logger
from .base import (
    Discovery,
    Tracker,
    TrackerOption,
    set_verified_publisher_flag,
    with_bypass_digest_check,
    with_logger
)
from .catalog import CatalogTracker
from .errors_collector import DefaultErrorsCollector
from .helm import HelmTracker
from .services import Services


class TrackerRegistry:
    """Maps repository kinds to the tracker class handling them."""

    def __init__(self):
        self._trackers: Dict[RepositoryKind, Type[Tracker]] = {}
        self.logger = get_business_logger('tracker')

    def register(self, kind: RepositoryKind, tracker_class: Type[Tracker]) -> None:
        """
        Register the tracker class of a repository kind.

        Raises:
            TrackerError: If the class is not a Tracker
        """
        if not (isinstance(tracker_class, type) and issubclass(tracker_class, Tracker)):
            raise TrackerError(
                "Tracker class must extend Tracker",
                {"kind": kind.name, "tracker_class": str(tracker_class)}
            )
        self._trackers[kind] = tracker_class
        self.logger.debug(f"Tracker registered: {kind.name.lower()} -> {tracker_class.__name__}")

    def unregister(self, kind: RepositoryKind) -> None:
        self._trackers.pop(kind, None)

    def list_kinds(self) -> List[RepositoryKind]:
        return sorted(self._trackers)

    def new_tracker(self, svc: Services, r: Repository, *opts: TrackerOption) -> Tracker:
        """
        Create a tracker for the repository.

        No work is done until the tracker's track() method is called; each
        call returns a new, independent instance.

        Raises:
            TrackerError: If no tracker handles the repository kind
        """
        tracker_class = self._trackers.get(r.kind)
        if tracker_class is None:
            raise TrackerError(
                f"No tracker available for repository kind {r.kind!r}",
                {"repository": r.name, "available_kinds": [k.name.lower() for k in self.list_kinds()]}
            )
        return tracker_class(svc, r, *opts)


default_registry = TrackerRegistry()
default_registry.register(RepositoryKind.HELM, HelmTracker)
for _kind in RepositoryKind:
    if _kind != RepositoryKind.HELM:
        default_registry.register(_kind, CatalogTracker)

new_tracker = default_registry.new_tracker

__all__ = [
    'Tracker',
    'TrackerOption',
    'Discovery',
    'TrackerRegistry',
    'HelmTracker',
    'CatalogTracker',
    'DefaultErrorsCollector',
    'Services',
    'default_registry',
    'new_tracker',
    'set_verified_publisher_flag',
    'with_bypass_digest_check',
    'with_logger'
]
