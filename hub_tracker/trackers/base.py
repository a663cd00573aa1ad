"""
Tracker contract and the tracking pass shared by every repository kind.
"""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from hub_tracker.concurrent.thread_safe import WaitGroup
from hub_tracker.hub.models import Package, Repository, RepositoryMetadata, split_package_key
from hub_tracker.utils.errors import PackageError, TrackerError, TrackingCancelledError
from hub_tracker.utils.logging import get_business_logger
from .services import Services


logger = get_business_logger('tracker')

TrackerOption = Callable[["Tracker"], None]


@dataclass
class Discovery:
    """What a tracker learnt about the repository before processing it."""
    digest: Optional[str]
    metadata_file: str


def with_bypass_digest_check(value: bool = True) -> TrackerOption:
    """Process the repository even if its digest has not changed."""
    def apply(t: "Tracker") -> None:
        t.bypass_digest_check = value
    return apply


def with_logger(custom_logger) -> TrackerOption:
    """Use a specific logger for the tracker."""
    def apply(t: "Tracker") -> None:
        t.logger = custom_logger
    return apply


def set_verified_publisher_flag(svc: Services, r: Repository, md_file: str) -> bool:
    """
    Set the repository verified publisher flag when needed.

    The repository is a verified publisher when the metadata file at md_file
    can be loaded and declares the repository's own id. Nothing is written
    when the stored flag already has the computed value.

    Returns:
        The computed flag

    Raises:
        TrackerError: If the flag cannot be updated
    """
    verified_publisher = False
    try:
        md = svc.repository_manager.get_metadata(md_file)
    except Exception as e:
        logger.debug(f"No valid metadata file for repository {r.name}: {e}")
    else:
        if md.repository_id == r.repository_id:
            verified_publisher = True

    if r.verified_publisher != verified_publisher:
        try:
            svc.repository_manager.set_verified_publisher(svc.ctx, r.repository_id, verified_publisher)
        except TrackingCancelledError:
            raise
        except Exception as e:
            raise TrackerError(
                "Error setting verified publisher flag",
                {"repository": r.name, "error": str(e)}
            ) from e
        logger.info(f"Verified publisher flag of repository {r.name} set to {verified_publisher}")

    return verified_publisher


class Tracker(ABC):
    """
    Processes the packages available in one repository.

    A tracker is bound to a single repository and runs exactly once: track()
    performs a full pass and calls wg.done() when it finishes, whatever the
    outcome. Errors affecting a single package are sent to the errors
    collector and the pass goes on; repository-level errors are raised.

    Kind-specific trackers implement discover() and get_packages().
    """

    def __init__(self, svc: Services, r: Repository, *opts: TrackerOption):
        self.svc = svc
        self.r = r
        self.logger = logger
        self.bypass_digest_check = svc.cfg.tracker.bypass_digest_check

        self._started = False
        self._lock = threading.Lock()
        self._errors = 0

        for opt in opts:
            opt(self)

    @abstractmethod
    def discover(self) -> Discovery:
        """
        Locate the repository content.

        Raises:
            TrackerError: If the repository cannot be reached
        """
        pass

    @abstractmethod
    def get_packages(self) -> List[Package]:
        """
        Packages currently available in the repository.

        Packages that cannot be loaded are reported with warn() and left out.
        """
        pass

    def close(self) -> None:
        """Release resources acquired by discover()."""
        pass

    def track(self, wg: WaitGroup) -> None:
        """
        Run the tracking pass and signal completion on wg.

        Raises:
            TrackerError: On repository-level errors
        """
        try:
            self._claim()
            self.logger.info(f"Tracking repository {self.r.name} ({self.r.kind.name.lower()})")
            started = time.time()
            self._run()
            self.logger.info(
                f"Repository {self.r.name} tracked in {time.time() - started:.2f}s "
                f"(errors={self._errors})"
            )
        finally:
            wg.done()

    def warn(self, err: Exception) -> None:
        """Report an error that does not stop the pass."""
        self._errors += 1
        self.svc.errors_collector.append(self.r.repository_id, err)
        self.logger.warning(f"Repository {self.r.name}: {err}")

    @property
    def errors_count(self) -> int:
        return self._errors

    def _claim(self) -> None:
        with self._lock:
            if self._started:
                raise TrackerError("Tracker instance already used", {"repository": self.r.name})
            self._started = True

    def _run(self) -> None:
        ctx = self.svc.ctx
        ctx.raise_if_cancelled()

        try:
            discovery = self.discover()

            ctx.raise_if_cancelled()
            set_verified_publisher_flag(self.svc, self.r, discovery.metadata_file)

            if self._digest_unchanged(discovery):
                self.logger.info(f"Repository {self.r.name} digest has not changed, skipping")
                return

            md = self._get_metadata(discovery.metadata_file)

            errors_before = self._errors
            packages = self._available_packages(md)
            loading_failed = self._errors > errors_before

            self._sync_packages(packages, allow_unregister=not loading_failed)

            self._update_digest(discovery.digest)
        finally:
            self.close()

    def _digest_unchanged(self, discovery: Discovery) -> bool:
        if self.bypass_digest_check or not discovery.digest:
            return False
        return discovery.digest == self.r.digest

    def _get_metadata(self, md_file: str) -> Optional[RepositoryMetadata]:
        try:
            return self.svc.repository_manager.get_metadata(md_file)
        except Exception as e:
            self.logger.debug(f"Repository {self.r.name} metadata not available: {e}")
            return None

    def _available_packages(self, md: Optional[RepositoryMetadata]) -> List[Package]:
        packages = []
        for pkg in self.get_packages():
            if md is not None and md.ignores(pkg.name, pkg.version):
                self.logger.debug(f"Ignoring package {pkg.key} of repository {self.r.name}")
                continue
            packages.append(pkg)
        return packages

    def _sync_packages(self, packages: List[Package], allow_unregister: bool = True) -> None:
        """Register new or changed packages and unregister the removed ones."""
        ctx = self.svc.ctx
        pm = self.svc.package_manager

        try:
            registered = pm.get_packages_digest(ctx, self.r.repository_id)
        except TrackingCancelledError:
            raise
        except Exception as e:
            raise TrackerError(
                "Error getting registered packages digest",
                {"repository": self.r.name, "error": str(e)}
            ) from e

        available: Dict[str, Package] = {}
        for pkg in packages:
            available[pkg.key] = pkg

        for key, pkg in available.items():
            ctx.raise_if_cancelled()
            if registered.get(key) == pkg.digest:
                continue
            self._register_package(pkg)

        if not allow_unregister:
            self.logger.warning(
                f"Some packages of repository {self.r.name} could not be loaded, "
                f"skipping packages unregistration"
            )
            return

        for key in registered:
            if key in available:
                continue
            ctx.raise_if_cancelled()
            self._unregister_package(key)

    def _register_package(self, pkg: Package) -> None:
        try:
            pkg.validate()
            if pkg.logo_url and not pkg.logo_image_id:
                pkg.logo_image_id = self._store_logo(pkg)
            self.svc.package_manager.register(self.svc.ctx, pkg)
            self.logger.debug(f"Package {pkg.key} registered (repository {self.r.name})")
        except TrackingCancelledError:
            raise
        except Exception as e:
            self.warn(PackageError(
                f"Error registering package {pkg.key}",
                {"repository": self.r.name, "error": str(e)}
            ))

    def _unregister_package(self, key: str) -> None:
        name, version = split_package_key(key)
        try:
            self.svc.package_manager.unregister(self.svc.ctx, self.r.repository_id, name, version)
            self.logger.debug(f"Package {key} unregistered (repository {self.r.name})")
        except TrackingCancelledError:
            raise
        except Exception as e:
            self.warn(PackageError(
                f"Error unregistering package {key}",
                {"repository": self.r.name, "error": str(e)}
            ))

    def _store_logo(self, pkg: Package) -> Optional[str]:
        """Fetch the package logo and save it in the image store."""
        try:
            resp = self.svc.http_getter.get(pkg.logo_url)
            if resp.status_code != 200:
                raise PackageError(f"Unexpected status code received: {resp.status_code}")
            return self.svc.image_store.save_image(self.svc.ctx, resp.content)
        except TrackingCancelledError:
            raise
        except Exception as e:
            self.warn(PackageError(
                f"Error getting logo image {pkg.logo_url} of package {pkg.key}",
                {"repository": self.r.name, "error": str(e)}
            ))
            return None

    def _update_digest(self, digest: Optional[str]) -> None:
        if not digest or digest == self.r.digest:
            return
        if self._errors:
            self.logger.info(f"Repository {self.r.name} had errors, digest not updated")
            return

        self.svc.ctx.raise_if_cancelled()
        try:
            self.svc.repository_manager.update_digest(self.svc.ctx, self.r.repository_id, digest)
        except TrackingCancelledError:
            raise
        except Exception as e:
            raise TrackerError(
                "Error updating repository digest",
                {"repository": self.r.name, "error": str(e)}
            ) from e
