"""
Orchestrator running one tracker per repository with a bounded number of
concurrent trackers.
"""

import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from hub_tracker.hub.models import Repository
from hub_tracker.utils.errors import ConfigurationError, TrackerError
from hub_tracker.utils.logging import get_business_logger
from .models import TrackingRunResult
from .thread_safe import ThreadSafeCounter, WaitGroup


ACQUIRE_POLL_INTERVAL = 0.1


class TrackingOrchestrator:
    """
    Launches trackers for a set of repositories and waits for all of them.

    At most `concurrency` trackers run at the same time. Each tracker runs in
    its own thread with its own WaitGroup; the thread releases the run's
    WaitGroup only after the tracker's fatal error, if any, is recorded, so
    the errors collector is complete when it is read.
    """

    def __init__(self, svc, factory: Optional[Callable[..., Any]] = None, concurrency: Optional[int] = None):
        """
        Args:
            svc: Shared Services of the run
            factory: Tracker factory (defaults to the registry's new_tracker)
            concurrency: Maximum simultaneous trackers (defaults to configuration)

        Raises:
            ConfigurationError: If the concurrency bound is invalid
        """
        if factory is None:
            from hub_tracker.trackers import new_tracker
            factory = new_tracker

        if concurrency is None:
            concurrency = svc.cfg.tracker.concurrency
        if concurrency < 1:
            raise ConfigurationError(
                "Tracker concurrency must be at least 1",
                {"concurrency": concurrency}
            )

        self.svc = svc
        self.factory = factory
        self.concurrency = concurrency
        self.logger = get_business_logger('orchestrator')

        self._active = ThreadSafeCounter()
        self._peak_active = ThreadSafeCounter()
        self._launched = ThreadSafeCounter()
        self._fatal_errors = ThreadSafeCounter()

    def run(self, repositories: List[Repository]) -> TrackingRunResult:
        """
        Track all repositories and return the aggregated result.

        Args:
            repositories: Repositories to track (one tracker each)

        Returns:
            Result with the errors collected per repository
        """
        ctx = self.svc.ctx
        ec = self.svc.errors_collector

        result = TrackingRunResult(
            total_repositories=len(repositories),
            started_at=datetime.now()
        )

        self.logger.info(
            f"Tracking {len(repositories)} repositories (concurrency={self.concurrency})"
        )

        wg = WaitGroup()
        limiter = threading.BoundedSemaphore(self.concurrency)
        launched: List[Repository] = []

        for index, r in enumerate(repositories):
            if not self._acquire(limiter):
                result.skipped = len(repositories) - index
                result.cancelled = True
                self.logger.warning(
                    f"Run cancelled ({ctx.reason}), {result.skipped} repositories not tracked"
                )
                break

            ec.init(r.repository_id)
            launched.append(r)
            self._launch(r, wg, limiter)

        wg.wait()

        errors = ec.get_errors()
        for r in launched:
            if errors.get(r.repository_id):
                result.failed += 1
            else:
                result.succeeded += 1
        result.errors = {repo_id: errs for repo_id, errs in errors.items() if errs}
        result.cancelled = result.cancelled or ctx.cancelled

        flush_failures = ec.flush()
        if flush_failures:
            self.logger.error(f"Failed to store tracking results of {flush_failures} repositories")

        result.completed_at = datetime.now()
        self.logger.info(f"Tracking run completed: {result.get_summary()}")

        return result

    def _acquire(self, limiter: threading.BoundedSemaphore) -> bool:
        """Wait for a free slot; gives up when the context is cancelled."""
        ctx = self.svc.ctx
        while not ctx.cancelled:
            if limiter.acquire(timeout=ACQUIRE_POLL_INTERVAL):
                if ctx.cancelled:
                    limiter.release()
                    return False
                return True
        return False

    def _launch(self, r: Repository, wg: WaitGroup, limiter: threading.BoundedSemaphore) -> None:
        """Create the tracker for a repository and start it in its own thread."""
        ec = self.svc.errors_collector

        try:
            tracker = self.factory(self.svc, r)
        except Exception as e:
            limiter.release()
            self._fatal_errors.increment()
            ec.append(r.repository_id, e)
            self.logger.error(f"Error creating tracker for repository {r.name}: {e}")
            return

        wg.add(1)
        thread = threading.Thread(
            target=self._track,
            args=(tracker, r, wg, limiter),
            name=f"tracker-{r.name}",
            daemon=True
        )
        try:
            thread.start()
        except RuntimeError as e:
            wg.done()
            limiter.release()
            self._fatal_errors.increment()
            ec.append(r.repository_id, TrackerError(
                "Error starting tracker", {"repository": r.name, "error": str(e)}
            ))
            self.logger.error(f"Error starting tracker for repository {r.name}: {e}")
            return

        self._launched.increment()

    def _track(self, tracker, r: Repository, wg: WaitGroup, limiter: threading.BoundedSemaphore) -> None:
        """Thread body: run the tracker and record its fatal error, if any."""
        active = self._active.increment()
        self._peak_active.update_max(active)

        tracker_wg = WaitGroup()
        tracker_wg.add(1)
        try:
            tracker.track(tracker_wg)
        except Exception as e:
            self._fatal_errors.increment()
            self.svc.errors_collector.append(r.repository_id, e)
            self.logger.error(f"Error tracking repository {r.name}: {e}")
        finally:
            self._active.decrement()
            limiter.release()
            wg.done()

    def get_stats(self) -> Dict[str, int]:
        """Pool statistics of the orchestrator."""
        return {
            "concurrency": self.concurrency,
            "active_trackers": self._active.get_value(),
            "peak_active_trackers": self._peak_active.get_value(),
            "trackers_launched": self._launched.get_value(),
            "fatal_errors": self._fatal_errors.get_value()
        }
