"""
Errors collector shared by all trackers of a run.
"""

import threading
from typing import Dict, List

from hub_tracker.hub.interfaces import ErrorsCollector, RepositoryManager
from hub_tracker.utils.logging import get_business_logger


class DefaultErrorsCollector(ErrorsCollector):
    """
    Collects the errors found while tracking repositories.

    Trackers append concurrently; appends are serialized with a lock and
    never wait on I/O. Once the run is over, flush() stores the errors of
    each repository as its last tracking results.
    """

    def __init__(self, repository_manager: RepositoryManager, ctx=None):
        self.repository_manager = repository_manager
        self.ctx = ctx
        self.logger = get_business_logger('errors_collector')
        self._errors: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def init(self, repository_id: str) -> None:
        with self._lock:
            self._errors.setdefault(repository_id, [])

    def append(self, repository_id: str, err: Exception) -> None:
        with self._lock:
            self._errors.setdefault(repository_id, []).append(str(err))

    def get_errors(self) -> Dict[str, List[str]]:
        with self._lock:
            return {repo_id: list(errs) for repo_id, errs in self._errors.items()}

    def flush(self) -> int:
        """
        Store the errors of every initialized repository.

        Repositories without errors are stored too, which clears the errors
        of a previous run.

        Returns:
            Number of repositories whose results could not be stored
        """
        failures = 0
        for repository_id, errs in self.get_errors().items():
            try:
                self.repository_manager.set_last_tracking_results(
                    self.ctx, repository_id, "\n".join(errs)
                )
            except Exception as e:
                failures += 1
                self.logger.error(f"Error storing tracking results of repository {repository_id}: {e}")
        return failures
