"""
HTTP getter backed by a requests session with transport-level retries.
"""

import threading
from typing import List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from hub_tracker.hub.interfaces import HTTPGetter
from hub_tracker.utils.logging import get_business_logger


DEFAULT_USER_AGENT = "hub-tracker"


class HTTPClient(HTTPGetter):
    """HTTP client shared by all trackers of a run."""

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        retry_attempts: int = 3,
        backoff_factor: float = 0.5,
        retry_on_status: Optional[List[int]] = None
    ):
        """
        Initialize HTTP client.

        Args:
            timeout: Request timeout in seconds
            user_agent: User-Agent header sent with every request
            retry_attempts: Transport retries for idempotent requests
            backoff_factor: Backoff factor between retries
            retry_on_status: Status codes that trigger a retry
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.logger = get_business_logger('http_client')

        retry = Retry(
            total=retry_attempts,
            backoff_factor=backoff_factor,
            status_forcelist=retry_on_status or [429, 500, 502, 503, 504],
            allowed_methods=["GET", "HEAD"],
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry, pool_maxsize=32)

        self.session = requests.Session()
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers.update({"User-Agent": user_agent})

        self._lock = threading.Lock()
        self._requests_made = 0

    def get(self, url: str) -> requests.Response:
        """
        Perform a GET request.

        Raises:
            requests.RequestException: If the request fails
        """
        with self._lock:
            self._requests_made += 1

        self.logger.debug(f"GET {url}")
        resp = self.session.get(url, timeout=self.timeout)
        if resp.status_code != 200:
            self.logger.debug(f"GET {url} returned {resp.status_code}")
        return resp

    @property
    def requests_made(self) -> int:
        with self._lock:
            return self._requests_made

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
