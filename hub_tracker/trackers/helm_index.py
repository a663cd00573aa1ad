"""
Loader of chart repository index files.
"""

import hashlib
from typing import Any, Dict, List, Tuple

import yaml

from hub_tracker.hub.interfaces import HTTPGetter, IndexLoader
from hub_tracker.hub.models import Repository
from hub_tracker.utils.errors import TrackerError


class HelmIndexLoader(IndexLoader):
    """Fetches and parses <repository url>/index.yaml."""

    def __init__(self, http_getter: HTTPGetter):
        self.http_getter = http_getter

    def load_index(self, ctx, r: Repository) -> Tuple[Dict[str, List[Dict[str, Any]]], str]:
        """
        Returns:
            Tuple of (entries by chart name, sha256 of the index file)

        Raises:
            TrackerError: If the index cannot be fetched or parsed
        """
        ctx.raise_if_cancelled()

        index_url = f"{r.url.rstrip('/')}/index.yaml"
        resp = self.http_getter.get(index_url)
        if resp.status_code != 200:
            raise TrackerError(
                f"Unexpected status code received: {resp.status_code}",
                {"url": index_url}
            )

        digest = hashlib.sha256(resp.content).hexdigest()

        try:
            index = yaml.safe_load(resp.content)
        except yaml.YAMLError as e:
            raise TrackerError("Error parsing index file", {"url": index_url, "error": str(e)})

        if not isinstance(index, dict):
            raise TrackerError("Invalid index file", {"url": index_url})

        entries = index.get("entries") or {}
        if not isinstance(entries, dict):
            raise TrackerError("Invalid index file: entries is not a mapping", {"url": index_url})

        return entries, digest
