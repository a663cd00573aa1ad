"""
Repository cloner running git commands.

Repository URLs may point to a directory inside the git repository, e.g.
https://github.com/org/repo/path/to/packages; the part after the repository
name becomes the packages path of the clone.
"""

import os
import re
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Tuple

from hub_tracker.hub.interfaces import ClonedRepository, RepositoryCloner
from hub_tracker.hub.models import Repository
from hub_tracker.utils.errors import TrackerError, TrackingCancelledError
from hub_tracker.utils.logging import get_business_logger


GIT_POLL_INTERVAL = 0.2

REPOSITORY_URL_RE = re.compile(r"^(https?://[^/]+/[^/]+/[^/]+?)(?:\.git)?(?:/(.*))?$")


def split_repository_url(url: str) -> Tuple[str, str]:
    """
    Split a repository URL into the git URL and the packages path.

    Returns:
        Tuple of (git URL, path inside the repository)
    """
    match = REPOSITORY_URL_RE.match(url.rstrip("/"))
    if not match:
        return url, ""
    return match.group(1), (match.group(2) or "").strip("/")


class GitRepositoryCloner(RepositoryCloner):
    """Shallow clones repositories into temporary directories."""

    def __init__(self, timeout: int = 300, work_dir: Optional[str] = None, poll_interval: float = GIT_POLL_INTERVAL):
        """
        Args:
            timeout: Git command timeout in seconds
            work_dir: Parent directory of the clones (system temp dir if None)
            poll_interval: Seconds between cancellation checks while git runs
        """
        self.timeout = timeout
        self.work_dir = work_dir
        self.poll_interval = poll_interval
        self.logger = get_business_logger('git')

    def clone_repository(self, ctx, r: Repository) -> ClonedRepository:
        """
        Raises:
            TrackerError: If the repository cannot be cloned
        """
        ctx.raise_if_cancelled()

        git_url, packages_path = split_repository_url(r.url)
        if self.work_dir:
            Path(self.work_dir).mkdir(parents=True, exist_ok=True)
        tmp_dir = tempfile.mkdtemp(prefix="hub_tracker_", dir=self.work_dir)

        cmd = ["git", "clone", "--depth", "1"]
        if r.branch:
            cmd += ["--branch", r.branch]
        cmd += [git_url, tmp_dir]

        try:
            self._run(cmd, cwd=None, ctx=ctx)
            digest = self._run(["git", "rev-parse", "HEAD"], cwd=tmp_dir, ctx=ctx)
        except TrackerError:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            raise

        clone_packages_path = Path(tmp_dir) / packages_path
        if not clone_packages_path.is_dir():
            shutil.rmtree(tmp_dir, ignore_errors=True)
            raise TrackerError(
                "Packages path not found in repository",
                {"url": r.url, "path": packages_path}
            )

        self.logger.info(f"Repository {r.name} cloned at {digest[:12]}")
        return ClonedRepository(path=tmp_dir, packages_path=str(clone_packages_path), digest=digest)

    def _run(self, cmd: List[str], cwd: Optional[str], ctx) -> str:
        """
        Run a git command, polling the context while it runs.

        Raises:
            TrackingCancelledError: If the context is cancelled before the command ends
            TrackerError: If the command fails or times out
        """
        ctx.raise_if_cancelled()

        try:
            proc = subprocess.Popen(
                cmd,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=dict(os.environ, GIT_TERMINAL_PROMPT="0")
            )
        except OSError as e:
            raise TrackerError("Git command failed", {"command": " ".join(cmd), "error": str(e)})

        deadline = time.monotonic() + self.timeout
        try:
            while True:
                try:
                    stdout, stderr = proc.communicate(timeout=self.poll_interval)
                    break
                except subprocess.TimeoutExpired:
                    pass
                if ctx.cancelled:
                    self.logger.info(f"Git command cancelled: {' '.join(cmd)}")
                    raise TrackingCancelledError(ctx.reason or "context cancelled")
                if time.monotonic() >= deadline:
                    raise TrackerError("Git command timed out", {"command": " ".join(cmd)})
        except TrackerError:
            proc.kill()
            proc.communicate()
            raise

        if proc.returncode != 0:
            raise TrackerError(
                "Git command failed",
                {"command": " ".join(cmd), "error": (stderr or "").strip()}
            )

        return (stdout or "").strip()
