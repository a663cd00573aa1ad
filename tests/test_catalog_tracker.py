"""
Unit tests for the git catalog tracker and the git cloner.
"""

import os
import subprocess
import threading
import time
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent))

from fakes import (
    DirectoryCloner,
    InMemoryPackageManager,
    InMemoryRepositoryManager,
    RecordingErrorsCollector,
    make_repository,
    make_services
)
from hub_tracker.concurrent import TrackingContext, WaitGroup
from hub_tracker.data.repository import SQLiteRepositoryManager
from hub_tracker.hub.models import RepositoryKind
from hub_tracker.trackers.catalog import CatalogTracker
from hub_tracker.trackers.cloner import GitRepositoryCloner, split_repository_url
from hub_tracker.utils.errors import TrackerError, TrackingCancelledError


def write_package(base: Path, name: str, version: str, extra: str = "") -> Path:
    pkg_dir = base / name / version
    pkg_dir.mkdir(parents=True, exist_ok=True)
    path = pkg_dir / "artifacthub-pkg.yml"
    path.write_text(f"name: {name}\nversion: {version}\n{extra}", encoding="utf-8")
    return path


@pytest.fixture
def catalog_dir(tmp_path):
    source = tmp_path / "source"
    write_package(source, "falco-rules", "1.0.0", "description: Rules\ndisplayName: Falco rules\n")
    write_package(source, "falco-rules", "1.1.0")
    write_package(source, "other", "0.1.0", "logoURL: https://img.example.com/other.png\n")
    return source


def run(tracker):
    wg = WaitGroup()
    wg.add(1)
    tracker.track(wg)
    assert wg.get_count() == 0


class TestCatalogTracker:

    def setup_method(self):
        self.r = make_repository(
            name="falco", kind=RepositoryKind.FALCO, url="https://github.com/org/falco-rules"
        )
        self.pm = InMemoryPackageManager()
        self.ec = RecordingErrorsCollector()

    def test_packages_registered_from_metadata_files(self, catalog_dir):
        cloner = DirectoryCloner(str(catalog_dir))
        svc = make_services(package_manager=self.pm, errors_collector=self.ec, repository_cloner=cloner)

        run(CatalogTracker(svc, self.r))

        packages = {p.key: p for p in self.pm.register_calls}
        assert sorted(packages) == ["falco-rules@1.0.0", "falco-rules@1.1.0", "other@0.1.0"]
        assert packages["falco-rules@1.0.0"].description == "Rules"
        assert packages["falco-rules@1.0.0"].data == {"display_name": "Falco rules"}
        assert len(packages["falco-rules@1.1.0"].digest) == 64

    def test_clone_removed_after_pass(self, catalog_dir):
        cloner = DirectoryCloner(str(catalog_dir))
        svc = make_services(package_manager=self.pm, repository_cloner=cloner)

        run(CatalogTracker(svc, self.r))

        assert not os.path.exists(cloner.clones[0].path)

    def test_clone_removed_after_failure(self, catalog_dir):
        cloner = DirectoryCloner(str(catalog_dir))
        self.pm.digest_error = RuntimeError("db down")
        svc = make_services(package_manager=self.pm, repository_cloner=cloner)

        with pytest.raises(TrackerError):
            run(CatalogTracker(svc, self.r))

        assert not os.path.exists(cloner.clones[0].path)

    def test_invalid_metadata_file_reported(self, catalog_dir):
        (catalog_dir / "broken").mkdir()
        (catalog_dir / "broken" / "artifacthub-pkg.yml").write_text("description: no name\n", encoding="utf-8")
        self.pm.registered[self.r.repository_id] = {"old@0.0.1": "x"}
        cloner = DirectoryCloner(str(catalog_dir))
        svc = make_services(package_manager=self.pm, errors_collector=self.ec, repository_cloner=cloner)

        run(CatalogTracker(svc, self.r))

        assert len(self.pm.register_calls) == 3
        errors = self.ec.errors[self.r.repository_id]
        assert any("broken/artifacthub-pkg.yml" in str(e) for e in errors)
        # Packages are not unregistered when some could not be loaded
        assert self.pm.unregister_calls == []

    def test_verified_publisher_from_repository_metadata(self, catalog_dir):
        (catalog_dir / "artifacthub-repo.yml").write_text(
            f"repositoryID: {self.r.repository_id}\n", encoding="utf-8"
        )
        cloner = DirectoryCloner(str(catalog_dir))
        rm = SQLiteRepositoryManager(Mock())
        rm.set_verified_publisher = Mock()
        svc = make_services(package_manager=self.pm, repository_manager=rm, repository_cloner=cloner)

        run(CatalogTracker(svc, self.r))

        rm.set_verified_publisher.assert_called_once_with(svc.ctx, self.r.repository_id, True)

    def test_repository_metadata_ignore_list(self, catalog_dir):
        (catalog_dir / "artifacthub-repo.yml").write_text(
            "ignore:\n  - name: falco-rules\n    version: ^1\\.0\\.\n", encoding="utf-8"
        )
        cloner = DirectoryCloner(str(catalog_dir))
        rm = SQLiteRepositoryManager(Mock())
        rm.set_verified_publisher = Mock()
        rm.update_digest = Mock()
        svc = make_services(package_manager=self.pm, repository_manager=rm, repository_cloner=cloner)

        run(CatalogTracker(svc, self.r))

        assert sorted(p.key for p in self.pm.register_calls) == ["falco-rules@1.1.0", "other@0.1.0"]

    def test_unchanged_commit_skips_processing(self, catalog_dir):
        r = make_repository(kind=RepositoryKind.OPA, url="https://github.com/org/policies", digest="commit-1")
        cloner = DirectoryCloner(str(catalog_dir), digest="commit-1")
        svc = make_services(package_manager=self.pm, repository_cloner=cloner)

        run(CatalogTracker(svc, r))

        assert self.pm.register_calls == []
        assert not os.path.exists(cloner.clones[0].path)

    def test_clone_failure_is_fatal(self):
        cloner = DirectoryCloner("/nonexistent", error=OSError("disk full"))
        svc = make_services(repository_cloner=cloner)

        with pytest.raises(TrackerError, match="Error cloning repository: disk full"):
            run(CatalogTracker(svc, self.r))


class TestSplitRepositoryURL:

    @pytest.mark.parametrize("url,expected", [
        ("https://github.com/org/repo", ("https://github.com/org/repo", "")),
        ("https://github.com/org/repo.git", ("https://github.com/org/repo", "")),
        ("https://github.com/org/repo/", ("https://github.com/org/repo", "")),
        ("https://github.com/org/repo/tasks", ("https://github.com/org/repo", "tasks")),
        ("https://gitlab.com/org/repo/path/to/pkgs/", ("https://gitlab.com/org/repo", "path/to/pkgs")),
        ("git@github.com:org/repo", ("git@github.com:org/repo", "")),
    ])
    def test_split(self, url, expected):
        assert split_repository_url(url) == expected


class FakeProcess:
    """Popen stand-in that finishes after `running` seconds."""

    def __init__(self, stdout="", stderr="", returncode=0, running=0.0):
        self.stdout = stdout
        self.stderr = stderr
        self.final_returncode = returncode
        self.returncode = None
        self.ends_at = time.monotonic() + running
        self.killed = False

    def communicate(self, timeout=None):
        if not self.killed and time.monotonic() < self.ends_at:
            time.sleep(min(timeout or 0, max(0.0, self.ends_at - time.monotonic())))
            if time.monotonic() < self.ends_at:
                raise subprocess.TimeoutExpired(cmd="git", timeout=timeout)
        if self.returncode is None:
            self.returncode = self.final_returncode
        return self.stdout, self.stderr

    def kill(self):
        self.killed = True
        self.returncode = -9


class TestGitRepositoryCloner:

    def test_clone_with_packages_path(self, tmp_path):
        r = make_repository(kind=RepositoryKind.TEKTON_TASK, url="https://github.com/org/catalog/task", branch="main")

        def fake_popen(cmd, cwd=None, **kwargs):
            if cmd[1] == "clone":
                (Path(cmd[-1]) / "task").mkdir()
                return FakeProcess()
            return FakeProcess(stdout="0123456789abcdef\n")

        with patch("hub_tracker.trackers.cloner.subprocess.Popen", side_effect=fake_popen) as popen_mock:
            clone = GitRepositoryCloner(work_dir=str(tmp_path)).clone_repository(TrackingContext(), r)

        clone_cmd = popen_mock.call_args_list[0][0][0]
        assert clone_cmd[:6] == ["git", "clone", "--depth", "1", "--branch", "main"]
        assert clone_cmd[6] == "https://github.com/org/catalog"
        assert popen_mock.call_args_list[0][1]["env"]["GIT_TERMINAL_PROMPT"] == "0"
        assert clone.digest == "0123456789abcdef"
        assert clone.packages_path == str(Path(clone.path) / "task")
        assert Path(clone.path).parent == tmp_path

        clone.cleanup()
        assert not Path(clone.path).exists()

    def test_clone_failure_cleans_up(self, tmp_path):
        r = make_repository(kind=RepositoryKind.OPA, url="https://github.com/org/missing")

        with patch("hub_tracker.trackers.cloner.subprocess.Popen",
                   return_value=FakeProcess(returncode=128, stderr="repository not found")):
            with pytest.raises(TrackerError, match="repository not found"):
                GitRepositoryCloner(work_dir=str(tmp_path)).clone_repository(TrackingContext(), r)

        assert list(tmp_path.iterdir()) == []

    def test_missing_packages_path(self, tmp_path):
        r = make_repository(kind=RepositoryKind.OPA, url="https://github.com/org/repo/missing")

        with patch("hub_tracker.trackers.cloner.subprocess.Popen", side_effect=lambda *a, **kw: FakeProcess(stdout="abc")):
            with pytest.raises(TrackerError, match="Packages path not found"):
                GitRepositoryCloner(work_dir=str(tmp_path)).clone_repository(TrackingContext(), r)

        assert list(tmp_path.iterdir()) == []

    def test_timeout_kills_git(self, tmp_path):
        r = make_repository(kind=RepositoryKind.OPA, url="https://github.com/org/repo")
        proc = FakeProcess(running=30.0)

        with patch("hub_tracker.trackers.cloner.subprocess.Popen", return_value=proc):
            with pytest.raises(TrackerError, match="timed out"):
                GitRepositoryCloner(timeout=0.1, work_dir=str(tmp_path), poll_interval=0.02).clone_repository(
                    TrackingContext(), r
                )

        assert proc.killed is True
        assert list(tmp_path.iterdir()) == []

    def test_git_not_installed(self, tmp_path):
        with patch("hub_tracker.trackers.cloner.subprocess.Popen", side_effect=FileNotFoundError("git")):
            with pytest.raises(TrackerError, match="Git command failed"):
                GitRepositoryCloner(work_dir=str(tmp_path)).clone_repository(TrackingContext(), make_repository())

    def test_cancelled_context(self, tmp_path):
        ctx = TrackingContext()
        ctx.cancel()

        with patch("hub_tracker.trackers.cloner.subprocess.Popen") as popen_mock:
            with pytest.raises(TrackingCancelledError):
                GitRepositoryCloner(work_dir=str(tmp_path)).clone_repository(ctx, make_repository())

        popen_mock.assert_not_called()

    def test_cancellation_during_clone_kills_git(self, tmp_path):
        ctx = TrackingContext()
        proc = FakeProcess(running=30.0)
        threading.Timer(0.1, ctx.cancel, args=("shutdown",)).start()

        started = time.monotonic()
        with patch("hub_tracker.trackers.cloner.subprocess.Popen", return_value=proc):
            with pytest.raises(TrackingCancelledError, match="shutdown"):
                GitRepositoryCloner(work_dir=str(tmp_path), poll_interval=0.02).clone_repository(
                    ctx, make_repository(kind=RepositoryKind.OPA, url="https://github.com/org/repo")
                )

        assert time.monotonic() - started < 5
        assert proc.killed is True
        assert list(tmp_path.iterdir()) == []

    def test_cancellation_stops_running_command(self):
        """A real long running command is killed soon after the context is cancelled."""
        ctx = TrackingContext()
        threading.Timer(0.2, ctx.cancel, args=("shutdown",)).start()
        cmd = [sys.executable, "-c", "import time; time.sleep(30)"]

        started = time.monotonic()
        with pytest.raises(TrackingCancelledError):
            GitRepositoryCloner(poll_interval=0.05)._run(cmd, cwd=None, ctx=ctx)

        assert time.monotonic() - started < 10
