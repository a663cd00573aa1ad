"""
Tests for the tracker entry point.
"""

import json
from dataclasses import replace
from unittest.mock import patch

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeHTTPGetter, FakeIndexLoader
from config import DatabaseConfig, SystemConfig
from hub_tracker.concurrent import TrackingContext
from hub_tracker.data import SQLiteDatabaseManager, SQLitePackageManager, SQLiteRepositoryManager
from hub_tracker.hub.models import RepositoryKind
from hub_tracker.main import add_repository, apply_overrides, build_services, main, parse_args, run_tracking
from hub_tracker.utils.errors import ValidationError


@pytest.fixture
def config(temp_db_path):
    return SystemConfig(database=DatabaseConfig(sqlite_path=temp_db_path))


class TestArguments:

    def test_overrides(self, config):
        args = parse_args([
            "--repository", "charts", "--repository", "policies",
            "--kind", "helm", "--concurrency", "3",
            "--bypass-digest-check", "--timeout", "60"
        ])

        overridden = apply_overrides(config, args)

        assert overridden.tracker.repositories_names == ["charts", "policies"]
        assert overridden.tracker.repositories_kinds == ["helm"]
        assert overridden.tracker.concurrency == 3
        assert overridden.tracker.bypass_digest_check is True
        assert overridden.tracker.run_timeout == 60.0
        assert config.tracker.concurrency == 10

    def test_no_overrides(self, config):
        assert apply_overrides(config, parse_args([])) == config

    def test_invalid_kind(self, config):
        with pytest.raises(ValidationError):
            apply_overrides(config, parse_args(["--kind", "docker"]))


class TestRunTracking:

    def test_build_services(self, config):
        ctx = TrackingContext()
        svc = build_services(config, ctx)

        assert svc.ctx is ctx
        assert svc.cfg is config
        assert svc.errors_collector.repository_manager is svc.repository_manager
        assert Path(config.database.sqlite_path).exists()

    def test_run_over_selected_repositories(self, config):
        charts = add_repository(config, "charts", "helm", "https://charts.example.com")
        add_repository(config, "policies", "opa", "https://github.com/org/policies")
        config = replace(config, tracker=replace(config.tracker, repositories_kinds=["helm"]))

        ctx = TrackingContext()
        index = {"nginx": [{"version": "1.0.0", "digest": "n1"}]}
        svc = replace(
            build_services(config, ctx, FakeHTTPGetter()),
            index_loader=FakeIndexLoader(index, digest="idx-1")
        )

        result = run_tracking(config, ctx, svc)

        assert result.total_repositories == 1
        assert result.succeeded == 1

        db_manager = SQLiteDatabaseManager(config.database.sqlite_path)
        digests = SQLitePackageManager(db_manager).get_packages_digest(ctx, charts.repository_id)
        assert digests == {"nginx@1.0.0": "n1"}
        stored = SQLiteRepositoryManager(db_manager).get_by_name("charts")
        assert stored.digest == "idx-1"
        assert stored.kind == RepositoryKind.HELM

    def test_tracker_errors_stored(self, config):
        charts = add_repository(config, "charts", "helm", "https://charts.example.com")
        ctx = TrackingContext()
        svc = replace(
            build_services(config, ctx, FakeHTTPGetter()),
            index_loader=FakeIndexLoader(error=RuntimeError("connection reset"))
        )

        result = run_tracking(config, ctx, svc)

        assert result.failed == 1
        rm = SQLiteRepositoryManager(SQLiteDatabaseManager(config.database.sqlite_path))
        assert rm.get_last_tracking_errors(charts.repository_id) == \
            "Error loading repository index: connection reset"


class TestMain:

    def write_config(self, tmp_path, temp_db_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"database": {"sqlite_path": temp_db_path}}), encoding="utf-8")
        return str(config_path)

    def test_add_repository(self, tmp_path, temp_db_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        config_path = self.write_config(tmp_path, temp_db_path)

        with patch("hub_tracker.main.setup_logging"):
            code = main(["--config", config_path, "--add", "tasks", "tekton-task",
                         "https://github.com/org/catalog/task", "--branch", "main"])

        assert code == 0
        assert "Repository tasks added" in capsys.readouterr().out
        rm = SQLiteRepositoryManager(SQLiteDatabaseManager(temp_db_path))
        r = rm.get_by_name("tasks")
        assert r.kind == RepositoryKind.TEKTON_TASK
        assert r.branch == "main"

    def test_empty_run(self, tmp_path, temp_db_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        config_path = self.write_config(tmp_path, temp_db_path)

        with patch("hub_tracker.main.setup_logging"), patch("hub_tracker.main._install_signal_handlers"):
            code = main(["--config", config_path])

        assert code == 0
        assert "Tracked 0/0 repositories" in capsys.readouterr().out

    def test_invalid_configuration(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"tracker": {"concurrency": 0}}), encoding="utf-8")

        assert main(["--config", str(config_path)]) == 2
        assert "Configuration error" in capsys.readouterr().err
