#!/usr/bin/env python3
"""
Hub tracker entry point.

Loads the configuration, builds the services shared by all trackers and runs
one tracker per selected repository.
"""

import argparse
import logging
import signal
import sys
import uuid
from dataclasses import replace
from typing import List, Optional

from config import ConfigManager, SystemConfig
from hub_tracker.concurrent import TrackingContext, TrackingOrchestrator, TrackingRunResult
from hub_tracker.data import (
    SQLiteDatabaseManager,
    SQLiteImageStore,
    SQLitePackageManager,
    SQLiteRepositoryManager
)
from hub_tracker.hub.interfaces import HTTPGetter
from hub_tracker.hub.models import Repository, RepositoryKind
from hub_tracker.trackers import DefaultErrorsCollector, Services
from hub_tracker.trackers.cloner import GitRepositoryCloner
from hub_tracker.trackers.helm_index import HelmIndexLoader
from hub_tracker.trackers.http_client import HTTPClient
from hub_tracker.utils.errors import HubTrackerError
from hub_tracker.utils.logging import get_business_logger, log_business_operation, setup_logging


logger = get_business_logger('system')


def build_services(config: SystemConfig, ctx: TrackingContext, http_getter: Optional[HTTPGetter] = None) -> Services:
    """
    Build the services shared by every tracker of a run.

    Args:
        config: System configuration
        ctx: Execution context of the run
        http_getter: HTTP getter to use (a new HTTPClient if None)

    Returns:
        Services backed by the SQLite database, git and HTTP
    """
    db_manager = SQLiteDatabaseManager(config.database.sqlite_path)
    db_manager.initialize()

    if http_getter is None:
        http_getter = HTTPClient(
            timeout=config.http.timeout,
            user_agent=config.http.user_agent,
            retry_attempts=config.http.retry_attempts,
            backoff_factor=config.http.backoff_factor,
            retry_on_status=config.http.retry_on_status
        )
    repository_manager = SQLiteRepositoryManager(db_manager, http_getter)

    return Services(
        ctx=ctx,
        cfg=config,
        repository_cloner=GitRepositoryCloner(
            timeout=config.git.clone_timeout,
            work_dir=config.git.work_dir
        ),
        repository_manager=repository_manager,
        package_manager=SQLitePackageManager(db_manager),
        index_loader=HelmIndexLoader(http_getter),
        image_store=SQLiteImageStore(db_manager),
        errors_collector=DefaultErrorsCollector(repository_manager, ctx),
        http_getter=http_getter
    )


def select_repositories(svc: Services) -> List[Repository]:
    """Repositories of the run, filtered by the configured names and kinds."""
    tracker_cfg = svc.cfg.tracker
    kinds = [RepositoryKind.from_name(k) for k in tracker_cfg.repositories_kinds]
    return svc.repository_manager.get_all(
        names=tracker_cfg.repositories_names or None,
        kinds=kinds or None
    )


@log_business_operation('system', 'tracking run')
def run_tracking(
    config: SystemConfig,
    ctx: Optional[TrackingContext] = None,
    svc: Optional[Services] = None
) -> TrackingRunResult:
    """
    Track the selected repositories.

    Args:
        config: System configuration
        ctx: Execution context (a new one honoring run_timeout if None)
        svc: Prebuilt services (built from the configuration if None)

    Returns:
        Result of the run
    """
    if ctx is None:
        ctx = TrackingContext(timeout=config.tracker.run_timeout)
    if svc is None:
        svc = build_services(config, ctx)

    repositories = select_repositories(svc)
    if not repositories:
        logger.warning("No repositories to track")

    orchestrator = TrackingOrchestrator(svc)
    try:
        return orchestrator.run(repositories)
    finally:
        if hasattr(svc.http_getter, "close"):
            svc.http_getter.close()


def add_repository(config: SystemConfig, name: str, kind: str, url: str, branch: Optional[str] = None) -> Repository:
    """Register a new repository in the hub database."""
    db_manager = SQLiteDatabaseManager(config.database.sqlite_path)
    db_manager.initialize()

    r = Repository(
        repository_id=str(uuid.uuid4()),
        name=name,
        kind=RepositoryKind.from_name(kind),
        url=url,
        branch=branch
    )
    SQLiteRepositoryManager(db_manager).add(r)
    return r


def _install_signal_handlers(ctx: TrackingContext) -> None:
    def handler(signum, frame):
        logger.info(f"Received signal {signum}, cancelling tracking run...")
        ctx.cancel(f"received signal {signum}")

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track the packages of the hub repositories")
    parser.add_argument('--config', default='config.json', help='Configuration file path')
    parser.add_argument(
        '--repository',
        action='append',
        default=[],
        help='Only track this repository (can be repeated)'
    )
    parser.add_argument(
        '--kind',
        action='append',
        default=[],
        help='Only track repositories of this kind (can be repeated)'
    )
    parser.add_argument('--concurrency', type=int, help='Maximum trackers running at the same time')
    parser.add_argument(
        '--bypass-digest-check',
        action='store_true',
        help='Process repositories even if their digest did not change'
    )
    parser.add_argument('--timeout', type=float, help='Cancel the run after this many seconds')
    parser.add_argument(
        '--add',
        nargs=3,
        metavar=('NAME', 'KIND', 'URL'),
        help='Register a repository instead of running the tracker'
    )
    parser.add_argument('--branch', help='Git branch of the repository registered with --add')
    return parser.parse_args(argv)


def apply_overrides(config: SystemConfig, args: argparse.Namespace) -> SystemConfig:
    """Apply command line overrides to the loaded configuration."""
    tracker_cfg = config.tracker
    if args.repository:
        tracker_cfg = replace(tracker_cfg, repositories_names=list(args.repository))
    if args.kind:
        for kind in args.kind:
            RepositoryKind.from_name(kind)
        tracker_cfg = replace(tracker_cfg, repositories_kinds=list(args.kind))
    if args.concurrency is not None:
        tracker_cfg = replace(tracker_cfg, concurrency=args.concurrency)
    if args.bypass_digest_check:
        tracker_cfg = replace(tracker_cfg, bypass_digest_check=True)
    if args.timeout is not None:
        tracker_cfg = replace(tracker_cfg, run_timeout=args.timeout)
    return replace(config, tracker=tracker_cfg)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command line entry point.

    Returns:
        Process exit code (0 when every repository was tracked without errors)
    """
    args = parse_args(argv)

    try:
        config = apply_overrides(ConfigManager(args.config).load_config(), args)
    except HubTrackerError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(log_level=config.log_level, log_file=config.log_file)

    if args.add:
        name, kind, url = args.add
        try:
            r = add_repository(config, name, kind, url, args.branch)
        except HubTrackerError as e:
            logging.error(f"Error adding repository {name}: {e}")
            return 1
        print(f"Repository {r.name} added ({r.repository_id})")
        return 0

    ctx = TrackingContext(timeout=config.tracker.run_timeout)
    _install_signal_handlers(ctx)

    try:
        result = run_tracking(config, ctx)
    except HubTrackerError as e:
        logging.error(f"Tracking run failed: {e}")
        return 1

    summary = result.get_summary()
    print(
        f"Tracked {summary['succeeded'] + summary['failed']}/{summary['total_repositories']} repositories: "
        f"{summary['succeeded']} ok, {summary['failed']} with errors, {summary['skipped']} skipped "
        f"({summary['execution_time']}s)"
    )
    if result.cancelled:
        print(f"Run cancelled: {ctx.reason}")

    return 1 if result.has_errors() or result.cancelled else 0


if __name__ == "__main__":
    sys.exit(main())
