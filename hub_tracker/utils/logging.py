"""
Logging configuration and utilities.

All business areas of the tracker (trackers, orchestrator, errors collector,
persistence) log to their own daily-rotated file, with a 7-day retention
policy and automatic cleanup.
"""

import logging
import logging.handlers
import os
import sys
import time
import threading
from pathlib import Path
from typing import Optional
from datetime import datetime, timedelta

import schedule


_cleanup_scheduler_started = False
_cleanup_lock = threading.Lock()


def get_logs_dir() -> Path:
    """Directory where log files are written."""
    return Path(os.getenv("HUB_TRACKER_LOG_DIR", "logs"))


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    retention_days: int = 7
) -> None:
    """
    Set up logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        retention_days: Number of days to retain log files
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Clear existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.TimedRotatingFileHandler(
            log_file,
            when='midnight',
            interval=1,
            backupCount=retention_days,
            encoding='utf-8'
        )
        file_handler.suffix = "%Y-%m-%d"

        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

        _start_log_cleanup_scheduler(log_path.parent, retention_days)


def get_business_logger(business_name: str, log_level: str = "INFO") -> logging.Logger:
    """
    Get the logger of a business area.

    Args:
        business_name: Business area (e.g. 'tracker', 'orchestrator')
        log_level: Logging level

    Returns:
        Configured logger
    """
    business_logs = {
        # Tracking
        "tracker": "tracker.log",
        "orchestrator": "orchestrator.log",
        "errors_collector": "tracker_errors.log",

        # Collaborators
        "repository": "repository.log",
        "database": "database.log",
        "http_client": "http_client.log",
        "git": "git.log",

        # System
        "system": "system.log",
    }

    log_file = business_logs.get(business_name, f"{business_name}.log")

    logger = logging.getLogger(f"business.{business_name}")

    # Already configured
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, log_level.upper()))

    log_path = get_logs_dir() / log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.TimedRotatingFileHandler(
        log_path,
        when='midnight',
        interval=1,
        backupCount=7,
        encoding='utf-8',
        delay=True
    )
    file_handler.suffix = "%Y-%m-%d"

    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    logger.addHandler(file_handler)

    # Console only for errors
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.ERROR)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    return logger


def _start_log_cleanup_scheduler(logs_dir: Path, retention_days: int) -> None:
    """Start the daily log cleanup job (once per process)."""
    global _cleanup_scheduler_started

    with _cleanup_lock:
        if _cleanup_scheduler_started:
            return
        _cleanup_scheduler_started = True

    def cleanup_job():
        try:
            cleanup_old_logs(logs_dir, retention_days)
        except OSError as e:
            logging.getLogger(__name__).warning(f"Log cleanup failed: {e}")

    # Every day at 02:00
    schedule.every().day.at("02:00").do(cleanup_job)

    def run_scheduler():
        while True:
            schedule.run_pending()
            time.sleep(60)

    scheduler_thread = threading.Thread(target=run_scheduler, name="LogCleanup", daemon=True)
    scheduler_thread.start()


def cleanup_old_logs(logs_dir: Optional[Path] = None, retention_days: int = 7) -> int:
    """
    Remove log files older than the retention period.

    Args:
        logs_dir: Logs directory
        retention_days: Days to keep

    Returns:
        Number of files removed
    """
    logger = logging.getLogger(__name__)

    if logs_dir is None:
        logs_dir = get_logs_dir()

    if not logs_dir.exists():
        return 0

    cleaned_count = 0
    cutoff_date = datetime.now() - timedelta(days=retention_days)

    for log_file in logs_dir.glob("*.log*"):
        if not log_file.is_file():
            continue

        file_mtime = datetime.fromtimestamp(log_file.stat().st_mtime)
        if file_mtime < cutoff_date:
            log_file.unlink()
            cleaned_count += 1
            logger.debug(f"Removed expired log file: {log_file.name}")

    if cleaned_count > 0:
        logger.info(f"Log cleanup completed, removed {cleaned_count} files")

    return cleaned_count


def log_business_operation(business_name: str, operation_name: Optional[str] = None):
    """
    Decorator logging start, duration and failure of a business operation.

    Args:
        business_name: Business area
        operation_name: Operation name (defaults to the function name)
    """
    def decorator(func):
        def wrapper(*args, **kwargs):
            logger = get_business_logger(business_name)
            op_name = operation_name or func.__name__

            logger.info(f"Starting {op_name}")
            start_time = time.time()

            try:
                result = func(*args, **kwargs)
                duration = time.time() - start_time
                logger.info(f"Completed {op_name} in {duration:.2f}s")
                return result

            except Exception as e:
                duration = time.time() - start_time
                logger.error(f"{op_name} failed after {duration:.2f}s: {e}")
                raise

        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper
    return decorator
