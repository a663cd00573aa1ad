"""
Pytest configuration and fixtures for hub tracker tests.
"""

import pytest
from hypothesis import settings, Verbosity
import tempfile
import shutil
from pathlib import Path
import os

# Business loggers write their files here; keep them out of the working tree
os.environ.setdefault("HUB_TRACKER_LOG_DIR", tempfile.mkdtemp(prefix="hub_tracker_logs_"))

# Configure Hypothesis for faster test runs
settings.register_profile("fast", max_examples=10, deadline=5000, verbosity=Verbosity.quiet)
settings.register_profile("thorough", max_examples=100, deadline=30000, verbosity=Verbosity.normal)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "fast"))


@pytest.fixture(scope="session")
def temp_db_dir():
    """Create a temporary directory for test databases."""
    temp_dir = tempfile.mkdtemp(prefix="hub_tracker_test_")
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(scope="function")
def temp_db_path(tmp_path):
    """Create a temporary database path for each test."""
    yield str(tmp_path / "hub.db")


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "property: property-based test")

    import logging
    logging.getLogger("business").setLevel(logging.WARNING)
    logging.getLogger("hypothesis").setLevel(logging.WARNING)


def pytest_collection_modifyitems(config, items):
    """Mark property-based tests."""
    for item in items:
        if "property" in item.name.lower() or any(
            marker.name == "given" for marker in item.iter_markers()
        ):
            item.add_marker(pytest.mark.property)
