"""Pytest fixtures for the portsync test suite"""
import os
import sys
import logging
from pathlib import Path

import allure
import pytest

from portsync.entry_manager import EntryManager
from portsync.images import TrackedImages
from portsync.log import SafeUnicodeFilter
from tests.helpers.fakes import FakeAllocator, FakeForwarder


logger = logging.getLogger(__name__)

# Readiness timeout used by every test entry manager.
TEST_FORWARDING_TIMEOUT = 0.5


@pytest.fixture(scope="session", autouse=True)
def configure_safe_logging():
    """Install the surrogate-safe filter on the root logger for the session."""
    safe_filter = SafeUnicodeFilter()
    logging.root.addFilter(safe_filter)
    yield
    logging.root.removeFilter(safe_filter)


@pytest.fixture
def forwarder():
    """Fake forwarding backend recording forward/terminate calls"""
    return FakeForwarder()


@pytest.fixture
def available_ports():
    """Ports the fake allocator considers bindable (override per test)"""
    return [8080]


@pytest.fixture
def allocator(available_ports):
    """Allocator whose pool and availability are limited to available_ports"""
    return FakeAllocator(available_ports)


@pytest.fixture
def entry_manager(forwarder, allocator):
    """EntryManager wired to the fake backend and allocator"""
    return EntryManager(forwarder, allocator=allocator, forwarding_timeout=TEST_FORWARDING_TIMEOUT)


@pytest.fixture
def images():
    """Tracked image set containing the default test image"""
    return TrackedImages(["image"])


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Attach the entry manager table to the Allure report when a test fails"""
    outcome = yield
    report = outcome.get_result()

    if report.when == "call" and report.failed and "entry_manager" in getattr(item, "funcargs", {}):
        entries = item.funcargs["entry_manager"].entries()
        lines = [f"{key}: {entry} [{entry.state.value}]" for key, entry in sorted(entries.items())]
        allure.attach(
            "\n".join(lines) or "(no entries)",
            name="Forwarding entries",
            attachment_type=allure.attachment_type.TEXT
        )


def pytest_configure(config):
    """Configure pytest with custom settings"""
    # Register custom markers
    config.addinivalue_line("markers", "quick: Quick tests that run in <5 seconds")
    config.addinivalue_line("markers", "portforward: Entry manager and port allocation tests")
    config.addinivalue_line("markers", "watch: Pod watch and forwarder loop tests")
    config.addinivalue_line("markers", "backend: kubectl forwarding backend tests")
    config.addinivalue_line("markers", "diagnostics: Error classification tests")

    # Allure report metadata (environment properties), only with allure-pytest active
    allure_dir = getattr(config.option, "allure_report_dir", None)
    if allure_dir:
        allure_env_path = Path(allure_dir) / "environment.properties"
        allure_env_path.parent.mkdir(parents=True, exist_ok=True)
        with open(allure_env_path, "w") as f:
            f.write(f"Project=portsync\n")
            f.write(f"Tester={os.getenv('USER', 'CI/CD Pipeline')}\n")
            f.write(f"Branch={os.getenv('GIT_BRANCH', 'N/A')}\n")
            f.write(f"Commit={os.getenv('GIT_COMMIT', 'N/A')}\n")
            f.write(f"Python.version={sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}\n")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers dynamically"""
    # Add 'watch' marker to all tests in tests/watch/
    for item in items:
        if "tests/watch" in str(item.fspath):
            item.add_marker(pytest.mark.watch)
