"""
Pytest configuration and shared fixtures for the screenclip test suite.

This module provides common fixtures, fake platform backends and test
utilities for all test modules in the screenclip project.
"""

import asyncio
import shutil
import sys
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from screenclip.models.config import (  # noqa: E402
    AppConfig,
    ClipboardConfig,
    NotificationConfig,
    SupervisorConfig,
    WatchConfig,
    WatcherConfig,
)
from screenclip.models.events import FileEvent, FileEventKind  # noqa: E402
from screenclip.publishing.base import ClipboardSink, NotificationSink  # noqa: E402
from screenclip.validation import ClipboardWriteError, NotificationError  # noqa: E402
from screenclip.watcher.base import DirectoryWatchSource  # noqa: E402


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path).resolve()
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def watch_dir(temp_dir):
    """An existing directory to watch."""
    path = temp_dir / "Screenshots"
    path.mkdir()
    return path


@pytest.fixture
def clean_env(monkeypatch, temp_dir):
    """Remove screenclip variables and point XDG locations into temp_dir."""
    for var in (
        "SCREENCLIP_CONFIG",
        "SCREENCLIP_WATCH_DIR",
        "SCREENCLIP_EXTENSIONS",
        "SCREENCLIP_SETTLE_MS",
        "SCREENCLIP_NOTIFY",
        "SCREENCLIP_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir / "xdg-config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(temp_dir / "xdg-state"))
    return monkeypatch


@pytest.fixture
def watch_config(watch_dir):
    """WatchConfig with a short settle delay."""
    return WatchConfig(watch_directory=watch_dir, settle_delay_millis=50)


@pytest.fixture
def app_config(watch_config, temp_dir):
    """AppConfig with timings small enough for tests."""
    return AppConfig(
        watch=watch_config,
        watcher=WatcherConfig(
            retry_initial_ms=10,
            retry_max_ms=40,
            max_retries=3,
            queue_size=100,
            health_check_interval=0.05,
        ),
        clipboard=ClipboardConfig(backend="none", timeout_seconds=0.5),
        notification=NotificationConfig(backend="log"),
        supervisor=SupervisorConfig(
            backoff_initial_seconds=0.05,
            backoff_max_seconds=0.2,
            watch_lost_cooldown_seconds=0.1,
            stop_timeout_seconds=1.0,
            startup_timeout_seconds=2.0,
            stable_after_seconds=60.0,
            state_dir=temp_dir / "state",
        ),
    )


@pytest.fixture
def sample_config_data(watch_dir):
    """Sample configuration data for testing."""
    return {
        "watch": {
            "directory": str(watch_dir),
            "extensions": ["png", ".JPG", "pdf"],
            "settle_delay_ms": 250,
        },
        "watcher": {
            "retry_initial_ms": 100,
            "retry_max_ms": 1000,
            "max_retries": 5,
            "use_polling": False,
        },
        "clipboard": {
            "backend": "auto",
            "timeout_seconds": 1.5,
        },
        "notification": {
            "enabled": True,
            "backend": "log",
            "title": "Screenshot copied",
        },
        "supervisor": {
            "backoff_initial_seconds": 2.0,
            "backoff_max_seconds": 120.0,
        },
        "logging": {
            "level": "debug",
        },
    }


@pytest.fixture
def config_files(temp_dir, sample_config_data):
    """Create a temporary config.toml for testing."""
    import toml

    config_file = temp_dir / "config.toml"
    with open(config_file, "w") as f:
        toml.dump(sample_config_data, f)

    return {
        "config": config_file,
        "dir": temp_dir,
    }


# ============================================================================
# Fake Platform Backends
# ============================================================================


class FakeClipboard(ClipboardSink):
    """Records clipboard writes; can fail or hang on demand."""

    def __init__(self):
        self.texts: List[str] = []
        self.fail_next = 0
        self.block: Optional[threading.Event] = None

    def write_text(self, text: str) -> None:
        if self.block is not None:
            self.block.wait(timeout=5.0)
        if self.fail_next:
            self.fail_next -= 1
            raise ClipboardWriteError("clipboard busy")
        self.texts.append(text)


class FakeNotifier(NotificationSink):
    """Records notifications; can fail on demand."""

    def __init__(self):
        self.calls: List[Tuple[str, str, str]] = []
        self.fail = False

    def notify(self, title: str, message: str, sound: str = "") -> None:
        if self.fail:
            raise NotificationError("notification service unavailable")
        self.calls.append((title, message, sound))


class FakeWatchSource(DirectoryWatchSource):
    """
    In-memory DirectoryWatchSource.

    Tests push events with emit() and simulate a lost subscription with
    lose(). ``fail_starts`` makes the next N start() calls raise OSError.
    """

    def __init__(self):
        self.starts = 0
        self.stops = 0
        self.fail_starts = 0
        self.alive = False
        self._on_event = None
        self._on_lost = None

    def start(self, directory, on_event, on_lost) -> None:
        if self.fail_starts:
            self.fail_starts -= 1
            raise OSError(f"cannot watch {directory}")
        if not Path(directory).is_dir():
            raise FileNotFoundError(f"Watch directory does not exist: {directory}")
        self.starts += 1
        self.alive = True
        self._on_event = on_event
        self._on_lost = on_lost

    def stop(self) -> None:
        self.stops += 1
        self.alive = False

    def is_alive(self) -> bool:
        return self.alive

    def emit(self, path: Path, kind: FileEventKind = FileEventKind.CREATED) -> None:
        self._on_event(FileEvent(path=Path(path), kind=kind))

    def lose(self, reason: str = "simulated loss") -> None:
        self.alive = False
        self._on_lost(reason)


@pytest.fixture
def fake_clipboard():
    return FakeClipboard()


@pytest.fixture
def fake_notifier():
    return FakeNotifier()


@pytest.fixture
def fake_source():
    return FakeWatchSource()


# ============================================================================
# Test Utilities
# ============================================================================


class TestUtils:
    """Utility functions for testing."""

    @staticmethod
    def write_file(path: Path, data: bytes = b"\x89PNG\r\n\x1a\n" + b"0" * 64) -> Path:
        path.write_bytes(data)
        return path

    @staticmethod
    async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0,
                         interval: float = 0.01) -> bool:
        """Poll ``predicate`` on the event loop until it is true or time runs out."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            await asyncio.sleep(interval)
        return predicate()


@pytest.fixture
def test_utils():
    """Provide test utility functions."""
    return TestUtils


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically clear configuration cache after each test."""
    yield

    from screenclip.config import clear_config_cache, set_config_path

    clear_config_cache()
    set_config_path(None)
