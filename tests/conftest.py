"""
Pytest configuration for the fast-start tests.

Settings are read from the environment; locally they can be placed in the
project's .env file.
"""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file from project root
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line("markers", "asyncio: mark test as async")


class RecordingNotify:
    """NotificationSink that keeps everything it receives."""

    def __init__(self):
        self.messages: list[str] = []
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.verbose_lines: list[str] = []
        self.progress_calls: list[tuple[int, int, str | None]] = []

    def message(self, text: str) -> None:
        self.messages.append(text)

    def error(self, text: str) -> None:
        self.errors.append(text)

    def warning(self, text: str) -> None:
        self.warnings.append(text)

    def verbose(self, text: str) -> None:
        self.verbose_lines.append(text)

    def progress(self, current: int, total: int, label: str | None = None) -> None:
        self.progress_calls.append((current, total, label))


@pytest.fixture
def notify():
    """
    Recording notification sink.

    Usage:
        async def test_something(notify):
            fast_start = MovieFastStart(notify=notify)
            ...
            assert "File already suitable." in notify.messages
    """
    return RecordingNotify()


@pytest.fixture
def reporter(notify):
    from faststart.utils.notify import Reporter

    return Reporter(notify)
