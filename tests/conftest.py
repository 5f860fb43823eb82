"""Shared pytest fixtures for the updown test suite."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from updown.config import CONFIG_FILENAME


class RecordingStatus:
    """Status task double that records calls and the order of events."""

    def __init__(self, events: Optional[List[str]] = None, fail_with: Optional[Exception] = None) -> None:
        self.events = events if events is not None else []
        self.fail_with = fail_with
        self.started = threading.Event()
        self.printed: List[str] = []
        self.errors: List[str] = []
        self.statuses: List[List[str]] = []

    def print(self, text: str) -> None:
        self.printed.append(text)

    def error(self, text: str) -> None:
        self.errors.append(text)

    def set_status(self, lines) -> None:
        self.statuses.append(list(lines))

    def run(self, lifetime: threading.Event) -> None:
        self.events.append("status started")
        self.started.set()
        lifetime.wait()
        self.events.append("status stopped")
        if self.fail_with is not None:
            raise self.fail_with


@pytest.fixture()
def write_config(tmp_path: Path) -> Callable[[str], Path]:
    """Write a .restic.yaml into tmp_path and return the directory."""

    def _write(content: str) -> Path:
        (tmp_path / CONFIG_FILENAME).write_text(content, encoding="utf-8")
        return tmp_path

    return _write


@pytest.fixture()
def recording_status() -> RecordingStatus:
    return RecordingStatus()


@pytest.fixture()
def make_status() -> Callable[..., RecordingStatus]:
    return RecordingStatus
