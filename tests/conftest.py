"""Pytest configuration for repository test runs."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import sys
from pathlib import Path
from typing import Callable

import pytest

_TESTS_PATH = Path(__file__).resolve().parent
_SRC_PATH = _TESTS_PATH.parent / "src"
for _path in (_TESTS_PATH, _SRC_PATH):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))


class TickingClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime) -> None:
        self._current = start

    def __call__(self) -> datetime:
        value = self._current
        self._current = value + timedelta(seconds=1)
        return value


@pytest.fixture
def clock() -> TickingClock:
    """Clock starting at a fixed UTC instant."""
    return TickingClock(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a UTF-8 text fixture file under the test directory."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / "uploads" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
