"""Shared fixture file helpers for tests."""

from __future__ import annotations

from pathlib import Path
import shutil

FIXTURES_ROOT = Path(__file__).resolve().parent / "fixtures"


def fixture_path(name: str) -> Path:
    """Resolve a file under tests/fixtures."""
    return FIXTURES_ROOT / name


def copy_fixture(name: str, destination_dir: Path) -> Path:
    """Copy one fixture file into a scratch directory and return the copy."""
    destination_dir.mkdir(parents=True, exist_ok=True)
    return Path(shutil.copy(fixture_path(name), destination_dir / name))
