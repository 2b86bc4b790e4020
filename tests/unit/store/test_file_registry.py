"""Unit tests for the uploaded file registry."""

from __future__ import annotations

import pytest

from core.constants import MAX_FILE_SIZE_BYTES
from core.errors import TidelinkFileNotFoundError, TidelinkStoreError
from store.file_registry import FileRegistry


def test_register_persists_pending_record(tmp_path, write_file) -> None:
    """Registering should persist a pending record with detected type."""
    registry = FileRegistry(tmp_path / "data")
    path = write_file("catch.csv", "location,date,time\n")

    data_file = registry.register(path, "fish_data")

    assert registry.load(data_file.file_id) == data_file
    assert (data_file.status, data_file.file_type, data_file.original_name) == (
        "pending",
        "csv",
        "catch.csv",
    )


def test_register_uses_original_name_for_type_detection(tmp_path, write_file) -> None:
    """Uploader-provided names should drive type detection."""
    registry = FileRegistry(tmp_path / "data")
    path = write_file("upload-7f3a", "{}")

    data_file = registry.register(path, "other", original_name="matches.json")

    assert data_file.file_type == "json"


def test_register_rejects_missing_file(tmp_path) -> None:
    """Registering a missing path should fail."""
    registry = FileRegistry(tmp_path / "data")

    with pytest.raises(TidelinkStoreError):
        registry.register(tmp_path / "absent.csv", "fish_data")


def test_register_rejects_file_over_type_size_limit(tmp_path, write_file, monkeypatch) -> None:
    """Files larger than their type limit should be rejected before registration."""
    monkeypatch.setitem(MAX_FILE_SIZE_BYTES, "csv", 16)
    registry = FileRegistry(tmp_path / "data")
    registry.register(write_file("small.csv", "x\n"), "fish_data")

    with pytest.raises(TidelinkStoreError, match="exceeds the csv limit"):
        registry.register(write_file("large.csv", "location,date,time\n" * 4), "fish_data")

    assert [item.original_name for item in registry.list_files()] == ["small.csv"]


def test_list_files_keeps_registration_order(tmp_path, write_file) -> None:
    """The index should preserve registration order."""
    registry = FileRegistry(tmp_path / "data")
    first = registry.register(write_file("a.csv", "x\n"), "fish_data")
    second = registry.register(write_file("b.csv", "x\n"), "ocean_data")

    assert [item.file_id for item in registry.list_files()] == [first.file_id, second.file_id]


def test_list_files_filters_by_type_and_category(tmp_path, write_file) -> None:
    """Type and category filters should combine."""
    registry = FileRegistry(tmp_path / "data")
    fish_csv = registry.register(write_file("a.csv", "x\n"), "fish_data")
    registry.register(write_file("b.csv", "x\n"), "ocean_data")
    fish_json = registry.register(write_file("c.json", "{}"), "fish_data")

    assert [item.file_id for item in registry.list_files(category="fish_data")] == [
        fish_csv.file_id,
        fish_json.file_id,
    ]
    assert [item.file_id for item in registry.list_files(file_type="json")] == [fish_json.file_id]
    assert registry.list_files(file_type="json", category="ocean_data") == []


def test_transition_records_results_and_failures(tmp_path, write_file) -> None:
    """Lifecycle transitions should persist results and error messages."""
    registry = FileRegistry(tmp_path / "data")
    data_file = registry.register(write_file("a.csv", "x\n"), "fish_data")
    registry.transition(data_file.file_id, "processing")
    completed = registry.transition(
        data_file.file_id, "completed", notes=("ok",), record_count=3, unified_count=3
    )
    registry.transition(data_file.file_id, "processing")
    failed = registry.transition(data_file.file_id, "failed", error_message="boom")

    assert (completed.record_count, completed.notes) == (3, ("ok",))
    assert (failed.status, failed.error_message, failed.record_count) == ("failed", "boom", 3)


def test_transition_rejects_invalid_status_changes(tmp_path, write_file) -> None:
    """Pending files cannot complete without processing."""
    registry = FileRegistry(tmp_path / "data")
    data_file = registry.register(write_file("a.csv", "x\n"), "fish_data")

    with pytest.raises(TidelinkStoreError):
        registry.transition(data_file.file_id, "completed")


def test_load_unknown_file_raises_not_found(tmp_path) -> None:
    """Unknown ids should raise a file-not-found error."""
    registry = FileRegistry(tmp_path / "data")

    with pytest.raises(TidelinkFileNotFoundError):
        registry.load("missing")
