"""Uploaded file registry and processing lifecycle.

This module stores one JSON record per registered file under the data root
and validates lifecycle transitions so processing state stays inspectable.
"""

from __future__ import annotations

from dataclasses import asdict, replace
from datetime import datetime, timezone
import json
from pathlib import Path
import threading
from uuid import uuid4

from core.constants import (
    DEFAULT_CATEGORY,
    DEFAULT_MAX_FILE_SIZE_BYTES,
    FILE_INDEX_FILE_NAME,
    FILES_DIR_NAME,
    MAX_FILE_SIZE_BYTES,
    MEGABYTE,
)
from core.errors import TidelinkFileNotFoundError, TidelinkStoreError
from core.logging_config import get_logger
from core.types import DataFile, FileStatus, FileType
from ingest.raw_extraction import detect_file_type

_LOGGER = get_logger(__name__)

ALLOWED_STATUS_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("processing",),
    "processing": ("completed", "failed"),
    "completed": ("processing",),
    "failed": ("processing",),
}


class FileRegistry:
    """Persistent lifecycle registry for uploaded files."""

    def __init__(self, data_root: Path) -> None:
        self._files_root = data_root / FILES_DIR_NAME
        self._files_root.mkdir(parents=True, exist_ok=True)
        self._index_lock = threading.Lock()

    def register(
        self,
        path: str | Path,
        category: str = DEFAULT_CATEGORY,
        original_name: str | None = None,
        mime_type: str | None = None,
    ) -> DataFile:
        """Register a local file as a pending upload.

        Args:
            path: Local path of the uploaded file.
            category: Upload category selecting the field table.
            original_name: Name reported by the uploader, defaults to the file name.
            mime_type: Optional MIME type used when the extension is unknown.

        Returns:
            Pending DataFile record.

        Raises:
            TidelinkStoreError: If the file does not exist or exceeds the
                size limit of its file type.
        """
        file_path = Path(path).expanduser().resolve()
        if not file_path.is_file():
            raise TidelinkStoreError(
                f"Cannot register {file_path}: file does not exist. "
                "Check the path and try again."
            )
        name = original_name or file_path.name
        file_type = detect_file_type(name, mime_type)
        _validate_file_size(file_path, file_type)
        timestamp = _utc_now()
        record = DataFile(
            file_id=uuid4().hex,
            original_name=name,
            category=category,
            file_path=str(file_path),
            file_type=file_type,
            status="pending",
            created_at=timestamp,
            updated_at=timestamp,
        )
        self._write_record(record)
        self._append_index_row(record.file_id)
        _LOGGER.info(
            "file_registered",
            file_id=record.file_id,
            file_name=name,
            category=category,
            file_type=record.file_type,
        )
        return record

    def load(self, file_id: str) -> DataFile:
        """Load one registered file by id.

        Raises:
            TidelinkFileNotFoundError: If the id is unknown.
        """
        record_path = self._files_root / f"{file_id}.json"
        if not record_path.exists():
            raise TidelinkFileNotFoundError(
                f"File '{file_id}' is not registered. "
                "Run 'tidelink list --files' to see registered file ids."
            )
        return _record_from_payload(_read_json(record_path), record_path)

    def list_files(
        self,
        file_type: str | None = None,
        category: str | None = None,
    ) -> list[DataFile]:
        """List registered files in registration order.

        Args:
            file_type: Optional detected file type to keep, such as ``csv``.
            category: Optional upload category to keep.

        Returns:
            Matching file records.
        """
        files = [self.load(file_id) for file_id in self._read_index()]
        return [
            data_file
            for data_file in files
            if (file_type is None or data_file.file_type == file_type)
            and (category is None or data_file.category == category)
        ]

    def transition(
        self,
        file_id: str,
        status: FileStatus,
        error_message: str | None = None,
        notes: tuple[str, ...] | None = None,
        record_count: int | None = None,
        unified_count: int | None = None,
    ) -> DataFile:
        """Persist one lifecycle transition with optional run results.

        Raises:
            TidelinkFileNotFoundError: If the id is unknown.
            TidelinkStoreError: If the transition is not allowed.
        """
        record = self.load(file_id)
        allowed_statuses = ALLOWED_STATUS_TRANSITIONS[record.status]
        if status not in allowed_statuses:
            raise TidelinkStoreError(
                f"Invalid file status transition {record.status!r} -> {status!r} "
                f"for file '{file_id}'. Allowed: {', '.join(allowed_statuses)}."
            )
        next_record = replace(
            record,
            status=status,
            updated_at=_utc_now(),
            error_message=error_message if status == "failed" else None,
            notes=record.notes if notes is None else tuple(notes),
            record_count=record.record_count if record_count is None else record_count,
            unified_count=record.unified_count if unified_count is None else unified_count,
        )
        self._write_record(next_record)
        return next_record

    def _write_record(self, record: DataFile) -> None:
        payload = asdict(record)
        payload["notes"] = list(record.notes)
        payload["created_at"] = record.created_at.isoformat()
        payload["updated_at"] = record.updated_at.isoformat()
        _write_json(self._files_root / f"{record.file_id}.json", payload)

    def _read_index(self) -> list[str]:
        index_path = self._files_root / FILE_INDEX_FILE_NAME
        if not index_path.exists():
            return []
        payload = _read_json(index_path)
        if not isinstance(payload.get("files"), list):
            raise TidelinkStoreError(
                f"Invalid file index format at {index_path}: expected files list."
            )
        return [str(item) for item in payload["files"]]

    def _append_index_row(self, file_id: str) -> None:
        with self._index_lock:
            file_ids = self._read_index()
            if file_id not in file_ids:
                file_ids.append(file_id)
                _write_json(self._files_root / FILE_INDEX_FILE_NAME, {"files": file_ids})


def _validate_file_size(file_path: Path, file_type: FileType) -> None:
    max_size = MAX_FILE_SIZE_BYTES.get(file_type, DEFAULT_MAX_FILE_SIZE_BYTES)
    size = file_path.stat().st_size
    if size > max_size:
        _LOGGER.warning(
            "file_rejected_oversize", file_path=str(file_path), size=size, max_size=max_size
        )
        raise TidelinkStoreError(
            f"Cannot register {file_path}: {size} bytes exceeds the {file_type} limit of "
            f"{max_size // MEGABYTE}MB. Split the file or upload a smaller export."
        )


def _record_from_payload(payload: dict[str, object], record_path: Path) -> DataFile:
    try:
        return DataFile(
            file_id=str(payload["file_id"]),
            original_name=str(payload["original_name"]),
            category=str(payload["category"]),
            file_path=str(payload["file_path"]),
            file_type=payload["file_type"],  # type: ignore[arg-type]
            status=payload["status"],  # type: ignore[arg-type]
            created_at=datetime.fromisoformat(str(payload["created_at"])),
            updated_at=datetime.fromisoformat(str(payload["updated_at"])),
            error_message=_optional_string(payload.get("error_message")),
            notes=tuple(str(note) for note in payload.get("notes") or ()),  # type: ignore[union-attr]
            record_count=int(payload.get("record_count") or 0),  # type: ignore[arg-type]
            unified_count=int(payload.get("unified_count") or 0),  # type: ignore[arg-type]
        )
    except (KeyError, TypeError, ValueError) as error:
        raise TidelinkStoreError(
            f"Invalid file record at {record_path}: {error}. Remove or repair the record."
        ) from error


def _optional_string(value: object) -> str | None:
    return None if value is None else str(value)


def _read_json(payload_path: Path) -> dict[str, object]:
    try:
        payload = json.loads(payload_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise TidelinkStoreError(f"Failed to parse JSON at {payload_path}: {error.msg}.") from error
    except OSError as error:
        raise TidelinkStoreError(f"Failed to read file record {payload_path}: {error}.") from error
    if not isinstance(payload, dict):
        raise TidelinkStoreError(f"Invalid JSON at {payload_path}: expected object.")
    return payload


def _write_json(payload_path: Path, payload: object) -> None:
    try:
        payload_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    except OSError as error:
        raise TidelinkStoreError(f"Failed to write file record {payload_path}: {error}.") from error


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
