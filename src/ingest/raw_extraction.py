"""Raw extraction adapters for uploaded files.

This module detects file types and wraps per-format libraries to produce
raw payloads for the standardizer. Extraction failures are reported on the
payload ``error`` field instead of raised, so callers always receive a
well-formed payload. Unknown file types are rejected outright.
"""

from __future__ import annotations

import csv
from datetime import date, datetime, time
import json
from pathlib import Path
from typing import Any, Callable
import zipfile

from core.errors import TidelinkDependencyError, TidelinkFormatError
from core.logging_config import get_logger
from core.types import (
    ArtifactPayload,
    FileType,
    ItemsPayload,
    RawPayload,
    TabularPayload,
    TextPayload,
)

_LOGGER = get_logger(__name__)

_EXTENSION_TYPES: dict[str, FileType] = {
    ".csv": "csv",
    ".xlsx": "excel",
    ".xlsm": "excel",
    ".json": "json",
    ".jpg": "image",
    ".jpeg": "image",
    ".png": "image",
    ".gif": "image",
    ".bmp": "image",
    ".tif": "image",
    ".tiff": "image",
    ".webp": "image",
    ".pdf": "pdf",
    ".docx": "word",
    ".txt": "text",
    ".md": "text",
    ".tsv": "text",
    ".zip": "archive",
}


def detect_file_type(file_name: str, mime_type: str | None = None) -> FileType:
    """Detect the raw extraction type of an uploaded file.

    Args:
        file_name: Original file name.
        mime_type: Optional MIME type reported by the uploader.

    Returns:
        Detected file type, ``"other"`` when unsupported.
    """
    extension_type = _EXTENSION_TYPES.get(Path(file_name).suffix.lower())
    if extension_type is not None:
        return extension_type
    if not mime_type:
        return "other"
    if mime_type.startswith("image/"):
        return "image"
    if mime_type in {"text/csv", "application/csv"}:
        return "csv"
    if "spreadsheetml" in mime_type:
        return "excel"
    if mime_type == "application/json":
        return "json"
    if mime_type == "application/pdf":
        return "pdf"
    if "wordprocessingml" in mime_type:
        return "word"
    if mime_type == "application/zip":
        return "archive"
    if mime_type.startswith("text/"):
        return "text"
    return "other"


def extract_raw(file_path: str | Path, file_type: FileType) -> RawPayload:
    """Extract a raw payload from one file.

    Args:
        file_path: Local path of the stored upload.
        file_type: Type returned by ``detect_file_type``.

    Returns:
        Raw payload, with ``error`` set when extraction failed.

    Raises:
        TidelinkFormatError: If no adapter exists for the file type.
    """
    path = Path(file_path)
    extractor = _EXTRACTORS.get(file_type)
    if extractor is None:
        raise TidelinkFormatError(
            f"Unsupported file type '{file_type}' for {path.name}. "
            "Upload CSV, Excel, JSON, image, PDF, Word, text, or zip files."
        )
    try:
        return extractor(path)
    except Exception as error:
        _LOGGER.warning(
            "raw_extraction_failed",
            file_path=str(path),
            file_type=file_type,
            error=str(error),
        )
        return _error_payload(path, file_type, f"{type(error).__name__}: {error}")


def _extract_csv(path: Path) -> TabularPayload:
    with path.open(encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        headers = tuple(name for name in (reader.fieldnames or []) if name)
        rows = tuple(
            {header: (row.get(header) or "") for header in headers} for row in reader
        )
    return TabularPayload(headers=headers, rows=rows)


def _extract_excel(path: Path) -> TabularPayload:
    try:
        import openpyxl
    except ImportError as error:
        raise TidelinkDependencyError(
            "Excel extraction requires openpyxl, but it is not installed. "
            "Install openpyxl to ingest .xlsx files."
        ) from error
    workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        sheet_rows = list(workbook.worksheets[0].iter_rows(values_only=True))
    finally:
        workbook.close()
    if not sheet_rows:
        return TabularPayload()
    headers = tuple(_cell_text(cell) for cell in sheet_rows[0])
    rows = tuple(
        {header: _cell_text(cell) for header, cell in zip(headers, values) if header}
        for values in sheet_rows[1:]
        if any(cell is not None for cell in values)
    )
    return TabularPayload(headers=tuple(header for header in headers if header), rows=rows)


def _extract_json(path: Path) -> ItemsPayload:
    document = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(document, dict) and isinstance(document.get("data"), (list, dict)):
        document = document["data"]
    candidates = document if isinstance(document, list) else [document]
    items = tuple(item for item in candidates if isinstance(item, dict))
    return ItemsPayload(items=items)


def _extract_image(path: Path) -> ArtifactPayload:
    try:
        from PIL import Image
    except ImportError as error:
        raise TidelinkDependencyError(
            "Image extraction requires Pillow, but it is not installed. "
            "Install Pillow to ingest image files."
        ) from error
    with Image.open(path) as image:
        width, height = image.size
        image_format = image.format
    return ArtifactPayload(
        file_name=path.name,
        fields={
            "image_file": path.name,
            "width": width,
            "height": height,
            "format": image_format,
        },
    )


def _extract_pdf(path: Path) -> TextPayload:
    try:
        from pypdf import PdfReader
    except ImportError as error:
        raise TidelinkDependencyError(
            "PDF extraction requires pypdf, but it is not installed. "
            "Install pypdf to ingest .pdf files."
        ) from error
    reader = PdfReader(str(path))
    page_texts = [page.extract_text() or "" for page in reader.pages]
    return TextPayload(text="\n".join(page_texts))


def _extract_word(path: Path) -> TextPayload:
    try:
        import docx
    except ImportError as error:
        raise TidelinkDependencyError(
            "Word extraction requires python-docx, but it is not installed. "
            "Install python-docx to ingest .docx files."
        ) from error
    document = docx.Document(str(path))
    return TextPayload(text="\n".join(paragraph.text for paragraph in document.paragraphs))


def _extract_text(path: Path) -> TextPayload:
    return TextPayload(text=path.read_text(encoding="utf-8", errors="replace"))


def _extract_archive(path: Path) -> TextPayload:
    with zipfile.ZipFile(path) as archive:
        names = [info.filename for info in archive.infolist() if not info.is_dir()]
    return TextPayload(text="\n".join(names))


def _error_payload(path: Path, file_type: FileType, message: str) -> RawPayload:
    """Build the payload variant for a failed extraction."""
    error = f"Failed to extract {path.name}: {message}"
    if file_type in {"csv", "excel"}:
        return TabularPayload(error=error)
    if file_type == "json":
        return ItemsPayload(error=error)
    if file_type == "image":
        return ArtifactPayload(file_name=path.name, error=error)
    return TextPayload(error=error)


def _cell_text(value: Any) -> str:
    """Render an Excel cell value as text the normalizers understand."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value).strip()


_EXTRACTORS: dict[str, Callable[[Path], RawPayload]] = {
    "csv": _extract_csv,
    "excel": _extract_excel,
    "json": _extract_json,
    "image": _extract_image,
    "pdf": _extract_pdf,
    "word": _extract_word,
    "text": _extract_text,
    "archive": _extract_archive,
}
