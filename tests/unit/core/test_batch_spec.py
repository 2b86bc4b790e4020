"""Unit tests for YAML batch-spec parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.batch_spec import load_batch_spec
from core.errors import TidelinkBatchSpecError
from fixture_paths import fixture_path


def _write_spec(tmp_path: Path, content: str) -> Path:
    spec_path = tmp_path / "batch.yaml"
    spec_path.write_text(content, encoding="utf-8")
    return spec_path


def test_load_batch_spec_resolves_entries_against_spec_dir() -> None:
    """Relative paths should resolve next to the spec and inherit categories."""
    spec = load_batch_spec(fixture_path("batch_spec.yaml"))

    assert spec.version == 1 and spec.defaults.category == "fish_data"
    assert [entry.path for entry in spec.files] == [
        fixture_path("reef_a_fish.csv").resolve(),
        fixture_path("reef_a_ocean.csv").resolve(),
        fixture_path("edna_matches.json").resolve(),
    ]
    assert [entry.category for entry in spec.files] == ["fish_data", "ocean_data", "eDNA_data"]
    assert spec.files[2].name == "edna_run_7.json"


def test_load_batch_spec_accepts_bare_path_strings(tmp_path) -> None:
    """Plain string entries should use the fallback category."""
    spec = load_batch_spec(_write_spec(tmp_path, "version: 1\nfiles:\n  - survey.csv\n"))

    assert spec.files[0].path == (tmp_path / "survey.csv").resolve()
    assert spec.files[0].category == "other"


@pytest.mark.parametrize(
    "content",
    [
        "version: 1\nfiles: [a.csv]\nextra: true\n",
        "version: 2\nfiles: [a.csv]\n",
        "version: true\nfiles: [a.csv]\n",
        "version: 1\nfiles: []\n",
        "version: 1\nfiles:\n  - category: fish_data\n",
        "version: 1\nfiles: [a.csv\n",
        "",
    ],
)
def test_load_batch_spec_rejects_invalid_documents(tmp_path, content: str) -> None:
    """Schema and syntax violations should raise batch-spec errors."""
    with pytest.raises(TidelinkBatchSpecError):
        load_batch_spec(_write_spec(tmp_path, content))


def test_load_batch_spec_rejects_missing_file(tmp_path) -> None:
    """A missing spec file should raise a batch-spec error."""
    with pytest.raises(TidelinkBatchSpecError, match="does not exist"):
        load_batch_spec(tmp_path / "missing.yaml")
