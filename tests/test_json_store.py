import json
from pathlib import Path

import pytest

from leadbridge.infrastructure.persistence import JsonDocument, append_error_log


def test_missing_document_returns_copy_of_default(tmp_path: Path) -> None:
    doc = JsonDocument(tmp_path / "state.json", default={"lastFetch": None})

    first = doc.load()
    first["lastFetch"] = "mutated"

    assert doc.load() == {"lastFetch": None}
    assert not doc.exists()
    assert doc.size_bytes() == 0


def test_save_creates_parent_and_leaves_no_temp_files(tmp_path: Path) -> None:
    doc = JsonDocument(tmp_path / "nested" / "data.json", default=[])

    doc.save([{"CustomerId": "1"}])

    assert doc.load() == [{"CustomerId": "1"}]
    assert [p.name for p in doc.path.parent.iterdir()] == ["data.json"]
    assert doc.size_bytes() == len(doc.path.read_bytes())


def test_failed_save_keeps_previous_content(tmp_path: Path) -> None:
    doc = JsonDocument(tmp_path / "data.json", default=[])
    doc.save([1, 2, 3])

    with pytest.raises(TypeError):
        doc.save([object()])

    assert json.loads(doc.path.read_text()) == [1, 2, 3]
    assert [p.name for p in tmp_path.iterdir()] == ["data.json"]


def test_append_error_log_adds_timestamped_lines(tmp_path: Path) -> None:
    log_path = tmp_path / "error.log"

    append_error_log(log_path, "first failure")
    append_error_log(log_path, "second failure")

    lines = log_path.read_text().splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("[") and lines[0].endswith("] first failure")
    assert "Z]" in lines[1]
