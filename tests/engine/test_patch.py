from __future__ import annotations

from pathlib import Path

import pytest

from signature_builder.engine import PatchApplier
from signature_builder.engine.patch import PatchEntry, PatchOperation
from signature_builder.errors import StoreError


def test_parse_lines_splits_operations() -> None:
    entries, ignored = PatchApplier().parse_lines(["+aaa\n", "-bbb\n", "\n", "+ ccc\r\n", "?ddd", "+"])

    assert entries == [
        PatchEntry(PatchOperation.ADD, "aaa"),
        PatchEntry(PatchOperation.REMOVE, "bbb"),
        PatchEntry(PatchOperation.ADD, "ccc"),
    ]
    assert ignored == ["?ddd", "+"]


def test_apply_patch_adds_then_removes(tmp_path: Path, store, lines_writer) -> None:
    store.insert_hashes(["old", "keep"])
    patch = lines_writer(tmp_path / "changes.diff", ["+new", "-old", "+both", "-both", "garbage"])

    report = PatchApplier().apply_patch(patch, store)

    assert report.ok
    assert report.added == 2
    assert report.removed == 2
    assert report.ignored == ["garbage"]
    assert store.contains("new")
    assert store.contains("keep")
    assert not store.contains("old")
    assert not store.contains("both")


def test_apply_patch_missing_file(tmp_path: Path, store) -> None:
    with pytest.raises(OSError):
        PatchApplier().apply_patch(tmp_path / "missing.diff", store)


def test_failed_add_batch_still_removes(
    tmp_path: Path, store, lines_writer, monkeypatch: pytest.MonkeyPatch
) -> None:
    store.insert_hashes(["gone"])
    patch = lines_writer(tmp_path / "changes.diff", ["+fresh", "-gone"])

    def fail(_hashes) -> int:
        raise StoreError("disk I/O error")

    monkeypatch.setattr(store, "insert_hashes", fail)
    report = PatchApplier().apply_patch(patch, store)

    assert not report.ok
    assert report.add_error == "disk I/O error"
    assert report.remove_error is None
    assert report.removed == 1
    assert not store.contains("gone")
    assert not store.contains("fresh")


def test_undecodable_patch_lines_are_skipped(tmp_path: Path, store) -> None:
    patch = tmp_path / "changes.diff"
    patch.write_bytes(b"+aaa\n+\xff\xfe\n-bbb\n")
    store.insert_hashes(["bbb"])

    report = PatchApplier().apply_patch(patch, store)

    assert report.ok
    assert report.added == 1
    assert report.removed == 1
    assert report.ignored == []
    assert store.contains("aaa")
