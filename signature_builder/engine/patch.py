"""Apply ``+hash`` / ``-hash`` patch files to the store."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator

import structlog

from ..errors import StoreError
from ..infra.storage import HashStore


class PatchOperation(str, Enum):
    ADD = "+"
    REMOVE = "-"


@dataclass(frozen=True, slots=True)
class PatchEntry:
    operation: PatchOperation
    hash: str


@dataclass
class PatchReport:
    added: int = 0
    removed: int = 0
    ignored: list[str] = field(default_factory=list)
    add_error: str | None = None
    remove_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.add_error is None and self.remove_error is None


class PatchApplier:
    """Parse a patch file and apply its adds, then its removes, as two batches."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("signature_builder.patch")

    def parse_lines(self, lines: Iterable[str]) -> tuple[list[PatchEntry], list[str]]:
        """Split *lines* into patch entries and the lines that were ignored."""
        entries: list[PatchEntry] = []
        ignored: list[str] = []
        for raw in lines:
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            prefix = line[0]
            if prefix in (PatchOperation.ADD.value, PatchOperation.REMOVE.value):
                value = line[1:].strip()
                if value:
                    entries.append(PatchEntry(PatchOperation(prefix), value))
                    continue
            self.logger.warning("ignoring_patch_line", line=line)
            ignored.append(line)
        return entries, ignored

    def parse(self, patch_file: Path) -> tuple[list[PatchEntry], list[str]]:
        """Parse *patch_file*; lines that are not valid UTF-8 are skipped with a warning."""
        with patch_file.open("rb") as stream:
            return self.parse_lines(self._decoded_lines(patch_file, stream))

    def _decoded_lines(self, patch_file: Path, stream: Iterable[bytes]) -> Iterator[str]:
        for line_no, raw in enumerate(stream, start=1):
            try:
                yield raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                self.logger.warning(
                    "unreadable_line", path=str(patch_file), line=line_no, error=str(exc)
                )

    def apply_patch(self, patch_file: Path, store: HashStore) -> PatchReport:
        entries, ignored = self.parse(patch_file)
        additions = [entry.hash for entry in entries if entry.operation is PatchOperation.ADD]
        removals = [entry.hash for entry in entries if entry.operation is PatchOperation.REMOVE]
        report = PatchReport(ignored=ignored)

        self.logger.info("patch_adding", hashes=len(additions))
        try:
            report.added = store.insert_hashes(additions)
        except StoreError as exc:
            self.logger.error("patch_add_failed", error=str(exc))
            report.add_error = str(exc)

        # Removes run second so a hash in both sets ends up absent.
        self.logger.info("patch_removing", hashes=len(removals))
        try:
            report.removed = store.remove_hashes(removals)
        except StoreError as exc:
            self.logger.error("patch_remove_failed", error=str(exc))
            report.remove_error = str(exc)
        return report


__all__ = ["PatchApplier", "PatchEntry", "PatchOperation", "PatchReport"]
