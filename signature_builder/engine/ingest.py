"""Merge directories of raw hash-list files into the store in bounded chunks."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Sequence, TypeVar

import structlog

from ..errors import StoreError
from ..infra.storage import HashStore

COMMENT_MARKER = b"#"
PARTIAL_SUFFIX = ".part"

T = TypeVar("T")


class FileStatus(str, Enum):
    READ = "read"
    SKIPPED = "skipped"


class ChunkStatus(str, Enum):
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(slots=True)
class FileOutcome:
    path: Path
    status: FileStatus
    hashes: int = 0
    error: str | None = None


@dataclass(slots=True)
class ChunkOutcome:
    chunk_id: int
    files: list[FileOutcome]
    hashes: int
    status: ChunkStatus
    inserted: int = 0
    error: str | None = None


@dataclass
class IngestReport:
    chunks: list[ChunkOutcome] = field(default_factory=list)

    @property
    def files(self) -> list[FileOutcome]:
        return [outcome for chunk in self.chunks for outcome in chunk.files]

    @property
    def failed_chunks(self) -> list[ChunkOutcome]:
        return [chunk for chunk in self.chunks if chunk.status is ChunkStatus.FAILED]

    @property
    def skipped_files(self) -> list[FileOutcome]:
        return [outcome for outcome in self.files if outcome.status is FileStatus.SKIPPED]

    def summary(self) -> dict[str, int]:
        return {
            "chunks": len(self.chunks),
            "failed_chunks": len(self.failed_chunks),
            "files": len(self.files),
            "skipped_files": len(self.skipped_files),
            "hashes": sum(chunk.hashes for chunk in self.chunks),
            "inserted": sum(chunk.inserted for chunk in self.chunks),
        }


def partition(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield contiguous slices of *items* holding at most *size* elements."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def list_source_files(source_dir: Path) -> list[Path]:
    """Regular files of *source_dir* sorted by name, excluding in-flight downloads."""
    return sorted(
        (
            path
            for path in source_dir.iterdir()
            if path.is_file() and not path.name.endswith(PARTIAL_SUFFIX)
        ),
        key=lambda path: path.name,
    )


class BatchWriter:
    """Read raw hash lists and commit them to a :class:`HashStore` chunk by chunk."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("signature_builder.ingest")

    def read_hashes(self, path: Path) -> list[str]:
        """Return the non-comment, non-blank lines of *path*.

        Raises ``OSError`` when the file cannot be opened. Lines that are not
        valid UTF-8 are skipped with a warning.
        """
        hashes: list[str] = []
        with path.open("rb") as stream:
            for line_no, raw in enumerate(stream, start=1):
                if raw.startswith(COMMENT_MARKER):
                    continue
                try:
                    line = raw.decode("utf-8").rstrip("\r\n")
                except UnicodeDecodeError as exc:
                    self.logger.warning(
                        "unreadable_line", path=str(path), line=line_no, error=str(exc)
                    )
                    continue
                if line:
                    hashes.append(line)
        return hashes

    def ingest(self, source_dir: Path, chunk_size: int, store: HashStore) -> IngestReport:
        if chunk_size < 1:
            raise ValueError("chunk size must be >= 1")
        source_dir.mkdir(parents=True, exist_ok=True)
        entries = list_source_files(source_dir)
        total_chunks = math.ceil(len(entries) / chunk_size)
        report = IngestReport()
        for chunk_id, chunk in enumerate(partition(entries, chunk_size)):
            report.chunks.append(self._ingest_chunk(chunk_id, total_chunks, chunk, store))
        self.logger.info("ingest_complete", **report.summary())
        return report

    def ingest_file(self, path: Path, store: HashStore) -> ChunkOutcome:
        """Insert a single file as one transaction; unreadable files raise ``OSError``."""
        hashes = self.read_hashes(path)
        self.logger.info("inserting_file", path=str(path), hashes=len(hashes))
        inserted = store.insert_hashes(hashes)
        return ChunkOutcome(
            chunk_id=0,
            files=[FileOutcome(path=path, status=FileStatus.READ, hashes=len(hashes))],
            hashes=len(hashes),
            status=ChunkStatus.COMMITTED,
            inserted=inserted,
        )

    def _ingest_chunk(
        self, chunk_id: int, total_chunks: int, chunk: list[Path], store: HashStore
    ) -> ChunkOutcome:
        batch: list[str] = []
        files: list[FileOutcome] = []
        for path in chunk:
            self.logger.debug("adding_to_batch", path=str(path))
            try:
                hashes = self.read_hashes(path)
            except OSError as exc:
                self.logger.error("unreadable_file", path=str(path), error=str(exc))
                files.append(FileOutcome(path=path, status=FileStatus.SKIPPED, error=str(exc)))
                continue
            batch.extend(hashes)
            files.append(FileOutcome(path=path, status=FileStatus.READ, hashes=len(hashes)))

        self.logger.info(
            "inserting_chunk",
            chunk=chunk_id + 1,
            chunks=total_chunks,
            hashes=len(batch),
        )
        try:
            inserted = store.insert_hashes(batch)
        except StoreError as exc:
            self.logger.error("chunk_failed", chunk=chunk_id + 1, error=str(exc))
            return ChunkOutcome(
                chunk_id=chunk_id,
                files=files,
                hashes=len(batch),
                status=ChunkStatus.FAILED,
                error=str(exc),
            )
        return ChunkOutcome(
            chunk_id=chunk_id,
            files=files,
            hashes=len(batch),
            status=ChunkStatus.COMMITTED,
            inserted=inserted,
        )


__all__ = [
    "BatchWriter",
    "ChunkOutcome",
    "ChunkStatus",
    "FileOutcome",
    "FileStatus",
    "IngestReport",
    "list_source_files",
    "partition",
]
