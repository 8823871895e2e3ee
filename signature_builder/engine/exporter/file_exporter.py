"""Write the store out as fixed-size numbered hash-list files."""

from __future__ import annotations

import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from ...infra.storage import HashStore

INDEX_WIDTH = 5
TIMESTAMP_FILENAME = "timestamp"


@dataclass(frozen=True, slots=True)
class ExportChunk:
    start_row: int
    end_row: int
    output_index: int

    @property
    def filename(self) -> str:
        return f"{self.output_index:0{INDEX_WIDTH}d}"


@dataclass
class ExportReport:
    resume_offset: int = 0
    files: list[Path] = field(default_factory=list)
    rows: int = 0


def resume_offset(output_dir: Path) -> int:
    """Return one past the highest purely numeric filename in *output_dir* (0 if none)."""
    if not output_dir.exists():
        return 0
    indices = [
        int(path.name)
        for path in output_dir.iterdir()
        if path.is_file() and path.name.isdigit()
    ]
    return max(indices) + 1 if indices else 0


def write_timestamp(output_dir: Path) -> Path:
    """Record the export time (UNIX milliseconds) next to the exported files."""
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / TIMESTAMP_FILENAME
    target.unlink(missing_ok=True)
    target.write_text(str(time.time_ns() // 1_000_000), encoding="utf-8")
    return target


class RangeExporter:
    """Page through the store in id order, one output file per page."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("signature_builder.exporter")

    def export(
        self,
        output_dir: Path,
        page_size: int,
        store: HashStore,
        resume: bool = False,
    ) -> ExportReport:
        """Export every row of *store* into *output_dir*.

        Without *resume* the directory is rebuilt from empty. With *resume*
        existing files are kept and numbering continues after the highest one.
        """
        if page_size < 1:
            raise ValueError("page size must be >= 1")
        if not resume and output_dir.exists():
            shutil.rmtree(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        report = ExportReport(resume_offset=resume_offset(output_dir) if resume else 0)
        self.logger.info(
            "export_started",
            hashes=store.count(),
            output_dir=str(output_dir),
            resume_offset=report.resume_offset,
        )
        page = 0
        # Each page continues after the last id written, so rows are scanned once.
        last_id = 0
        while True:
            chunk = ExportChunk(
                start_row=page * page_size,
                end_row=(page + 1) * page_size,
                output_index=report.resume_offset + page,
            )
            rows = store.read_page(last_id, page_size)
            if not rows:
                break
            last_id = rows[-1][0]
            target = output_dir / chunk.filename
            self.logger.info("writing_export_file", path=str(target), hashes=len(rows))
            with target.open("w", encoding="utf-8", newline="\n") as stream:
                for _, value in rows:
                    stream.write(value)
                    stream.write("\n")
            report.files.append(target)
            report.rows += len(rows)
            page += 1
        self.logger.info("export_complete", files=len(report.files), rows=report.rows)
        return report


__all__ = [
    "ExportChunk",
    "ExportReport",
    "RangeExporter",
    "TIMESTAMP_FILENAME",
    "resume_offset",
    "write_timestamp",
]
