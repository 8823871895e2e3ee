"""Exporters writing the store to flat files."""

from .file_exporter import (
    ExportChunk,
    ExportReport,
    RangeExporter,
    TIMESTAMP_FILENAME,
    resume_offset,
    write_timestamp,
)

__all__ = [
    "ExportChunk",
    "ExportReport",
    "RangeExporter",
    "TIMESTAMP_FILENAME",
    "resume_offset",
    "write_timestamp",
]
