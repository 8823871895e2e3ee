"""Engine components orchestrating probe → fetch → ingest, plus patch and export."""

from .exporter import RangeExporter
from .fetcher import BulkFetcher, FetchOutcome, FetchReport, FetchStatus
from .ingest import BatchWriter, IngestReport
from .patch import PatchApplier, PatchReport
from .probe import RemoteIndexProbe
from .remote import DownloadTask, RemoteFileHandle, RemoteLayout
from .thread_pool import WorkerPool

__all__ = [
    "BatchWriter",
    "BulkFetcher",
    "DownloadTask",
    "FetchOutcome",
    "FetchReport",
    "FetchStatus",
    "IngestReport",
    "PatchApplier",
    "PatchReport",
    "RangeExporter",
    "RemoteFileHandle",
    "RemoteIndexProbe",
    "RemoteLayout",
    "WorkerPool",
]
