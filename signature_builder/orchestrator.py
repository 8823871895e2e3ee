"""Command orchestrator wiring probe, fetch, ingest, patch and export to the store."""

from __future__ import annotations

import shutil
from pathlib import Path

import httpx
import structlog

from .config import GlobalConfig
from .engine import (
    BatchWriter,
    BulkFetcher,
    FetchOutcome,
    FetchReport,
    IngestReport,
    PatchApplier,
    PatchReport,
    RangeExporter,
    RemoteIndexProbe,
    RemoteLayout,
)
from .engine.exporter import ExportReport, write_timestamp
from .engine.ingest import ChunkOutcome
from .infra import HashStore, SQLiteManager
from .ui import ProgressActivity, ProgressReporter


class Orchestrator:
    """Central coordinator for the operator commands.

    Fetch and ingest are strictly sequential: :meth:`update` only starts
    ingesting after the download pool has drained.
    """

    def __init__(
        self,
        config: GlobalConfig,
        storage: SQLiteManager | None = None,
        client: httpx.Client | None = None,
        progress_enabled: bool | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.storage = storage or SQLiteManager()
        self.layout = RemoteLayout(config.remote)
        self.progress_enabled = (
            config.show_progress if progress_enabled is None else progress_enabled
        )
        self.logger = logger or structlog.get_logger("signature_builder.orchestrator")
        self._client = client
        self._owns_client = client is None
        self._store: HashStore | None = None

    # ------------------------------------------------------------------
    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                follow_redirects=True,
                timeout=self.config.request_timeout,
                headers={"User-Agent": self.config.remote.user_agent},
            )
        return self._client

    def store(self) -> HashStore:
        """Open (once) the configured collection; raises ``StoreOpenError`` on failure."""
        if self._store is None:
            self._store = HashStore(self.storage, self.config.database, self.config.table)
        return self._store

    def close(self) -> None:
        if self._store is not None:
            self._store.close()
            self._store = None
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "Orchestrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    def discover(self) -> int | None:
        probe = RemoteIndexProbe(self.layout, client=self.client, timeout=self.config.request_timeout)
        self.logger.info("indexing_remote_files", base_url=self.config.remote.base_url)
        with ProgressActivity(enabled=self.progress_enabled) as activity:
            activity.start("Indexing remote files…")
            max_index = probe.discover_max_index(self.config.max_retries)
        files = 0 if max_index is None else max_index + 1
        self.logger.info("remote_files_found", files=files)
        return max_index

    def fetch(self) -> FetchReport:
        """Discover the remote file count, then download every file into the work dir."""
        max_index = self.discover()
        fetcher = BulkFetcher(self.layout, client=self.client, timeout=self.config.request_timeout)
        progress = ProgressReporter(enabled=self.progress_enabled)
        progress.start(0 if max_index is None else max_index + 1)

        def _advance(outcome: FetchOutcome) -> None:
            progress.advance(outcome.ok, current=outcome.destination.name)

        try:
            return fetcher.fetch_all(
                max_index,
                self.config.work_dir,
                self.config.max_workers,
                self.config.max_retries,
                on_complete=_advance,
            )
        finally:
            progress.close()

    def insert(self) -> IngestReport:
        return BatchWriter().ingest(self.config.work_dir, self.config.chunk_size, self.store())

    def insert_file(self, path: Path) -> ChunkOutcome:
        return BatchWriter().ingest_file(path, self.store())

    def update(self) -> tuple[FetchReport, IngestReport]:
        fetch_report = self.fetch()
        return fetch_report, self.insert()

    def patch(self, path: Path) -> PatchReport:
        return PatchApplier().apply_patch(path, self.store())

    def export(self, resume: bool = False, timestamp: bool = False) -> ExportReport:
        report = RangeExporter().export(
            self.config.output_dir, self.config.page_size, self.store(), resume=resume
        )
        if timestamp:
            write_timestamp(self.config.output_dir)
        return report

    def count(self) -> int:
        return self.store().count()

    def clean(self) -> dict[str, bool]:
        """Delete the working directory and the database file."""
        if self._store is not None:
            self._store.close()
            self._store = None
        removed = {"work_dir": False, "database": False}
        self.logger.info("deleting_work_dir", path=str(self.config.work_dir))
        if self.config.work_dir.exists():
            shutil.rmtree(self.config.work_dir)
            removed["work_dir"] = True
        else:
            self.logger.warning("work_dir_missing", path=str(self.config.work_dir))
        self.logger.info("deleting_database", path=str(self.config.database))
        if self.storage.reset(self.config.database):
            removed["database"] = True
        else:
            self.logger.warning("database_missing", path=str(self.config.database))
        return removed


__all__ = ["Orchestrator"]
