"""Concurrent download of the provider's numbered hash files."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

import httpx
import structlog

from ..errors import TransportError
from .remote import DownloadTask, RemoteLayout
from .thread_pool import WorkerPool


class FetchStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(slots=True)
class FetchOutcome:
    """Result of downloading one remote file."""

    index: int
    url: str
    destination: Path
    status: FetchStatus
    attempts: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.SUCCESS


@dataclass
class FetchReport:
    """Per-file outcomes of one fetch run."""

    max_index: int | None
    outcomes: list[FetchOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[FetchOutcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]

    @property
    def failed(self) -> list[FetchOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def summary(self) -> dict[str, int]:
        return {
            "total": len(self.outcomes),
            "success": len(self.succeeded),
            "failed": len(self.failed),
        }


class BulkFetcher:
    """Download indices ``0..=max_index`` with a bounded pool and per-file retries."""

    def __init__(
        self,
        layout: RemoteLayout,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        chunk_size: int = 64 * 1024,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.layout = layout
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.logger = logger or structlog.get_logger("signature_builder.fetcher")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": layout.config.user_agent},
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "BulkFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def fetch_all(
        self,
        max_index: int | None,
        destination_dir: Path,
        worker_count: int,
        max_retries: int,
        on_complete: Callable[[FetchOutcome], None] | None = None,
    ) -> FetchReport:
        """Download every index up to *max_index*; returns once all files are resolved.

        ``None`` for *max_index* means the provider has no files. A file whose
        attempts are exhausted is reported as failed; it never aborts the batch.
        """
        destination_dir.mkdir(parents=True, exist_ok=True)
        report = FetchReport(max_index=max_index)
        if max_index is None:
            return report

        def _run(task: DownloadTask) -> FetchOutcome:
            outcome = self.download(task, max_retries)
            if on_complete is not None:
                on_complete(outcome)
            return outcome

        pool: WorkerPool[DownloadTask, FetchOutcome] = WorkerPool(
            worker_count, thread_name_prefix="download"
        )
        tasks = (self.layout.task(index, destination_dir) for index in range(max_index + 1))
        report.outcomes = pool.map(_run, tasks)
        summary = report.summary()
        self.logger.info("fetch_complete", **summary)
        return report

    def download(self, task: DownloadTask, max_retries: int) -> FetchOutcome:
        """Download one file with up to ``max_retries + 1`` attempts."""
        url = task.handle.url
        destination = task.destination
        last_error: str | None = None
        attempts = 0
        try:
            destination.unlink(missing_ok=True)
            for attempt in range(max_retries + 1):
                attempts = attempt + 1
                try:
                    self._download_once(url, destination)
                except TransportError as exc:
                    last_error = str(exc)
                    self.logger.warning(
                        "download_attempt_failed",
                        url=url,
                        attempt=attempts,
                        status_code=exc.status_code,
                        error=last_error,
                    )
                    continue
                self.logger.info("downloaded", path=str(destination), attempts=attempts)
                return FetchOutcome(
                    index=task.handle.index,
                    url=url,
                    destination=destination,
                    status=FetchStatus.SUCCESS,
                    attempts=attempts,
                )
        except OSError as exc:
            # Local filesystem failures are not retried.
            last_error = str(exc)

        self.logger.error("download_failed", url=url, attempts=attempts, error=last_error)
        return FetchOutcome(
            index=task.handle.index,
            url=url,
            destination=destination,
            status=FetchStatus.FAILED,
            attempts=attempts,
            error=last_error,
        )

    def _download_once(self, url: str, destination: Path) -> None:
        """Stream one response body into *destination* via a temporary file."""
        tmp_fd, tmp_name = tempfile.mkstemp(
            dir=destination.parent, prefix=f".{destination.name}.", suffix=".part"
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(tmp_fd, "wb") as stream:
                with self._client.stream("GET", url, timeout=self.timeout) as response:
                    if not response.is_success:
                        raise TransportError(
                            url,
                            f"unexpected status {response.status_code}",
                            status_code=response.status_code,
                        )
                    for chunk in response.iter_bytes(self.chunk_size):
                        stream.write(chunk)
            os.replace(tmp_path, destination)
        except httpx.HTTPError as exc:
            tmp_path.unlink(missing_ok=True)
            raise TransportError(url, str(exc)) from exc
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise


__all__ = ["BulkFetcher", "FetchOutcome", "FetchReport", "FetchStatus"]
