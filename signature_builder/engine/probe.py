"""Discover how many numbered files the provider currently publishes."""

from __future__ import annotations

import httpx
import structlog

from ..errors import DiscoveryError, TransportError
from .remote import RemoteLayout

COARSE_STEP = 10
FINE_STEP = 1


class RemoteIndexProbe:
    """Locate the highest remote index with HEAD requests instead of a listing.

    A coarse scan walks indices 0, 10, 20, ... until one is missing, then a
    fine scan walks one index at a time from the last present decade. Each
    scan phase owns its own retry budget; exhausting it raises
    :class:`DiscoveryError`.
    """

    def __init__(
        self,
        layout: RemoteLayout,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.layout = layout
        self.timeout = timeout
        self.logger = logger or structlog.get_logger("signature_builder.probe")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": layout.config.user_agent},
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "RemoteIndexProbe":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def discover_max_index(self, max_retries: int) -> int | None:
        """Return the highest existing remote index, or ``None`` when index 0 is absent."""
        first_absent = self._scan(0, COARSE_STEP, max_retries)
        if first_absent == 0:
            self.logger.info("probe_no_remote_files")
            return None
        absent = self._scan(first_absent - COARSE_STEP, FINE_STEP, max_retries)
        if absent == 0:
            return None
        self.logger.info("probe_complete", max_index=absent - 1)
        return absent - 1

    def _scan(self, start: int, step: int, budget: int) -> int:
        """Advance by *step* from *start* and return the first index reported missing."""
        index = start
        remaining = budget
        while True:
            try:
                exists = self.exists(index)
            except TransportError as exc:
                remaining -= 1
                self.logger.warning(
                    "probe_retry",
                    index=index,
                    remaining=max(remaining, 0),
                    error=str(exc),
                )
                if remaining <= 0:
                    raise DiscoveryError(index, budget - remaining, str(exc)) from exc
                continue
            if not exists:
                return index
            index += step

    def exists(self, index: int) -> bool:
        """HEAD one index: ``True`` on 2xx, ``False`` on 404, :class:`TransportError` otherwise."""
        handle = self.layout.handle(index)
        self.logger.debug("probe_request", index=index, url=handle.url)
        try:
            response = self._client.head(handle.url, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise TransportError(handle.url, str(exc)) from exc
        if response.is_success:
            return True
        if response.status_code == httpx.codes.NOT_FOUND:
            return False
        raise TransportError(
            handle.url,
            f"unexpected status {response.status_code}",
            status_code=response.status_code,
        )


__all__ = ["RemoteIndexProbe"]
