"""Deterministic mapping from remote file indices to URLs and local paths."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..config import RemoteConfig


@dataclass(frozen=True, slots=True)
class RemoteFileHandle:
    """One numbered file published by the provider."""

    index: int
    url: str


@dataclass(frozen=True, slots=True)
class DownloadTask:
    """Unit of work handed to exactly one download worker."""

    handle: RemoteFileHandle
    destination: Path


class RemoteLayout:
    """Build handles and local filenames from the provider's naming scheme."""

    def __init__(self, config: RemoteConfig | None = None) -> None:
        self.config = config or RemoteConfig()

    def _padded(self, index: int) -> str:
        if index < 0:
            raise ValueError(f"Remote index must be non-negative: {index}")
        return f"{index:0{self.config.index_width}d}"

    def handle(self, index: int) -> RemoteFileHandle:
        return RemoteFileHandle(
            index=index,
            url=f"{self.config.base_url}{self._padded(index)}{self.config.suffix}",
        )

    def local_name(self, index: int) -> str:
        return f"{self.config.local_prefix}{self._padded(index)}{self.config.suffix}"

    def task(self, index: int, destination_dir: Path) -> DownloadTask:
        return DownloadTask(
            handle=self.handle(index),
            destination=destination_dir / self.local_name(index),
        )


__all__ = ["DownloadTask", "RemoteFileHandle", "RemoteLayout"]
