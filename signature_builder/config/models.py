"""Pydantic models describing how signature-builder reaches the provider and the store."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class RemoteConfig(BaseModel):
    """Naming scheme of the numbered hash files published upstream."""

    base_url: str = "https://virusshare.com/hashfiles/VirusShare_"
    suffix: str = ".md5"
    local_prefix: str = "vs_"
    index_width: int = 5
    user_agent: str = "signature-builder"

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return value

    @field_validator("index_width")
    @classmethod
    def _validate_width(cls, value: int) -> int:
        if value < 1:
            raise ValueError("index_width must be >= 1")
        return value


class GlobalConfig(BaseModel):
    """Settings shared by every command."""

    work_dir: Path = Field(default=Path("tmp"))
    database: Path = Field(default=Path("hashes_db"))
    table: str = "hashes"
    max_workers: int = 20
    max_retries: int = 5
    chunk_size: int = Field(
        default=8,
        description="Number of downloaded files combined into one insert transaction.",
    )
    page_size: int = Field(
        default=1_000_000,
        description="Number of hashes written to each exported file.",
    )
    output_dir: Path = Field(default=Path("hashes"))
    request_timeout: float = 30.0
    show_progress: bool = True
    remote: RemoteConfig = Field(default_factory=RemoteConfig)

    @field_validator("work_dir", "database", "output_dir", mode="before")
    @classmethod
    def _coerce_paths(cls, value: Any) -> Path:
        return Path(value)

    @field_validator("table")
    @classmethod
    def _validate_table(cls, value: str) -> str:
        if not _IDENTIFIER.match(value):
            raise ValueError(f"Table name must be a plain SQL identifier: {value!r}")
        return value

    @model_validator(mode="after")
    def _validate_limits(self) -> "GlobalConfig":
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        return self

    def resolve(self, base_dir: Path) -> "GlobalConfig":
        """Return a copy whose relative paths are anchored at *base_dir*."""

        def _anchor(path: Path) -> Path:
            return path if path.is_absolute() else (base_dir / path).resolve()

        return self.model_copy(
            update={
                "work_dir": _anchor(self.work_dir),
                "database": _anchor(self.database),
                "output_dir": _anchor(self.output_dir),
            }
        )


__all__ = ["GlobalConfig", "RemoteConfig"]
