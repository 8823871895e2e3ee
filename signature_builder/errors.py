"""Exception taxonomy shared by the engine, storage and CLI layers."""

from __future__ import annotations


class SignatureBuilderError(Exception):
    """Base exception for all signature-builder errors."""


class ConfigError(SignatureBuilderError):
    """Raised for unreadable or invalid configuration files."""


class TransportError(SignatureBuilderError):
    """A single HTTP attempt failed (network error or unexpected status)."""

    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status_code = status_code


class DiscoveryError(SignatureBuilderError):
    """The remote index probe exhausted its retry budget."""

    def __init__(self, index: int, attempts: int, last_error: str | None = None) -> None:
        detail = f" (last error: {last_error})" if last_error else ""
        super().__init__(
            f"Could not determine whether remote index {index} exists after "
            f"{attempts} failed probes{detail}"
        )
        self.index = index
        self.attempts = attempts


class StoreError(SignatureBuilderError):
    """Raised when a store transaction or query fails."""


class StoreOpenError(StoreError):
    """Raised when the database cannot be opened or its table created."""


__all__ = [
    "ConfigError",
    "DiscoveryError",
    "SignatureBuilderError",
    "StoreError",
    "StoreOpenError",
    "TransportError",
]
