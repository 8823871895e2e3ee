"""Shared fixtures: a simulated hash provider, a scratch store and configs."""

from __future__ import annotations

import re
from collections import Counter
from pathlib import Path
from typing import Callable, Iterable

import httpx
import pytest

from signature_builder.config import ConfigLocator, ConfigRepository, GlobalConfig, RemoteConfig
from signature_builder.engine import RemoteLayout
from signature_builder.infra import HashStore, SQLiteManager

BASE_URL = "https://hashes.test/files/VirusShare_"
_INDEX_PATTERN = re.compile(r"VirusShare_(\d+)\.md5$")


class FakeProvider:
    """In-memory stand-in for the remote provider.

    ``files`` maps index to body. ``flaky`` maps index to the number of 503
    responses served (per method) before the real answer; ``broken`` indices
    always answer 503.
    """

    def __init__(
        self,
        files: dict[int, str],
        flaky: dict[int, int] | None = None,
        broken: Iterable[int] = (),
    ) -> None:
        self.files = files
        self.flaky = dict(flaky or {})
        self.broken = set(broken)
        self.requests: list[tuple[str, int]] = []
        self._served_errors: Counter[tuple[str, int]] = Counter()

    @classmethod
    def with_count(cls, count: int, **kwargs) -> "FakeProvider":
        files = {index: f"# file {index}\nhash-{index}-a\nhash-{index}-b\n" for index in range(count)}
        return cls(files, **kwargs)

    def handler(self, request: httpx.Request) -> httpx.Response:
        match = _INDEX_PATTERN.search(request.url.path)
        if match is None:
            return httpx.Response(400)
        index = int(match.group(1))
        self.requests.append((request.method, index))
        if index in self.broken:
            return httpx.Response(503)
        key = (request.method, index)
        if self._served_errors[key] < self.flaky.get(index, 0):
            self._served_errors[key] += 1
            return httpx.Response(503)
        if index not in self.files:
            return httpx.Response(404)
        if request.method == "HEAD":
            return httpx.Response(200)
        return httpx.Response(200, text=self.files[index])

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def count(self, method: str) -> int:
        return sum(1 for seen, _ in self.requests if seen == method)


@pytest.fixture
def provider_factory() -> Callable[..., FakeProvider]:
    return FakeProvider.with_count


@pytest.fixture
def remote_config() -> RemoteConfig:
    return RemoteConfig(base_url=BASE_URL)


@pytest.fixture
def layout(remote_config: RemoteConfig) -> RemoteLayout:
    return RemoteLayout(remote_config)


@pytest.fixture
def store(tmp_path: Path) -> Iterable[HashStore]:
    manager = SQLiteManager()
    hash_store = HashStore(manager, tmp_path / "hashes.db")
    yield hash_store
    manager.close_all()


@pytest.fixture
def sample_global_config(tmp_path: Path, remote_config: RemoteConfig) -> GlobalConfig:
    return GlobalConfig(
        work_dir=tmp_path / "tmp",
        database=tmp_path / "hashes.db",
        output_dir=tmp_path / "hashes",
        max_workers=4,
        max_retries=2,
        show_progress=False,
        remote=remote_config,
    )


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigRepository:
    monkeypatch.setenv("SIGNATURE_BUILDER_HOME", str(tmp_path))
    return ConfigRepository(ConfigLocator())


def write_lines(path: Path, lines: Iterable[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    return path


@pytest.fixture
def lines_writer() -> Callable[[Path, Iterable[str]], Path]:
    return write_lines
