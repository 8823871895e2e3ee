from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

from typer.testing import CliRunner

from signature_builder.app import AppState, app
from signature_builder.config import GlobalConfig
from signature_builder.engine import FetchReport, PatchReport
from signature_builder.engine.fetcher import FetchOutcome, FetchStatus
from signature_builder.errors import DiscoveryError


class StubOrchestrator:
    def __init__(self, total: int = 0, patch_report: PatchReport | None = None) -> None:
        self.total = total
        self.patch_report = patch_report or PatchReport()
        self.fetch_result: FetchReport | Exception = FetchReport(max_index=None)
        self.calls: list[tuple[str, object]] = []
        self.closed = False

    def count(self) -> int:
        self.calls.append(("count", None))
        return self.total

    def patch(self, path: Path) -> PatchReport:
        self.calls.append(("patch", path))
        return self.patch_report

    def fetch(self) -> FetchReport:
        self.calls.append(("fetch", None))
        if isinstance(self.fetch_result, Exception):
            raise self.fetch_result
        return self.fetch_result

    def close(self) -> None:
        self.closed = True


def make_state(orchestrator: StubOrchestrator) -> AppState:
    repository = SimpleNamespace(path=Path("signature_builder.yaml"))
    return AppState(repository=repository, config=GlobalConfig(), orchestrator=orchestrator)


def _install(monkeypatch, orchestrator: StubOrchestrator) -> None:
    state = make_state(orchestrator)
    monkeypatch.setattr("signature_builder.app.build_state", lambda **kwargs: state)


def test_cli_count(monkeypatch) -> None:
    orchestrator = StubOrchestrator(total=42)
    _install(monkeypatch, orchestrator)

    result = CliRunner().invoke(app, ["count"])

    assert result.exit_code == 0, result.stdout
    assert "There are currently 42 hashes in DB" in result.stdout
    assert orchestrator.closed


def test_cli_patch_reports_counts(monkeypatch, tmp_path: Path) -> None:
    orchestrator = StubOrchestrator(patch_report=PatchReport(added=3, removed=1, ignored=["?x"]))
    _install(monkeypatch, orchestrator)
    patch_file = tmp_path / "changes.diff"

    result = CliRunner().invoke(app, ["patch", str(patch_file)])

    assert result.exit_code == 0, result.stdout
    assert "3 added, 1 removed, 1 line(s) ignored" in result.stdout
    assert orchestrator.calls == [("patch", patch_file)]


def test_cli_patch_store_failure_exits_non_zero(monkeypatch, tmp_path: Path) -> None:
    orchestrator = StubOrchestrator(patch_report=PatchReport(remove_error="database is locked"))
    _install(monkeypatch, orchestrator)

    result = CliRunner().invoke(app, ["patch", str(tmp_path / "changes.diff")])

    assert result.exit_code == 1
    assert "database is locked" in result.stdout


def test_cli_fetch_discovery_failure(monkeypatch) -> None:
    orchestrator = StubOrchestrator()
    orchestrator.fetch_result = DiscoveryError(index=20, attempts=5)
    _install(monkeypatch, orchestrator)

    result = CliRunner().invoke(app, ["fetch"])

    assert result.exit_code == 1
    assert "remote index 20" in result.stdout


def test_cli_fetch_fails_when_every_download_failed(monkeypatch, tmp_path: Path) -> None:
    orchestrator = StubOrchestrator()
    orchestrator.fetch_result = FetchReport(
        max_index=0,
        outcomes=[
            FetchOutcome(
                index=0,
                url="https://hashes.test/files/VirusShare_00000.md5",
                destination=tmp_path / "vs_00000.md5",
                status=FetchStatus.FAILED,
                attempts=6,
                error="HTTP 503",
            )
        ],
    )
    _install(monkeypatch, orchestrator)

    result = CliRunner().invoke(app, ["fetch"])

    assert result.exit_code == 1
    assert "Every download failed" in result.stdout
