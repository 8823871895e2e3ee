from __future__ import annotations

from pathlib import Path

from signature_builder.orchestrator import Orchestrator


def test_update_downloads_then_inserts(sample_global_config, provider_factory) -> None:
    provider = provider_factory(12)
    with Orchestrator(sample_global_config, client=provider.client()) as orchestrator:
        fetch_report, ingest_report = orchestrator.update()

        assert fetch_report.max_index == 11
        assert len(fetch_report.succeeded) == 12
        assert ingest_report.summary()["files"] == 12
        assert len(ingest_report.chunks) == 2
        assert orchestrator.count() == 24


def test_update_with_empty_remote(sample_global_config, provider_factory) -> None:
    provider = provider_factory(0)
    with Orchestrator(sample_global_config, client=provider.client()) as orchestrator:
        fetch_report, ingest_report = orchestrator.update()

        assert fetch_report.outcomes == []
        assert ingest_report.chunks == []
        assert orchestrator.count() == 0


def test_patch_and_export(sample_global_config, lines_writer, tmp_path: Path) -> None:
    config = sample_global_config.model_copy(update={"page_size": 2})
    extra = lines_writer(tmp_path / "extra.md5", ["a", "b", "c"])
    patch = lines_writer(tmp_path / "changes.diff", ["+d", "-b"])
    with Orchestrator(config) as orchestrator:
        orchestrator.insert_file(extra)
        assert orchestrator.patch(patch).ok
        report = orchestrator.export(timestamp=True)

    assert [path.name for path in report.files] == ["00000", "00001"]
    assert (config.output_dir / "00000").read_text(encoding="utf-8") == "a\nc\n"
    assert (config.output_dir / "00001").read_text(encoding="utf-8") == "d\n"
    assert (config.output_dir / "timestamp").exists()


def test_clean_removes_work_dir_and_database(sample_global_config, lines_writer) -> None:
    lines_writer(sample_global_config.work_dir / "vs_00000.md5", ["a"])
    with Orchestrator(sample_global_config) as orchestrator:
        orchestrator.insert()
        assert orchestrator.count() == 1

        assert orchestrator.clean() == {"work_dir": True, "database": True}
        assert not sample_global_config.work_dir.exists()
        assert not sample_global_config.database.exists()
        assert orchestrator.clean() == {"work_dir": False, "database": False}


def test_ingest_then_export_scenario(sample_global_config, lines_writer) -> None:
    config = sample_global_config.model_copy(update={"chunk_size": 8, "page_size": 2})
    lines_writer(config.work_dir / "vs_00000.md5", ["a", "b"])
    lines_writer(config.work_dir / "vs_00001.md5", ["b", "c"])
    with Orchestrator(config) as orchestrator:
        orchestrator.insert()
        assert orchestrator.count() == 3
        orchestrator.export()

    assert sorted(path.name for path in config.output_dir.iterdir()) == ["00000", "00001"]
    assert (config.output_dir / "00000").read_text(encoding="utf-8") == "a\nb\n"
    assert (config.output_dir / "00001").read_text(encoding="utf-8") == "c\n"
