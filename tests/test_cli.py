from pathlib import Path

import yaml
from typer.testing import CliRunner

from signature_builder.app import app


def test_cli_insert_export_count(tmp_path, monkeypatch):
    monkeypatch.setenv("SIGNATURE_BUILDER_HOME", str(tmp_path))
    monkeypatch.setattr("signature_builder.app.configure_logging", lambda **kwargs: None)
    runner = CliRunner()
    source = tmp_path / "list.md5"
    source.write_text("# header\naaa\nbbb\nccc\naaa\n", encoding="utf-8")

    result = runner.invoke(app, ["--no-progress", "insert-file", str(source)])
    assert result.exit_code == 0, result.stdout
    assert "Inserted 3 new of 4 hashes" in result.stdout

    result = runner.invoke(app, ["--no-progress", "count"])
    assert "There are currently 3 hashes in DB" in result.stdout

    result = runner.invoke(app, ["--no-progress", "--page-size", "2", "export", "--timestamp"])
    assert result.exit_code == 0, result.stdout
    output = Path(tmp_path) / "hashes"
    assert (output / "00000").read_text(encoding="utf-8") == "aaa\nbbb\n"
    assert (output / "00001").read_text(encoding="utf-8") == "ccc\n"
    assert (output / "timestamp").exists()

    result = runner.invoke(app, ["clean", "--yes"])
    assert result.exit_code == 0, result.stdout
    assert not (tmp_path / "hashes_db").exists()


def test_cli_config_init_and_show(tmp_path, monkeypatch):
    monkeypatch.setenv("SIGNATURE_BUILDER_HOME", str(tmp_path))
    monkeypatch.setattr("signature_builder.app.configure_logging", lambda **kwargs: None)
    runner = CliRunner()

    result = runner.invoke(app, ["config", "init"])
    assert result.exit_code == 0, result.stdout
    config_path = Path(tmp_path) / "signature_builder.yaml"
    payload = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert payload["max_workers"] == 20
    assert payload["page_size"] == 1000000

    result = runner.invoke(app, ["config", "init"])
    assert result.exit_code == 1

    result = runner.invoke(app, ["--max-workers", "3", "config", "show"])
    assert result.exit_code == 0, result.stdout
    assert "max_workers: 3" in result.stdout


def test_cli_rejects_invalid_option(tmp_path, monkeypatch):
    monkeypatch.setenv("SIGNATURE_BUILDER_HOME", str(tmp_path))
    monkeypatch.setattr("signature_builder.app.configure_logging", lambda **kwargs: None)

    result = CliRunner().invoke(app, ["--page-size", "0", "count"])

    assert result.exit_code == 1
    assert "page_size" in result.stdout


def test_cli_patch_with_undecodable_line(tmp_path, monkeypatch):
    monkeypatch.setenv("SIGNATURE_BUILDER_HOME", str(tmp_path))
    monkeypatch.setattr("signature_builder.app.configure_logging", lambda **kwargs: None)
    patch_file = tmp_path / "changes.diff"
    patch_file.write_bytes(b"+aaa\n+\xff\xfe\n")

    result = CliRunner().invoke(app, ["--no-progress", "patch", str(patch_file)])

    assert result.exit_code == 0, result.stdout
    assert result.exception is None
    assert "1 added, 0 removed" in result.stdout
