"""Tests for the md2docx CLI (typer CliRunner)."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from md2docx import __version__
from md2docx.cli import app

from conftest import SAMPLE_DOCUMENT

runner = CliRunner()


class TestVersion:
    """--version flag."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "convert" in result.output


@pytest.mark.slow
class TestConvertCommand:
    """md2docx convert."""

    def test_convert(self, sample_document: Path, renderer_missing):
        result = runner.invoke(app, ["convert", str(sample_document)])
        assert result.exit_code == 0, result.output
        assert sample_document.with_suffix(".docx").exists()

    def test_convert_explicit_output(self, sample_document: Path, tmp_path: Path, renderer_missing):
        output = tmp_path / "out" / "result.docx"
        result = runner.invoke(app, ["convert", str(sample_document), str(output)])
        assert result.exit_code == 0, result.output
        assert output.exists()

    def test_missing_source_exits_1(self, tmp_path: Path):
        result = runner.invoke(app, ["convert", str(tmp_path / "missing.md")])
        assert result.exit_code == 1
        assert not (tmp_path / "missing.docx").exists()

    def test_no_fallback_exits_1(self, sample_document: Path, renderer_missing):
        result = runner.invoke(app, ["convert", str(sample_document), "--no-fallback"])
        assert result.exit_code == 1
        assert not sample_document.with_suffix(".docx").exists()

    def test_config_file(self, sample_document: Path, tmp_path: Path, renderer_missing):
        config = tmp_path / "md2docx.yaml"
        config.write_text("table_width: 9000\n", encoding="utf-8")
        result = runner.invoke(app, ["convert", str(sample_document), "--config", str(config)])
        assert result.exit_code == 0, result.output

    def test_invalid_config_exits_1(self, sample_document: Path, tmp_path: Path):
        config = tmp_path / "md2docx.yaml"
        config.write_text("max_concurrency: 0\n", encoding="utf-8")
        result = runner.invoke(app, ["convert", str(sample_document), "--config", str(config)])
        assert result.exit_code == 1


@pytest.mark.slow
class TestBatchCommand:
    """md2docx batch."""

    def test_batch(self, tmp_path: Path, renderer_missing):
        sources = []
        for name in ("srs", "stc"):
            path = tmp_path / f"{name}.md"
            path.write_text(SAMPLE_DOCUMENT, encoding="utf-8")
            sources.append(str(path))

        result = runner.invoke(app, ["batch", *sources, "--output-dir", str(tmp_path / "out")])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "out" / "srs.docx").exists()
        assert (tmp_path / "out" / "stc.docx").exists()

    def test_batch_failure_exits_1(self, tmp_path: Path, sample_document: Path, renderer_missing):
        result = runner.invoke(app, ["batch", str(tmp_path / "missing.md"), str(sample_document)])
        assert result.exit_code == 1
        assert sample_document.with_suffix(".docx").exists()


class TestConfigCommand:
    """md2docx config."""

    def test_json(self):
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        assert '"table_width": 9360' in result.output
