# tests/test_cli.py
"""Tests for pagelingo.cli"""

import json
import logging

import pymupdf
import pytest

from pagelingo import cli
from pagelingo.config.settings import invalidate_settings_cache
from pagelingo.models.types import CheckpointPage, DocumentKey
from pagelingo.services.translation_service import document_id_from_bytes
from pagelingo.storage.checkpoint_db import CheckpointDB
from conftest import FakeBackend


@pytest.fixture
def workspace(tmp_path, monkeypatch, three_page_pdf):
    """Settings directory, checkpoint database and input PDF under tmp_path"""
    invalidate_settings_cache()
    monkeypatch.setattr(cli, "setup_logging", lambda verbose=False: (None, None))

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    db_path = tmp_path / "checkpoints.db"
    (config_dir / "settings.template.json").write_text(json.dumps({
        "provider": "gemini",
        "checkpoint_db_path": str(db_path),
    }))

    input_path = tmp_path / "report.pdf"
    input_path.write_bytes(three_page_pdf)

    yield {
        "settings": config_dir / "settings.json",
        "db_path": db_path,
        "input": input_path,
        "data": three_page_pdf,
    }
    invalidate_settings_cache()


def _run(workspace, *args) -> int:
    return cli.main(["--settings", str(workspace["settings"]), *args])


SOURCE_TEXTS = {1: "Hello world\nSecond line", 2: "Page two text", 3: "Final page"}


def _seed_checkpoint(workspace, pages=(1, 2), provider="gemini", source_texts=SOURCE_TEXTS):
    key = DocumentKey(document_id=document_id_from_bytes(workspace["data"]), provider=provider)
    store = CheckpointDB(workspace["db_path"])
    try:
        store.put(
            key,
            [CheckpointPage(n, source_texts[n], f"Traduzido {n}") for n in pages],
            file_name="report.pdf",
        )
    finally:
        store.close()
    return key


class TestParser:

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_translate_arguments(self, tmp_path):
        args = cli.build_parser().parse_args([
            "translate", str(tmp_path / "a.pdf"), "--provider", "deepseek", "--batch-size", "2",
        ])
        assert args.provider == "deepseek"
        assert args.batch_size == 2
        assert args.func is cli.cmd_translate

    def test_unknown_provider_rejected(self, tmp_path):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["translate", str(tmp_path / "a.pdf"), "--provider", "x"])


class TestCommands:

    def test_translate_without_api_key(self, workspace, monkeypatch, capsys):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        assert _run(workspace, "translate", str(workspace["input"])) == 1
        assert "GEMINI_API_KEY" in capsys.readouterr().err

    def test_translate_writes_pdf_and_text(self, workspace, monkeypatch):
        from pagelingo.services import backends
        monkeypatch.setattr(backends, "create_backend", lambda provider, settings=None: FakeBackend(name=provider))
        output = workspace["input"].parent / "out.pdf"
        text_output = workspace["input"].parent / "out.txt"

        assert _run(workspace, "translate", str(workspace["input"]),
                    "-o", str(output), "--text-output", str(text_output)) == 0

        with pymupdf.open(output) as doc:
            assert doc.page_count == 3
        assert text_output.read_text(encoding="utf-8") == (
            "PT:Hello world\nSecond line\n\nPT:Page two text\n\nPT:Final page"
        )

    def test_checkpoint_info(self, workspace, capsys):
        _seed_checkpoint(workspace)
        assert _run(workspace, "checkpoint-info", str(workspace["input"])) == 0
        assert "2 pages translated with gemini" in capsys.readouterr().out

    def test_checkpoint_info_missing(self, workspace):
        assert _run(workspace, "checkpoint-info", str(workspace["input"])) == 1

    def test_export_partial(self, workspace, capsys):
        _seed_checkpoint(workspace)
        output = workspace["input"].parent / "partial.pdf"

        assert _run(workspace, "export-partial", str(workspace["input"]), "-o", str(output)) == 0

        with pymupdf.open(output) as doc:
            assert doc.page_count == 2
            assert "Traduzido 2" in doc[1].get_text()

    def test_export_partial_default_name(self, workspace):
        _seed_checkpoint(workspace, pages=(1,))
        assert _run(workspace, "export-partial", str(workspace["input"])) == 0
        assert (workspace["input"].parent / "report_partial.pdf").exists()

    def test_export_partial_nothing_saved(self, workspace):
        assert _run(workspace, "export-partial", str(workspace["input"])) == 1

    def test_export_partial_needs_no_api_key(self, workspace, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        _seed_checkpoint(workspace, pages=(1,))
        assert _run(workspace, "export-partial", str(workspace["input"])) == 0

    def test_export_partial_rejects_checkpoint_of_other_content(self, workspace, capsys):
        key = _seed_checkpoint(workspace, pages=(1,), source_texts={1: "some other document"})

        assert _run(workspace, "export-partial", str(workspace["input"])) == 1
        assert "No saved pages" in capsys.readouterr().err
        assert not (workspace["input"].parent / "report_partial.pdf").exists()

        store = CheckpointDB(workspace["db_path"])
        try:
            assert store.get(key) is None
        finally:
            store.close()

    def test_clear_checkpoint(self, workspace, capsys):
        key = _seed_checkpoint(workspace)
        assert _run(workspace, "clear-checkpoint", str(workspace["input"])) == 0
        assert "Removed 1" in capsys.readouterr().out

        store = CheckpointDB(workspace["db_path"])
        try:
            assert store.get(key) is None
        finally:
            store.close()

    def test_clear_all(self, workspace, capsys):
        _seed_checkpoint(workspace, provider="gemini")
        _seed_checkpoint(workspace, provider="openai")
        assert _run(workspace, "clear-checkpoint", "--all") == 0
        assert "Removed 2" in capsys.readouterr().out

    def test_clear_requires_target(self, workspace):
        assert _run(workspace, "clear-checkpoint") == 2

    def test_document_id_option(self, workspace, capsys):
        store = CheckpointDB(workspace["db_path"])
        try:
            store.put(DocumentKey("custom-id", "gemini"), [CheckpointPage(1, "a", "b")])
        finally:
            store.close()
        assert _run(workspace, "checkpoint-info", str(workspace["input"]), "--document-id", "custom-id") == 0


class TestSetupLogging:

    def test_file_and_console_handlers(self, tmp_path):
        root = logging.getLogger()
        saved_handlers = root.handlers[:]
        saved_level = root.level
        try:
            console, file_handler = cli.setup_logging(logs_dir=tmp_path)
            assert console in root.handlers
            assert file_handler in root.handlers
            assert logging.getLogger("httpx").level == logging.WARNING
            logging.getLogger("pagelingo.test").info("hello log")
            file_handler.flush()
            assert "hello log" in (tmp_path / "pagelingo.log").read_text(encoding="utf-8")
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)
