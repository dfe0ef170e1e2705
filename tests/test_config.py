"""Tests for configuration loading and record models."""

import logging
from datetime import datetime, timezone

import pytest
from pydantic import TypeAdapter

from reference_notes_assistant.config import AppConfig, load_config
from reference_notes_assistant.logging_config import PACKAGE_LOGGER, configure_logging
from reference_notes_assistant.models import HistoryRecord, Note, Record, WebImport


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        cfg = load_config(tmp_path / "missing.yaml")

        assert cfg.max_history_records == 100
        assert cfg.openai_model == "gpt-3.5-turbo"
        assert cfg.request_timeout is None
        assert (tmp_path / "data").is_dir()

    def test_yaml_values(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "config.yaml"
        path.write_text(
            f"data_dir: {tmp_path / 'store'}\nmax_history_records: 5\nopenai_model: test-model\n",
            encoding="utf-8",
        )

        cfg = load_config(path)

        assert cfg.max_history_records == 5
        assert cfg.openai_model == "test-model"
        assert cfg.notes_dir == (tmp_path / "store" / "Notes").resolve()
        assert cfg.web_imports_dir == (tmp_path / "store" / "WebImports").resolve()

    def test_invalid_values_exit(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "config.yaml"
        path.write_text("max_history_records: 0\n", encoding="utf-8")

        with pytest.raises(SystemExit):
            load_config(path)


class TestModels:
    def test_ids_are_unique(self):
        assert len({Note(title="t", content="c").id for _ in range(50)}) == 50

    def test_records_are_immutable(self):
        note = Note(title="t", content="c")
        with pytest.raises(Exception):
            note.title = "changed"

    def test_naive_timestamp_is_treated_as_utc(self):
        note = Note(title="t", content="c", timestamp=datetime(2026, 1, 1, 8, 30))
        assert note.timestamp.tzinfo is not None
        assert note.timestamp == datetime(2026, 1, 1, 8, 30, tzinfo=timezone.utc)

    def test_tagged_union_dispatches_on_kind(self):
        adapter = TypeAdapter(Record)
        items = [
            HistoryRecord(keyword="k", content="c"),
            Note(title="t", content="c"),
            WebImport(url="https://x.test", title="t", content="c"),
        ]

        decoded = [adapter.validate_python(item.model_dump()) for item in items]

        assert decoded == items
        assert all(isinstance(d.display_timestamp(), str) for d in decoded)


def test_configure_logging_is_idempotent():
    logger = configure_logging("info")
    configure_logging("debug")

    assert logger is logging.getLogger(PACKAGE_LOGGER)
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
