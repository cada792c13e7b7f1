"""Tests for logging setup and helpers."""

import logging

import pytest

from webmonitor.logging import log_error, log_processing_stage, setup_logging


@pytest.fixture
def restore_root_level():
    root = logging.getLogger()
    level = root.level
    yield root
    root.setLevel(level)


def test_setup_logging_applies_level_when_handlers_exist(restore_root_level):
    setup_logging(log_level="WARNING", json_logging=True)
    assert restore_root_level.level == logging.WARNING

    setup_logging(log_level="debug", json_logging=False)
    assert restore_root_level.level == logging.DEBUG


def test_log_error_entry():
    entry = log_error(ValueError("bad date"), context="parse", source_id="s1")

    assert entry["event"] == "error"
    assert entry["error_type"] == "ValueError"
    assert entry["context"] == "parse"
    assert entry["source_id"] == "s1"


def test_log_processing_stage_omits_missing_duration():
    entry = log_processing_stage("dedupe", input_count=5, output_count=3)

    assert entry["stage"] == "dedupe"
    assert "duration" not in entry
