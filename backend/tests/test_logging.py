from __future__ import annotations

import json
import logging

import pytest

from playlist_iq.core.logging import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _records(out: str):
    return [json.loads(line) for line in out.splitlines() if line.strip()]


def test_records_are_json_with_level_and_service(capsys, restore_root_logger):
    setup_logging("INFO", environment="test")

    logging.getLogger("spotify.executor").warning(
        "upstream call failed", extra={"operation": "get_playlist", "attempt": 2}
    )
    logging.getLogger("catalog").info("cache miss")

    warning, info = _records(capsys.readouterr().out)
    assert warning["level"] == "WARNING"
    assert warning["name"] == "spotify.executor"
    assert warning["message"] == "upstream call failed"
    assert warning["operation"] == "get_playlist"
    assert warning["attempt"] == 2
    assert warning["service"] == "playlist-iq"
    assert warning["environment"] == "test"
    assert info["level"] == "INFO"


def test_level_threshold_and_exceptions(capsys, restore_root_logger):
    setup_logging("warning")

    logging.getLogger("catalog").info("dropped")
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logging.getLogger("cache").exception("cache write failed")

    (record,) = _records(capsys.readouterr().out)
    assert record["level"] == "ERROR"
    assert "RuntimeError: boom" in record["exc_info"]
