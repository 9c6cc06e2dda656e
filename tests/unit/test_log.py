"""Tests for StructuredLogger."""

import json

from roomsplit.log import StructuredLogger


def read_entries(capsys):
    return [json.loads(line) for line in capsys.readouterr().out.splitlines()]


class TestStructuredLogger:
    def test_info_entry(self, capsys):
        StructuredLogger("roomsplit.test", level="INFO").info("Hello", group_id="grp-1")

        (entry,) = read_entries(capsys)
        assert entry["level"] == "INFO"
        assert entry["logger"] == "roomsplit.test"
        assert entry["message"] == "Hello"
        assert entry["group_id"] == "grp-1"
        assert "timestamp" in entry

    def test_level_threshold(self, capsys):
        logger = StructuredLogger("roomsplit.test", level="WARNING")
        logger.debug("hidden")
        logger.info("hidden")
        logger.warning("shown")
        logger.error("shown too")

        assert [e["level"] for e in read_entries(capsys)] == ["WARNING", "ERROR"]

    def test_level_from_environment(self, capsys, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        StructuredLogger("roomsplit.test").debug("visible")
        assert read_entries(capsys)[0]["message"] == "visible"

    def test_exc_info(self, capsys):
        logger = StructuredLogger("roomsplit.test", level="INFO")
        try:
            raise ValueError("bad value")
        except ValueError:
            logger.error("Failed", exc_info=True)

        (entry,) = read_entries(capsys)
        assert "ValueError: bad value" in entry["exception"]

    def test_non_json_values_are_stringified(self, capsys):
        StructuredLogger("roomsplit.test", level="INFO").info("Set", values={1, 2})
        assert read_entries(capsys)[0]["values"] in ("{1, 2}", "{2, 1}")
