"""Tests for logging setup."""

import json
import logging

import pytest
import structlog

from drivesync.utils.logging import get_logger, setup_logging


@pytest.fixture
def log_file(tmp_path):
    path = tmp_path / "logs" / "drivesync.log"
    root = logging.getLogger()
    level = root.level

    yield path

    for handler in root.handlers[:]:
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    structlog.reset_defaults()


def read_json_lines(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestSetupLogging:

    def test_each_record_printed_once(self, log_file, capsys):
        setup_logging(log_level="INFO", log_format="console", log_file=str(log_file))

        get_logger("drivesync.test").info("sync-finished", target="personal")

        out, err = capsys.readouterr()
        assert out.count("sync-finished") == 1
        assert "target=personal" in out
        assert "sync-finished" not in err

    def test_repeated_setup_does_not_duplicate(self, log_file, capsys):
        setup_logging(log_level="INFO", log_format="console", log_file=str(log_file))
        setup_logging(log_level="INFO", log_format="console", log_file=str(log_file))

        get_logger("drivesync.test").warning("watcher-restarted")

        out, _ = capsys.readouterr()
        assert out.count("watcher-restarted") == 1
        assert [entry["event"] for entry in read_json_lines(log_file)] == ["watcher-restarted"]

    def test_file_gets_plain_json(self, log_file, capsys):
        setup_logging(log_level="INFO", log_format="console", log_file=str(log_file))

        get_logger("drivesync.test").error("rclone bisync failed", target="shared", is_conflict=False)

        text = log_file.read_text(encoding="utf-8")
        assert "\x1b[" not in text
        entry = read_json_lines(log_file)[-1]
        assert entry["event"] == "rclone bisync failed"
        assert entry["target"] == "shared"
        assert entry["is_conflict"] is False
        assert entry["level"] == "error"
        assert entry["logger"] == "drivesync.test"
        assert "timestamp" in entry

    def test_standard_library_records_are_rendered(self, log_file, capsys):
        setup_logging(log_level="INFO", log_format="console", log_file=str(log_file))

        logging.getLogger("aiohttp.access").warning("GET %s", "/status")

        out, _ = capsys.readouterr()
        assert out.count("GET /status") == 1
        assert read_json_lines(log_file)[-1]["event"] == "GET /status"

    def test_level_filters_debug(self, log_file, capsys):
        setup_logging(log_level="WARNING", log_format="console", log_file=str(log_file))

        get_logger("drivesync.test").info("hidden-line")

        out, _ = capsys.readouterr()
        assert "hidden-line" not in out

    def test_json_console(self, log_file, capsys):
        setup_logging(log_level="INFO", log_format="json", log_file=str(log_file))

        get_logger("drivesync.test").info("status-changed", state="idle")

        out, _ = capsys.readouterr()
        entry = json.loads(out.strip().splitlines()[-1])
        assert entry["event"] == "status-changed"
        assert entry["state"] == "idle"
