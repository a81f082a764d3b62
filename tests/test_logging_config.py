"""Tests for logging setup, JSON formatting and correlation IDs."""

import json
import logging
import sys

import pytest

from docker_exporter.utils.logging_config import (
    JsonFormatter,
    SystemLogger,
    generate_correlation_id,
    get_logger,
    parse_log_level,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


def _record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("docker_exporter.test", level, __file__, 42, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Test JSON log lines."""

    def test_core_fields(self):
        line = JsonFormatter().format(_record())
        data = json.loads(line)

        assert data["level"] == "info"
        assert data["msg"] == "hello"
        assert data["logger"] == "docker_exporter.test"
        assert data["caller"].endswith(":42")
        assert "time" in data
        assert "\n" not in line

    def test_extra_fields_included(self):
        data = json.loads(JsonFormatter().format(_record(container="web", correlation_id="abc")))
        assert data["container"] == "web"
        assert data["correlation_id"] == "abc"

    def test_unserialisable_extra(self):
        data = json.loads(JsonFormatter().format(_record(obj=object())))
        assert data["obj"].startswith("<object object")

    def test_exception_stacktrace(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        data = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in data["stacktrace"]


class TestSetupLogging:
    @pytest.mark.parametrize(
        "level,expected",
        [("debug", logging.DEBUG), ("INFO", logging.INFO), ("warn", logging.WARNING), ("error", logging.ERROR), ("bogus", logging.INFO)],
    )
    def test_parse_log_level(self, level, expected):
        assert parse_log_level(level) == expected

    def test_stdout_and_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "exporter.log"
        root = setup_logging("debug", str(log_file))

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        assert logging.getLogger("urllib3").level == logging.WARNING

        logging.getLogger("docker_exporter.test").info("written", extra={"port": 9324})
        for handler in root.handlers:
            handler.flush()

        data = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert data["msg"] == "written"
        assert data["port"] == 9324

    def test_unwritable_file_is_skipped(self, tmp_path, restore_root_logger):
        root = setup_logging("info", str(tmp_path / "missing-dir" / "exporter.log"))
        assert len(root.handlers) == 1


class TestSystemLogger:
    """Test correlation-aware logger."""

    def test_correlation_id_on_every_record(self, caplog):
        log = SystemLogger("docker_exporter.scrape", "scrape-1")
        with caplog.at_level(logging.DEBUG, logger="docker_exporter.scrape"):
            log.debug("one", container="web")
            log.warning("two")

        assert [r.correlation_id for r in caplog.records] == ["scrape-1", "scrape-1"]
        assert caplog.records[0].container == "web"

    def test_default_correlation_id(self):
        assert get_logger("x").correlation_id == "system"

    def test_set_correlation_id(self):
        log = SystemLogger("x")
        log.set_correlation_id("abc")
        assert log.correlation_id == "abc"

    def test_exception_includes_traceback(self, caplog):
        log = SystemLogger("docker_exporter.scrape", "scrape-2")
        with caplog.at_level(logging.ERROR, logger="docker_exporter.scrape"):
            try:
                raise ValueError("bad")
            except ValueError:
                log.exception("failed")
        assert caplog.records[0].exc_info is not None

    def test_generated_ids_are_unique(self):
        ids = {generate_correlation_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(len(i) == 12 for i in ids)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
