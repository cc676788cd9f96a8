"""Test logging configuration.

Tests for mkspreview.utils.logging_config:
    - Level names (WARN, OFF) map to stdlib levels
    - Repeated setup does not duplicate handlers
    - File handler appends, JSON mode emits parseable lines
    - Contextual fields appear in records

Run:
    pytest tests/test_logging_config.py -v
"""

import json
import logging

import pytest

from mkspreview.utils import logging_config


class TestParseLevel:

    def test_warn_alias(self):
        assert logging_config.parse_level("WARN") == logging.WARNING
        assert logging_config.parse_level("warning") == logging.WARNING

    def test_off_is_above_critical(self):
        assert logging_config.parse_level("OFF") > logging.CRITICAL

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            logging_config.parse_level("LOUD")


class TestSetupLogging:

    def test_idempotent(self):
        logging_config.setup_logging("INFO")
        first = len(logging.getLogger().handlers)
        logging_config.setup_logging("INFO")
        assert len(logging.getLogger().handlers) == first

    def test_sets_root_level(self):
        info = logging_config.setup_logging("DEBUG", to_stderr=False)
        assert info["level"] == logging.DEBUG
        assert logging.getLogger().level == logging.DEBUG

    def test_file_is_appended(self, tmp_path):
        log_file = tmp_path / "logs" / "mks.log"
        log_file.parent.mkdir()
        log_file.write_text("previous run\n")

        logging_config.setup_logging("INFO", str(log_file), to_stderr=False)
        logging.getLogger("mkspreview.test").info("hello from test")
        logging_config.setup_logging("INFO", to_stderr=False)  # closes the file

        content = log_file.read_text()
        assert content.startswith("previous run\n")
        assert "hello from test" in content
        assert "| INFO" in content

    def test_json_lines_with_context(self, tmp_path):
        log_file = tmp_path / "mks.jsonl"
        logging_config.setup_logging(
            "INFO", str(log_file), json=True, to_stderr=False,
            context={"file": "part.gcode"},
        )
        logging.getLogger("mkspreview.test").warning("json message")
        logging_config.setup_logging("INFO", to_stderr=False)

        records = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert records[-1]["msg"] == "json message"
        assert records[-1]["lvl"] == "WARNING"
        assert records[-1]["file"] == "part.gcode"

    def test_off_silences_everything(self, tmp_path):
        log_file = tmp_path / "mks.log"
        logging_config.setup_logging("OFF", str(log_file), to_stderr=False)
        logging.getLogger("mkspreview.test").critical("not written")
        logging_config.setup_logging("INFO", to_stderr=False)

        assert "not written" not in log_file.read_text()


class TestTimestamps:

    @pytest.fixture
    def record(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        record.created = 0.5
        return record

    def test_human_is_utc(self, record):
        formatter = logging_config.ContextFormatter("human", use_color=False)
        assert formatter.format(record).startswith("1970-01-01T00:00:00.500Z | INFO")

    def test_json_is_utc(self, record):
        formatter = logging_config.ContextFormatter("json")
        assert json.loads(formatter.format(record))["t"] == "1970-01-01T00:00:00.500000+00:00"


class TestContext:

    def test_push_and_pop(self):
        formatter = logging_config.ContextFormatter("human", use_color=False)
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)

        logging_config.push_context(file="part.gcode", slot="simage")
        assert "file=part.gcode slot=simage | msg" in formatter.format(record)

        logging_config.pop_context(keys=["slot"])
        line = formatter.format(record)
        assert "file=part.gcode | msg" in line
        assert "slot" not in line

        logging_config.pop_context()
        assert "file=" not in formatter.format(record)
