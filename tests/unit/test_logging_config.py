"""Tests for logging configuration and pipeline stage logging."""

import json
import logging
import sys

import pytest

from lessongen.utils.logging_config import JsonFormatter, configure_logging, pipeline_stage_logger


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJsonFormatter:
    """Structured log output."""

    def test_format_with_extra(self):
        record = logging.LogRecord(
            name="lessongen.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Generated %d units",
            args=(3,),
            exc_info=None,
        )
        record.stage = "unit_execution"

        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "lessongen.test"
        assert data["message"] == "Generated 3 units"
        assert data["extra"] == {"stage": "unit_execution"}
        assert "timestamp" in data

    def test_format_exception(self):
        try:
            raise ValueError("bad plan")
        except ValueError:
            record = logging.LogRecord(
                "lessongen.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        data = json.loads(JsonFormatter().format(record))
        assert "ValueError: bad plan" in data["exception"]


class TestConfigureLogging:
    def test_console_and_file_handlers(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "lessongen.log"

        configure_logging(level="DEBUG", log_file=log_file, json_format=True)

        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        assert all(isinstance(h.formatter, JsonFormatter) for h in root.handlers)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert log_file.parent.exists()

    def test_file_only_text_format(self, tmp_path, restore_root_logger):
        configure_logging(
            level=logging.INFO,
            log_file=tmp_path / "lessongen.log",
            json_format=False,
            console_output=False,
        )

        handlers = restore_root_logger.handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.FileHandler)
        assert not isinstance(handlers[0].formatter, JsonFormatter)


class TestPipelineStageLogger:
    """Stage start/complete/fail records."""

    def test_completed_stage(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="lessongen.stage"):
            with pipeline_stage_logger("topic_breakdown", user_level="beginner") as log:
                log.info("working")

        statuses = [getattr(r, "status", None) for r in caplog.records]
        assert statuses[0] == "started"
        assert statuses[-1] == "completed"
        completed = caplog.records[-1]
        assert completed.stage == "topic_breakdown"
        assert completed.user_level == "beginner"
        assert completed.duration_ms >= 0

    def test_failed_stage_reraises(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="lessongen.stage"):
            with pytest.raises(RuntimeError, match="boom"):
                with pipeline_stage_logger("section_generation", section_index=1):
                    raise RuntimeError("boom")

        failed = caplog.records[-1]
        assert failed.status == "failed"
        assert failed.error == "boom"
        assert failed.section_index == 1
        assert failed.levelno == logging.ERROR
