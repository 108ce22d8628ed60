"""Tests for structured run logging."""

import json
import logging

from services.logging_config import JsonFormatter, RunLogger, get_logger, run_id_var


class TestRunLogger:

    def test_start_and_finish(self, caplog):
        caplog.set_level(logging.DEBUG, logger="apuracao.run")
        run_log = RunLogger("icms", "11222333000181", "202401")

        run_log.start(3)
        assert run_id_var.get() == run_log.run_id
        step = run_log.step("rules")
        run_log.complete_step("rules", step, active=2)
        run_log.finish("done", confidence=90, items=3)

        assert run_id_var.get() is None
        finished = caplog.records[-1]
        assert finished.levelno == logging.INFO
        assert finished.extra_data["status"] == "done"
        assert finished.extra_data["taxpayer_id"] == "11222333000181"
        assert "rules" in finished.extra_data["step_times"]

    def test_failed_run_logs_warning(self, caplog):
        caplog.set_level(logging.INFO, logger="apuracao.run")
        run_log = RunLogger("federal", "11222333000181", "202401")
        run_log.start(0)
        run_log.finish("failed")
        assert caplog.records[-1].levelno == logging.WARNING


class TestJsonFormatter:

    def test_includes_extra_data_and_run_id(self, caplog):
        caplog.set_level(logging.INFO, logger="tests.json")
        token = run_id_var.set("icms:1:202401:0")
        try:
            get_logger("tests.json", component="engine").info("hello")
        finally:
            run_id_var.reset(token)

        data = json.loads(JsonFormatter().format(caplog.records[-1]))
        assert data["message"] == "hello"
        assert data["component"] == "engine"
        assert data["run_id"] == "icms:1:202401:0"
