"""Tests for structlog configuration."""

import json
import logging

import structlog

from schedspine.core.logging import LogContext, configure_logging, get_logger


class TestConfigureLogging:
    def test_json_output(self, capsys):
        configure_logging(level="INFO", json_format=True, service="test-svc")
        get_logger("schedspine.test").info("lease_acquired", key="job1")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "lease_acquired"
        assert event["key"] == "job1"
        assert event["service.name"] == "test-svc"
        assert event["log.level"] == "info"
        assert "@timestamp" in event

    def test_level_filter(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        get_logger("schedspine.test").info("hidden")
        assert "hidden" not in capsys.readouterr().err

    def test_stdlib_level(self):
        configure_logging(level="ERROR", json_format=False)
        assert logging.getLogger().level == logging.ERROR


class TestLogContext:
    def test_scoped_context(self):
        with LogContext(worker="w1"):
            assert structlog.contextvars.get_contextvars() == {"worker": "w1"}
        assert "worker" not in structlog.contextvars.get_contextvars()
