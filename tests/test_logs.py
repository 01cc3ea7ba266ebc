"""Tests for structlog configuration."""

from __future__ import annotations

import json
import os
from unittest.mock import patch

import pytest
import structlog
from structlog.contextvars import bound_contextvars

from aks_gitops_validator.logs import configure_logging


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    configure_logging("DEBUG")


class TestConfigureLogging:
    def test_json_to_stderr_when_not_a_tty(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("INFO")
        with bound_contextvars(scenario="full_stack", test_id="abc123"):
            structlog.get_logger().info("terraform_apply", terraform_dir="terraform")

        captured = capsys.readouterr()
        assert captured.out == ""
        entry = json.loads(captured.err.strip().splitlines()[-1])
        assert entry["event"] == "terraform_apply"
        assert entry["level"] == "info"
        assert entry["scenario"] == "full_stack"
        assert entry["test_id"] == "abc123"
        assert "timestamp" in entry

    def test_level_filters_debug(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("INFO")
        structlog.get_logger().debug("running_terraform_command")
        assert capsys.readouterr().err == ""

    def test_level_from_env(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch.dict(os.environ, {"AKS_VALIDATOR_LOG_LEVEL": "warning"}):
            configure_logging()
        structlog.get_logger().info("terraform_init")
        structlog.get_logger().warning("retrying_terraform_command")
        err = capsys.readouterr().err
        assert "terraform_init" not in err
        assert "retrying_terraform_command" in err
