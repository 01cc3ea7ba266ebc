"""Tests for the shared assertion helpers."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from aks_gitops_validator.helpers import log_test_info, require_not_empty, validate_input, verify_resource_limits


class TestRequireNotEmpty:
    @pytest.mark.parametrize("value", ["aks-test", {"k": "v"}, [1], 0, False])
    def test_returns_value(self, value: object) -> None:
        assert require_not_empty(value, "value") is value

    @pytest.mark.parametrize("value", [None, "", "  \n", {}, [], ()])
    def test_empty_raises(self, value: object) -> None:
        with pytest.raises(ValueError, match="kube_config should not be empty"):
            require_not_empty(value, "kube_config")


class TestValidateInput:
    def test_accepts_value(self) -> None:
        validate_input("westeurope", "location")

    def test_rejects_empty(self) -> None:
        with pytest.raises(ValueError, match="location should not be empty"):
            validate_input("", "location")


class TestVerifyResourceLimits:
    def test_logs_both_limits(self) -> None:
        with capture_logs() as logs:
            verify_resource_limits("500m", "256Mi")
        assert logs[0]["event"] == "checking_resource_limits"
        assert logs[0]["cpu"] == "500m"

    def test_missing_memory(self) -> None:
        with pytest.raises(ValueError, match="Memory limit should not be empty"):
            verify_resource_limits("500m", "")


class TestLogTestInfo:
    def test_context_is_attached(self) -> None:
        with capture_logs() as logs:
            log_test_info("starting scenario", test_id="abc123")
        assert logs == [
            {"event": "test_info", "log_level": "info", "message": "starting scenario", "test_id": "abc123"}
        ]
