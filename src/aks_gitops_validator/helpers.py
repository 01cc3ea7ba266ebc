"""Small assertion wrappers shared by the checks and the test suite."""

from __future__ import annotations

from typing import Any

import structlog

log = structlog.get_logger()


def require_not_empty(value: Any, description: str) -> Any:
    """Return ``value`` unchanged, raising ValueError if it is None or empty.

    Whitespace-only strings count as empty.
    """
    if isinstance(value, str):
        empty = not value.strip()
    elif hasattr(value, "__len__"):
        empty = len(value) == 0
    else:
        empty = value is None
    if empty:
        msg = f"{description} should not be empty"
        raise ValueError(msg)
    return value


def validate_input(value: str, description: str) -> None:
    """Hard-fail on an empty input parameter."""
    require_not_empty(value, description)


def verify_resource_limits(expected_cpu: str, expected_memory: str) -> None:
    """Check that both CPU and memory limits are specified."""
    log.info("checking_resource_limits", cpu=expected_cpu, memory=expected_memory)
    require_not_empty(expected_cpu, "CPU limit")
    require_not_empty(expected_memory, "Memory limit")


def log_test_info(message: str, **context: Any) -> None:
    log.info("test_info", message=message, **context)
