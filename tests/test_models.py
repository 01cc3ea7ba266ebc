"""Tests for models.py: deployment readiness, check reports, scenario reports."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from aks_gitops_validator.models import (
    CheckReport,
    ContainerResources,
    DeploymentStatus,
    NodeInfo,
    ScenarioReport,
)


class TestDeploymentStatus:
    @pytest.mark.parametrize(
        ("condition", "available", "desired", "expected"),
        [
            ("True", 2, 2, True),
            ("True", 3, 2, True),
            ("True", 1, 2, False),
            ("False", 2, 2, False),
            (None, 2, 2, False),
        ],
    )
    def test_is_available(self, condition: str | None, available: int, desired: int, expected: bool) -> None:
        status = DeploymentStatus(
            name="argocd-server",
            namespace="argocd",
            desired_replicas=desired,
            available_replicas=available,
            available_condition=condition,
        )
        assert status.is_available is expected

    def test_container_resources(self) -> None:
        container = ContainerResources(name="server", limits={"cpu": "500m"})
        assert container.has_limits
        assert not container.has_requests

    def test_replica_counts_must_be_ints(self) -> None:
        with pytest.raises(ValidationError):
            DeploymentStatus(name="x", namespace="y", desired_replicas="two")  # type: ignore[arg-type]


class TestNodeInfo:
    def test_defaults(self) -> None:
        node = NodeInfo(name="aks-default-0")
        assert node.pool is None
        assert node.ready is False


class TestCheckReport:
    def test_passes_with_no_failures(self) -> None:
        report = CheckReport(check="namespaces")
        assert report.passed

    def test_fail_stringifies_values(self) -> None:
        report = CheckReport(check="node_scaling")
        report.fail("node count did not reach 2", expected=2, actual=1)
        assert not report.passed
        failure = report.failures[0]
        assert failure.check == "node_scaling"
        assert failure.expected == "2"
        assert failure.actual == "1"

    def test_expect_returns_condition(self) -> None:
        report = CheckReport(check="tags")
        assert report.expect(True, "unused") is True
        assert report.expect(False, "tag missing") is False
        assert [f.message for f in report.failures] == ["tag missing"]
        assert report.failures[0].expected is None

    def test_observations_do_not_fail(self) -> None:
        report = CheckReport(check="security")
        report.observe("validated 4 security settings")
        assert report.passed
        assert report.observations == ["validated 4 security settings"]


class TestScenarioReport:
    def test_status_follows_reports(self) -> None:
        scenario = ScenarioReport(scenario="full_stack", unique_id="abc123")
        scenario.add(CheckReport(check="connectivity"))
        assert scenario.status == "passed"

        failing = CheckReport(check="namespaces")
        failing.fail("namespace argocd not Active")
        scenario.add(failing)
        scenario.add(CheckReport(check="node_scaling"))
        assert scenario.status == "failed"

    def test_raise_for_failures_lists_every_failure(self) -> None:
        scenario = ScenarioReport(scenario="full_stack", unique_id="abc123")
        first = CheckReport(check="namespaces")
        first.fail("namespace argocd not Active")
        second = CheckReport(check="node_scaling")
        second.fail("node count did not reach 2 within 600s")
        scenario.add(first)
        scenario.add(second)

        with pytest.raises(AssertionError) as exc:
            scenario.raise_for_failures()

        message = str(exc.value)
        assert "full_stack (abc123) had 2 failure(s)" in message
        assert "[namespaces] namespace argocd not Active" in message
        assert "[node_scaling] node count did not reach 2 within 600s" in message

    def test_raise_for_failures_is_silent_when_passed(self) -> None:
        scenario = ScenarioReport(scenario="argocd_module_plan", unique_id="abc123")
        scenario.add(CheckReport(check="argocd_plan"))
        scenario.raise_for_failures()

    def test_serializes(self) -> None:
        scenario = ScenarioReport(scenario="aks_module", unique_id="abc123", outputs={"cluster_name": "aks-abc123"})
        data = scenario.model_dump()
        assert data["status"] == "passed"
        assert data["outputs"] == {"cluster_name": "aks-abc123"}
