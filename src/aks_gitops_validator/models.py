"""Pydantic v2 models for observed cluster state and check reports."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

# --- Observed cluster state ---


class NamespaceStatus(BaseModel):
    """Phase of a single namespace."""

    name: str
    phase: str | None = None


class ContainerResources(BaseModel):
    """Resource limit/request presence for one container in a pod template."""

    name: str
    limits: dict[str, str] = Field(default_factory=dict)
    requests: dict[str, str] = Field(default_factory=dict)

    @property
    def has_limits(self) -> bool:
        return bool(self.limits)

    @property
    def has_requests(self) -> bool:
        return bool(self.requests)


class DeploymentStatus(BaseModel):
    """Replica counts and readiness of a deployment."""

    name: str
    namespace: str
    desired_replicas: int = 0
    ready_replicas: int = 0
    available_replicas: int = 0
    available_condition: str | None = None
    containers: list[ContainerResources] = Field(default_factory=list)

    @property
    def is_available(self) -> bool:
        """Available condition is True and every desired replica is available."""
        return self.available_condition == "True" and self.available_replicas >= self.desired_replicas


class NodeInfo(BaseModel):
    """A single cluster node."""

    name: str
    pool: str | None = None
    ready: bool = False
    unschedulable: bool = False
    version: str | None = None


# --- Check reports ---


class CheckFailure(BaseModel):
    """One assertion mismatch. Recorded, not raised, so a check can keep going."""

    check: str
    message: str
    expected: str | None = None
    actual: str | None = None


class CheckReport(BaseModel):
    """Outcome of one named check: its failures plus any logged observations."""

    check: str
    failures: list[CheckFailure] = Field(default_factory=list)
    observations: list[str] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures

    def fail(self, message: str, expected: object = None, actual: object = None) -> None:
        self.failures.append(
            CheckFailure(
                check=self.check,
                message=message,
                expected=None if expected is None else str(expected),
                actual=None if actual is None else str(actual),
            )
        )

    def expect(self, condition: bool, message: str, expected: object = None, actual: object = None) -> bool:
        if not condition:
            self.fail(message, expected=expected, actual=actual)
        return condition

    def observe(self, message: str) -> None:
        self.observations.append(message)


class ScalingResult(BaseModel):
    """Node counts observed around a scale-up."""

    initial_nodes: int
    target_nodes: int
    final_nodes: int
    waited_seconds: float
    converged: bool


class ScenarioReport(BaseModel):
    """All check reports from one integration scenario."""

    scenario: str
    unique_id: str
    status: Literal["passed", "failed"] = "passed"
    reports: list[CheckReport] = Field(default_factory=list)
    outputs: dict[str, str] = Field(default_factory=dict)

    def add(self, report: CheckReport) -> CheckReport:
        self.reports.append(report)
        if not report.passed:
            self.status = "failed"
        return report

    @property
    def failures(self) -> list[CheckFailure]:
        return [f for r in self.reports for f in r.failures]

    def raise_for_failures(self) -> None:
        """Raise AssertionError listing every accumulated failure, if any."""
        failures = self.failures
        if failures:
            lines = [f"[{f.check}] {f.message}" for f in failures]
            msg = f"{self.scenario} ({self.unique_id}) had {len(failures)} failure(s):\n" + "\n".join(lines)
            raise AssertionError(msg)
