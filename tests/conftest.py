"""Shared test fixtures for all test modules."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from aks_gitops_validator.clients.k8s_cluster import K8sClusterClient
from aks_gitops_validator.clients.terraform import TerraformClient
from aks_gitops_validator.config import ExpectationSet, Settings
from aks_gitops_validator.logs import configure_logging
from aks_gitops_validator.models import ContainerResources, DeploymentStatus, NamespaceStatus, NodeInfo


def pytest_configure(config: pytest.Config) -> None:
    configure_logging("DEBUG")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at throwaway directories with no real waiting."""
    return Settings(
        terraform_dir=tmp_path / "terraform",
        modules_dir=tmp_path / "modules",
        terraform_binary=None,
        terraform_timeout=60,
        location="westeurope",
        kubernetes_version="1.28.3",
        node_vm_size="Standard_B2s",
        argocd_chart_version="5.51.6",
        git_repo_url="https://github.com/sixeyed/ps-sre3-demo2",
        git_target_revision="main",
        deploy_poll_interval=0,
        scale_timeout=0,
        scale_poll_interval=0,
        subscription_id="",
        run_integration=False,
    )


@pytest.fixture
def expectations() -> ExpectationSet:
    return ExpectationSet()


@pytest.fixture
def mock_terraform() -> MagicMock:
    """A TerraformClient stand-in; every command succeeds with empty output."""
    terraform = MagicMock(spec=TerraformClient)
    terraform.init_and_apply.return_value = ""
    terraform.init_and_plan.return_value = ""
    terraform.apply.return_value = ""
    terraform.destroy.return_value = ""
    terraform.output.return_value = "apiVersion: v1\nkind: Config\n"
    return terraform


@pytest.fixture
def mock_cluster() -> MagicMock:
    """A K8sClusterClient stand-in for a healthy, fully deployed cluster."""
    cluster = MagicMock(spec=K8sClusterClient)
    cluster.get_cluster_version = AsyncMock(return_value="v1.28.3")
    cluster.get_namespace = AsyncMock(side_effect=lambda name: NamespaceStatus(name=name, phase="Active"))
    cluster.wait_until_deployment_available = AsyncMock(
        side_effect=lambda name, namespace, retries, interval: make_deployment(name=name, namespace=namespace)
    )
    cluster.get_argocd_application = AsyncMock(return_value="app-of-apps")
    cluster.get_nodes = AsyncMock(return_value=[make_node()])
    return cluster


def make_node(name: str = "aks-default-00000000", pool: str | None = "default", ready: bool = True) -> NodeInfo:
    """Create a NodeInfo for test fixtures."""
    return NodeInfo(name=name, pool=pool, ready=ready, version="v1.28.3")


def make_deployment(
    name: str = "argocd-server",
    namespace: str = "argocd",
    desired: int = 2,
    ready: int = 2,
    available: int | None = None,
    condition: str | None = "True",
    limits: dict[str, str] | None = None,
    requests: dict[str, str] | None = None,
    containers: list[ContainerResources] | None = None,
) -> DeploymentStatus:
    """Create a DeploymentStatus for test fixtures. Resources default to a typical ArgoCD server."""
    if containers is None:
        containers = [
            ContainerResources(
                name=name,
                limits={"cpu": "500m", "memory": "256Mi"} if limits is None else limits,
                requests={"cpu": "250m", "memory": "128Mi"} if requests is None else requests,
            )
        ]
    return DeploymentStatus(
        name=name,
        namespace=namespace,
        desired_replicas=desired,
        ready_replicas=ready,
        available_replicas=ready if available is None else available,
        available_condition=condition,
        containers=containers,
    )


@pytest.fixture
def node_factory():
    return make_node


@pytest.fixture
def deployment_factory():
    return make_deployment
