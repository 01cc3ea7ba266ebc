"""Client-specific test fixtures: provisioning requests and Kubernetes API errors."""

from __future__ import annotations

from pathlib import Path

import pytest
from kubernetes.client.exceptions import ApiException

from aks_gitops_validator.config import ClusterTarget, ProvisioningRequest


@pytest.fixture
def tf_request(tmp_path: Path) -> ProvisioningRequest:
    return ProvisioningRequest(
        terraform_dir=tmp_path,
        variables={"cluster_name": "aks-test-abc123", "tags": {"TestID": "abc123"}},
        env_vars={"ARM_SKIP_PROVIDER_REGISTRATION": "true"},
    )


@pytest.fixture
def cluster_target() -> ClusterTarget:
    return ClusterTarget(
        subscription_id="00000000-0000-0000-0000-000000000000",
        resource_group="rg-test-abc123",
        cluster_name="aks-test-abc123",
    )


@pytest.fixture
def api_not_found() -> ApiException:
    return ApiException(status=404, reason="Not Found")


@pytest.fixture
def api_unavailable() -> ApiException:
    return ApiException(status=503, reason="Service Unavailable")
