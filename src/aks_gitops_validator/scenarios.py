"""End-to-end flows: build a request, apply, check the cluster, always tear down."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from pathlib import Path

import structlog
from structlog.contextvars import bound_contextvars

from aks_gitops_validator.checks.cluster import (
    verify_argocd_applications,
    verify_argocd_deployment,
    verify_cluster_connectivity,
    verify_namespaces,
)
from aks_gitops_validator.checks.scaling import verify_node_scaling
from aks_gitops_validator.clients.azure_aks import AzureAksClient
from aks_gitops_validator.clients.azure_cli import AzureCliClient
from aks_gitops_validator.clients.k8s_cluster import K8sClusterClient
from aks_gitops_validator.clients.terraform import TerraformClient
from aks_gitops_validator.config import (
    ClusterTarget,
    ExpectationSet,
    ProvisioningRequest,
    Settings,
    unique_id,
)
from aks_gitops_validator.errors import AzureCliError, TerraformError
from aks_gitops_validator.helpers import require_not_empty
from aks_gitops_validator.models import CheckReport, ScenarioReport
from aks_gitops_validator.validation import validate_resource_name

log = structlog.get_logger()

PROVISIONING_ENV = {"ARM_SKIP_PROVIDER_REGISTRATION": "true"}
MANAGED_BY = "aks-gitops-validator"
ARGOCD_TEST_NAMESPACE = "argocd-test"
PLAN_FILE = "terraform.tfplan"

ClusterFactory = Callable[[str], K8sClusterClient]

# --- Request builders ---


def full_stack_request(settings: Settings, test_id: str) -> ProvisioningRequest:
    """Resource group, AKS cluster and ArgoCD from the root Terraform configuration."""
    resource_group = f"rg-test-{test_id}"
    cluster_name = f"aks-test-{test_id}"
    validate_resource_name(resource_group)
    validate_resource_name(cluster_name)
    return ProvisioningRequest(
        terraform_dir=settings.terraform_dir,
        variables={
            "resource_group_name": resource_group,
            "cluster_name": cluster_name,
            "location": settings.location,
            "kubernetes_version": settings.kubernetes_version,
            "node_count": 1,
            "min_node_count": 1,
            "max_node_count": 3,
            "node_vm_size": settings.node_vm_size,
            "tags": {
                "Environment": "Test",
                "TestID": test_id,
                "ManagedBy": MANAGED_BY,
            },
        },
        env_vars=dict(PROVISIONING_ENV),
    )


def aks_module_request(settings: Settings, test_id: str) -> ProvisioningRequest:
    """The AKS module alone, into a resource group created out of band."""
    cluster_name = f"aks-{test_id}"
    resource_group = f"rg-aks-test-{test_id}"
    validate_resource_name(cluster_name)
    validate_resource_name(resource_group)
    return ProvisioningRequest(
        terraform_dir=settings.modules_dir / "aks",
        variables={
            "cluster_name": cluster_name,
            "resource_group_name": resource_group,
            "location": settings.location,
            "kubernetes_version": settings.kubernetes_version,
            "node_count": 1,
            "node_vm_size": settings.node_vm_size,
            "enable_auto_scaling": False,
            "tags": {"TestID": test_id},
        },
        env_vars=dict(PROVISIONING_ENV),
    )


def argocd_module_request(settings: Settings) -> ProvisioningRequest:
    """The ArgoCD module, planned only; applying it needs a live cluster."""
    return ProvisioningRequest(
        terraform_dir=settings.modules_dir / "argocd",
        variables={
            "namespace": ARGOCD_TEST_NAMESPACE,
            "argocd_chart_version": settings.argocd_chart_version,
            "git_repo_url": settings.git_repo_url,
            "git_target_revision": settings.git_target_revision,
        },
        plan_file_path=Path(PLAN_FILE),
    )


# --- Scoped resources ---


@contextlib.asynccontextmanager
async def provisioned(terraform: TerraformClient, request: ProvisioningRequest) -> AsyncIterator[ProvisioningRequest]:
    """Init and apply ``request``, yield it, and always destroy afterwards.

    Destroy runs even when apply itself failed. If the body (or apply) raised,
    a destroy failure is logged and the original error propagates; otherwise
    the destroy failure propagates.
    """
    failed = True
    try:
        await asyncio.to_thread(terraform.init_and_apply, request)
        yield request
        failed = False
    finally:
        try:
            await asyncio.to_thread(terraform.destroy, request)
        except TerraformError as e:
            if not failed:
                raise
            log.error("destroy_failed", terraform_dir=str(request.terraform_dir), error=e.message)


@contextlib.asynccontextmanager
async def resource_group(azure_cli: AzureCliClient, name: str, location: str) -> AsyncIterator[str]:
    """Create a resource group and always request its deletion afterwards."""
    await asyncio.to_thread(azure_cli.create_resource_group, name, location)
    failed = True
    try:
        yield name
        failed = False
    finally:
        try:
            await asyncio.to_thread(azure_cli.delete_resource_group, name)
        except AzureCliError as e:
            if not failed:
                raise
            log.error("resource_group_delete_failed", resource_group=name, error=e.message)


def _aks_client(settings: Settings, request: ProvisioningRequest) -> AzureAksClient | None:
    """Management-plane client for the request's cluster, or None without a valid subscription."""
    if not settings.subscription_id:
        return None
    target = ClusterTarget(
        subscription_id=settings.subscription_id,
        resource_group=str(request.variables["resource_group_name"]),
        cluster_name=str(request.variables["cluster_name"]),
    )
    try:
        target.validate()
    except RuntimeError as e:
        log.warning("management_plane_checks_skipped", error=str(e))
        return None
    log.info("management_plane_checks_enabled", resource_id=target.resource_id)
    return AzureAksClient(target)


# --- Scenarios ---


async def run_full_stack(
    terraform: TerraformClient,
    settings: Settings,
    expectations: ExpectationSet,
    *,
    test_id: str | None = None,
    cluster_factory: ClusterFactory = K8sClusterClient,
    aks_client: AzureAksClient | None = None,
) -> ScenarioReport:
    """Provision the full stack, check namespaces, ArgoCD and node scaling, then destroy.

    Hard failures (Terraform errors, unreachable cluster, readiness timeouts)
    raise. Assertion mismatches accumulate in the returned report.
    """
    test_id = test_id or unique_id()
    request = full_stack_request(settings, test_id)
    report = ScenarioReport(scenario="full_stack", unique_id=test_id)
    if aks_client is None:
        aks_client = _aks_client(settings, request)

    with bound_contextvars(scenario=report.scenario, test_id=test_id):
        async with provisioned(terraform, request):
            kubeconfig = await asyncio.to_thread(terraform.output, request, "kube_config")
            require_not_empty(kubeconfig, "kube_config output")
            cluster = cluster_factory(kubeconfig)
            try:
                report.add(await verify_cluster_connectivity(cluster))
                report.add(await verify_namespaces(cluster, expectations))
                report.add(await verify_argocd_deployment(cluster, expectations, settings.deploy_poll_interval))
                report.add(await verify_argocd_applications(cluster, expectations))
                scaling, _ = await verify_node_scaling(
                    cluster,
                    terraform,
                    request,
                    expectations,
                    timeout=settings.scale_timeout,
                    poll_interval=settings.scale_poll_interval,
                    aks_client=aks_client,
                )
                report.add(scaling)
            finally:
                cluster.close()

        log.info("scenario_finished", status=report.status, failures=len(report.failures))
    return report


async def run_aks_module(
    terraform: TerraformClient,
    azure_cli: AzureCliClient,
    settings: Settings,
    *,
    test_id: str | None = None,
    aks_client: AzureAksClient | None = None,
) -> ScenarioReport:
    """Apply the AKS module into a fresh resource group and check its outputs."""
    test_id = test_id or unique_id()
    request = aks_module_request(settings, test_id)
    report = ScenarioReport(scenario="aks_module", unique_id=test_id)
    expected_name = str(request.variables["cluster_name"])
    if aks_client is None:
        aks_client = _aks_client(settings, request)

    with bound_contextvars(scenario=report.scenario, test_id=test_id):
        async with resource_group(azure_cli, str(request.variables["resource_group_name"]), settings.location):
            async with provisioned(terraform, request):
                outputs = CheckReport(check="aks_module_outputs")
                cluster_id = await asyncio.to_thread(terraform.output, request, "cluster_id")
                cluster_name = await asyncio.to_thread(terraform.output, request, "cluster_name")
                report.outputs.update(cluster_id=cluster_id, cluster_name=cluster_name)

                outputs.expect(bool(cluster_id.strip()), "cluster_id output should not be empty")
                outputs.expect(
                    cluster_name == expected_name,
                    "cluster_name output mismatch",
                    expected=expected_name,
                    actual=cluster_name,
                )
                report.add(outputs)

                if aks_client is not None:
                    state = CheckReport(check="aks_provisioning_state")
                    info = await aks_client.get_cluster_info()
                    state.expect(
                        info["provisioning_state"] == "Succeeded",
                        "cluster provisioning did not succeed",
                        expected="Succeeded",
                        actual=info["provisioning_state"],
                    )
                    state.observe(f"kubernetes {info['kubernetes_version']}, {len(info['node_pools'])} node pool(s)")
                    report.add(state)

        log.info("scenario_finished", status=report.status, failures=len(report.failures))
    return report


async def run_argocd_plan(terraform: TerraformClient, settings: Settings) -> ScenarioReport:
    """Plan the ArgoCD module without a cluster; a plan error raises."""
    request = argocd_module_request(settings)
    report = ScenarioReport(scenario="argocd_module_plan", unique_id=unique_id())

    with bound_contextvars(scenario=report.scenario, test_id=report.unique_id):
        stdout = await asyncio.to_thread(terraform.init_and_plan, request)
        plan = CheckReport(check="argocd_plan")
        summary = next(
            (line.strip() for line in stdout.splitlines() if line.strip().startswith(("Plan:", "No changes."))),
            None,
        )
        plan.expect(summary is not None, "terraform plan printed no summary")
        if summary:
            plan.observe(summary)
        report.add(plan)

        log.info("scenario_finished", status=report.status, summary=summary)
    return report
