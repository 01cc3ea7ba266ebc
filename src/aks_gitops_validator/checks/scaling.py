"""Node scaling: raise the requested node count, re-apply, and wait for the cluster to follow."""

from __future__ import annotations

import asyncio
import time

import structlog

from aks_gitops_validator.clients.azure_aks import AzureAksClient
from aks_gitops_validator.clients.k8s_cluster import K8sClusterClient
from aks_gitops_validator.clients.terraform import TerraformClient
from aks_gitops_validator.config import ExpectationSet, ProvisioningRequest
from aks_gitops_validator.errors import ClusterQueryError
from aks_gitops_validator.models import CheckReport, ScalingResult
from aks_gitops_validator.validation import validate_node_pool

log = structlog.get_logger()

NODE_COUNT_VAR = "node_count"


async def wait_for_node_count(
    cluster: K8sClusterClient,
    target: int,
    timeout: float,
    poll_interval: float,
) -> tuple[int, float]:
    """Poll the node count until it reaches ``target`` or ``timeout`` seconds pass.

    Returns the last observed count and the seconds waited. A failed node
    query counts as a missed poll and keeps the previous count.
    """
    count = 0
    start = time.monotonic()
    while True:
        try:
            count = len(await cluster.get_nodes())
        except ClusterQueryError as e:
            log.warning("node_count_query_failed", last_observed=count, error=e.message)
        elapsed = time.monotonic() - start
        if count >= target or elapsed >= timeout:
            return count, elapsed
        log.info("waiting_for_nodes", observed=count, target=target, elapsed=round(elapsed, 1))
        await asyncio.sleep(min(poll_interval, timeout - elapsed))


async def _check_pool_state(aks_client: AzureAksClient, pool: str, target: int, report: CheckReport) -> None:
    try:
        validate_node_pool(pool)
    except ValueError as e:
        log.warning("node_pool_lookup_skipped", pool=pool, error=str(e))
        report.observe(f"skipped node pool lookup: {e}")
        return

    state = await aks_client.get_node_pool_state(pool)
    report.observe(f"node pool {pool} desired count {state['count']} ({state['provisioning_state']})")
    report.expect(
        (state["count"] or 0) >= target,
        f"node pool {pool} desired count below {target}",
        expected=f">= {target}",
        actual=state["count"],
    )


async def verify_node_scaling(
    cluster: K8sClusterClient,
    terraform: TerraformClient,
    request: ProvisioningRequest,
    expectations: ExpectationSet,
    *,
    timeout: float,
    poll_interval: float,
    aks_client: AzureAksClient | None = None,
) -> tuple[CheckReport, ScalingResult]:
    """Scale the default node pool to ``expectations.scaled_node_count`` and verify the cluster follows.

    Mutates ``request`` so a later destroy sees the scaled configuration.
    Terraform failures propagate; a cluster that does not converge in time is
    a recorded failure.
    """
    report = CheckReport(check="node_scaling")

    nodes = await cluster.get_nodes()
    initial = len(nodes)
    report.expect(
        initial >= expectations.min_initial_nodes,
        f"cluster should start with at least {expectations.min_initial_nodes} node(s)",
        expected=f">= {expectations.min_initial_nodes}",
        actual=initial,
    )

    target = expectations.scaled_node_count
    request.set_var(NODE_COUNT_VAR, target)
    log.info("scaling_nodes", initial=initial, target=target)
    await asyncio.to_thread(terraform.apply, request)

    final, waited = await wait_for_node_count(cluster, target, timeout, poll_interval)
    converged = final >= target
    report.expect(
        converged,
        f"node count did not reach {target} within {timeout:.0f}s",
        expected=f">= {target}",
        actual=final,
    )

    pool = nodes[0].pool if nodes else None
    if aks_client is not None and pool:
        await _check_pool_state(aks_client, pool, target, report)

    result = ScalingResult(
        initial_nodes=initial,
        target_nodes=target,
        final_nodes=final,
        waited_seconds=round(waited, 1),
        converged=converged,
    )
    log.info("node_scaling_checked", **result.model_dump())
    return report, result
