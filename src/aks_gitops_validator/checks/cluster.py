"""Cluster checks: expected namespaces, ArgoCD deployments and the app-of-apps Application."""

from __future__ import annotations

import structlog

from aks_gitops_validator.clients.k8s_cluster import K8sClusterClient
from aks_gitops_validator.config import ExpectationSet
from aks_gitops_validator.errors import ClusterQueryError
from aks_gitops_validator.models import CheckReport

log = structlog.get_logger()


async def verify_cluster_connectivity(cluster: K8sClusterClient) -> CheckReport:
    """Hard-fails (raises) if the API server is unreachable."""
    report = CheckReport(check="cluster_connectivity")
    version = await cluster.get_cluster_version()
    report.observe(f"API server version {version}")
    log.info("cluster_reachable", version=version)
    return report


async def verify_namespaces(cluster: K8sClusterClient, expectations: ExpectationSet) -> CheckReport:
    """Each expected namespace exists and is in the expected phase.

    A missing namespace is recorded as a failure and the remaining
    namespaces are still checked.
    """
    report = CheckReport(check="namespaces")
    for name in expectations.namespaces:
        try:
            namespace = await cluster.get_namespace(name)
        except ClusterQueryError as e:
            report.fail(f"namespace {name!r} could not be read: {e.message}", expected=name)
            continue

        report.expect(
            namespace.name == name,
            f"namespace name mismatch for {name!r}",
            expected=name,
            actual=namespace.name,
        )
        report.expect(
            namespace.phase == expectations.namespace_phase,
            f"namespace {name!r} is not {expectations.namespace_phase}",
            expected=expectations.namespace_phase,
            actual=namespace.phase,
        )
        log.info("namespace_checked", namespace=name, phase=namespace.phase)
    return report


async def verify_argocd_deployment(
    cluster: K8sClusterClient,
    expectations: ExpectationSet,
    poll_interval: float,
) -> CheckReport:
    """ArgoCD server is available with enough ready replicas and resource limits/requests set.

    Raises:
        ReadinessTimeoutError: If any ArgoCD deployment never becomes available.
    """
    report = CheckReport(check="argocd_deployment")
    namespace = expectations.argocd_namespace

    server = await cluster.wait_until_deployment_available(
        expectations.argocd_server,
        namespace,
        retries=expectations.argocd_server_retries,
        interval=poll_interval,
    )
    report.expect(
        server.ready_replicas >= expectations.min_argocd_server_replicas,
        f"{expectations.argocd_server} should have at least {expectations.min_argocd_server_replicas} ready replicas",
        expected=f">= {expectations.min_argocd_server_replicas}",
        actual=server.ready_replicas,
    )

    if not server.containers:
        report.fail(f"{expectations.argocd_server} has no containers")
    else:
        container = server.containers[0]
        report.expect(container.has_limits, f"container {container.name!r} has no resource limits")
        report.expect(container.has_requests, f"container {container.name!r} has no resource requests")

    for component, retries in expectations.argocd_components.items():
        await cluster.wait_until_deployment_available(component, namespace, retries=retries, interval=poll_interval)
        report.observe(f"{component} available")

    log.info("argocd_deployment_checked", replicas=server.ready_replicas, passed=report.passed)
    return report


async def verify_argocd_applications(cluster: K8sClusterClient, expectations: ExpectationSet) -> CheckReport:
    """The app-of-apps Application, when present, carries the expected name.

    Its absence, or a failed lookup, is only logged; ArgoCD may not have synced it yet.
    """
    report = CheckReport(check="argocd_applications")
    try:
        name = await cluster.get_argocd_application(expectations.app_of_apps, expectations.argocd_namespace)
    except ClusterQueryError as e:
        log.warning("application_lookup_failed", application=expectations.app_of_apps, error=e.message)
        report.observe(f"{expectations.app_of_apps} lookup failed: {e.message}")
        return report

    if name is None:
        log.warning("application_not_found", application=expectations.app_of_apps)
        report.observe(f"{expectations.app_of_apps} not present")
        return report

    report.expect(
        name == expectations.app_of_apps,
        "unexpected application name",
        expected=expectations.app_of_apps,
        actual=name,
    )
    return report
