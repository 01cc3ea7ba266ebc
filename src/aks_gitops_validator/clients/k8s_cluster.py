"""Kubernetes API wrapper: namespaces, nodes, deployments and ArgoCD applications."""

from __future__ import annotations

import asyncio

import structlog
from kubernetes import client as k8s_client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from aks_gitops_validator.clients import load_k8s_api_client
from aks_gitops_validator.errors import ClusterQueryError, ReadinessTimeoutError
from aks_gitops_validator.models import ContainerResources, DeploymentStatus, NamespaceStatus, NodeInfo

log = structlog.get_logger()

# Older AKS clusters only carry the short label.
PRIMARY_POOL_LABEL = "agentpool"
FALLBACK_POOL_LABEL = "kubernetes.azure.com/agentpool"

ARGOCD_GROUP = "argoproj.io"
ARGOCD_VERSION = "v1alpha1"
ARGOCD_APPLICATIONS = "applications"


# Connection-level failures surface from urllib3, not as ApiException.
QUERY_ERRORS = (ApiException, HTTPError)


def _query_error(action: str, e: Exception) -> ClusterQueryError:
    if isinstance(e, ApiException):
        return ClusterQueryError(f"Failed to {action}: {e.status} {e.reason}", status=e.status)
    return ClusterQueryError(f"Failed to {action}: {e}")


class K8sClusterClient:
    """Queries against one provisioned cluster, built from its kubeconfig."""

    def __init__(self, kubeconfig: str, context: str | None = None) -> None:
        self._kubeconfig = kubeconfig
        self._context = context
        self._api_client: k8s_client.ApiClient | None = None

    def _get_api_client(self) -> k8s_client.ApiClient:
        if self._api_client is None:
            self._api_client = load_k8s_api_client(self._kubeconfig, self._context)
        return self._api_client

    def _core(self) -> k8s_client.CoreV1Api:
        return k8s_client.CoreV1Api(self._get_api_client())

    def _apps(self) -> k8s_client.AppsV1Api:
        return k8s_client.AppsV1Api(self._get_api_client())

    def _custom(self) -> k8s_client.CustomObjectsApi:
        return k8s_client.CustomObjectsApi(self._get_api_client())

    def _version(self) -> k8s_client.VersionApi:
        return k8s_client.VersionApi(self._get_api_client())

    def close(self) -> None:
        if self._api_client is not None:
            self._api_client.close()
            self._api_client = None

    async def get_cluster_version(self) -> str:
        """Return the API server's git version. Doubles as a connectivity check."""
        try:
            info = await asyncio.to_thread(self._version().get_code)
        except QUERY_ERRORS as e:
            log.error("failed_to_reach_cluster", error=str(e))
            raise _query_error("reach the cluster API", e) from e
        return info.git_version

    async def get_namespace(self, name: str) -> NamespaceStatus:
        try:
            ns = await asyncio.to_thread(self._core().read_namespace, name)
        except QUERY_ERRORS as e:
            log.error("failed_to_read_namespace", namespace=name, error=str(e))
            raise _query_error(f"read namespace {name!r}", e) from e
        return NamespaceStatus(
            name=ns.metadata.name,
            phase=ns.status.phase if ns.status else None,
        )

    async def get_nodes(self) -> list[NodeInfo]:
        try:
            node_list = await asyncio.to_thread(self._core().list_node)
        except QUERY_ERRORS as e:
            log.error("failed_to_list_nodes", error=str(e))
            raise _query_error("list nodes", e) from e

        nodes: list[NodeInfo] = []
        for node in node_list.items:
            labels = node.metadata.labels or {}
            conditions = {c.type: c.status for c in (node.status.conditions or [])}
            nodes.append(
                NodeInfo(
                    name=node.metadata.name,
                    pool=labels.get(PRIMARY_POOL_LABEL) or labels.get(FALLBACK_POOL_LABEL),
                    ready=conditions.get("Ready") == "True",
                    unschedulable=bool(node.spec.unschedulable),
                    version=node.status.node_info.kubelet_version if node.status.node_info else None,
                )
            )
        return nodes

    async def get_deployment(self, name: str, namespace: str) -> DeploymentStatus:
        try:
            deployment = await asyncio.to_thread(self._apps().read_namespaced_deployment, name, namespace)
        except QUERY_ERRORS as e:
            log.error("failed_to_read_deployment", deployment=name, namespace=namespace, error=str(e))
            raise _query_error(f"read deployment {namespace}/{name}", e) from e

        status = deployment.status
        available = None
        for condition in (status.conditions if status else None) or []:
            if condition.type == "Available":
                available = condition.status

        containers = []
        for container in deployment.spec.template.spec.containers or []:
            resources = container.resources
            containers.append(
                ContainerResources(
                    name=container.name,
                    limits=dict(resources.limits or {}) if resources else {},
                    requests=dict(resources.requests or {}) if resources else {},
                )
            )

        return DeploymentStatus(
            name=deployment.metadata.name,
            namespace=deployment.metadata.namespace or namespace,
            desired_replicas=deployment.spec.replicas or 0,
            ready_replicas=(status.ready_replicas if status else None) or 0,
            available_replicas=(status.available_replicas if status else None) or 0,
            available_condition=available,
            containers=containers,
        )

    async def wait_until_deployment_available(
        self,
        name: str,
        namespace: str,
        retries: int,
        interval: float,
    ) -> DeploymentStatus:
        """Poll a deployment until it is available.

        Makes at most ``retries`` attempts, sleeping ``interval`` seconds between
        them. Query errors count as a failed attempt.

        Raises:
            ReadinessTimeoutError: If the deployment is not available after the last attempt.
        """
        last: DeploymentStatus | None = None
        for attempt in range(1, retries + 1):
            try:
                last = await self.get_deployment(name, namespace)
            except ClusterQueryError as e:
                log.warning(
                    "deployment_query_failed",
                    deployment=name,
                    namespace=namespace,
                    attempt=attempt,
                    error=e.message,
                )
            else:
                if last.is_available:
                    log.info("deployment_available", deployment=name, namespace=namespace, attempt=attempt)
                    return last
                log.info(
                    "deployment_not_ready",
                    deployment=name,
                    namespace=namespace,
                    attempt=attempt,
                    available=last.available_replicas,
                    desired=last.desired_replicas,
                )
            if attempt < retries:
                await asyncio.sleep(interval)

        detail = f"{last.available_replicas}/{last.desired_replicas} available" if last else "never observed"
        msg = f"Deployment {namespace}/{name} not available after {retries} attempts ({detail})"
        raise ReadinessTimeoutError(msg)

    async def get_argocd_application(self, name: str, namespace: str) -> str | None:
        """Return the name of an ArgoCD Application, or None if it does not exist."""
        try:
            app = await asyncio.to_thread(
                self._custom().get_namespaced_custom_object,
                ARGOCD_GROUP,
                ARGOCD_VERSION,
                namespace,
                ARGOCD_APPLICATIONS,
                name,
            )
        except QUERY_ERRORS as e:
            if isinstance(e, ApiException) and e.status == 404:
                return None
            log.error("failed_to_read_application", application=name, namespace=namespace, error=str(e))
            raise _query_error(f"read application {namespace}/{name}", e) from e
        return app.get("metadata", {}).get("name")
