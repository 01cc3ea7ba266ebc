"""AKS management-plane lookups: provisioning state and node pools of a freshly applied cluster."""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import structlog
from azure.identity import DefaultAzureCredential
from azure.mgmt.containerservice import ContainerServiceClient

from aks_gitops_validator.config import ClusterTarget

log = structlog.get_logger()


class AzureAksClient:
    """Wrapper around the Azure AKS management API for one cluster."""

    def __init__(self, target: ClusterTarget) -> None:
        self._target = target
        self._container_client: ContainerServiceClient | None = None
        self._credential: DefaultAzureCredential | None = None
        # _get_container_client calls _get_credential while holding the lock
        self._lock = threading.RLock()

    def _get_credential(self) -> DefaultAzureCredential:
        with self._lock:
            if self._credential is None:
                self._credential = DefaultAzureCredential()
            return self._credential

    def _get_container_client(self) -> ContainerServiceClient:
        with self._lock:
            if self._container_client is None:
                self._container_client = ContainerServiceClient(
                    credential=self._get_credential(),
                    subscription_id=self._target.subscription_id,
                )
            return self._container_client

    async def get_cluster_info(self) -> dict[str, Any]:
        """Get version, provisioning state and node pools of the cluster.

        Returns dict with kubernetes_version, provisioning_state, fqdn and node_pools.
        """
        client = self._get_container_client()
        try:
            cluster = await asyncio.to_thread(
                client.managed_clusters.get,
                self._target.resource_group,
                self._target.cluster_name,
            )
        except Exception:
            log.error("failed_to_get_cluster_info", resource_id=self._target.resource_id)
            raise

        node_pools = [
            {
                "name": pool.name,
                "vm_size": pool.vm_size,
                "count": pool.count,
                "min_count": pool.min_count,
                "max_count": pool.max_count,
                "enable_auto_scaling": bool(pool.enable_auto_scaling),
                "provisioning_state": pool.provisioning_state,
                "power_state": pool.power_state.code if pool.power_state else None,
            }
            for pool in cluster.agent_pool_profiles or []
        ]

        return {
            "name": cluster.name,
            "kubernetes_version": cluster.kubernetes_version,
            "provisioning_state": cluster.provisioning_state,
            "fqdn": cluster.fqdn,
            "node_pools": node_pools,
        }

    async def get_node_pool_state(self, pool_name: str) -> dict[str, Any]:
        """Get the desired count and provisioning state of one node pool."""
        client = self._get_container_client()
        try:
            pool = await asyncio.to_thread(
                client.agent_pools.get,
                self._target.resource_group,
                self._target.cluster_name,
                pool_name,
            )
        except Exception:
            log.error("failed_to_get_node_pool", resource_id=self._target.resource_id, pool=pool_name)
            raise

        return {
            "name": pool.name,
            "count": pool.count,
            "min_count": pool.min_count,
            "max_count": pool.max_count,
            "provisioning_state": pool.provisioning_state,
            "power_state": pool.power_state.code if pool.power_state else None,
        }
