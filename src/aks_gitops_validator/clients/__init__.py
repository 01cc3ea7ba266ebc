"""Client wrappers for Terraform, Kubernetes and Azure."""

from __future__ import annotations

import yaml
from kubernetes import client as k8s_client
from kubernetes.config import new_client_from_config_dict

from aks_gitops_validator.helpers import require_not_empty


def load_k8s_api_client(kubeconfig: str, context: str | None = None) -> k8s_client.ApiClient:
    """Create an isolated Kubernetes API client from a raw kubeconfig document.

    The kubeconfig comes straight from a Terraform output, so nothing is written
    to disk and the global SDK configuration is never touched.

    Raises:
        ValueError: If the kubeconfig is empty or is not a YAML mapping.
    """
    require_not_empty(kubeconfig, "kubeconfig")
    config_dict = yaml.safe_load(kubeconfig)
    if not isinstance(config_dict, dict):
        msg = "kubeconfig must be a YAML mapping"
        raise ValueError(msg)
    return new_client_from_config_dict(config_dict, context=context)
