"""Naming validators for Kubernetes and Azure resources."""

from __future__ import annotations

import re

MAX_NAME_LENGTH = 63

# RFC 1123 label: lowercase alphanumeric and hyphens, 1-63 chars, starts/ends with alphanumeric
_NAMESPACE_RE = re.compile(r"^[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?$")

# AKS node pool: lowercase alphanumeric, 1-12 chars, starts with letter
_NODE_POOL_RE = re.compile(r"^[a-z][a-z0-9]{0,11}$")

# Azure resource names used by the modules: letters, digits, hyphens, underscores
_RESOURCE_NAME_RE = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9_\-]*[A-Za-z0-9])?$")


def is_valid_name_length(name: str, max_length: int = MAX_NAME_LENGTH) -> bool:
    return 0 < len(name) <= max_length


def validate_namespace(namespace: str | None) -> None:
    """Validate a Kubernetes namespace name against RFC 1123."""
    if namespace is None:
        return
    if not _NAMESPACE_RE.match(namespace):
        msg = f"Invalid namespace: {namespace!r}. Must be a valid RFC 1123 label."
        raise ValueError(msg)


def validate_node_pool(node_pool: str | None) -> None:
    """Validate an AKS node pool name."""
    if node_pool is None:
        return
    if not _NODE_POOL_RE.match(node_pool):
        msg = f"Invalid node pool name: {node_pool!r}. Must be 1-12 lowercase alphanumeric starting with a letter."
        raise ValueError(msg)


def validate_resource_name(name: str, max_length: int = MAX_NAME_LENGTH) -> None:
    """Validate a cluster or resource group name used in a provisioning request."""
    if not is_valid_name_length(name, max_length):
        msg = f"Invalid resource name: {name!r}. Must be 1-{max_length} characters."
        raise ValueError(msg)
    if not _RESOURCE_NAME_RE.match(name):
        msg = f"Invalid resource name: {name!r}. Must be alphanumeric, hyphens or underscores."
        raise ValueError(msg)
