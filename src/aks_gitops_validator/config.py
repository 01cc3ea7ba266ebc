"""Validator settings, expectation set, provisioning requests, and environment variable overrides."""

from __future__ import annotations

import os
import re
import secrets
import string
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, get_type_hints

import yaml
from pydantic import TypeAdapter, ValidationError


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings with environment variable overrides."""

    terraform_dir: Path = field(
        default_factory=lambda: Path(os.environ.get("AKS_VALIDATOR_TERRAFORM_DIR", "terraform"))
    )
    modules_dir: Path = field(default_factory=lambda: Path(os.environ.get("AKS_VALIDATOR_MODULES_DIR", "modules")))
    terraform_binary: str | None = field(default_factory=lambda: os.environ.get("AKS_VALIDATOR_TERRAFORM_BINARY"))
    terraform_timeout: int = field(
        default_factory=lambda: int(os.environ.get("AKS_VALIDATOR_TERRAFORM_TIMEOUT", "3600"))
    )
    location: str = field(default_factory=lambda: os.environ.get("AKS_VALIDATOR_LOCATION", "westeurope"))
    kubernetes_version: str = field(default_factory=lambda: os.environ.get("AKS_VALIDATOR_K8S_VERSION", "1.28.3"))
    node_vm_size: str = field(default_factory=lambda: os.environ.get("AKS_VALIDATOR_NODE_VM_SIZE", "Standard_B2s"))
    argocd_chart_version: str = field(
        default_factory=lambda: os.environ.get("AKS_VALIDATOR_ARGOCD_CHART_VERSION", "5.51.6")
    )
    git_repo_url: str = field(
        default_factory=lambda: os.environ.get(
            "AKS_VALIDATOR_GIT_REPO_URL", "https://github.com/sixeyed/ps-sre3-demo2"
        )
    )
    git_target_revision: str = field(default_factory=lambda: os.environ.get("AKS_VALIDATOR_GIT_REVISION", "main"))
    deploy_poll_interval: float = field(
        default_factory=lambda: float(os.environ.get("AKS_VALIDATOR_DEPLOY_POLL_INTERVAL", "30"))
    )
    scale_timeout: float = field(default_factory=lambda: float(os.environ.get("AKS_VALIDATOR_SCALE_TIMEOUT", "600")))
    scale_poll_interval: float = field(
        default_factory=lambda: float(os.environ.get("AKS_VALIDATOR_SCALE_POLL_INTERVAL", "15"))
    )
    subscription_id: str = field(default_factory=lambda: os.environ.get("ARM_SUBSCRIPTION_ID", ""))
    run_integration: bool = field(default_factory=lambda: _env_flag("AKS_VALIDATOR_RUN_INTEGRATION"))


def get_settings() -> Settings:
    """Return settings with environment variable overrides applied."""
    return Settings()


@dataclass(frozen=True)
class ExpectationSet:
    """Literal expectations compared against observed cluster state."""

    namespaces: tuple[str, ...] = ("reliability-demo", "argocd", "monitoring")
    namespace_phase: str = "Active"
    argocd_namespace: str = "argocd"
    argocd_server: str = "argocd-server"
    argocd_server_retries: int = 20
    min_argocd_server_replicas: int = 2
    argocd_components: Mapping[str, int] = field(
        default_factory=lambda: {
            "argocd-applicationset-controller": 10,
            "argocd-repo-server": 10,
        },
        hash=False,
    )
    app_of_apps: str = "app-of-apps"
    min_initial_nodes: int = 1
    scaled_node_count: int = 2
    min_monitoring_features: int = 2
    max_name_length: int = 63

    def __post_init__(self) -> None:
        if isinstance(self.namespaces, str):
            msg = f"namespaces must be a sequence of names, got {self.namespaces!r}"
            raise TypeError(msg)
        object.__setattr__(self, "namespaces", tuple(self.namespaces))
        object.__setattr__(self, "argocd_components", MappingProxyType(dict(self.argocd_components)))


_EXPECTATION_FIELDS = {f.name for f in fields(ExpectationSet)}
_EXPECTATION_ADAPTERS = {name: TypeAdapter(hint) for name, hint in get_type_hints(ExpectationSet).items()}


def load_expectations(path: Path | None = None) -> ExpectationSet:
    """Load an ExpectationSet, applying overrides from a YAML file.

    The path defaults to ``AKS_VALIDATOR_EXPECTATIONS``. When neither is set,
    the built-in defaults are returned.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is malformed, names unknown expectations, or
            holds a value of the wrong type.
    """
    if path is None:
        env_path = os.environ.get("AKS_VALIDATOR_EXPECTATIONS")
        if not env_path:
            return ExpectationSet()
        path = Path(env_path)

    if not path.exists():
        msg = f"Expectations file not found: {path}. Unset AKS_VALIDATOR_EXPECTATIONS to use the defaults."
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(path.read_text())
    if not isinstance(raw, dict) or not isinstance(raw.get("expectations"), dict):
        msg = f"Expectations file {path} must contain a top-level 'expectations' mapping."
        raise ValueError(msg)

    overrides: dict[str, Any] = raw["expectations"]
    unknown = sorted(set(overrides) - _EXPECTATION_FIELDS)
    if unknown:
        msg = f"Expectations file {path} has unknown keys: {', '.join(unknown)}."
        raise ValueError(msg)

    values: dict[str, Any] = {}
    for key, value in overrides.items():
        try:
            values[key] = _EXPECTATION_ADAPTERS[key].validate_python(value)
        except ValidationError as e:
            reason = "; ".join(err["msg"] for err in e.errors())
            msg = f"Expectations file {path} has an invalid {key!r}: {reason}."
            raise ValueError(msg) from e

    return ExpectationSet(**values)


@dataclass
class ProvisioningRequest:
    """Configuration handed wholesale to one Terraform working directory."""

    terraform_dir: Path
    variables: dict[str, Any] = field(default_factory=dict)
    env_vars: dict[str, str] = field(default_factory=dict)
    plan_file_path: Path | None = None

    def set_var(self, key: str, value: Any) -> None:
        self.variables[key] = value

    def require(self, *keys: str) -> None:
        """Raise ValueError if any of the given variables is missing or empty."""
        missing = [k for k in keys if self.variables.get(k) in (None, "", {}, [])]
        if missing:
            msg = f"Provisioning request for {self.terraform_dir} has empty variables: {', '.join(missing)}."
            raise ValueError(msg)


@dataclass(frozen=True)
class ClusterTarget:
    """Management-plane identity of one provisioned AKS cluster."""

    subscription_id: str
    resource_group: str
    cluster_name: str

    @property
    def resource_id(self) -> str:
        return (
            f"/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{self.resource_group}"
            f"/providers/Microsoft.ContainerService"
            f"/managedClusters/{self.cluster_name}"
        )

    def validate(self) -> None:
        """Raise RuntimeError on placeholder subscription IDs, invalid UUIDs, or empty names."""
        errors: list[str] = []
        if self.subscription_id.startswith("<") and self.subscription_id.endswith(">"):
            errors.append("placeholder subscription_id detected")
        elif not _UUID_RE.match(self.subscription_id):
            errors.append("subscription_id is not a valid UUID")
        if not self.resource_group:
            errors.append("resource_group is empty")
        if not self.cluster_name:
            errors.append("cluster_name is empty")

        if errors:
            msg = f"Cluster target errors: {'; '.join(errors)}."
            raise RuntimeError(msg)


_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

_ID_ALPHABET = string.ascii_letters + string.digits


def unique_id(length: int = 6) -> str:
    """Return a short base62 identifier for embedding in resource names."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))
