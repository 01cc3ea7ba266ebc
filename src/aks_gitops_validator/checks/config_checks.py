"""In-process checks over static configuration maps. No external calls."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import structlog

from aks_gitops_validator.models import CheckReport
from aks_gitops_validator.validation import MAX_NAME_LENGTH, is_valid_name_length, validate_namespace

log = structlog.get_logger()

MODULE_FILES = ("main.tf", "variables.tf", "outputs.tf")
DEFAULT_MIN_MONITORING_FEATURES = 2


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (Mapping, list, tuple, set)):
        return len(value) == 0
    return False


def check_required_fields(config: Mapping[str, Any], required: Iterable[str]) -> CheckReport:
    """Every required key is present with a non-empty value."""
    report = CheckReport(check="required_fields")
    for key in required:
        report.expect(not _is_empty(config.get(key)), f"{key} should not be empty", actual=config.get(key))
    log.info("required_fields_checked", missing=len(report.failures))
    return report


def check_configuration_values(config: Mapping[str, Any]) -> CheckReport:
    """Cluster name is set and the node count is at least one."""
    report = CheckReport(check="configuration_values")
    log.info("checking_configuration", config=dict(config))

    report.expect(not _is_empty(config.get("cluster_name")), "cluster name should not be empty")
    node_count = config.get("node_count")
    if not isinstance(node_count, int) or isinstance(node_count, bool):
        report.fail("node count should be an integer", actual=node_count)
    else:
        report.expect(node_count >= 1, "node count should be at least 1", expected=">= 1", actual=node_count)
    return report


def check_autoscaling(config: Mapping[str, int]) -> CheckReport:
    """``min_nodes <= initial <= max_nodes``."""
    report = CheckReport(check="autoscaling")
    min_nodes = config.get("min_nodes")
    max_nodes = config.get("max_nodes")
    initial = config.get("initial")
    log.info("checking_autoscaling", min_nodes=min_nodes, max_nodes=max_nodes, initial=initial)

    missing = [k for k, v in (("min_nodes", min_nodes), ("max_nodes", max_nodes), ("initial", initial)) if v is None]
    if missing:
        report.fail(f"autoscaling config is missing: {', '.join(missing)}")
        return report

    report.expect(
        min_nodes <= max_nodes,
        "min nodes cannot be greater than max nodes",
        expected=f"<= {max_nodes}",
        actual=min_nodes,
    )
    report.expect(
        min_nodes <= initial <= max_nodes,
        "initial node count must be between min and max",
        expected=f"{min_nodes}..{max_nodes}",
        actual=initial,
    )
    return report


def check_name_lengths(names: Iterable[str], max_length: int = MAX_NAME_LENGTH) -> CheckReport:
    report = CheckReport(check="naming_conventions")
    for name in names:
        valid = report.expect(
            is_valid_name_length(name, max_length),
            f"name {name!r} must be 1-{max_length} characters",
            actual=len(name),
        )
        log.info("name_checked", name=name, valid=valid)
    return report


def check_tags(tags: Mapping[str, str]) -> CheckReport:
    """Every tag key and value is non-empty."""
    report = CheckReport(check="tags")
    for key, value in tags.items():
        log.info("tag", key=key, value=value)
        report.expect(not _is_empty(key) and not _is_empty(value), f"invalid tag: {key!r} = {value!r}")
    report.observe(f"validated {len(tags)} tags")
    return report


def check_network(config: Mapping[str, str]) -> CheckReport:
    """VNet and subnet CIDRs are set and parse, the subnet sits inside the VNet, and the DNS prefix is a valid label."""
    report = CheckReport(check="network")
    log.info("checking_network", config=dict(config))

    networks: dict[str, ipaddress.IPv4Network | ipaddress.IPv6Network] = {}
    for key in ("vnet_cidr", "subnet_cidr"):
        value = config.get(key)
        if _is_empty(value):
            report.fail(f"{key} should not be empty")
            continue
        try:
            networks[key] = ipaddress.ip_network(value)
        except ValueError:
            report.fail(f"{key} is not a valid CIDR", actual=value)

    vnet, subnet = networks.get("vnet_cidr"), networks.get("subnet_cidr")
    if vnet is not None and subnet is not None:
        report.expect(
            subnet.version == vnet.version and subnet.subnet_of(vnet),
            "subnet must be inside the VNet",
            expected=str(vnet),
            actual=str(subnet),
        )

    dns_prefix = config.get("dns_prefix")
    if dns_prefix is not None:
        try:
            validate_namespace(dns_prefix)
        except ValueError as e:
            report.fail(str(e), actual=dns_prefix)
    return report


def check_monitoring(features: Mapping[str, bool], minimum: int = DEFAULT_MIN_MONITORING_FEATURES) -> CheckReport:
    """At least ``minimum`` monitoring features are enabled. Disabled features are only logged."""
    report = CheckReport(check="monitoring")
    enabled = 0
    for feature, on in features.items():
        log.info("monitoring_feature", feature=feature, enabled=on)
        if on:
            enabled += 1
    report.observe(f"{enabled} out of {len(features)} monitoring features enabled")
    report.expect(
        enabled >= minimum,
        f"at least {minimum} monitoring features should be enabled",
        expected=f">= {minimum}",
        actual=enabled,
    )
    return report


def check_security_settings(settings: Iterable[str]) -> CheckReport:
    """Log-only: records each security setting."""
    report = CheckReport(check="security")
    count = 0
    for setting in settings:
        log.info("security_check", setting=setting)
        count += 1
    report.observe(f"validated {count} security settings")
    return report


def check_module_structure(modules_dir: Path, modules: Iterable[str]) -> CheckReport:
    """Each Terraform module directory holds main.tf, variables.tf and outputs.tf."""
    report = CheckReport(check="module_structure")
    for module in modules:
        module_dir = modules_dir / module
        if not module_dir.is_dir():
            report.fail(f"module {module!r} not found", expected=str(module_dir))
            continue
        for filename in MODULE_FILES:
            report.expect((module_dir / filename).is_file(), f"module {module!r} is missing {filename}")
        log.info("module_checked", module=module)
    return report
