"""Tests for building an isolated Kubernetes API client from a kubeconfig document."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from aks_gitops_validator.clients import load_k8s_api_client

KUBECONFIG = """\
apiVersion: v1
kind: Config
current-context: aks-test-abc123
contexts:
- name: aks-test-abc123
  context:
    cluster: aks-test-abc123
    user: clusterUser
"""


class TestLoadK8sApiClient:
    def test_parses_yaml_and_passes_context(self) -> None:
        with patch("aks_gitops_validator.clients.new_client_from_config_dict") as mock_new:
            api_client = load_k8s_api_client(KUBECONFIG, context="aks-test-abc123")

        assert api_client is mock_new.return_value
        config_dict = mock_new.call_args.args[0]
        assert config_dict["current-context"] == "aks-test-abc123"
        assert mock_new.call_args.kwargs["context"] == "aks-test-abc123"

    @pytest.mark.parametrize("kubeconfig", ["", "   \n"])
    def test_empty_kubeconfig(self, kubeconfig: str) -> None:
        with (
            patch("aks_gitops_validator.clients.new_client_from_config_dict") as mock_new,
            pytest.raises(ValueError, match="kubeconfig should not be empty"),
        ):
            load_k8s_api_client(kubeconfig)
        mock_new.assert_not_called()

    def test_non_mapping_kubeconfig(self) -> None:
        with pytest.raises(ValueError, match="YAML mapping"):
            load_k8s_api_client("- just\n- a list\n")
