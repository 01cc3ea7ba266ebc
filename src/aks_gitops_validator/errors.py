"""Hard-failure exceptions raised by the provisioning and cluster clients."""

from __future__ import annotations


class ValidatorError(Exception):
    """Base exception for aks_gitops_validator."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TerraformError(ValidatorError):
    """Base exception for Terraform invocations."""

    def __init__(self, message: str, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr


class TerraformBinaryNotFoundError(TerraformError):
    """Raised when the terraform binary is not found."""

    def __init__(self) -> None:
        super().__init__(
            "terraform binary not found in PATH. Install from: https://developer.hashicorp.com/terraform/install"
        )


class TerraformCommandError(TerraformError):
    """Raised when a terraform command exits non-zero. ``stderr`` holds the tool's output verbatim."""


class ClusterQueryError(ValidatorError):
    """Raised when a Kubernetes API query fails."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ReadinessTimeoutError(ValidatorError):
    """Raised when a resource does not become ready within its retry budget."""


class AzureCliError(ValidatorError):
    """Raised when an az CLI command fails or the binary is missing."""

    def __init__(self, message: str, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr
