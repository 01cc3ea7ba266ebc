"""az CLI wrapper for the resource-group commands used around module tests."""

from __future__ import annotations

import shlex
import shutil
import subprocess
from pathlib import Path

import structlog

from aks_gitops_validator.errors import AzureCliError
from aks_gitops_validator.validation import validate_resource_name

logger = structlog.get_logger()

AZ_TIMEOUT_SECONDS = 600


class AzureCliClient:
    """Runs az commands through a single generic command path."""

    def __init__(self, binary_path: str | None = None) -> None:
        self._binary = self._find_binary(binary_path)
        self._log = logger.bind(binary=self._binary)

    @staticmethod
    def _find_binary(binary_path: str | None) -> str:
        if binary_path:
            path = Path(binary_path)
            if not path.exists():
                raise AzureCliError(f"az binary not found at {binary_path}")
            return str(path.resolve())

        found = shutil.which("az")
        if not found:
            raise AzureCliError("az binary not found in PATH. Install the Azure CLI.")
        return found

    def run(self, args: list[str], *, timeout: int = AZ_TIMEOUT_SECONDS) -> str:
        """Run an az command and return its stdout.

        Raises:
            AzureCliError: On non-zero exit or timeout.
        """
        cmd = [self._binary, *args]
        self._log.info("running_az_command", command=shlex.join(args))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=timeout)
        except subprocess.CalledProcessError as e:
            raise AzureCliError(
                f"az {shlex.join(args)} failed: {e.stderr.strip() if e.stderr else f'exit code {e.returncode}'}",
                stderr=e.stderr,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise AzureCliError(f"az {shlex.join(args)} timed out after {timeout}s") from e
        return result.stdout

    def create_resource_group(self, name: str, location: str) -> str:
        validate_resource_name(name, max_length=90)
        return self.run(["group", "create", "--name", name, "--location", location, "--output", "json"])

    def delete_resource_group(self, name: str) -> str:
        """Request deletion without waiting for it to finish."""
        validate_resource_name(name, max_length=90)
        return self.run(["group", "delete", "--name", name, "--yes", "--no-wait"])
