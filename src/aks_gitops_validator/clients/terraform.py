"""Terraform CLI wrapper.

Wraps the terraform binary via subprocess for init, plan, apply, output and
destroy against a single working directory. Variables are written to a
temporary ``*.tfvars.json`` file so nested maps (tags) survive unchanged.
"""

from __future__ import annotations

import contextlib
import json
import os
import re
import shutil
import subprocess
import tempfile
from collections.abc import Iterator
from pathlib import Path

import structlog
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from aks_gitops_validator.config import ProvisioningRequest
from aks_gitops_validator.errors import TerraformBinaryNotFoundError, TerraformCommandError, TerraformError

logger = structlog.get_logger()

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TERRAFORM_TIMEOUT_SECONDS = 3600
OUTPUT_TIMEOUT_SECONDS = 60
MAX_ATTEMPTS = 3
SECONDS_BETWEEN_RETRIES = 5.0

# Transient provider and network errors worth another attempt. Anything else
# surfaces immediately with the tool's own error text.
DEFAULT_RETRYABLE_ERRORS: dict[str, str] = {
    r".*read: connection reset by peer.*": "Failed to reach a remote endpoint.",
    r".*TLS handshake timeout.*": "TLS handshake timed out.",
    r".*Error installing provider.*": "Failed to reach the provider download server.",
    r".*Failed to query available provider packages.*": "Failed to query the provider registry.",
    r".*timeout while waiting for plugin to start.*": "Provider plugin failed to start in time.",
    r".*429 Too Many Requests.*": "Throttled by the Azure Resource Manager API.",
    r".*Client\.Timeout exceeded while awaiting headers.*": "HTTP client timed out.",
    r".*transport is closing.*": "Connection to the Kubernetes API dropped.",
}


class TerraformClient:
    """Client for running the Terraform CLI against a ProvisioningRequest."""

    def __init__(
        self,
        binary_path: str | None = None,
        *,
        timeout: int = TERRAFORM_TIMEOUT_SECONDS,
        retryable_errors: dict[str, str] | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        retry_wait: float = SECONDS_BETWEEN_RETRIES,
    ) -> None:
        """Initialize the Terraform client.

        Args:
            binary_path: Optional explicit path to the terraform binary.
                If None, searches PATH.
            timeout: Per-command timeout in seconds.
            retryable_errors: Regex -> description of errors to retry.
                Defaults to DEFAULT_RETRYABLE_ERRORS.
            max_attempts: Total attempts for a retryable failure.
            retry_wait: Fixed wait between attempts, in seconds.

        Raises:
            TerraformBinaryNotFoundError: If binary not found.
        """
        self._binary = self._find_binary(binary_path)
        self._timeout = timeout
        errors = DEFAULT_RETRYABLE_ERRORS if retryable_errors is None else retryable_errors
        self._retryable = {re.compile(pattern, re.DOTALL): reason for pattern, reason in errors.items()}
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait
        self._log = logger.bind(binary=self._binary)

    @staticmethod
    def _find_binary(binary_path: str | None) -> str:
        if binary_path:
            path = Path(binary_path)
            if not path.exists():
                raise TerraformBinaryNotFoundError()
            return str(path.resolve())

        found = shutil.which("terraform")
        if not found:
            raise TerraformBinaryNotFoundError()
        return found

    def retry_reason(self, error: BaseException) -> str | None:
        """Return the description of the retryable pattern matching ``error``, if any."""
        if not isinstance(error, TerraformCommandError) or not error.stderr:
            return None
        for pattern, reason in self._retryable.items():
            if pattern.search(error.stderr):
                return reason
        return None

    def _run(
        self,
        args: list[str],
        request: ProvisioningRequest,
        *,
        timeout: int | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run one terraform command in the request's working directory.

        Raises:
            TerraformCommandError: On non-zero exit, with stderr verbatim.
            TerraformError: On timeout.
        """
        timeout = timeout or self._timeout
        cmd = [self._binary, *args]
        env = {**os.environ, "TF_IN_AUTOMATION": "1", "TF_INPUT": "0", **request.env_vars}
        self._log.debug("running_terraform_command", args=args, terraform_dir=str(request.terraform_dir))

        try:
            return subprocess.run(
                cmd,
                cwd=request.terraform_dir,
                env=env,
                capture_output=True,
                text=True,
                check=True,
                timeout=timeout,
            )
        except subprocess.CalledProcessError as e:
            raise TerraformCommandError(
                f"terraform {args[0]} failed: {e.stderr.strip() if e.stderr else f'exit code {e.returncode}'}",
                stderr=e.stderr,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise TerraformError(f"terraform {args[0]} timed out after {timeout}s") from e

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        self._log.warning(
            "retrying_terraform_command",
            attempt=retry_state.attempt_number,
            reason=self.retry_reason(error) if error else None,
        )

    def _run_with_retries(self, args: list[str], request: ProvisioningRequest) -> subprocess.CompletedProcess[str]:
        retrying = Retrying(
            retry=retry_if_exception(lambda e: self.retry_reason(e) is not None),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_fixed(self._retry_wait),
            before_sleep=self._log_retry,
            reraise=True,
        )
        return retrying(self._run, args, request)

    @contextlib.contextmanager
    def _var_file(self, request: ProvisioningRequest) -> Iterator[list[str]]:
        """Yield ``-var-file`` args for the request's variables, removing the file afterwards."""
        if not request.variables:
            yield []
            return
        with tempfile.TemporaryDirectory(prefix="aks-gitops-validator-") as tmp:
            path = Path(tmp) / "request.tfvars.json"
            path.write_text(json.dumps(request.variables, indent=2, sort_keys=True))
            yield [f"-var-file={path}"]

    # -----------------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------------

    def init(self, request: ProvisioningRequest) -> str:
        self._log.info("terraform_init", terraform_dir=str(request.terraform_dir))
        return self._run_with_retries(["init", "-input=false", "-no-color"], request).stdout

    def apply(self, request: ProvisioningRequest) -> str:
        self._log.info("terraform_apply", terraform_dir=str(request.terraform_dir))
        with self._var_file(request) as var_args:
            result = self._run_with_retries(["apply", "-input=false", "-no-color", "-auto-approve", *var_args], request)
        return result.stdout

    def plan(self, request: ProvisioningRequest) -> str:
        """Run ``terraform plan``, saving the plan to ``request.plan_file_path`` when set."""
        self._log.info("terraform_plan", terraform_dir=str(request.terraform_dir))
        args = ["plan", "-input=false", "-no-color", "-lock=false"]
        if request.plan_file_path is not None:
            args.append(f"-out={request.plan_file_path}")
        with self._var_file(request) as var_args:
            result = self._run_with_retries([*args, *var_args], request)
        return result.stdout

    def destroy(self, request: ProvisioningRequest) -> str:
        self._log.info("terraform_destroy", terraform_dir=str(request.terraform_dir))
        with self._var_file(request) as var_args:
            result = self._run_with_retries(
                ["destroy", "-input=false", "-no-color", "-auto-approve", *var_args], request
            )
        return result.stdout

    def init_and_apply(self, request: ProvisioningRequest) -> str:
        self.init(request)
        return self.apply(request)

    def init_and_plan(self, request: ProvisioningRequest) -> str:
        self.init(request)
        return self.plan(request)

    # -----------------------------------------------------------------------
    # Outputs
    # -----------------------------------------------------------------------

    def output(self, request: ProvisioningRequest, name: str) -> str:
        """Return a named output as a string.

        String outputs are returned as-is; lists, maps and numbers are
        re-serialised as JSON.
        """
        result = self._run(["output", "-no-color", "-json", name], request, timeout=OUTPUT_TIMEOUT_SECONDS)
        return _stringify(json.loads(result.stdout))

    def output_all(self, request: ProvisioningRequest) -> dict[str, str]:
        result = self._run(["output", "-no-color", "-json"], request, timeout=OUTPUT_TIMEOUT_SECONDS)
        raw = json.loads(result.stdout or "{}")
        return {name: _stringify(entry.get("value")) for name, entry in raw.items()}


def _stringify(value: object) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)
