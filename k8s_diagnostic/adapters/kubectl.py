"""
kubectl cluster client — online cluster operations through the kubectl CLI.

Every operation is one ``kubectl`` subprocess with ``-o json`` output,
so credentials, contexts and auth plugins resolve exactly as they do
for an operator's own kubectl.
"""

from __future__ import annotations

import json
import logging
import subprocess
import time

from k8s_diagnostic.adapters.base import (
    AlreadyExistsError,
    ClusterClient,
    ClusterError,
    ExecResult,
    NotFoundError,
)
from k8s_diagnostic.core.context import RunContext

logger = logging.getLogger(__name__)

# Exit code reported for exec commands killed by our own timeout
EXEC_TIMEOUT_RC = 124

# How often an interruptible exec checks the run context
EXEC_POLL_INTERVAL = 0.2


def _run_kubectl(
    *args: str,
    kubeconfig: str = "",
    input_data: str | None = None,
    timeout: float = 15,
) -> subprocess.CompletedProcess[str]:
    """Run a kubectl command and return the result."""
    cmd = ["kubectl"]
    if kubeconfig:
        cmd.extend(["--kubeconfig", kubeconfig])
    cmd.extend(args)
    return subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        input=input_data,
        timeout=timeout,
    )


def _spawn_kubectl(*args: str, kubeconfig: str = "") -> subprocess.Popen[str]:
    """Start a kubectl command without waiting for it."""
    cmd = ["kubectl"]
    if kubeconfig:
        cmd.extend(["--kubeconfig", kubeconfig])
    cmd.extend(args)
    return subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )


def _classify_error(stderr: str) -> ClusterError:
    """Map kubectl stderr onto the client error hierarchy."""
    lowered = stderr.lower()
    if "(notfound)" in lowered or "not found" in lowered:
        return NotFoundError(stderr)
    if "(alreadyexists)" in lowered or "already exists" in lowered:
        return AlreadyExistsError(stderr)
    return ClusterError(stderr)


class KubectlClient(ClusterClient):
    """Cluster client backed by the kubectl binary.

    Args:
        kubeconfig: Path to a kubeconfig file, or "" for the default context.
        request_timeout: Subprocess timeout for non-exec operations (seconds).
        poll_interval: Seconds between readiness polls.
    """

    def __init__(
        self,
        kubeconfig: str = "",
        *,
        request_timeout: float = 30,
        poll_interval: float = 2.0,
    ):
        super().__init__(poll_interval=poll_interval)
        self.kubeconfig = kubeconfig
        self.request_timeout = request_timeout

    @property
    def name(self) -> str:
        return "kubectl"

    def is_available(self) -> bool:
        try:
            result = _run_kubectl("version", "--client", "-o", "json", timeout=10)
        except (FileNotFoundError, subprocess.TimeoutExpired):
            return False
        return result.returncode == 0

    # ── Low-level ───────────────────────────────────────────────

    def _call(self, *args: str, input_data: str | None = None) -> str:
        """Run kubectl, returning stdout or raising a ClusterError."""
        logger.debug("kubectl %s", " ".join(args))
        try:
            result = _run_kubectl(
                *args,
                kubeconfig=self.kubeconfig,
                input_data=input_data,
                timeout=self.request_timeout,
            )
        except FileNotFoundError:
            raise ClusterError("kubectl not found on PATH") from None
        except subprocess.TimeoutExpired:
            raise ClusterError(
                f"kubectl {args[0]} timed out after {self.request_timeout:g}s"
            ) from None

        if result.returncode != 0:
            raise _classify_error(
                result.stderr.strip() or f"kubectl exited with code {result.returncode}"
            )
        return result.stdout

    def _json(self, *args: str, input_data: str | None = None) -> dict:
        raw = self._call(*args, input_data=input_data)
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ClusterError(f"Unparsable kubectl output: {e}") from e
        if not isinstance(data, dict):
            raise ClusterError("Unexpected kubectl output: not a JSON object")
        return data

    # ── Namespaces ──────────────────────────────────────────────

    def get_namespace(self, name: str) -> dict | None:
        try:
            return self._json("get", "namespace", name, "-o", "json")
        except NotFoundError:
            return None

    def create_namespace(self, name: str) -> dict:
        return self._json("create", "namespace", name, "-o", "json")

    def delete_namespace(self, name: str) -> None:
        self._call("delete", "namespace", name, "--wait=false", "--ignore-not-found")

    # ── Objects ─────────────────────────────────────────────────

    def list_nodes(self) -> list[dict]:
        return self._json("get", "nodes", "-o", "json").get("items", []) or []

    def get(self, kind: str, name: str, namespace: str) -> dict:
        return self._json("get", kind, name, "-n", namespace, "-o", "json")

    def create(self, manifest: dict, namespace: str) -> dict:
        return self._json(
            "create", "-n", namespace, "-f", "-", "-o", "json",
            input_data=json.dumps(manifest),
        )

    def delete(self, kind: str, name: str, namespace: str) -> None:
        self._call(
            "delete", kind, name, "-n", namespace,
            "--ignore-not-found", "--wait=false",
        )

    def exec_in_pod(
        self,
        pod: str,
        namespace: str,
        command: list[str],
        *,
        container: str = "",
        timeout: float = 30,
        context: RunContext | None = None,
    ) -> ExecResult:
        args = ["exec", pod, "-n", namespace]
        if container:
            args.extend(["-c", container])
        args.append("--")
        args.extend(command)

        logger.debug("kubectl %s", " ".join(args))
        if context is not None:
            return self._exec_interruptible(args, timeout, context)
        try:
            result = _run_kubectl(*args, kubeconfig=self.kubeconfig, timeout=timeout)
        except FileNotFoundError:
            raise ClusterError("kubectl not found on PATH") from None
        except subprocess.TimeoutExpired:
            return ExecResult(
                returncode=EXEC_TIMEOUT_RC,
                stderr=f"command timed out after {timeout:g}s",
            )

        return ExecResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def _exec_interruptible(
        self, args: list[str], timeout: float, context: RunContext,
    ) -> ExecResult:
        """Run ``kubectl exec``, killing it as soon as the run is cancelled."""
        try:
            proc = _spawn_kubectl(*args, kubeconfig=self.kubeconfig)
        except FileNotFoundError:
            raise ClusterError("kubectl not found on PATH") from None

        deadline = time.monotonic() + timeout
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=EXEC_POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                pass
            if context.cancelled:
                proc.kill()
                proc.communicate()
                logger.debug("Killed kubectl exec: %s", context.reason)
                context.check()
            if time.monotonic() >= deadline:
                proc.kill()
                proc.communicate()
                return ExecResult(
                    returncode=EXEC_TIMEOUT_RC,
                    stderr=f"command timed out after {timeout:g}s",
                )

        return ExecResult(returncode=proc.returncode, stdout=stdout, stderr=stderr)
