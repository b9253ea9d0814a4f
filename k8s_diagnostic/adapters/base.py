"""
Cluster client base — the contract between checks and the cluster API.

This defines the abstract interface every cluster client implements.
Checks and the lifecycle manager only talk to the cluster through this
protocol, never directly to kubectl.

Objects are plain dicts shaped like the Kubernetes API JSON
(``metadata``, ``spec``, ``status``), which is what ``kubectl -o json``
returns and what the mock client stores.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

from k8s_diagnostic.core.context import RunCancelled, RunContext

logger = logging.getLogger(__name__)


class ClusterError(Exception):
    """A cluster API operation failed."""


class NotFoundError(ClusterError):
    """The requested object does not exist."""


class AlreadyExistsError(ClusterError):
    """The object being created already exists."""


class ReadinessTimeout(ClusterError):
    """A bounded wait ran out of time."""


class ExecResult(BaseModel):
    """Outcome of a command executed inside a pod."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout, with stderr appended when present."""
        if self.stderr.strip():
            return f"{self.stdout}\nSTDERR: {self.stderr}"
        return self.stdout


class ClusterClient(ABC):
    """Abstract base class for cluster clients.

    To create a new client:
        1. Subclass ClusterClient
        2. Implement name, is_available and the object operations
        3. Pass it to the orchestrator
    """

    def __init__(self, poll_interval: float = 2.0):
        self.poll_interval = poll_interval

    @property
    @abstractmethod
    def name(self) -> str:
        """The client identifier (e.g., 'kubectl', 'mock')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the client can reach its tooling. Never raises."""

    # ── Namespaces ──────────────────────────────────────────────

    @abstractmethod
    def get_namespace(self, name: str) -> dict | None:
        """Return the namespace object, or None if it does not exist."""

    @abstractmethod
    def create_namespace(self, name: str) -> dict:
        """Create a namespace. Raises AlreadyExistsError if present."""

    @abstractmethod
    def delete_namespace(self, name: str) -> None:
        """Request namespace deletion without waiting for termination."""

    # ── Objects ─────────────────────────────────────────────────

    @abstractmethod
    def list_nodes(self) -> list[dict]:
        """Return all node objects."""

    @abstractmethod
    def get(self, kind: str, name: str, namespace: str) -> dict:
        """Return one object. Raises NotFoundError if missing."""

    @abstractmethod
    def create(self, manifest: dict, namespace: str) -> dict:
        """Create an object from a manifest and return it as stored."""

    @abstractmethod
    def delete(self, kind: str, name: str, namespace: str) -> None:
        """Request deletion. Missing objects are not an error."""

    @abstractmethod
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
        """Run a command in a pod. Non-zero exit is returned, not raised.

        Raises:
            RunCancelled: ``context`` fired while the command was running.
        """

    # ── Waits (shared by all clients) ───────────────────────────

    def wait_until(
        self,
        probe: Callable[[], bool],
        *,
        timeout: float,
        description: str,
        context: RunContext | None = None,
    ) -> None:
        """Poll ``probe`` until it returns True.

        API errors during polling are treated as "not yet".

        Raises:
            ReadinessTimeout: probe never succeeded within ``timeout``.
            RunCancelled: the run context fired while waiting.
        """
        deadline = time.monotonic() + timeout
        while True:
            if context is not None:
                context.check()
            try:
                if probe():
                    return
            except ClusterError as e:
                logger.debug("Waiting for %s: %s", description, e)

            if time.monotonic() >= deadline:
                raise ReadinessTimeout(
                    f"{description} did not become ready within {timeout:g}s"
                )
            if context is not None:
                if context.wait(self.poll_interval):
                    raise RunCancelled(f"Run {context.reason} while waiting for {description}")
            else:
                time.sleep(self.poll_interval)

    def wait_for_pod_ready(
        self,
        name: str,
        namespace: str,
        *,
        timeout: float = 120,
        context: RunContext | None = None,
    ) -> dict:
        """Wait until the pod reports the Ready condition; return the pod."""
        latest: dict[str, Any] = {}

        def _ready() -> bool:
            pod = self.get("pod", name, namespace)
            latest.update(pod)
            return pod_is_ready(pod)

        self.wait_until(_ready, timeout=timeout, description=f"pod {name}", context=context)
        return latest

    def wait_for_deployment_ready(
        self,
        name: str,
        namespace: str,
        *,
        timeout: float = 120,
        context: RunContext | None = None,
    ) -> dict:
        """Wait until all desired replicas are ready; return the deployment."""
        latest: dict[str, Any] = {}

        def _ready() -> bool:
            deployment = self.get("deployment", name, namespace)
            latest.update(deployment)
            return deployment_is_ready(deployment)

        self.wait_until(
            _ready, timeout=timeout, description=f"deployment {name}", context=context,
        )
        return latest

    def ready_endpoint_count(self, service: str, namespace: str) -> int:
        """Count ready addresses behind a service's Endpoints object."""
        endpoints = self.get("endpoints", service, namespace)
        return sum(
            len(subset.get("addresses", []) or [])
            for subset in endpoints.get("subsets", []) or []
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


def pod_is_ready(pod: dict) -> bool:
    """Whether the pod's Ready condition is True."""
    for condition in pod.get("status", {}).get("conditions", []) or []:
        if condition.get("type") == "Ready" and condition.get("status") == "True":
            return True
    return False


def deployment_is_ready(deployment: dict) -> bool:
    """Whether ready replicas reached the desired count (and at least one)."""
    desired = deployment.get("spec", {}).get("replicas", 1)
    ready = deployment.get("status", {}).get("readyReplicas", 0) or 0
    return ready > 0 and ready >= desired
