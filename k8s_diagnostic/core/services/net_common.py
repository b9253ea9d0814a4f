"""
Shared plumbing for the connectivity checks.

Manifests for the two fixture workloads (a netshoot client pod and an
nginx deployment + service), node selection, output parsers, and the
``NetworkCheck`` template that turns errors into failed results and
always removes the fixtures a check created.
"""

from __future__ import annotations

import logging
import re
from abc import abstractmethod

from k8s_diagnostic.adapters.base import ClusterError, ExecResult, ReadinessTimeout
from k8s_diagnostic.core.config.loader import DiagnosticConfig
from k8s_diagnostic.core.context import RunCancelled
from k8s_diagnostic.core.engine.check import Check, CheckContext
from k8s_diagnostic.core.models.result import TestConfig, TestResult

logger = logging.getLogger(__name__)

NETSHOOT_CONTAINER = "netshoot"
HTTP_PORT = 80

_CONTROL_PLANE_MARKERS = ("control-plane", "master")
_PACKET_LOSS_RE = re.compile(r"(\d+(?:\.\d+)?)% packet loss")


# ── Manifests ───────────────────────────────────────────────────


def netshoot_pod_manifest(name: str, image: str, node_name: str = "") -> dict:
    """A long-sleeping netshoot pod used as the probe client."""
    spec: dict = {
        "containers": [{
            "name": NETSHOOT_CONTAINER,
            "image": image,
            "command": ["sleep", "3600"],
        }],
        "restartPolicy": "Never",
    }
    if node_name:
        spec["nodeName"] = node_name
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name, "labels": {"app": "netshoot-test"}},
        "spec": spec,
    }


def nginx_deployment_manifest(name: str, image: str, replicas: int = 2) -> dict:
    """An nginx deployment labelled ``app=<name>``."""
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name},
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": {
                    "containers": [{
                        "name": "nginx",
                        "image": image,
                        "ports": [{"containerPort": HTTP_PORT}],
                    }],
                },
            },
        },
    }


def service_manifest(name: str, app: str, service_type: str = "ClusterIP") -> dict:
    """A TCP/80 service selecting ``app=<app>``."""
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name},
        "spec": {
            "type": service_type,
            "selector": {"app": app},
            "ports": [{"port": HTTP_PORT, "targetPort": HTTP_PORT, "protocol": "TCP"}],
        },
    }


# ── Node helpers ────────────────────────────────────────────────


def is_control_plane(node: dict) -> bool:
    """Whether any label key marks the node as control-plane/master."""
    labels = node.get("metadata", {}).get("labels", {}) or {}
    return any(marker in key for key in labels for marker in _CONTROL_PLANE_MARKERS)


def worker_nodes(nodes: list[dict]) -> list[str]:
    """Names of schedulable worker nodes, in API order."""
    return [
        n.get("metadata", {}).get("name", "")
        for n in nodes
        if not is_control_plane(n)
    ]


def node_internal_ip(node: dict) -> str:
    """The node's InternalIP, falling back to ExternalIP, else ""."""
    addresses = node.get("status", {}).get("addresses", []) or []
    for wanted in ("InternalIP", "ExternalIP"):
        for addr in addresses:
            if addr.get("type") == wanted and addr.get("address"):
                return addr["address"]
    return ""


# ── Output parsers ──────────────────────────────────────────────


def evaluate_http_status(status_code: str) -> tuple[bool, str]:
    """Classify a curl ``%{http_code}`` string.

    Returns:
        (success, description). Only 2xx is a success.
    """
    try:
        code = int(status_code.strip())
    except ValueError:
        return False, f"Invalid status code: {status_code.strip()}"

    if 200 <= code < 300:
        return True, f"Success - HTTP {code}"
    if 300 <= code < 400:
        return False, f"Redirect - HTTP {code} (may need to follow redirects)"
    if 400 <= code < 500:
        return False, f"Client Error - HTTP {code}"
    if 500 <= code < 600:
        return False, f"Server Error - HTTP {code}"
    return False, f"Unknown status code: {code}"


def extract_ping_latency(output: str) -> float:
    """Average RTT in ms from the ``rtt min/avg/max/mdev`` line, else 0.0."""
    for line in output.splitlines():
        if "min/avg/max" not in line or "=" not in line:
            continue
        values = line.split("=", 1)[1].strip().replace(" ms", "").split("/")
        if len(values) >= 2:
            try:
                return float(values[1])
            except ValueError:
                return 0.0
    return 0.0


def ping_packet_loss(output: str) -> float | None:
    """Packet loss percentage reported by ping, or None if absent."""
    match = _PACKET_LOSS_RE.search(output)
    if match is None:
        return None
    return float(match.group(1))


# ── Check plumbing ──────────────────────────────────────────────


class CheckFailure(Exception):
    """A check step failed; the message becomes the result message."""


class ProbeSession:
    """Per-invocation state of one check.

    Collects detail lines and the fixtures created, and wraps cluster
    calls so that failures surface as CheckFailure with a readable
    message.
    """

    def __init__(self, ctx: CheckContext):
        self.ctx = ctx
        self.client = ctx.client
        self.namespace = ctx.namespace
        self.settings = ctx.settings or DiagnosticConfig(namespace=ctx.namespace)
        self.details: list[str] = []
        self._fixtures: list[tuple[str, str]] = []

    def note(self, line: str) -> None:
        self.details.append(line)
        logger.debug("  %s", line)

    def name(self, base: str) -> str:
        return self.ctx.name(base)

    # ── Nodes ───────────────────────────────────────────────────

    def workers(self) -> list[str]:
        try:
            return worker_nodes(self.client.list_nodes())
        except ClusterError as e:
            raise CheckFailure(f"Failed to get worker nodes: {e}") from e

    def node_ip(self, node_name: str) -> str:
        try:
            nodes = self.client.list_nodes()
        except ClusterError as e:
            raise CheckFailure(f"Failed to get node information: {e}") from e
        for node in nodes:
            if node.get("metadata", {}).get("name") == node_name:
                return node_internal_ip(node)
        return ""

    # ── Fixtures ────────────────────────────────────────────────

    def _create(self, manifest: dict, what: str) -> dict:
        self.ctx.run.check()
        name = manifest["metadata"]["name"]
        try:
            created = self.client.create(manifest, self.namespace)
        except ClusterError as e:
            raise CheckFailure(f"Failed to create {what} {name}: {e}") from e
        self._fixtures.append((manifest["kind"].lower(), name))
        return created

    def create_client_pod(self, base: str, node_name: str = "") -> str:
        """Create a netshoot pod and wait until it is Ready."""
        name = self.name(base)
        self._create(
            netshoot_pod_manifest(name, self.settings.netshoot_image, node_name), "pod",
        )
        where = f" on node {node_name}" if node_name else ""
        self.note(f"✓ Created pod {name}{where}")
        return name

    def wait_pod(self, name: str) -> dict:
        try:
            pod = self.client.wait_for_pod_ready(
                name,
                self.namespace,
                timeout=self.ctx.run.cap(self.settings.pod_ready_timeout),
                context=self.ctx.run,
            )
        except ReadinessTimeout as e:
            self.note(f"✗ Pod {name} did not become ready: {e}")
            raise CheckFailure(f"Pod {name} did not become ready: {e}") from e
        self.note(f"✓ Pod {name} is ready")
        return pod

    def create_backend(self, base: str, service_type: str = "ClusterIP") -> tuple[str, dict]:
        """Create an nginx deployment plus a service in front of it.

        Returns:
            (service name, service object as stored).
        """
        name = self.name(base)
        replicas = self.settings.nginx_replicas
        self._create(
            nginx_deployment_manifest(name, self.settings.nginx_image, replicas),
            "nginx deployment",
        )
        self.note(f"✓ Created nginx deployment '{name}' with {replicas} replicas")

        try:
            self.client.wait_for_deployment_ready(
                name,
                self.namespace,
                timeout=self.ctx.run.cap(self.settings.deployment_ready_timeout),
                context=self.ctx.run,
            )
        except ReadinessTimeout as e:
            raise CheckFailure(f"Deployment {name} did not become ready: {e}") from e
        self.note(f"✓ Deployment '{name}' is ready")

        label = "" if service_type == "ClusterIP" else f"{service_type} "
        service = self._create(service_manifest(name, name, service_type), f"{label}service")
        self.note(f"✓ Created {label}service '{name}'")
        return name, service

    def cleanup(self) -> None:
        """Delete every fixture this session created. Best effort."""
        if not self._fixtures:
            return
        failed = 0
        for kind, name in reversed(self._fixtures):
            try:
                self.client.delete(kind, name, self.namespace)
            except ClusterError as e:
                failed += 1
                logger.debug("Cleanup of %s/%s failed: %s", kind, name, e)
        if failed:
            self.note(f"WARNING: {failed} test resources could not be deleted")
        else:
            self.note(f"✓ Cleaned up {len(self._fixtures)} test resources")
        self._fixtures.clear()

    # ── Probes ──────────────────────────────────────────────────

    def exec(self, pod: str, command: list[str]) -> ExecResult:
        self.ctx.run.check()
        result = self.client.exec_in_pod(
            pod,
            self.namespace,
            command,
            container=NETSHOOT_CONTAINER,
            timeout=self.ctx.run.cap(self.settings.exec_timeout),
            context=self.ctx.run,
        )
        self.ctx.run.check()
        return result

    def http_probe(self, pod: str, target: str, label: str = "HTTP") -> tuple[bool, str]:
        """curl ``http://<target>`` from ``pod`` and classify the status.

        Raises:
            CheckFailure: curl itself failed to run or connect.
        """
        command = ["curl", "-s", "-o", "/dev/null", "-w", "%{http_code}", f"http://{target}"]
        result = self.exec(pod, command)
        status = result.stdout.strip()
        # curl exits non-zero only on transport errors (no -f)
        if not result.ok:
            self.note(f"✗ {label} connectivity failed: {result.output.strip()}")
            raise CheckFailure(f"{label} connectivity failed")

        ok, description = evaluate_http_status(status)
        if ok:
            self.note(f"✓ {label} connectivity successful - Status: {status}")
            self.note(f"  curl -s -o /dev/null -w \"%{{http_code}}\" http://{target}")
        else:
            self.note(f"✗ {label} connectivity issue - {description}")
        return ok, description


class NetworkCheck(Check):
    """Template for checks that create fixtures and probe through them.

    Subclasses implement ``probe`` returning ``(success, message)``.
    CheckFailure, RunCancelled and ClusterError become failed results
    carrying the details gathered so far; fixtures are always removed.
    """

    @abstractmethod
    def probe(self, session: ProbeSession, config: TestConfig) -> tuple[bool, str]:
        """Exercise the path and return (success, message)."""

    def run(self, ctx: CheckContext, config: TestConfig | None = None) -> TestResult:
        session = ProbeSession(ctx)
        try:
            success, message = self.probe(session, config or TestConfig())
        except CheckFailure as e:
            success, message = False, str(e)
        except RunCancelled as e:
            session.note(f"✗ {e}")
            success, message = False, f"{self.display_name} interrupted: {e}"
        except ClusterError as e:
            session.note(f"✗ Cluster error: {e}")
            success, message = False, f"Cluster error during {self.display_name}: {e}"
        finally:
            session.cleanup()

        return TestResult(success=success, message=message, details=tuple(session.details))
