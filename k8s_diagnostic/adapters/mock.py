"""
Mock cluster client — in-memory test double for all cluster operations.

Simulates just enough of the Kubernetes API for every check to run
end-to-end without a cluster: pods become Ready immediately, services
get ClusterIPs/NodePorts and Endpoints, and exec commands return
canned healthy output. Configurable per operation and per exec
program to inject failures.
"""

from __future__ import annotations

import copy
import itertools
from collections.abc import Callable

from k8s_diagnostic.adapters.base import (
    AlreadyExistsError,
    ClusterClient,
    ClusterError,
    ExecResult,
    NotFoundError,
)
from k8s_diagnostic.core.context import RunContext

_KIND_ALIASES = {
    "pod": "pod", "pods": "pod",
    "deployment": "deployment", "deployments": "deployment", "deploy": "deployment",
    "service": "service", "services": "service", "svc": "service",
    "endpoints": "endpoints", "ep": "endpoints",
}

HEALTHY_PING = (
    "PING 10.244.1.5 (10.244.1.5) 56(84) bytes of data.\n"
    "64 bytes from 10.244.1.5: icmp_seq=1 ttl=62 time=0.635 ms\n"
    "64 bytes from 10.244.1.5: icmp_seq=2 ttl=62 time=0.417 ms\n"
    "64 bytes from 10.244.1.5: icmp_seq=3 ttl=62 time=0.346 ms\n"
    "\n"
    "--- 10.244.1.5 ping statistics ---\n"
    "3 packets transmitted, 3 received, 0% packet loss, time 2003ms\n"
    "rtt min/avg/max/mdev = 0.346/0.466/0.635/0.122 ms\n"
)


def _kind(kind: str) -> str:
    return _KIND_ALIASES.get(kind.lower(), kind.lower())


class MockClusterClient(ClusterClient):
    """In-memory cluster for tests.

    By default every operation succeeds. Failures are configured with
    ``set_failure`` (per client method) and ``set_exec_response`` (per
    program run inside a pod).
    """

    def __init__(
        self,
        workers: list[str] | None = None,
        control_planes: list[str] | None = None,
        available: bool = True,
        poll_interval: float = 0.0,
    ):
        super().__init__(poll_interval=poll_interval)
        self._available = available
        self._nodes = [
            self._make_node(name, control_plane=True)
            for name in (control_planes if control_planes is not None else ["control-plane"])
        ] + [
            self._make_node(name, control_plane=False)
            for name in (workers if workers is not None else ["worker-1", "worker-2"])
        ]
        self._namespaces: dict[str, dict] = {}
        self._objects: dict[tuple[str, str, str], dict] = {}
        self._failures: dict[str, ClusterError] = {}
        self._exec_responses: list[tuple[str, str | None, ExecResult]] = []
        self._unready: set[str] = set()
        self._call_log: list[tuple[str, ...]] = []
        self._ips = itertools.count(5)
        self._ports = itertools.count(30080)
        self.lb_ingress_ip = ""

    @property
    def name(self) -> str:
        return "mock"

    @property
    def call_log(self) -> list[tuple[str, ...]]:
        """Every operation received, as (method, *key args)."""
        return self._call_log

    def is_available(self) -> bool:
        return self._available

    # ── Configuration ───────────────────────────────────────────

    def set_failure(self, operation: str, error: ClusterError | None = None) -> None:
        """Make a client method raise (e.g. ``"create_namespace"``)."""
        self._failures[operation] = error or ClusterError(f"mock failure: {operation}")

    def set_exec_response(
        self,
        program: str,
        result: ExecResult | Callable[[list[str]], ExecResult],
        target: str | None = None,
    ) -> None:
        """Return ``result`` for exec of ``program`` (optionally only when
        ``target`` appears in the command). A callable is invoked with
        the command each time."""
        self._exec_responses.append((program, target, result))

    def set_unready(self, name_prefix: str) -> None:
        """Pods whose name starts with the prefix never become Ready."""
        self._unready.add(name_prefix)

    def add_namespace(self, name: str) -> None:
        """Seed a pre-existing namespace."""
        self._namespaces[name] = {"metadata": {"name": name}, "status": {"phase": "Active"}}

    def objects(self, kind: str, namespace: str) -> list[str]:
        """Names of stored objects of a kind in a namespace."""
        k = _kind(kind)
        return [name for (kk, ns, name) in self._objects if kk == k and ns == namespace]

    def calls(self, method: str) -> list[tuple[str, ...]]:
        return [c for c in self._call_log if c[0] == method]

    def reset(self) -> None:
        """Clear call log and configured failures."""
        self._call_log.clear()
        self._failures.clear()
        self._exec_responses.clear()
        self._unready.clear()

    def _maybe_fail(self, operation: str) -> None:
        if operation in self._failures:
            raise self._failures[operation]

    # ── Namespaces ──────────────────────────────────────────────

    def get_namespace(self, name: str) -> dict | None:
        self._call_log.append(("get_namespace", name))
        self._maybe_fail("get_namespace")
        ns = self._namespaces.get(name)
        return copy.deepcopy(ns) if ns else None

    def create_namespace(self, name: str) -> dict:
        self._call_log.append(("create_namespace", name))
        self._maybe_fail("create_namespace")
        if name in self._namespaces:
            raise AlreadyExistsError(f'namespaces "{name}" already exists')
        self.add_namespace(name)
        return copy.deepcopy(self._namespaces[name])

    def delete_namespace(self, name: str) -> None:
        self._call_log.append(("delete_namespace", name))
        self._maybe_fail("delete_namespace")
        self._namespaces.pop(name, None)
        for key in [k for k in self._objects if k[1] == name]:
            del self._objects[key]

    # ── Objects ─────────────────────────────────────────────────

    def list_nodes(self) -> list[dict]:
        self._call_log.append(("list_nodes",))
        self._maybe_fail("list_nodes")
        return copy.deepcopy(self._nodes)

    def get(self, kind: str, name: str, namespace: str) -> dict:
        self._call_log.append(("get", _kind(kind), name, namespace))
        self._maybe_fail("get")
        obj = self._objects.get((_kind(kind), namespace, name))
        if obj is None:
            raise NotFoundError(f'{_kind(kind)}s "{name}" not found')
        return copy.deepcopy(obj)

    def create(self, manifest: dict, namespace: str) -> dict:
        kind = _kind(manifest.get("kind", ""))
        name = manifest.get("metadata", {}).get("name", "")
        self._call_log.append(("create", kind, name, namespace))
        self._maybe_fail("create")
        self._maybe_fail(f"create_{kind}")

        if namespace not in self._namespaces:
            raise NotFoundError(f'namespaces "{namespace}" not found')
        if (kind, namespace, name) in self._objects:
            raise AlreadyExistsError(f'{kind}s "{name}" already exists')

        obj = copy.deepcopy(manifest)
        obj.setdefault("metadata", {})["namespace"] = namespace
        if kind == "pod":
            self._fill_pod(obj)
        elif kind == "deployment":
            replicas = obj.get("spec", {}).get("replicas", 1)
            obj["status"] = {"replicas": replicas, "readyReplicas": replicas}
        elif kind == "service":
            self._fill_service(obj, namespace)

        self._objects[(kind, namespace, name)] = obj
        return copy.deepcopy(obj)

    def delete(self, kind: str, name: str, namespace: str) -> None:
        self._call_log.append(("delete", _kind(kind), name, namespace))
        self._maybe_fail("delete")
        self._objects.pop((_kind(kind), namespace, name), None)
        if _kind(kind) == "service":
            self._objects.pop(("endpoints", namespace, name), None)

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
        self._call_log.append(("exec_in_pod", pod, namespace, *command))
        self._maybe_fail("exec_in_pod")
        if ("pod", namespace, pod) not in self._objects:
            raise NotFoundError(f'pods "{pod}" not found')

        result = self._exec_result(command)
        # A cancel fired while the command ran surfaces as it would from kubectl
        if context is not None:
            context.check()
        return result

    def _exec_result(self, command: list[str]) -> ExecResult:
        program = command[0] if command else ""
        for configured, target, result in reversed(self._exec_responses):
            if configured == program and (target is None or target in " ".join(command)):
                return result(command) if callable(result) else result

        if program == "ping":
            return ExecResult(returncode=0, stdout=HEALTHY_PING)
        if program == "curl":
            return ExecResult(returncode=0, stdout="200")
        if program == "nslookup":
            target = command[-1]
            return ExecResult(
                returncode=0,
                stdout=(
                    "Server:\t\t10.96.0.10\nAddress:\t10.96.0.10#53\n\n"
                    f"Name:\t{target}\nAddress: 10.96.0.20\n"
                ),
            )
        return ExecResult(returncode=0)

    # ── Simulation helpers ──────────────────────────────────────

    def _make_node(self, name: str, control_plane: bool) -> dict:
        labels = {"kubernetes.io/hostname": name}
        if control_plane:
            labels["node-role.kubernetes.io/control-plane"] = ""
        return {
            "metadata": {"name": name, "labels": labels},
            "status": {
                "addresses": [
                    {"type": "Hostname", "address": name},
                    {"type": "InternalIP", "address": f"172.18.0.{len(name) + 1}"},
                ],
            },
        }

    def _fill_pod(self, obj: dict) -> None:
        name = obj["metadata"]["name"]
        spec = obj.setdefault("spec", {})
        if not spec.get("nodeName"):
            workers = [n for n in self._nodes if "node-role.kubernetes.io/control-plane"
                       not in n["metadata"]["labels"]]
            spec["nodeName"] = workers[0]["metadata"]["name"] if workers else ""
        ready = not any(name.startswith(prefix) for prefix in self._unready)
        obj["status"] = {
            "phase": "Running" if ready else "Pending",
            "podIP": f"10.244.1.{next(self._ips)}" if ready else "",
            "conditions": [{"type": "Ready", "status": "True" if ready else "False"}],
        }

    def _fill_service(self, obj: dict, namespace: str) -> None:
        spec = obj.setdefault("spec", {})
        spec["clusterIP"] = f"10.96.0.{next(self._ips)}"
        service_type = spec.get("type", "ClusterIP")
        if service_type in ("NodePort", "LoadBalancer"):
            for port in spec.get("ports", []):
                port["nodePort"] = next(self._ports)
        ingress = []
        if service_type == "LoadBalancer" and self.lb_ingress_ip:
            ingress = [{"ip": self.lb_ingress_ip}]
        obj["status"] = {"loadBalancer": {"ingress": ingress}}

        app = spec.get("selector", {}).get("app", "")
        backing = self._objects.get(("deployment", namespace, app), {})
        ready = backing.get("status", {}).get("readyReplicas", 0)
        addresses = [{"ip": f"10.244.2.{i + 1}"} for i in range(ready)]
        name = obj["metadata"]["name"]
        self._objects[("endpoints", namespace, name)] = {
            "metadata": {"name": name, "namespace": namespace},
            "subsets": [{"addresses": addresses}] if addresses else [],
        }
