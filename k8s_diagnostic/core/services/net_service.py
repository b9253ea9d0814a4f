"""
Service connectivity checks — HTTP through ClusterIP, NodePort and
LoadBalancer services backed by an nginx deployment.
"""

from __future__ import annotations

import logging

from k8s_diagnostic.adapters.base import ClusterError
from k8s_diagnostic.core.models.result import TestConfig
from k8s_diagnostic.core.services.net_common import (
    CheckFailure,
    NetworkCheck,
    ProbeSession,
)

logger = logging.getLogger(__name__)


def _cluster_ip(session: ProbeSession, name: str, service: dict) -> str:
    """ClusterIP of a created service, re-reading it if not yet set."""
    ip = service.get("spec", {}).get("clusterIP", "")
    if not ip:
        try:
            ip = session.client.get("service", name, session.namespace).get(
                "spec", {}).get("clusterIP", "")
        except ClusterError as e:
            raise CheckFailure(f"Failed to get service IP: {e}") from e
    if not ip:
        raise CheckFailure(f"Service {name} has no ClusterIP assigned")
    return ip


def _note_endpoints(session: ProbeSession, name: str) -> None:
    try:
        count = session.client.ready_endpoint_count(name, session.namespace)
    except ClusterError as e:
        session.note(f"WARNING: could not read endpoints for '{name}': {e}")
        return
    session.note(f"✓ Service '{name}' has {count} ready endpoints")


class ServiceToPodCheck(NetworkCheck):
    """HTTP from a client pod to an nginx ClusterIP service."""

    id = "service-to-pod"
    display_name = "Service to Pod Connectivity"
    description = "HTTP request from a pod to a ClusterIP service backed by nginx pods"

    # Fixture base names; the run id is appended
    backend = "svc-nginx"
    client = "svc-client"
    probe_label = "Service HTTP"
    success_message = "Service to Pod connectivity test passed - HTTP connectivity working"

    def client_node(self, session: ProbeSession) -> str:
        """Node to pin the client pod to ("" lets the scheduler decide)."""
        return ""

    def probe(self, session: ProbeSession, config: TestConfig) -> tuple[bool, str]:
        node = self.client_node(session)
        name, service = session.create_backend(self.backend)
        ip = _cluster_ip(session, name, service)
        session.note(f"✓ Service IP is {ip}")
        _note_endpoints(session, name)

        pod = session.create_client_pod(self.client, node)
        session.wait_pod(pod)

        ok, description = session.http_probe(pod, name, label=self.probe_label)
        if not ok:
            return False, f"{self.probe_label} connectivity failed with status: {description}"
        return True, self.success_message


class CrossNodeServiceCheck(ServiceToPodCheck):
    """As service-to-pod, with the client pinned to the second worker."""

    id = "cross-node"
    display_name = "Cross-Node Service Connectivity"
    description = "HTTP request to a service from a pod pinned to a different worker node"

    backend = "xnode-nginx"
    client = "xnode-client"
    probe_label = "Cross-node HTTP"
    success_message = (
        "Cross-node service connectivity test passed - HTTP connectivity working across nodes"
    )

    def client_node(self, session: ProbeSession) -> str:
        workers = session.workers()
        if len(workers) < 2:
            raise CheckFailure(
                f"Cross-node service test requires at least 2 worker nodes, found {len(workers)}"
            )
        session.note(f"✓ Found {len(workers)} worker nodes for cross-node testing")
        session.note(f"✓ Client pod will run on node {workers[1]}")
        return workers[1]


class NodePortCheck(NetworkCheck):
    """HTTP to ``<worker InternalIP>:<nodePort>`` from a client pod."""

    id = "nodeport"
    display_name = "NodePort Service Connectivity"
    description = "HTTP request through a NodePort on a worker node's internal IP"

    def probe(self, session: ProbeSession, config: TestConfig) -> tuple[bool, str]:
        workers = session.workers()
        if not workers:
            raise CheckFailure("NodePort test requires at least 1 worker node, found 0")
        session.note(f"✓ Found {len(workers)} worker nodes for NodePort testing")

        name, service = session.create_backend("np-nginx", "NodePort")
        ports = service.get("spec", {}).get("ports", []) or []
        node_port = ports[0].get("nodePort") if ports else None
        if not node_port:
            raise CheckFailure(f"Service {name} has no NodePort assigned")
        session.note(f"✓ NodePort assigned: {node_port}")

        node_ip = session.node_ip(workers[0])
        if not node_ip:
            raise CheckFailure("Could not determine node IP address")
        session.note(f"✓ Found node IP for NodePort access: {node_ip}")

        pod = session.create_client_pod("np-client")
        session.wait_pod(pod)

        ok, description = session.http_probe(pod, f"{node_ip}:{node_port}", label="NodePort HTTP")
        if not ok:
            return False, f"NodePort connectivity failed with status: {description}"
        return True, (
            "NodePort service connectivity test passed - HTTP connectivity working through node port"
        )


class LoadBalancerCheck(NetworkCheck):
    """HTTP to a LoadBalancer service by name.

    An external ingress IP is reported when the cluster assigns one;
    local clusters usually do not, so the probe goes through the
    service name either way.
    """

    id = "loadbalancer"
    display_name = "LoadBalancer Service Connectivity"
    description = "HTTP request to a LoadBalancer service (external IP reported when assigned)"

    def probe(self, session: ProbeSession, config: TestConfig) -> tuple[bool, str]:
        workers = session.workers()
        if not workers:
            raise CheckFailure("LoadBalancer test requires at least 1 worker node, found 0")
        session.note(f"✓ Found {len(workers)} worker nodes for LoadBalancer testing")

        name, service = session.create_backend("lb-nginx", "LoadBalancer")
        session.note(f"✓ Service ClusterIP: {_cluster_ip(session, name, service)}")

        ingress = service.get("status", {}).get("loadBalancer", {}).get("ingress", []) or []
        external = next(
            (entry.get("ip") or entry.get("hostname") for entry in ingress
             if entry.get("ip") or entry.get("hostname")),
            "",
        )
        if external:
            session.note(f"✓ External IP assigned: {external}")
        else:
            session.note("ℹ️ No external IP assigned (expected in local environments)")

        pod = session.create_client_pod("lb-client")
        session.wait_pod(pod)
        session.note("ℹ️ Testing connectivity via the service name")

        ok, description = session.http_probe(pod, name, label="LoadBalancer HTTP")
        if not ok:
            return False, f"LoadBalancer connectivity failed with status: {description}"
        return True, (
            "LoadBalancer service connectivity test passed - HTTP connectivity working via service"
        )
