"""Pod-to-pod ICMP connectivity check."""

from __future__ import annotations

import logging

from k8s_diagnostic.core.models.result import TestConfig
from k8s_diagnostic.core.services.net_common import (
    CheckFailure,
    NetworkCheck,
    ProbeSession,
    extract_ping_latency,
    ping_packet_loss,
)

logger = logging.getLogger(__name__)


class PodToPodCheck(NetworkCheck):
    """Ping from one netshoot pod to another.

    Placement decides where the pair is scheduled: both on the first
    worker (``same-node``), on the first two workers (``cross-node``),
    or each in turn (``both``).
    """

    id = "pod-to-pod"
    display_name = "Pod-to-Pod Connectivity"
    description = "ICMP ping between two pods on the same node and/or across nodes"

    def probe(self, session: ProbeSession, config: TestConfig) -> tuple[bool, str]:
        if config.placement == "same-node":
            return self._same_node(session)
        if config.placement == "cross-node":
            return self._cross_node(session)
        return self._both(session)

    def _both(self, session: ProbeSession) -> tuple[bool, str]:
        session.note("=== Same-Node Connectivity Test ===")
        same_ok = self._half(session, self._same_node)
        session.note("")
        session.note("=== Cross-Node Connectivity Test ===")
        cross_ok = self._half(session, self._cross_node)

        if same_ok and cross_ok:
            return True, "Both same-node and cross-node connectivity tests passed"
        if same_ok:
            return False, "Same-node connectivity passed, cross-node failed"
        if cross_ok:
            return False, "Cross-node connectivity passed, same-node failed"
        return False, "Both same-node and cross-node connectivity tests failed"

    @staticmethod
    def _half(session: ProbeSession, run) -> bool:
        try:
            ok, message = run(session)
        except CheckFailure as e:
            ok, message = False, str(e)
        session.note(f"{'✓' if ok else '✗'} {message}")
        return ok

    def _same_node(self, session: ProbeSession) -> tuple[bool, str]:
        workers = session.workers()
        if not workers:
            raise CheckFailure("Need at least 1 worker node for same-node testing")
        session.note(f"✓ Found {len(workers)} worker nodes")
        node = workers[0]
        session.note(f"✓ Selected node {node} for same-node testing")
        return self._ping_pair(session, "same-node", node, node)

    def _cross_node(self, session: ProbeSession) -> tuple[bool, str]:
        workers = session.workers()
        if len(workers) < 2:
            raise CheckFailure(
                f"Need at least 2 worker nodes for cross-node testing, found {len(workers)}"
            )
        session.note(f"✓ Found {len(workers)} worker nodes")
        return self._ping_pair(session, "cross-node", workers[0], workers[1])

    def _ping_pair(
        self, session: ProbeSession, placement: str, node_a: str, node_b: str,
    ) -> tuple[bool, str]:
        tag = "same" if placement == "same-node" else "cross"
        source = session.create_client_pod(f"p2p-{tag}-a", node_a)
        target = session.create_client_pod(f"p2p-{tag}-b", node_b)
        session.wait_pod(source)
        target_pod = session.wait_pod(target)

        target_ip = target_pod.get("status", {}).get("podIP", "")
        if not target_ip:
            raise CheckFailure(f"Failed to get IP for pod {target}")
        session.note(f"✓ Pod {target} IP: {target_ip}")

        result = session.exec(source, ["ping", "-c", "3", "-W", "3", "-i", "1", target_ip])
        if not result.ok and ping_packet_loss(result.stdout) is None:
            session.note(f"✗ ICMP ping failed (exit {result.returncode})")
            session.note(f"  Output: {result.output.strip()}")
            return False, f"Pod connectivity test failed ({placement}) - ping failed"

        loss = ping_packet_loss(result.stdout)
        if loss != 0:
            session.note(f"✗ ICMP ping failed: {result.stdout.strip()}")
            return False, f"Pod connectivity test failed ({placement}) - unreliable ping"

        latency = extract_ping_latency(result.stdout)
        session.note(f"✓ ICMP ping successful ({latency:.2f}ms avg latency)")
        message = f"Pod connectivity test passed ({placement})"
        if latency > 0:
            message += f" - avg latency: {latency:.2f}ms"
        return True, message
