"""
Tests for the connectivity checks, run against the in-memory cluster.
"""

import pytest

from k8s_diagnostic.adapters.base import ClusterError, ExecResult
from k8s_diagnostic.adapters.mock import MockClusterClient
from k8s_diagnostic.core.context import RunContext
from k8s_diagnostic.core.engine.check import CheckContext
from k8s_diagnostic.core.models.result import TestConfig
from k8s_diagnostic.core.services.net_common import (
    evaluate_http_status,
    extract_ping_latency,
    node_internal_ip,
    ping_packet_loss,
    worker_nodes,
)
from k8s_diagnostic.core.services.net_dns import DNSCheck
from k8s_diagnostic.core.services.net_pod import PodToPodCheck
from k8s_diagnostic.core.services.net_service import (
    CrossNodeServiceCheck,
    LoadBalancerCheck,
    NodePortCheck,
    ServiceToPodCheck,
)

NS = "diagnostic-test"


def _ctx_for(client, settings, run=None) -> CheckContext:
    return CheckContext(
        client=client, namespace=NS, run=run or RunContext(), settings=settings, run_id="abc123",
    )


# ═══════════════════════════════════════════════════════════════════
#  Parsers (pure logic)
# ═══════════════════════════════════════════════════════════════════


class TestHttpStatus:
    @pytest.mark.parametrize("code, ok, text", [
        ("200", True, "Success - HTTP 200"),
        ("204", True, "Success - HTTP 204"),
        ("301", False, "Redirect - HTTP 301 (may need to follow redirects)"),
        ("404", False, "Client Error - HTTP 404"),
        ("503", False, "Server Error - HTTP 503"),
        ("000", False, "Unknown status code: 0"),
        ("abc", False, "Invalid status code: abc"),
    ])
    def test_classification(self, code, ok, text):
        assert evaluate_http_status(code) == (ok, text)


class TestPingParsing:
    def test_latency(self):
        out = "rtt min/avg/max/mdev = 0.346/0.466/0.635/0.122 ms"
        assert extract_ping_latency(out) == pytest.approx(0.466)

    def test_latency_absent(self):
        assert extract_ping_latency("no stats here") == 0.0

    def test_zero_loss(self):
        assert ping_packet_loss("3 packets transmitted, 3 received, 0% packet loss") == 0.0

    def test_total_loss_not_mistaken_for_zero(self):
        assert ping_packet_loss("3 packets transmitted, 0 received, 100% packet loss") == 100.0

    def test_fractional_loss(self):
        assert ping_packet_loss("33.3333% packet loss") == pytest.approx(33.3333)

    def test_missing(self):
        assert ping_packet_loss("") is None


class TestNodes:
    def test_workers_exclude_control_plane_and_master(self):
        nodes = [
            {"metadata": {"name": "cp", "labels": {"node-role.kubernetes.io/control-plane": ""}}},
            {"metadata": {"name": "old", "labels": {"node-role.kubernetes.io/master": ""}}},
            {"metadata": {"name": "w1", "labels": {"kubernetes.io/hostname": "w1"}}},
            {"metadata": {"name": "w2"}},
        ]
        assert worker_nodes(nodes) == ["w1", "w2"]

    def test_internal_ip_preferred(self):
        node = {"status": {"addresses": [
            {"type": "ExternalIP", "address": "1.2.3.4"},
            {"type": "InternalIP", "address": "10.0.0.1"},
        ]}}
        assert node_internal_ip(node) == "10.0.0.1"

    def test_no_address(self):
        assert node_internal_ip({}) == ""


# ═══════════════════════════════════════════════════════════════════
#  Pod-to-pod
# ═══════════════════════════════════════════════════════════════════


class TestPodToPod:
    def test_same_node_passes(self, check_ctx, cluster):
        result = PodToPodCheck().run(check_ctx, TestConfig(placement="same-node"))
        assert result.success
        assert result.message == "Pod connectivity test passed (same-node) - avg latency: 0.47ms"
        pods = cluster.calls("create")
        assert [c[2] for c in pods] == ["p2p-same-a-abc123", "p2p-same-b-abc123"]

    def test_same_node_pins_both_pods_to_first_worker(self, check_ctx):
        result = PodToPodCheck().run(check_ctx, TestConfig(placement="same-node"))
        assert "✓ Created pod p2p-same-a-abc123 on node worker-1" in result.details
        assert "✓ Created pod p2p-same-b-abc123 on node worker-1" in result.details

    def test_cross_node_passes(self, check_ctx):
        result = PodToPodCheck().run(check_ctx, TestConfig(placement="cross-node"))
        assert result.success
        assert "(cross-node)" in result.message
        assert any("on node worker-2" in d for d in result.details)

    def test_both_default(self, check_ctx):
        result = PodToPodCheck().run(check_ctx)
        assert result.success
        assert result.message == "Both same-node and cross-node connectivity tests passed"
        assert "=== Same-Node Connectivity Test ===" in result.details
        assert "=== Cross-Node Connectivity Test ===" in result.details

    def test_both_with_single_worker(self, settings):
        client = MockClusterClient(workers=["only"])
        client.add_namespace(NS)
        result = PodToPodCheck().run(_ctx_for(client, settings))
        assert not result.success
        assert result.message == "Same-node connectivity passed, cross-node failed"

    def test_cross_node_needs_two_workers(self, settings):
        client = MockClusterClient(workers=["only"])
        client.add_namespace(NS)
        result = PodToPodCheck().run(_ctx_for(client, settings), TestConfig(placement="cross-node"))
        assert not result.success
        assert "found 1" in result.message
        assert client.calls("create") == []

    def test_packet_loss_fails(self, check_ctx, cluster):
        cluster.set_exec_response("ping", ExecResult(
            returncode=1, stdout="3 packets transmitted, 0 received, 100% packet loss",
        ))
        result = PodToPodCheck().run(check_ctx, TestConfig(placement="same-node"))
        assert not result.success
        assert result.message == "Pod connectivity test failed (same-node) - unreliable ping"

    def test_ping_error_fails(self, check_ctx, cluster):
        cluster.set_exec_response("ping", ExecResult(returncode=2, stderr="exec failed"))
        result = PodToPodCheck().run(check_ctx, TestConfig(placement="same-node"))
        assert not result.success
        assert result.message.endswith("ping failed")
        assert any("STDERR: exec failed" in d for d in result.details)

    def test_fixtures_removed(self, check_ctx, cluster):
        PodToPodCheck().run(check_ctx)
        assert cluster.objects("pod", NS) == []


# ═══════════════════════════════════════════════════════════════════
#  Service checks
# ═══════════════════════════════════════════════════════════════════


class TestServiceToPod:
    def test_passes(self, check_ctx, cluster):
        result = ServiceToPodCheck().run(check_ctx)
        assert result.success
        assert result.message == "Service to Pod connectivity test passed - HTTP connectivity working"
        assert any("2 ready endpoints" in d for d in result.details)
        assert any(d.startswith("✓ Service IP is 10.96.0.") for d in result.details)

    def test_non_2xx_fails(self, check_ctx, cluster):
        cluster.set_exec_response("curl", ExecResult(returncode=0, stdout="404"))
        result = ServiceToPodCheck().run(check_ctx)
        assert not result.success
        assert result.message == (
            "Service HTTP connectivity failed with status: Client Error - HTTP 404"
        )

    def test_transport_error_fails(self, check_ctx, cluster):
        cluster.set_exec_response("curl", ExecResult(returncode=7, stdout="000"))
        result = ServiceToPodCheck().run(check_ctx)
        assert not result.success
        assert result.message == "Service HTTP connectivity failed"

    def test_create_failure_reported(self, check_ctx, cluster):
        cluster.set_failure("create_deployment", ClusterError("quota exceeded"))
        result = ServiceToPodCheck().run(check_ctx)
        assert not result.success
        assert "Failed to create nginx deployment svc-nginx-abc123" in result.message
        assert "quota exceeded" in result.message

    def test_all_fixtures_removed(self, check_ctx, cluster):
        ServiceToPodCheck().run(check_ctx)
        assert cluster.objects("pod", NS) == []
        assert cluster.objects("deployment", NS) == []
        assert cluster.objects("service", NS) == []

    def test_cleanup_failure_is_only_a_detail(self, check_ctx, cluster):
        cluster.set_failure("delete")
        result = ServiceToPodCheck().run(check_ctx)
        assert result.success
        assert any(d.startswith("WARNING: 3 test resources") for d in result.details)


class TestCrossNodeService:
    def test_client_on_second_worker(self, check_ctx, cluster):
        result = CrossNodeServiceCheck().run(check_ctx)
        assert result.success
        assert any("xnode-client-abc123 on node worker-2" in d for d in result.details)

    def test_needs_two_workers(self, settings):
        client = MockClusterClient(workers=["only"])
        client.add_namespace(NS)
        result = CrossNodeServiceCheck().run(_ctx_for(client, settings))
        assert not result.success
        assert result.message == (
            "Cross-node service test requires at least 2 worker nodes, found 1"
        )


class TestNodePort:
    def test_curls_node_ip_and_port(self, check_ctx, cluster):
        result = NodePortCheck().run(check_ctx)
        assert result.success
        curls = [c for c in cluster.calls("exec_in_pod") if "curl" in c]
        assert curls
        assert curls[0][-1].startswith("http://172.18.0.9:30")
        assert any(d.startswith("✓ NodePort assigned: 30") for d in result.details)

    def test_no_workers(self, settings):
        client = MockClusterClient(workers=[])
        client.add_namespace(NS)
        result = NodePortCheck().run(_ctx_for(client, settings))
        assert not result.success
        assert "at least 1 worker node" in result.message

    def test_server_error(self, check_ctx, cluster):
        cluster.set_exec_response("curl", ExecResult(returncode=0, stdout="502"))
        result = NodePortCheck().run(check_ctx)
        assert not result.success
        assert result.message == "NodePort connectivity failed with status: Server Error - HTTP 502"


class TestLoadBalancer:
    def test_without_external_ip(self, check_ctx):
        result = LoadBalancerCheck().run(check_ctx)
        assert result.success
        assert any("No external IP assigned" in d for d in result.details)

    def test_with_external_ip(self, check_ctx, cluster):
        cluster.lb_ingress_ip = "203.0.113.10"
        result = LoadBalancerCheck().run(check_ctx)
        assert result.success
        assert "✓ External IP assigned: 203.0.113.10" in result.details


# ═══════════════════════════════════════════════════════════════════
#  DNS
# ═══════════════════════════════════════════════════════════════════


class TestDNS:
    def test_passes(self, check_ctx, cluster):
        result = DNSCheck().run(check_ctx)
        assert result.success
        fqdn = "dns-nginx-abc123.diagnostic-test.svc.cluster.local"
        assert fqdn in result.message
        lookups = [c[-1] for c in cluster.calls("exec_in_pod") if "nslookup" in c]
        assert lookups == [fqdn, "dns-nginx-abc123"]

    def test_fqdn_failure_fails(self, check_ctx, cluster):
        cluster.set_exec_response("nslookup", ExecResult(
            returncode=1, stdout="** server can't find x: NXDOMAIN",
        ))
        result = DNSCheck().run(check_ctx)
        assert not result.success
        assert result.message.startswith("DNS resolution failed for ")

    def test_short_name_failure_is_only_a_detail(self, check_ctx, cluster):
        cluster.set_exec_response(
            "nslookup",
            ExecResult(returncode=1, stdout="** server can't find"),
            target="nslookup dns-nginx-abc123",
        )
        cluster.set_exec_response(
            "nslookup",
            ExecResult(returncode=0, stdout="Name: ok\nAddress: 10.96.0.9"),
            target="svc.cluster.local",
        )
        result = DNSCheck().run(check_ctx)
        assert result.success
        assert any("did not resolve" in d for d in result.details)

    def test_custom_cluster_domain(self, cluster, settings):
        custom = settings.model_copy(update={"cluster_domain": "corp.internal"})
        result = DNSCheck().run(_ctx_for(cluster, custom))
        assert result.message.endswith("svc.corp.internal resolved")

    def test_client_never_ready(self, cluster, settings):
        fast = settings.model_copy(update={"pod_ready_timeout": 0.05})
        cluster.set_unready("dns-client")
        result = DNSCheck().run(_ctx_for(cluster, fast))
        assert not result.success
        assert result.message.startswith("Pod dns-client-abc123 did not become ready")
        assert cluster.objects("pod", NS) == []


# ═══════════════════════════════════════════════════════════════════
#  Cancellation
# ═══════════════════════════════════════════════════════════════════


class TestCancellation:
    def test_cancelled_context_fails_fast(self, cluster, settings):
        run = RunContext()
        run.cancel("interrupted by SIGINT")
        result = ServiceToPodCheck().run(_ctx_for(cluster, settings, run))
        assert not result.success
        assert "interrupted" in result.message
        assert cluster.calls("create") == []

    def test_deadline_during_wait(self, cluster, settings):
        cluster.set_unready("svc-client")
        run = RunContext(timeout=0.05)
        result = ServiceToPodCheck().run(_ctx_for(cluster, settings, run))
        assert not result.success
        assert cluster.objects("deployment", NS) == []

    def test_signal_during_exec_interrupts_probe(self, cluster, settings):
        run = RunContext()

        def _curl_interrupted(command):
            run.cancel("interrupted by SIGTERM")
            return ExecResult(returncode=0, stdout="200")

        cluster.set_exec_response("curl", _curl_interrupted)
        result = ServiceToPodCheck().run(_ctx_for(cluster, settings, run))

        assert not result.success
        assert "interrupted by SIGTERM" in result.message
        assert cluster.objects("pod", NS) == []
        assert cluster.objects("service", NS) == []
