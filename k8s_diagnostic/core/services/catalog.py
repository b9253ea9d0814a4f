"""The built-in check catalog: registration order, groups and defaults."""

from __future__ import annotations

from k8s_diagnostic.core.engine.registry import TestRegistry
from k8s_diagnostic.core.services.net_dns import DNSCheck
from k8s_diagnostic.core.services.net_pod import PodToPodCheck
from k8s_diagnostic.core.services.net_service import (
    CrossNodeServiceCheck,
    LoadBalancerCheck,
    NodePortCheck,
    ServiceToPodCheck,
)

NETWORKING = (
    "pod-to-pod",
    "service-to-pod",
    "cross-node",
    "dns",
    "nodeport",
    "loadbalancer",
)


def default_registry() -> TestRegistry:
    """Build the registry every entry point uses."""
    return TestRegistry.build(
        [
            PodToPodCheck(),
            ServiceToPodCheck(),
            CrossNodeServiceCheck(),
            DNSCheck(),
            NodePortCheck(),
            LoadBalancerCheck(),
        ],
        groups={"networking": NETWORKING},
        default=NETWORKING,
    )
