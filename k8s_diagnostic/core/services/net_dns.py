"""DNS resolution check — cluster DNS must resolve a service FQDN."""

from __future__ import annotations

import logging

from k8s_diagnostic.adapters.base import ExecResult
from k8s_diagnostic.core.models.result import TestConfig
from k8s_diagnostic.core.services.net_common import NetworkCheck, ProbeSession

logger = logging.getLogger(__name__)

_LOOKUP_FAILURE_MARKERS = ("can't find", "nxdomain", "no answer", "connection timed out")


def lookup_succeeded(result: ExecResult) -> bool:
    """Whether an nslookup run resolved its name."""
    if not result.ok:
        return False
    lowered = result.stdout.lower()
    return not any(marker in lowered for marker in _LOOKUP_FAILURE_MARKERS)


class DNSCheck(NetworkCheck):
    """nslookup of ``<svc>.<ns>.svc.<cluster domain>`` from a client pod.

    The fully-qualified lookup decides the outcome; the short-name
    lookup (which depends on the pod's search path) is only reported.
    """

    id = "dns"
    display_name = "DNS Resolution"
    description = "Resolve a test service's cluster DNS name from inside a pod"

    def probe(self, session: ProbeSession, config: TestConfig) -> tuple[bool, str]:
        name, _service = session.create_backend("dns-nginx")
        pod = session.create_client_pod("dns-client")
        session.wait_pod(pod)

        fqdn = f"{name}.{session.namespace}.svc.{session.settings.cluster_domain}"
        fqdn_result = session.exec(pod, ["nslookup", fqdn])
        fqdn_ok = lookup_succeeded(fqdn_result)
        if fqdn_ok:
            session.note(f"✓ Service FQDN DNS resolution successful ({fqdn})")
            session.note(f"  Result: {fqdn_result.stdout.strip()}")
        else:
            session.note(f"✗ Service FQDN DNS resolution failed ({fqdn})")
            session.note(f"  Output: {fqdn_result.output.strip()}")

        short_result = session.exec(pod, ["nslookup", name])
        if lookup_succeeded(short_result):
            session.note(f"✓ Short name '{name}' resolves via search path")
        else:
            session.note(f"ℹ️ Short name '{name}' did not resolve (search path not applied)")

        if not fqdn_ok:
            return False, f"DNS resolution failed for {fqdn}"
        return True, f"DNS resolution test passed - {fqdn} resolved"
