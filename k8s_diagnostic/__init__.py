"""k8s-diagnostic — Kubernetes connectivity diagnostics."""

__version__ = "0.1.0"
