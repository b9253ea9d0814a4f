"""
Namespace lifecycle — the shared test namespace for a run.

Setup is idempotent: a namespace that already exists (or appears
concurrently) is reused. Teardown is a single deletion request that
does not wait for termination; a failed request is a warning, never
an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from k8s_diagnostic.adapters.base import AlreadyExistsError, ClusterClient, ClusterError

logger = logging.getLogger(__name__)


class NamespaceError(Exception):
    """The test namespace could not be ensured (setup-fatal)."""


@dataclass
class CleanupOutcome:
    """Result of a namespace deletion request."""

    requested: bool = False
    warning: str = ""

    @property
    def ok(self) -> bool:
        return self.requested and not self.warning


def ensure_namespace(client: ClusterClient, namespace: str) -> bool:
    """Make sure ``namespace`` exists.

    Returns:
        True if it was created now, False if it already existed.

    Raises:
        NamespaceError: The namespace could not be read or created.
    """
    try:
        if client.get_namespace(namespace) is not None:
            logger.info("Using existing namespace %s", namespace)
            return False
        client.create_namespace(namespace)
    except AlreadyExistsError:
        logger.info("Namespace %s already exists", namespace)
        return False
    except ClusterError as e:
        raise NamespaceError(f"Failed to ensure namespace {namespace}: {e}") from e

    logger.info("Created namespace %s", namespace)
    return True


def cleanup_namespace(client: ClusterClient, namespace: str) -> CleanupOutcome:
    """Request deletion of the namespace. Never raises."""
    try:
        client.delete_namespace(namespace)
    except ClusterError as e:
        warning = f"Failed to clean up namespace {namespace}: {e}"
        logger.warning(warning)
        return CleanupOutcome(requested=True, warning=warning)

    logger.info("Requested deletion of namespace %s", namespace)
    return CleanupOutcome(requested=True)


def should_cleanup(test_all: bool, keep_namespace: bool, force: bool = False) -> bool:
    """Cleanup happens for full runs (or when forced) unless retention was asked for."""
    return (test_all or force) and not keep_namespace
