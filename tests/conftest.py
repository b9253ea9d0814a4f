"""
Shared test fixtures and configuration.
"""

import os
from pathlib import Path

import pytest

from k8s_diagnostic.adapters.mock import MockClusterClient
from k8s_diagnostic.core.config.loader import DiagnosticConfig
from k8s_diagnostic.core.context import RunContext
from k8s_diagnostic.core.engine.check import CheckContext


@pytest.fixture
def cluster() -> MockClusterClient:
    """A two-worker in-memory cluster with the test namespace present."""
    client = MockClusterClient()
    client.add_namespace("diagnostic-test")
    return client


@pytest.fixture
def settings(tmp_path: Path) -> DiagnosticConfig:
    """Fast-polling settings writing results under tmp_path."""
    return DiagnosticConfig(
        results_dir=str(tmp_path / "results"),
        pod_ready_timeout=1,
        deployment_ready_timeout=1,
        poll_interval=0,
        log_to_file=False,
    )


@pytest.fixture
def check_ctx(cluster: MockClusterClient, settings: DiagnosticConfig) -> CheckContext:
    return CheckContext(
        client=cluster,
        namespace="diagnostic-test",
        run=RunContext(),
        settings=settings,
        run_id="abc123",
    )


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path: Path):
    """Keep the developer's config file and env vars out of tests."""
    for key in list(os.environ):
        if key.startswith("K8S_DIAGNOSTIC_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
