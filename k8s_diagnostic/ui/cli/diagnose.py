"""
CLI commands for running diagnostics.

Thin wrappers over ``k8s_diagnostic.core.use_cases.diagnose``.
"""

from __future__ import annotations

import json
import logging
import os
import signal
import sys
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

import click

from k8s_diagnostic.core.models.result import PLACEMENTS

logger = logging.getLogger(__name__)


def _split_list(values: Sequence[str]) -> list[str]:
    """Flatten repeated and comma-separated --test-list values."""
    return [item.strip() for value in values for item in value.split(",") if item.strip()]


@contextmanager
def _cancel_on_signals(run_ctx) -> Iterator[None]:
    """Route SIGINT/SIGTERM to ``run_ctx.cancel`` for the duration of the run."""

    def _handler(signum, _frame):
        name = signal.Signals(signum).name
        run_ctx.cancel(f"interrupted by {name}")

    previous: dict[int, object] = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, _handler)
        except ValueError:
            # Not in the main thread; leave handlers alone
            pass
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


# ── test ────────────────────────────────────────────────────────


@click.command("test")
@click.option("--namespace", "-n", default=None, help="Namespace for test fixtures [diagnostic-test].")
@click.option("--kubeconfig", default=None, help="Kubeconfig file (default: current context).")
@click.option(
    "--placement",
    type=click.Choice(PLACEMENTS),
    default=None,
    help="Pod placement for the pod-to-pod test [both].",
)
@click.option("--test-all", is_flag=True, help="Run every registered test.")
@click.option(
    "--test-list",
    multiple=True,
    help="Tests to run (comma-separated or repeated), or 'all'.",
)
@click.option("--test-group", default="", help="Named group of tests (e.g. networking).")
@click.option("--keep-namespace", is_flag=True, help="Never delete the namespace afterwards.")
@click.option(
    "--cleanup",
    "force_cleanup",
    is_flag=True,
    help="Delete the namespace after a selective run too.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show per-test details.")
@click.option("--timeout", type=float, default=None, help="Overall run deadline in seconds.")
@click.option(
    "--results-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for reports and logs [test_results].",
)
@click.option(
    "--fail-on-test-failure/--no-fail-on-test-failure",
    default=None,
    help="Exit 1 when any test fails.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run_tests(
    ctx: click.Context,
    namespace: str | None,
    kubeconfig: str | None,
    placement: str | None,
    test_all: bool,
    test_list: tuple[str, ...],
    test_group: str,
    keep_namespace: bool,
    force_cleanup: bool,
    verbose: bool,
    timeout: float | None,
    results_dir: str | None,
    fail_on_test_failure: bool | None,
    as_json: bool,
) -> None:
    """Run connectivity diagnostics against the cluster."""
    from k8s_diagnostic.adapters.kubectl import KubectlClient
    from k8s_diagnostic.core.config.loader import ConfigError, apply_overrides, load_config
    from k8s_diagnostic.core.context import RunContext
    from k8s_diagnostic.core.observability.logging_config import open_run_log, resolve_level
    from k8s_diagnostic.core.services.catalog import default_registry
    from k8s_diagnostic.core.services.namespace_ops import should_cleanup
    from k8s_diagnostic.core.use_cases.diagnose import (
        RunRequest,
        generate_run_id,
        run_diagnostics,
    )

    # ── Configuration ───────────────────────────────────────────
    try:
        settings = load_config(ctx.obj.get("config_path"))
        settings = apply_overrides(
            settings,
            namespace=namespace,
            kubeconfig=kubeconfig,
            placement=placement,
            verbose=True if verbose else None,
            run_timeout=timeout,
            results_dir=results_dir,
            fail_on_test_failure=fail_on_test_failure,
        )
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    # ── Logging (now that config is known) ──────────────────────
    started = datetime.now(UTC)
    level = resolve_level(
        debug=ctx.obj.get("debug", False),
        verbose=verbose,
        quiet=ctx.obj.get("quiet", False),
        env_level=os.environ.get("K8S_DIAGNOSTIC_LOG_LEVEL"),
        config_level=settings.log_level,
    )
    log_path = None
    if settings.log_to_file:
        log_path = open_run_log(level, Path(settings.results_dir), started)

    client = ctx.obj.get("client") or KubectlClient(
        settings.kubeconfig,
        request_timeout=settings.request_timeout,
        poll_interval=settings.poll_interval,
    )
    registry = ctx.obj.get("registry") or default_registry()
    run_id = generate_run_id()

    echo = not as_json
    if echo:
        click.secho("🔍 Kubernetes connectivity diagnostics", fg="cyan", bold=True)
        click.echo(f"   Namespace:  {settings.namespace}")
        click.echo(f"   Kubeconfig: {settings.kubeconfig or 'default'}")
        click.echo(f"   Run id:     {run_id}")
        if log_path:
            click.echo(f"   Log file:   {log_path}")
        click.echo()

    def _on_warning(message: str) -> None:
        if echo:
            click.secho(f"⚠️  {message}", fg="yellow")

    def _on_start(index: int, total: int, entry) -> None:
        if echo:
            click.secho(f"🧪 [{index}/{total}] {entry.display_name}", fg="white", bold=True)

    def _on_done(index: int, total: int, entry, timed) -> None:
        if not echo:
            return
        seconds = timed.duration.total_seconds()
        if timed.success:
            click.secho(f"   ✅ PASS ({seconds:.2f}s): {timed.message}", fg="green")
        else:
            click.secho(f"   ❌ FAIL ({seconds:.2f}s): {timed.message}", fg="red")
        if settings.verbose:
            for line in timed.details:
                click.echo(f"      {line}")

    # ── Run ─────────────────────────────────────────────────────
    run_ctx = RunContext(timeout=settings.run_timeout)
    request = RunRequest(
        test_group=test_group,
        test_list=_split_list(test_list),
        test_all=test_all,
        keep_namespace=keep_namespace,
        force_cleanup=force_cleanup,
    )
    with _cancel_on_signals(run_ctx):
        result = run_diagnostics(
            request,
            settings,
            client,
            registry,
            context=run_ctx,
            run_id=run_id,
            log_file=str(log_path) if log_path else None,
            on_warning=_on_warning,
            on_test_start=_on_start,
            on_test_done=_on_done,
        )

    code = result.exit_code(settings.fail_on_test_failure)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if code:
            sys.exit(code)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(code)

    # ── Summary ─────────────────────────────────────────────────
    summary = result.summary
    click.echo()
    click.secho("═" * 60, fg="cyan")
    if summary.all_passed:
        click.secho(f"✅ PASS: {summary.overall_message}", fg="green", bold=True)
    else:
        click.secho(f"❌ FAIL: {summary.overall_message}", fg="red", bold=True)
    click.echo(f"   Passed: {summary.passed_tests}  Failed: {summary.failed_tests}  "
               f"Total: {summary.total_tests}")
    if settings.verbose:
        for line in summary.detail_lines:
            click.echo(f"   {line}")
    if result.cancelled:
        click.secho("⏹  Run cancelled; remaining tests were not started", fg="yellow")

    if result.cleaned_up:
        click.echo(f"🧹 Requested deletion of namespace {settings.namespace}")
    elif not should_cleanup(result.full_run, keep_namespace, force_cleanup):
        click.echo(f"📌 Namespace {settings.namespace} kept")

    if result.report_path:
        click.echo(f"📄 Report: {result.report_path}")
    click.echo()

    if code:
        sys.exit(code)


# ── list ────────────────────────────────────────────────────────


@click.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_tests(ctx: click.Context, as_json: bool) -> None:
    """List available tests and groups."""
    from k8s_diagnostic.core.services.catalog import default_registry

    registry = ctx.obj.get("registry") or default_registry()

    if as_json:
        click.echo(json.dumps({
            "tests": [
                {"id": e.id, "name": e.display_name, "description": e.description}
                for e in registry.entries
            ],
            "groups": {name: list(members) for name, members in registry.groups.items()},
            "default": list(registry.default),
        }, indent=2))
        return

    click.secho("🧪 Available tests:", fg="cyan", bold=True)
    width = max((len(e.id) for e in registry.entries), default=0)
    for entry in registry.entries:
        click.echo(f"   {entry.id.ljust(width)}  {entry.display_name}")
        if entry.description:
            click.echo(f"   {' ' * width}  {entry.description}")

    click.echo()
    click.secho("📦 Groups:", fg="cyan", bold=True)
    for name, members in registry.groups.items():
        click.echo(f"   {name}: {', '.join(members)}")
    click.echo()
