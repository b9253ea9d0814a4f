"""
k8s-diagnostic — CLI entrypoint.

Usage:
    k8s-diagnostic --help
    k8s-diagnostic test --test-group networking
    k8s-diagnostic list
    python -m k8s_diagnostic.main test --test-list dns,pod-to-pod
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from k8s_diagnostic import __version__
from k8s_diagnostic.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="k8s-diagnostic")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to a config file (default: ~/.k8s-diagnostic.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Kubernetes connectivity diagnostics — probe pod, service and DNS paths."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(
            debug=debug,
            quiet=quiet,
            env_level=os.environ.get("K8S_DIAGNOSTIC_LOG_LEVEL"),
        ),
    )


# ── Register command groups ─────────────────────────────────────

from k8s_diagnostic.ui.cli.diagnose import list_tests, run_tests  # noqa: E402

cli.add_command(run_tests)
cli.add_command(list_tests)


if __name__ == "__main__":
    cli()
