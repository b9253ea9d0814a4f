"""
Report file persistence — one JSON document per run.

Reports are written to ``<results_dir>/<report.filename>``. Writes are
atomic (write to temp file, then rename) so a crash mid-write never
leaves a truncated report behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from k8s_diagnostic.core.models.report import Report

logger = logging.getLogger(__name__)

DEFAULT_RESULTS_DIR = "test_results"


def report_path(report: Report, results_dir: Path) -> Path:
    """Where ``report`` is (or will be) stored."""
    return results_dir / report.filename


def save_report(report: Report, results_dir: Path) -> Path:
    """Write the report document atomically.

    Returns:
        Path of the written file.

    Raises:
        OSError: The directory or file could not be written.
    """
    path = report_path(report, results_dir)
    path.parent.mkdir(parents=True, exist_ok=True)

    content = json.dumps(report.to_document(), indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".report_",
        suffix=".tmp",
    )
    os.close(fd)
    tmp = Path(tmp_path)
    try:
        tmp.write_text(content, encoding="utf-8")
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise

    logger.info("Report saved to %s", path)
    return path


def load_report(path: Path) -> dict:
    """Read a saved report document back as a dict."""
    return json.loads(path.read_text(encoding="utf-8"))
