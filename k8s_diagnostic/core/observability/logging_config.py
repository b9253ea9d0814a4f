"""
Logging configuration for the CLI.

Called once at startup by main.py, and again by the ``test`` command
once the per-run log file is known. Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    --debug  >  --verbose  >  --quiet  >  K8S_DIAGNOSTIC_LOG_LEVEL  >  config  >  WARNING

The per-run log file always captures DEBUG detail.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

LOG_SUBDIR = "logs"
LOG_PREFIX = "k8s-diagnostic-logs"

_TIME = "%H:%M:%S"
_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"


def console_formatter(level: int) -> logging.Formatter:
    """Console format for ``level``: quieter levels print bare messages."""
    if level <= logging.DEBUG:
        return logging.Formatter(_DETAILED, datefmt=_TIME)
    if level <= logging.INFO:
        return logging.Formatter("%(asctime)s [%(name)s] %(message)s", datefmt=_TIME)
    return logging.Formatter("%(message)s")


def setup_logging(level: str = "WARNING", log_file: str | None = None) -> None:
    """Replace the root logger's handlers.

    The console handler on stderr logs at ``level``. When ``log_file``
    is given, a second handler writes DEBUG records there.

    Raises:
        OSError: ``log_file`` could not be opened. The root logger is
            left untouched in that case.
    """
    console_level = _parse_level(level)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(console_formatter(console_level))
    handlers: list[logging.Handler] = [console]

    if log_file:
        run_log = logging.FileHandler(log_file, encoding="utf-8")
        run_log.setLevel(logging.DEBUG)
        run_log.setFormatter(logging.Formatter(_DETAILED, datefmt="%Y-%m-%d %H:%M:%S"))
        handlers.append(run_log)

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env_level: str | None = None,
    config_level: str | None = None,
) -> str:
    """Pick the console level from flags, environment and config."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    if env_level:
        return env_level.upper()
    if config_level:
        return config_level.upper()
    return "WARNING"


def run_log_path(results_dir: Path, started: datetime) -> Path:
    """Per-run log file path under ``<results_dir>/logs``."""
    return results_dir / LOG_SUBDIR / f"{LOG_PREFIX}-{started.strftime('%Y%m%d-%H%M%S')}.log"


def open_run_log(level: str, results_dir: Path, started: datetime) -> Path | None:
    """Reconfigure logging to also write a DEBUG run log.

    Returns:
        The log file path, or None if it could not be created (a
        warning is logged and console logging continues).
    """
    path = run_log_path(results_dir, started)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        setup_logging(level, log_file=str(path))
    except OSError as e:
        setup_logging(level)
        logging.getLogger(__name__).warning("Cannot create log file %s: %s", path, e)
        return None
    return path


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
