"""
Configuration loader — reads ~/.k8s-diagnostic.yaml into DiagnosticConfig.

Sources, highest precedence first:

    CLI flag  >  K8S_DIAGNOSTIC_<FIELD> env var  >  config file  >  defaults

The CLI layer applies flags with ``apply_overrides``; this module
handles the file and the environment. YAML is read with
``yaml.safe_load`` and validated by the Pydantic model.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from k8s_diagnostic.core.models.result import Placement

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = (".k8s-diagnostic.yaml", ".k8s-diagnostic.yml")
ENV_PREFIX = "K8S_DIAGNOSTIC_"


class ConfigError(Exception):
    """Raised when configuration is invalid or unreadable."""


class DiagnosticConfig(BaseModel):
    """Effective settings for one diagnostic run."""

    model_config = ConfigDict(extra="forbid")

    namespace: str = "diagnostic-test"
    kubeconfig: str = ""
    placement: Placement = "both"
    verbose: bool = False
    log_level: str = "WARNING"
    results_dir: str = "test_results"
    log_to_file: bool = True
    fail_on_test_failure: bool = False

    # Timeouts in seconds
    run_timeout: float | None = Field(default=None, gt=0)
    pod_ready_timeout: float = Field(default=120, gt=0)
    deployment_ready_timeout: float = Field(default=120, gt=0)
    exec_timeout: float = Field(default=30, gt=0)
    request_timeout: float = Field(default=30, gt=0)
    poll_interval: float = Field(default=2, ge=0)

    # Fixtures
    netshoot_image: str = "nicolaka/netshoot"
    nginx_image: str = "nginx:alpine"
    nginx_replicas: int = Field(default=2, ge=1)
    cluster_domain: str = "cluster.local"

    @field_validator("namespace")
    @classmethod
    def _namespace_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("namespace must not be empty")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level '{v}'")
        return level

    @field_validator("run_timeout", mode="before")
    @classmethod
    def _empty_means_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


def find_config_file(home: Path | None = None) -> Path | None:
    """Return the user's config file if one exists."""
    base = home if home is not None else Path.home()
    for name in CONFIG_FILENAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def _read_file(path: Path) -> dict[str, Any]:
    """Read a YAML mapping from ``path``."""
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def _read_env(environ: Mapping[str, str]) -> dict[str, str]:
    """Collect K8S_DIAGNOSTIC_<FIELD> overrides for known fields."""
    values: dict[str, str] = {}
    for field_name in DiagnosticConfig.model_fields:
        key = ENV_PREFIX + field_name.upper()
        if key in environ:
            values[field_name] = environ[key]
    return values


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> DiagnosticConfig:
    """Load and validate configuration from file and environment.

    Args:
        path: Explicit config file (must exist). If None, the user's
            ``~/.k8s-diagnostic.yaml`` is used when present.
        environ: Environment mapping (default: ``os.environ``).
        home: Home directory override for locating the default file.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    data: dict[str, Any] = {}
    if path is None:
        path = find_config_file(home)
    if path is not None:
        data.update(_read_file(path))

    data.update(_read_env(os.environ if environ is None else environ))

    try:
        config = DiagnosticConfig.model_validate(data)
    except ValidationError as e:
        source = str(path) if path else "environment"
        raise ConfigError(f"Invalid configuration ({source}): {e}") from e

    logger.debug("Effective config: %s", config.model_dump())
    return config


def apply_overrides(config: DiagnosticConfig, **overrides: Any) -> DiagnosticConfig:
    """Return a copy with non-None overrides applied and re-validated."""
    updates = {k: v for k, v in overrides.items() if v is not None}
    if not updates:
        return config
    try:
        return DiagnosticConfig.model_validate({**config.model_dump(), **updates})
    except ValidationError as e:
        raise ConfigError(f"Invalid option: {e}") from e
