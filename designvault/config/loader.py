"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml : tunables checked into the repo (thresholds,
#                            timeouts, queue sizes)
#   2. .env file          : local developer overrides (not committed)
#   3. Environment vars   : set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the
# Settings-derived values on top.  The typed views (EscalationPolicy,
# ClassificationOptions, TelemetryOptions) are built from the merged dict
# by the build_* helpers so each component receives plain constructor
# arguments instead of reaching into a global dict.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from designvault.config.settings import Settings
from designvault.models.options import (
    ClassificationOptions,
    EscalationPolicy,
    TelemetryOptions,
    UploadOptions,
)


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to merge; a fresh one is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "database": {
            "backend": settings.database_backend,
            "sqlite_path": settings.sqlite_db_path,
            "sqlite_fts_enabled": settings.sqlite_fts_enabled,
            "postgres_dsn": settings.postgres_dsn,
        },
        "llm": {
            "available_providers": settings.get_available_llm_providers(),
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    section = config.get(name) or {}
    return section if isinstance(section, dict) else {}


def build_escalation_policy(config: dict[str, Any]) -> EscalationPolicy:
    """Build the search escalation policy from the ``search`` section."""
    return EscalationPolicy(**_section(config, "search"))


def build_classification_options(config: dict[str, Any]) -> ClassificationOptions:
    return ClassificationOptions(**_section(config, "classification"))


def build_telemetry_options(config: dict[str, Any]) -> TelemetryOptions:
    return TelemetryOptions(**_section(config, "telemetry"))


def build_upload_options(config: dict[str, Any]) -> UploadOptions:
    return UploadOptions(**_section(config, "upload"))
