"""Configuration module: exports Settings, load_config and the typed option builders."""

from designvault.config.loader import (
    build_classification_options,
    build_escalation_policy,
    build_telemetry_options,
    build_upload_options,
    load_config,
)
from designvault.config.settings import Settings

__all__ = [
    "Settings",
    "build_classification_options",
    "build_escalation_policy",
    "build_telemetry_options",
    "build_upload_options",
    "load_config",
]
