# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/config/loader.py

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .models import AcceleratorDiscoveryConfig, DaemonSettings

log = logging.getLogger("sriovfec")

# environment variable -> DaemonSettings field
ENV_FIELDS = {
    "NODE_NAME": "node_name",
    "NAMESPACE": "namespace",
    "SRIOVFEC_DISCOVERY_CONFIG": "discovery_config_path",
    "SRIOVFEC_RESYNC_PERIOD": "resync_period",
    "SRIOVFEC_API_TIMEOUT": "api_timeout",
    "SRIOVFEC_DRAIN_TIMEOUT": "drain_timeout",
    "SRIOVFEC_SYSFS_ROOT": "sysfs_root",
    "SRIOVFEC_HOST_ROOT": "host_root",
    "SRIOVFEC_EVENTS_FILE": "events_file",
    "KUBECONFIG": "kubeconfig",
}


class ConfigError(RuntimeError):
    pass


def _load_yaml(path: Path) -> dict:
    """Load a YAML (or JSON) file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_discovery_config(path: str | Path) -> AcceleratorDiscoveryConfig:
    """
    Load the accelerator discovery config.

    Called once at startup; the returned model is frozen and shared by
    reference for the lifetime of the process.
    """
    path = Path(path)
    try:
        data = _load_yaml(path)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read discovery config {path}: {e}") from e

    try:
        cfg = AcceleratorDiscoveryConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid discovery config {path}: {e}") from e

    log.debug("Loaded discovery config from %s (%d device ids)", path, len(cfg.devices))
    return cfg


def load_settings(path: Optional[str | Path] = None, **overrides: Any) -> DaemonSettings:
    """
    Build DaemonSettings.

    Precedence (lowest first):
      1. optional YAML settings file
      2. environment variables (NODE_NAME, NAMESPACE, SRIOVFEC_*)
      3. explicit overrides, ignored when None (CLI flags)
    """
    data: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"settings file {path} does not exist")
        data.update(_load_yaml(path))

    for env, field in ENV_FIELDS.items():
        value = os.environ.get(env)
        if value:
            data[field] = value

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return DaemonSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid daemon settings: {e}") from e
