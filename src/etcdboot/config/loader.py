# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/config/loader.py

import logging
import os
import yaml
from pathlib import Path
from .models import EtcdClusterConfig

log = logging.getLogger("etcdboot")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _merge_hosts(data: dict, secrets: dict) -> None:
    """
    Host credentials in secrets.yaml are keyed by host name, e.g.

        hosts:
          etcd-1: {password: ...}
    """
    host_secrets = secrets.pop("hosts", None)
    if not isinstance(host_secrets, dict):
        return
    for h in data.get("hosts", []):
        extra = host_secrets.get(h.get("name"))
        if isinstance(extra, dict):
            _deep_merge(h, extra)


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    1. ETCDBOOT_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the cluster config
    """
    env = os.environ.get("ETCDBOOT_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("ETCDBOOT_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "secrets.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_config(path: str | Path) -> EtcdClusterConfig:
    """
    Load and validate an etcd cluster YAML config.

    A secrets.yaml (ETCDBOOT_SECRETS_FILE, or next to the config) is
    deep-merged before validation; ``${ENV_VAR}`` placeholders are expanded
    in both files.
    """
    path = Path(path)
    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        secrets = _load_yaml(secrets_path)
        _merge_hosts(data, secrets)
        _deep_merge(data, secrets)
    else:
        log.debug("No secrets.yaml found, proceeding without secrets merge")

    return EtcdClusterConfig.model_validate(data)
