# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/config/loader.py

import logging
import os
import yaml
from pathlib import Path
from .models import AgentKeysConfig

log = logging.getLogger("agentkeys")


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


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml using this priority:

    1. AGENTKEYS_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the config
    """
    env = os.environ.get("AGENTKEYS_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("AGENTKEYS_SECRETS_FILE=%s does not exist, skipping", env)
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


def _merge_hosts(data: dict, secrets: dict) -> None:
    # hosts is a list, so secrets are matched to it by hostname
    secret_hosts = {h.get("hostname"): h for h in secrets.pop("hosts", None) or []}
    for host in data.get("hosts") or []:
        extra = secret_hosts.get(host.get("hostname"))
        if extra:
            _deep_merge(host, extra)


def load_config(path: str | Path) -> AgentKeysConfig:
    """
    Load and validate an agentkeys YAML config.

    SSH passwords and similar values can be kept out of the main file:

    **secrets.yaml**
        A file mirroring the config structure, deep-merged before validation.
        Host entries are matched by ``hostname``. Discovery order:
          1. ``AGENTKEYS_SECRETS_FILE`` env var
          2. ``secrets.yaml`` next to the config file

    **environment variables**
        ``${ENV_VAR}`` placeholders are resolved by ``os.path.expandvars``.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"config file not found: {path}")
    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        secrets = _load_yaml(secrets_path)
        _merge_hosts(data, secrets)
        _deep_merge(data, secrets)
    else:
        log.debug("No secrets.yaml found, proceeding without secrets merge")

    return AgentKeysConfig.model_validate(data)
