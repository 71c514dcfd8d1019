# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/config/models.py

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, HttpUrl, field_validator

from agentkeys.keys.models import KeyRecord

DEFAULT_KEYRING = "/usr/share/keyrings/datadog-archive-keyring.gpg"
DEFAULT_CURRENT_KEY_NAME = "CURRENT"
DEFAULT_KEYS: Dict[str, str] = {
    DEFAULT_CURRENT_KEY_NAME: "https://keys.datadoghq.com/DATADOG_APT_KEY_CURRENT.public",
    "5F1E256061D813B125E156E8E6266D4AC0962C7D": "https://keys.datadoghq.com/DATADOG_APT_KEY_C0962C7D.public",
    "D75CEA17048B9ACBF186794B32637D44F14F620E": "https://keys.datadoghq.com/DATADOG_APT_KEY_F14F620E.public",
    "A2923DFF56EDA6E76E55E492D3A80E30382E94DE": "https://keys.datadoghq.com/DATADOG_APT_KEY_382E94DE.public",
}
DEFAULT_WINDOWS_VERSIONED_URL = "https://s3.amazonaws.com/ddagent-windows-stable/datadog-agent"


class KeyringConfig(BaseModel):
    path: str = DEFAULT_KEYRING
    current_key_name: str = DEFAULT_CURRENT_KEY_NAME
    keys: Dict[str, HttpUrl] = Field(default_factory=lambda: dict(DEFAULT_KEYS))
    gpg_binary: str = "gpg"
    fetch_timeout: float = 30.0
    fetch_retries: int = Field(default=3, ge=1)
    fetch_retry_delay: float = Field(default=2.0, ge=0)

    @field_validator("keys")
    @classmethod
    def _no_blank_identifiers(cls, v: Dict[str, HttpUrl]) -> Dict[str, HttpUrl]:
        for identifier in v:
            if not identifier.strip():
                raise ValueError("key identifiers must not be empty")
        return v

    def records(self) -> List[KeyRecord]:
        return [KeyRecord(identifier=k, source_url=str(url)) for k, url in self.keys.items()]


class AgentConfig(BaseModel):
    version: Optional[str] = None
    windows_versioned_url: str = DEFAULT_WINDOWS_VERSIONED_URL


class HostSpec(BaseModel):
    """
    A target host reached over SSH.
    """
    hostname: str                 # name used in reports
    address: str                  # IP or DNS to connect
    username: str = "root"
    port: int = 22
    password: Optional[str] = None
    pkey_path: Optional[Path] = None
    become: bool = False          # wrap commands in sudo -n
    connection: Literal["ssh", "local"] = "ssh"
    os_family: Literal["debian", "redhat", "suse", "windows"] = "debian"


class AgentKeysConfig(BaseModel):
    keyring: KeyringConfig = Field(default_factory=KeyringConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    hosts: List[HostSpec] = Field(default_factory=list)
    fail_fast: bool = False
    max_parallel_hosts: int = Field(default=5, ge=1)
