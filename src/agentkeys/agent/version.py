# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/agent/version.py

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

BLACKLISTED_WINDOWS_VERSIONS = frozenset({"6.14.0", "6.14.1"})
BLACKLIST_MESSAGE = (
    "The Agent versions you pinned (6.14.0 or 6.14.1) have been blacklisted, "
    "please use 6.14.2 instead. See https://dtdg.co/win-614-fix."
)

_VERSION_RE = re.compile(
    r"^(?:(?P<epoch>\d+):)?"
    r"(?P<major>\d+)\.(?P<minor>\d+)\.(?P<bugfix>\d+)"
    r"(?:~(?P<suffix>[0-9A-Za-z.]+))?"
    r"(?:-(?P<release>\d+))?$"
)


class AgentVersionError(ValueError):
    """Raised for agent version strings that cannot be parsed."""

class BlacklistedVersionError(AgentVersionError):
    """Raised when a pinned version is known to be broken on the platform."""


@dataclass(frozen=True)
class AgentVersion:
    major: int
    minor: int
    bugfix: int
    epoch: Optional[int] = None
    suffix: Optional[str] = None     # e.g. rc.1
    release: Optional[int] = None

    @classmethod
    def parse(cls, text: str) -> "AgentVersion":
        """Parse ``[epoch:]major.minor.bugfix[~suffix][-release]``."""
        m = _VERSION_RE.match(text.strip())
        if not m:
            raise AgentVersionError(f"invalid agent version: {text!r}")
        return cls(
            major=int(m["major"]),
            minor=int(m["minor"]),
            bugfix=int(m["bugfix"]),
            epoch=int(m["epoch"]) if m["epoch"] else None,
            suffix=m["suffix"],
            release=int(m["release"]) if m["release"] else None,
        )

    @property
    def windows_version(self) -> str:
        # MSI names carry neither epoch nor package release
        base = f"{self.major}.{self.minor}.{self.bugfix}"
        return f"{base}-{self.suffix}" if self.suffix else base


def check_windows_pin(version: str) -> AgentVersion:
    parsed = AgentVersion.parse(version)
    if parsed.windows_version in BLACKLISTED_WINDOWS_VERSIONS:
        raise BlacklistedVersionError(BLACKLIST_MESSAGE)
    return parsed


def windows_download_url(base_url: str, version: str) -> str:
    parsed = check_windows_pin(version)
    return f"{base_url}-{parsed.windows_version}.msi"
