# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/runners/base.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence


class CommandError(RuntimeError):
    """Raised when a command cannot be started or the transport fails."""


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class CommandRunner(Protocol):
    """
    Executes commands and file operations on one target host.

    Paths are plain strings because they may live on a remote filesystem.
    """

    host: str

    def run(self, argv: Sequence[str], *, stdin: Optional[bytes] = None) -> CommandResult: ...

    def make_temp_dir(self, suffix: str) -> str: ...

    def remove_tree(self, path: str) -> None: ...

    def read_bytes(self, path: str) -> bytes: ...

    def write_bytes(self, path: str, data: bytes, mode: int = 0o600) -> None: ...

    def close(self) -> None: ...
