# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/runners/local.py

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from .base import CommandError, CommandResult

log = logging.getLogger("agentkeys")


class LocalRunner:
    """Runs commands on the controller itself."""

    def __init__(self, host: str = "localhost", cmd_timeout: float = 120.0):
        self.host = host
        self.cmd_timeout = cmd_timeout

    def run(self, argv: Sequence[str], *, stdin: Optional[bytes] = None) -> CommandResult:
        argv = [str(a) for a in argv]
        log.debug("[%s] $ %s", self.host, " ".join(argv))
        try:
            cp = subprocess.run(
                argv,
                input=stdin,
                stdin=subprocess.DEVNULL if stdin is None else None,
                capture_output=True,
                check=False,
                timeout=self.cmd_timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise CommandError(f"{argv[0]}: {exc}") from exc
        return CommandResult(
            argv=tuple(argv),
            returncode=cp.returncode,
            stdout=cp.stdout or b"",
            stderr=cp.stderr or b"",
        )

    def make_temp_dir(self, suffix: str) -> str:
        return tempfile.mkdtemp(suffix=suffix)

    def remove_tree(self, path: str) -> None:
        shutil.rmtree(path, ignore_errors=True)

    def read_bytes(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def write_bytes(self, path: str, data: bytes, mode: int = 0o600) -> None:
        p = Path(path)
        p.write_bytes(data)
        os.chmod(p, mode)

    def close(self) -> None:
        pass
