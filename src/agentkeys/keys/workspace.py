# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/keys/workspace.py

from __future__ import annotations

import logging
import posixpath
from contextlib import contextmanager
from typing import Iterator

from agentkeys.runners.base import CommandError, CommandRunner

log = logging.getLogger("agentkeys")


class ScratchWorkspace:
    """
    Temporary directory on the target host, owned by a single import attempt.
    """

    def __init__(self, runner: CommandRunner, path: str):
        self.runner = runner
        self.path = path

    def file(self, name: str) -> str:
        return posixpath.join(self.path, name)


@contextmanager
def scratch_workspace(runner: CommandRunner, *, suffix: str = "keys") -> Iterator[ScratchWorkspace]:
    path = runner.make_temp_dir(suffix)
    log.debug("[%s] created workspace %s", runner.host, path)
    try:
        yield ScratchWorkspace(runner, path)
    finally:
        try:
            runner.remove_tree(path)
        except CommandError as exc:
            # must not mask the error of the import attempt itself
            log.warning("[%s] could not remove workspace %s: %s", runner.host, path, exc)
        else:
            log.debug("[%s] removed workspace %s", runner.host, path)
