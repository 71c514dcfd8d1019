# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/runners/ssh.py

from __future__ import annotations

import logging
import shlex
from typing import Optional, Sequence

import paramiko

from agentkeys.config.models import HostSpec
from .base import CommandError, CommandResult

log = logging.getLogger("agentkeys")


class SSHRunner:
    """
    Runs commands on a remote host over an established paramiko client.

    File operations are done with plain commands (cat, mktemp, rm) rather than
    SFTP so they work unchanged when ``become`` wraps everything in sudo.
    """

    def __init__(
        self,
        client: paramiko.SSHClient,
        *,
        host: str,
        become: bool = False,
        cmd_timeout: float = 120.0,
    ):
        self.client = client
        self.host = host
        self.become = become
        self.cmd_timeout = cmd_timeout

    def _wrap(self, argv: Sequence[str]) -> str:
        cmd = shlex.join(str(a) for a in argv)
        if self.become:
            cmd = f"sudo -n sh -c {shlex.quote(cmd)}"
        return cmd

    def run(self, argv: Sequence[str], *, stdin: Optional[bytes] = None) -> CommandResult:
        cmd = self._wrap(argv)
        log.debug("[%s] $ %s", self.host, cmd)
        try:
            chan_in, chan_out, chan_err = self.client.exec_command(cmd, timeout=self.cmd_timeout)
            if stdin is not None:
                chan_in.write(stdin)
                chan_in.flush()
                chan_in.channel.shutdown_write()
            out = chan_out.read()
            err = chan_err.read()
            rc = chan_out.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as exc:
            raise CommandError(f"{self.host}: {exc}") from exc
        return CommandResult(argv=tuple(str(a) for a in argv), returncode=rc, stdout=out, stderr=err)

    def _checked(self, argv: Sequence[str], *, stdin: Optional[bytes] = None) -> CommandResult:
        res = self.run(argv, stdin=stdin)
        if not res.ok:
            raise CommandError(
                f"{self.host}: {' '.join(argv)} exited {res.returncode}: {res.stderr_text.strip()}"
            )
        return res

    def make_temp_dir(self, suffix: str) -> str:
        res = self._checked(["mktemp", "-d", f"--suffix={suffix}"])
        return res.stdout_text.strip()

    def remove_tree(self, path: str) -> None:
        self._checked(["rm", "-rf", path])

    def read_bytes(self, path: str) -> bytes:
        return self._checked(["cat", path]).stdout

    def write_bytes(self, path: str, data: bytes, mode: int = 0o600) -> None:
        script = f"umask 077 && cat > {shlex.quote(path)} && chmod {mode:o} {shlex.quote(path)}"
        self._checked(["sh", "-c", script], stdin=data)

    def close(self) -> None:
        self.client.close()


def _load_pkey(path: str):
    for key_cls in (
        paramiko.Ed25519Key,
        paramiko.RSAKey,
        paramiko.ECDSAKey,
    ):
        try:
            return key_cls.from_private_key_file(path)
        except paramiko.SSHException:
            continue
        except OSError as exc:
            raise CommandError(f"cannot read private key {path}: {exc}") from exc
    raise CommandError(f"Unsupported private key format for {path}")


def open_ssh(
    host: HostSpec,
    *,
    connect_timeout: float = 20.0,
    cmd_timeout: float = 120.0,
) -> SSHRunner:
    pkey = _load_pkey(str(host.pkey_path)) if host.pkey_path else None

    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    try:
        client.connect(
            hostname=host.address,
            port=host.port,
            username=host.username,
            password=host.password if not pkey else None,
            pkey=pkey,
            timeout=connect_timeout,
            allow_agent=True,
            look_for_keys=pkey is None and host.password is None,
        )
    except (paramiko.SSHException, OSError) as exc:
        client.close()
        raise CommandError(f"cannot connect to {host.hostname} ({host.address}): {exc}") from exc

    log.debug("connected to %s@%s:%s", host.username, host.address, host.port)
    return SSHRunner(client, host=host.hostname, become=host.become, cmd_timeout=cmd_timeout)
