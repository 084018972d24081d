# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/utils/ssh_runner.py

from __future__ import annotations

import itertools
import logging
import os
from pathlib import Path
from typing import Optional, Protocol, Tuple

import paramiko

log = logging.getLogger("etcdboot")

_counter = itertools.count(1)


class CommandError(RuntimeError):
    def __init__(self, cmd: str, rc: int, stderr: str, hostname: str = "unknown"):
        self.cmd = cmd
        self.rc = rc
        self.stderr = stderr
        self.hostname = hostname
        super().__init__(f"({hostname}) command failed rc={rc}: {cmd}\n{stderr.strip()}")


class Runner(Protocol):
    """What the etcd components need from a connection to one host."""

    hostname: str

    def run(self, cmd: str, *, sudo: bool = False, timeout: Optional[int] = None) -> Tuple[int, str, str]: ...

    def sudo_cmd(self, cmd: str, *, timeout: Optional[int] = None) -> str: ...

    def file_exists(self, remote_path: str) -> bool: ...

    def put_text(self, content: str, remote_path: str, *, sudo: bool = False, mode: int = 0o644) -> None: ...

    def put_file(self, local_path: str | Path, remote_path: str, *, sudo: bool = False) -> None: ...

    def fetch_file(self, remote_path: str, local_path: str | Path) -> None: ...

    def close(self) -> None: ...


def _q(s: str) -> str:
    """
    Quote for bash -c.
    """
    return "'" + s.replace("'", "'\"'\"'") + "'"


class SSHRunner:
    def __init__(self, client: paramiko.SSHClient, hostname: str = "unknown", cmd_timeout: int = 300):
        self.client = client
        self.hostname = hostname
        self.cmd_timeout = cmd_timeout

    def run(
        self,
        cmd: str,
        *,
        sudo: bool = False,
        timeout: Optional[int] = None,
    ) -> Tuple[int, str, str]:
        final = f"sudo -H -E bash -c {_q(cmd)}" if sudo else f"bash -c {_q(cmd)}"
        log.debug("(%s) $ %s", self.hostname, final)

        stdin, stdout, stderr = self.client.exec_command(final, timeout=timeout or self.cmd_timeout)
        out = stdout.read().decode("utf-8", errors="replace")
        err = stderr.read().decode("utf-8", errors="replace")
        rc = stdout.channel.recv_exit_status()
        if out.strip():
            log.debug("(%s) [stdout] %s", self.hostname, out.rstrip())
        if err.strip():
            log.debug("(%s) [stderr] %s", self.hostname, err.rstrip())
        log.debug("(%s) [exit %d]", self.hostname, rc)
        return rc, out, err

    def sudo_cmd(self, cmd: str, *, timeout: Optional[int] = None) -> str:
        """
        Run with sudo and return stripped stdout; non-zero exit raises CommandError.
        """
        rc, out, err = self.run(cmd, sudo=True, timeout=timeout)
        if rc != 0:
            raise CommandError(cmd, rc, err or out, hostname=self.hostname)
        return out.strip()

    def file_exists(self, remote_path: str) -> bool:
        rc, _, err = self.run(f"test -f {remote_path}", sudo=True)
        if rc == 0:
            return True
        if rc == 1:
            return False
        raise CommandError(f"test -f {remote_path}", rc, err, hostname=self.hostname)

    def put_text(self, content: str, remote_path: str, *, sudo: bool = False, mode: int = 0o644) -> None:
        if sudo:
            tmp = f"/tmp/.etcdboot.tmp.{os.getpid()}.{next(_counter)}"
            self.put_text(content, tmp)
            parent = posix_dirname(remote_path)
            self.sudo_cmd(
                f"mkdir -p {parent} && install -m {oct(mode)[2:]} {tmp} {remote_path}; "
                f"rc=$?; rm -f {tmp}; exit $rc"
            )
            return

        sftp = self.client.open_sftp()
        try:
            with sftp.open(remote_path, "w") as f:
                f.write(content)
        finally:
            sftp.close()

    def put_file(self, local_path: str | Path, remote_path: str, *, sudo: bool = False) -> None:
        if sudo:
            tmp = f"/tmp/.etcdboot.upload.{os.getpid()}.{next(_counter)}"
            self.put_file(local_path, tmp)
            parent = posix_dirname(remote_path)
            self.sudo_cmd(f"mkdir -p {parent} && mv -f {tmp} {remote_path}")
            return

        sftp = self.client.open_sftp()
        try:
            sftp.put(str(local_path), str(remote_path))
        finally:
            sftp.close()

    def fetch_file(self, remote_path: str, local_path: str | Path) -> None:
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        sftp = self.client.open_sftp()
        try:
            sftp.get(str(remote_path), str(local_path))
        finally:
            sftp.close()

    def close(self) -> None:
        self.client.close()


def posix_dirname(path: str) -> str:
    head = path.rsplit("/", 1)[0]
    return head or "/"


def open_ssh(host, *, connect_timeout: float = 20.0, cmd_timeout: int = 300) -> SSHRunner:
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    pkey = None
    if host.pkey_path:
        for key_cls in (
            paramiko.RSAKey,
            paramiko.Ed25519Key,
            paramiko.ECDSAKey,
        ):
            try:
                pkey = key_cls.from_private_key_file(host.pkey_path)
                break
            except paramiko.SSHException:
                continue

    client.connect(
        hostname=host.address,
        port=host.port,
        username=host.username,
        password=host.password if not pkey else None,
        pkey=pkey,
        timeout=connect_timeout,
        allow_agent=True,
        look_for_keys=True,
    )

    return SSHRunner(client, hostname=host.name, cmd_timeout=cmd_timeout)
