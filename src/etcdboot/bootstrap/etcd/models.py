# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ...utils.cache import Cache

ETCD_ROLE = "etcd"
CONTROL_PLANE_ROLE = "control-plane"

NEW_CLUSTER = "new"
EXISTING_CLUSTER = "existing"

PRIMARY_ARCH = "amd64"


@dataclass
class Host:
    """
    A server that runs (or will run) an etcd member and/or needs its certificates.
    """
    name: str                      # logical hostname, used in member and cert names
    address: str                   # IP or DNS to SSH into
    internal_address: Optional[str] = None   # address etcd listens on; defaults to address
    arch: str = PRIMARY_ARCH
    roles: Tuple[str, ...] = (ETCD_ROLE,)
    username: str = "ubuntu"
    port: int = 22
    password: Optional[str] = None
    pkey_path: Optional[str] = None
    cache: Cache = field(default_factory=Cache, compare=False, repr=False)

    def __post_init__(self):
        if not self.internal_address:
            self.internal_address = self.address
        self.roles = tuple(self.roles)

    def has_role(self, role: str) -> bool:
        return role in self.roles


class Inventory:
    """
    Ordered set of hosts for one provisioning run.
    """

    def __init__(self, hosts: Sequence[Host]):
        names = [h.name for h in hosts]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate host names in inventory: {', '.join(dupes)}")
        self._hosts: List[Host] = list(hosts)

    @property
    def hosts(self) -> List[Host]:
        return list(self._hosts)

    def hosts_with_role(self, role: str) -> List[Host]:
        return [h for h in self._hosts if h.has_role(role)]

    def get(self, name: str) -> Host:
        for h in self._hosts:
            if h.name == name:
                return h
        raise KeyError(name)


@dataclass(frozen=True)
class HostEtcdIdentity:
    member_name: str
    already_member: bool


@dataclass(frozen=True)
class EtcdSettings:
    """
    Fixed paths, ports and version used on every host.
    """
    version: str = "v3.4.13"
    client_port: int = 2379
    peer_port: int = 2380
    cert_dir: str = "/etc/ssl/etcd/ssl"
    bin_dir: str = "/usr/local/bin"
    env_file: str = "/etc/etcd.env"
    data_dir: str = "/var/lib/etcd"
    service_file: str = "/etc/systemd/system/etcd.service"
    remote_tmp_dir: str = "/tmp/etcdboot"
    work_dir: Path = field(default_factory=lambda: Path.home() / ".etcdboot" / "work")

    def peer_url(self, host: Host) -> str:
        return f"https://{host.internal_address}:{self.peer_port}"

    def client_url(self, host: Host) -> str:
        return f"https://{host.internal_address}:{self.client_port}"


@dataclass(frozen=True)
class BackupSchedule:
    """
    Snapshot schedule consumed by the backup script.
    period_minutes between 60 and 1440 (exclusive) is expressed in hours.
    """
    period_minutes: int = 30
    keep_backup_number: int = 5
    backup_dir: str = "/var/backups/kube_etcd"
    script_dir: str = "/usr/local/bin/kube-scripts"

    @property
    def backup_hour(self) -> str:
        if 60 < self.period_minutes < 1440:
            return str(self.period_minutes // 60)
        return ""

    @property
    def script_path(self) -> str:
        return f"{self.script_dir.rstrip('/')}/etcd-backup.sh"
