# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/config/models.py

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..bootstrap.etcd.models import (
    CONTROL_PLANE_ROLE,
    ETCD_ROLE,
    BackupSchedule,
    EtcdSettings,
    Host,
    Inventory,
)

KNOWN_ROLES = {ETCD_ROLE, CONTROL_PLANE_ROLE}


class HostSpec(BaseModel):
    name: str
    address: str
    internal_address: Optional[str] = None
    arch: str = "amd64"
    roles: List[str] = Field(default_factory=lambda: [ETCD_ROLE])
    user: str = "ubuntu"
    port: int = 22
    password: Optional[str] = None
    private_key_path: Optional[str] = None

    @field_validator("roles")
    @classmethod
    def _known_roles(cls, v: List[str]) -> List[str]:
        unknown = set(v) - KNOWN_ROLES
        if unknown:
            raise ValueError(f"unknown roles {sorted(unknown)}; valid: {sorted(KNOWN_ROLES)}")
        return v

    def to_host(self) -> Host:
        return Host(
            name=self.name,
            address=self.address,
            internal_address=self.internal_address,
            arch=self.arch,
            roles=tuple(self.roles),
            username=self.user,
            port=self.port,
            password=self.password,
            pkey_path=self.private_key_path,
        )


class BackupSpec(BaseModel):
    enabled: bool = True
    backup_dir: str = "/var/backups/kube_etcd"
    keep_backup_number: int = Field(default=5, ge=1)
    period_minutes: int = Field(default=30, ge=0)     # 60 < n < 1440 is scheduled in hours
    script_dir: str = "/usr/local/bin/kube-scripts"


class EtcdSpec(BaseModel):
    version: str = "v3.4.13"
    client_port: int = 2379
    peer_port: int = 2380
    cert_dir: str = "/etc/ssl/etcd/ssl"
    bin_dir: str = "/usr/local/bin"
    env_file: str = "/etc/etcd.env"
    data_dir: str = "/var/lib/etcd"
    work_dir: Path = Field(default_factory=lambda: Path.home() / ".etcdboot" / "work")
    parallel: bool = False
    max_workers: int = Field(default=8, ge=1)
    health_retries: int = Field(default=20, ge=1)
    health_delay_seconds: float = Field(default=10, ge=0)
    backup: BackupSpec = Field(default_factory=BackupSpec)


class EtcdClusterConfig(BaseModel):
    name: str = "etcd"
    environment: Literal["dev", "staging", "prod"] = "dev"
    hosts: List[HostSpec]
    etcd: EtcdSpec = Field(default_factory=EtcdSpec)

    @model_validator(mode="after")
    def _has_etcd_hosts(self):
        if not any(ETCD_ROLE in h.roles for h in self.hosts):
            raise ValueError("at least one host needs the 'etcd' role")
        names = [h.name for h in self.hosts]
        if len(names) != len(set(names)):
            raise ValueError("host names must be unique")
        return self

    def to_inventory(self) -> Inventory:
        return Inventory([h.to_host() for h in self.hosts])

    def settings(self) -> EtcdSettings:
        e = self.etcd
        return EtcdSettings(
            version=e.version,
            client_port=e.client_port,
            peer_port=e.peer_port,
            cert_dir=e.cert_dir,
            bin_dir=e.bin_dir,
            env_file=e.env_file,
            data_dir=e.data_dir,
            work_dir=Path(e.work_dir).expanduser(),
        )

    def backup_schedule(self) -> BackupSchedule:
        b = self.etcd.backup
        return BackupSchedule(
            period_minutes=b.period_minutes,
            keep_backup_number=b.keep_backup_number,
            backup_dir=b.backup_dir,
            script_dir=b.script_dir,
        )
