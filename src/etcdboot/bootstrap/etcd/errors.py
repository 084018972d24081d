# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/errors.py
from __future__ import annotations

from typing import Optional


class EtcdError(RuntimeError):
    """Base class for etcd provisioning failures."""

    def __init__(self, message: str, *, host: Optional[str] = None, step: Optional[str] = None):
        self.host = host
        self.step = step
        prefix = ""
        if step:
            prefix += f"[{step}]"
        if host:
            prefix += f"[{host}]"
        super().__init__(f"{prefix} {message}" if prefix else message)


class ProbeError(EtcdError):
    """Raised when a host cannot be inspected for an existing etcd install."""


class MissingClusterStateError(EtcdError):
    """Raised when cluster state is read before any host was folded into it."""


class DuplicateMemberError(EtcdError):
    """Raised when two hosts claim the same member name with different peer URLs."""


class CertificateError(EtcdError):
    """Raised when certificate generation, retrieval or distribution fails."""


class BinaryInstallError(EtcdError):
    """Raised when the etcd release cannot be fetched or installed."""


class JoinError(EtcdError):
    """Raised when member add fails or the new member is not visible afterwards."""


class HealthCheckError(EtcdError):
    """Raised when the cluster does not report itself healthy."""


class EtcdServiceError(EtcdError):
    """Raised when the etcd systemd unit cannot be (re)started."""


class BackupError(EtcdError):
    """Raised when the backup script cannot be installed or run."""
