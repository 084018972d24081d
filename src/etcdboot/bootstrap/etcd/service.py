# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/service.py

from __future__ import annotations

import logging

from ...utils.ssh_runner import CommandError, Runner
from .errors import EtcdServiceError
from .models import Host

log = logging.getLogger("etcdboot")


def restart_etcd(runner: Runner, host: Host) -> None:
    log.info("[%s] Restarting etcd...", host.name)
    try:
        runner.sudo_cmd("systemctl daemon-reload && systemctl restart etcd && systemctl enable etcd")
    except CommandError as e:
        raise EtcdServiceError("start etcd failed", host=host.name, step="restart") from e
