# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/health.py

from __future__ import annotations

import logging

from ...utils.cache import Cache
from ...utils.ssh_runner import Runner
from .errors import HealthCheckError
from .etcdctl import etcdctl_cmd
from .models import EtcdSettings, Host
from .state import cluster_state

log = logging.getLogger("etcdboot")

HEALTHY_MARKER = "cluster is healthy"


class HealthVerifier:
    """Point-in-time health check; retries belong to the caller."""

    def __init__(self, settings: EtcdSettings, pipeline_cache: Cache):
        self.settings = settings
        self.pipeline_cache = pipeline_cache

    def check_healthy(self, runner: Runner, host: Host) -> None:
        snap = cluster_state(self.pipeline_cache).snapshot()
        if not snap.access_addresses:
            raise HealthCheckError("no access addresses to check", host=host.name, step="health")

        cmd = etcdctl_cmd(self.settings, host, snap.access_addresses, "cluster-health")
        rc, out, err = runner.run(cmd, sudo=True)
        if rc != 0 or HEALTHY_MARKER not in out:
            detail = (err or out).strip().splitlines()
            raise HealthCheckError(
                f"etcd health check failed (rc={rc}): {detail[-1] if detail else 'no output'}",
                host=host.name,
                step="health",
            )
        log.info("[%s] etcd cluster is healthy", host.name)
