# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/status.py

from __future__ import annotations

import logging

import paramiko

from ...utils.cache import Cache
from ...utils.ssh_runner import CommandError, Runner
from .errors import ProbeError
from .models import ETCD_ROLE, EtcdSettings, Host, HostEtcdIdentity, Inventory
from .state import (
    ClusterSnapshot,
    cluster_state,
    ensure_cluster_state,
    set_host_identity,
)

log = logging.getLogger("etcdboot")


class ClusterStateAggregator:
    """
    Works out whether each host already runs an etcd member and folds the
    answer into the run's shared ClusterFormationState.
    """

    def __init__(self, settings: EtcdSettings, pipeline_cache: Cache):
        self.settings = settings
        self.pipeline_cache = pipeline_cache

    def probe(self, runner: Runner, host: Host) -> HostEtcdIdentity:
        env_file = self.settings.env_file
        try:
            exist = runner.file_exists(env_file)
            if exist:
                line = runner.sudo_cmd(f"cat {env_file} | grep ETCD_NAME=")
        except (CommandError, paramiko.SSHException, OSError) as e:
            raise ProbeError(f"cannot inspect {env_file}", host=host.name, step="probe") from e

        if exist:
            name = _parse_etcd_name(line)
            if not name:
                raise ProbeError(f"no ETCD_NAME in {env_file}", host=host.name, step="probe")
            identity = HostEtcdIdentity(member_name=name, already_member=True)
            log.info("[%s] Found running etcd member '%s'", host.name, name)
        else:
            identity = HostEtcdIdentity(member_name=f"etcd-{host.name}", already_member=False)
            log.info("[%s] No etcd installation found, will use name '%s'", host.name, identity.member_name)

        set_host_identity(host, identity)
        return identity

    def fold(self, host: Host, identity: HostEtcdIdentity) -> ClusterSnapshot:
        state = ensure_cluster_state(self.pipeline_cache)
        snap = state.fold(identity, self.settings.peer_url(host))
        log.debug(
            "[%s] folded into cluster state: exists=%s peers=%s",
            host.name, snap.exists, snap.initial_cluster,
        )
        return snap

    def probe_and_fold(self, runner: Runner, host: Host) -> ClusterSnapshot:
        return self.fold(host, self.probe(runner, host))

    def generate_access_addresses(self, inventory: Inventory) -> str:
        addrs = ",".join(self.settings.client_url(h) for h in inventory.hosts_with_role(ETCD_ROLE))
        cluster_state(self.pipeline_cache).set_access_addresses(addrs)
        return addrs


def _parse_etcd_name(output: str) -> str:
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("ETCD_NAME="):
            return line.split("=", 1)[1].strip()
    return ""
