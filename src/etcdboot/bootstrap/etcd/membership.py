# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/membership.py

from __future__ import annotations

import logging

from ...utils.cache import Cache
from ...utils.ssh_runner import CommandError, Runner
from .errors import JoinError
from .etcdctl import etcdctl_cmd
from .models import EtcdSettings, Host
from .state import cluster_state, host_identity

log = logging.getLogger("etcdboot")


class MembershipJoinCoordinator:
    """
    Adds a host to an already running cluster and confirms it shows up.

    `member add` is not idempotent: callers retrying after a partial failure
    should check is_registered() first and call join() at most once per attempt.
    """

    def __init__(self, settings: EtcdSettings, pipeline_cache: Cache):
        self.settings = settings
        self.pipeline_cache = pipeline_cache

    def join(self, runner: Runner, host: Host) -> str:
        identity = host_identity(host)
        snap = cluster_state(self.pipeline_cache).snapshot()

        if identity.already_member:
            raise JoinError(f"'{identity.member_name}' is already a member", host=host.name, step="join")
        if not snap.exists:
            raise JoinError("no running cluster to join", host=host.name, step="join")
        if not snap.access_addresses:
            raise JoinError("cluster access addresses are not set", host=host.name, step="join")

        peer_url = self.settings.peer_url(host)
        cmd = etcdctl_cmd(
            self.settings, host, snap.access_addresses,
            f"member add {identity.member_name} {peer_url}",
        )
        log.info("[%s] Adding etcd member %s (%s)", host.name, identity.member_name, peer_url)
        try:
            return runner.sudo_cmd(cmd)
        except CommandError as e:
            raise JoinError("add etcd member failed", host=host.name, step="join") from e

    def member_list(self, runner: Runner, host: Host) -> str:
        snap = cluster_state(self.pipeline_cache).snapshot()
        if not snap.access_addresses:
            raise JoinError("cluster access addresses are not set", host=host.name, step="verify")
        cmd = etcdctl_cmd(self.settings, host, snap.access_addresses, "--no-sync member list")
        try:
            return runner.sudo_cmd(cmd)
        except CommandError as e:
            raise JoinError("list etcd member failed", host=host.name, step="verify") from e

    def is_member(self, runner: Runner, host: Host) -> bool:
        return self.settings.client_url(host) in self.member_list(runner, host)

    def is_registered(self, runner: Runner, host: Host) -> bool:
        """True once member add went through, even before the new member has started."""
        return self.settings.peer_url(host) in self.member_list(runner, host)

    def verify_membership(self, runner: Runner, host: Host) -> None:
        if not self.is_member(runner, host):
            raise JoinError(
                f"{self.settings.client_url(host)} not found in member list after add",
                host=host.name,
                step="verify",
            )
        log.info("[%s] etcd member verified", host.name)
