# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/envfile.py

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ...utils.cache import Cache
from ...utils.ssh_runner import CommandError, Runner
from ..template_renderer import TemplateRenderer
from .errors import EtcdError
from .models import EXISTING_CLUSTER, PRIMARY_ARCH, EtcdSettings, Host
from .state import ClusterSnapshot, cluster_state, host_identity

log = logging.getLogger("etcdboot")

ENV_TEMPLATE = "etcd.env.j2"


class EtcdConfigGenerator:
    """
    Renders /etc/etcd.env for a host from the current cluster snapshot.
    """

    def __init__(self, settings: EtcdSettings, pipeline_cache: Cache, renderer: Optional[TemplateRenderer] = None):
        self.settings = settings
        self.pipeline_cache = pipeline_cache
        self.renderer = renderer or TemplateRenderer()

    def context(self, host: Host, snap: ClusterSnapshot, state: str, peers: Optional[Sequence[str]] = None) -> dict:
        identity = host_identity(host)
        return {
            "tag": self.settings.version,
            "name": identity.member_name,
            "ip": host.internal_address,
            "hostname": host.name,
            "state": state,
            "peer_addresses": snap.initial_cluster if peers is None else ",".join(peers),
            "unsupported_arch": host.arch != PRIMARY_ARCH,
            "arch": host.arch,
            "client_port": self.settings.client_port,
            "peer_port": self.settings.peer_port,
            "cert_dir": self.settings.cert_dir,
            "data_dir": self.settings.data_dir,
        }

    def render(self, runner: Runner, host: Host, peers: Optional[Sequence[str]] = None) -> str:
        """
        First render for a host: 'new' while no running member has been seen,
        'existing' otherwise. Returns the token used.

        *peers* narrows ETCD_INITIAL_CLUSTER for a joiner, which must list only
        members the running cluster already knows plus itself.
        """
        snap = cluster_state(self.pipeline_cache).snapshot()
        self._write(runner, host, snap, snap.token, peers)
        return snap.token

    def refresh(self, runner: Runner, host: Host, to_existing: bool = True) -> str:
        snap = cluster_state(self.pipeline_cache).snapshot()
        token = EXISTING_CLUSTER if to_existing else snap.token
        self._write(runner, host, snap, token)
        return token

    def _write(
        self, runner: Runner, host: Host, snap: ClusterSnapshot, token: str, peers: Optional[Sequence[str]] = None
    ) -> None:
        count = len(snap.peer_addresses if peers is None else peers)
        log.info("[%s] Writing %s (state=%s, %d peers)", host.name, self.settings.env_file, token, count)
        try:
            self.renderer.render_to(runner, ENV_TEMPLATE, self.settings.env_file, self.context(host, snap, token, peers))
        except CommandError as e:
            raise EtcdError(f"write {self.settings.env_file} failed", host=host.name, step="config") from e
