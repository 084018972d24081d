# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/state.py
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from ...utils.cache import Cache
from .errors import DuplicateMemberError, MissingClusterStateError
from .models import EXISTING_CLUSTER, NEW_CLUSTER, Host, HostEtcdIdentity

CLUSTER_STATE_KEY = "etcd_cluster"
HOST_IDENTITY_KEY = "etcd_identity"


@dataclass(frozen=True)
class ClusterSnapshot:
    exists: bool
    peer_addresses: Tuple[str, ...]
    access_addresses: str

    @property
    def initial_cluster(self) -> str:
        return ",".join(self.peer_addresses)

    @property
    def token(self) -> str:
        return EXISTING_CLUSTER if self.exists else NEW_CLUSTER

    def peers_named(self, names: Iterable[str]) -> Tuple[str, ...]:
        """Peer entries for *names* only, in fold order."""
        wanted = set(names)
        return tuple(p for p in self.peer_addresses if p.split("=", 1)[0] in wanted)


class ClusterFormationState:
    """
    Cluster formation state shared by every host in a run.

    Fields are private; all access goes through the lock so a fold from one
    host can never interleave with a fold or a snapshot from another.
    `exists` only moves False -> True and peer entries are only appended.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._exists = False
        self._peers: List[Tuple[str, str]] = []   # (member name, peer url)
        self._access_addresses = ""

    def fold(self, identity: HostEtcdIdentity, peer_url: str) -> ClusterSnapshot:
        with self._lock:
            for name, url in self._peers:
                if name != identity.member_name:
                    continue
                if url != peer_url:
                    raise DuplicateMemberError(
                        f"member '{name}' already registered with {url}, refusing {peer_url}",
                        step="fold",
                    )
                break
            else:
                self._peers.append((identity.member_name, peer_url))
            if identity.already_member:
                self._exists = True
            return self._snapshot()

    def set_access_addresses(self, addresses: str) -> None:
        with self._lock:
            self._access_addresses = addresses

    def snapshot(self) -> ClusterSnapshot:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> ClusterSnapshot:
        return ClusterSnapshot(
            exists=self._exists,
            peer_addresses=tuple(f"{n}={u}" for n, u in self._peers),
            access_addresses=self._access_addresses,
        )


def ensure_cluster_state(cache: Cache) -> ClusterFormationState:
    """Only the aggregator creates the state; everyone else uses cluster_state()."""
    return cache.get_or_create(CLUSTER_STATE_KEY, ClusterFormationState)


def cluster_state(cache: Cache) -> ClusterFormationState:
    v, ok = cache.get(CLUSTER_STATE_KEY)
    if not ok:
        raise MissingClusterStateError("get etcd cluster status by pipeline cache failed")
    return v


def set_host_identity(host: Host, identity: HostEtcdIdentity) -> None:
    host.cache.set(HOST_IDENTITY_KEY, identity)


def host_identity(host: Host) -> HostEtcdIdentity:
    v, ok = host.cache.get(HOST_IDENTITY_KEY)
    if not ok:
        raise MissingClusterStateError("get etcd node status by host cache failed", host=host.name)
    return v
