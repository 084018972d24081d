# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/manager.py

from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Callable, Dict, List, Optional

from ...observers.dispatcher import EventBus
from ...observers.events import (
    EtcdFailed,
    EtcdProgress,
    EtcdStarted,
    EtcdSucceeded,
    EtcdSummary,
    new_ctx,
    now_ts,
)
from ...utils.cache import Cache
from ...utils.retry import RetryError, retry
from ...utils.ssh_runner import Runner, open_ssh
from ..template_renderer import TemplateRenderer
from .backup import BackupScheduler
from .binary import BinaryInstaller
from .certs import CertificateProvisioner
from .envfile import EtcdConfigGenerator
from .errors import EtcdError, HealthCheckError
from .health import HealthVerifier
from .membership import MembershipJoinCoordinator
from .models import (
    CONTROL_PLANE_ROLE,
    ETCD_ROLE,
    BackupSchedule,
    EtcdSettings,
    Host,
    Inventory,
)
from .service import restart_etcd
from .state import ClusterSnapshot, cluster_state, host_identity
from .status import ClusterStateAggregator

log = logging.getLogger("etcdboot")


class EtcdManager:
    """
    Stands up or grows an etcd cluster:
      - probe every etcd host and fold it into the shared cluster state
      - generate the PKI once (on a running member if any) and sync it out
      - install etcd binaries and the systemd unit
      - new cluster: render 'new' everywhere, start, health check, flip to 'existing'
      - existing cluster: member add each new host one at a time, start, verify
      - install the backup script
    Host-scoped steps run sequentially, or on a thread pool when parallel=True.
    Founders are always started together; member adds are always sequential.
    """

    def __init__(
        self,
        settings: EtcdSettings,
        *,
        backup: Optional[BackupSchedule] = None,
        bus: Optional[EventBus] = None,
        connect: Callable[[Host], Runner] = open_ssh,
        renderer: Optional[TemplateRenderer] = None,
        parallel: bool = False,
        max_workers: int = 8,
        health_retries: int = 20,
        health_delay: float = 10.0,
        env: str = "dev",
        cluster_name: Optional[str] = None,
        run_ctx: Optional[dict] = None,
    ):
        self.settings = settings
        self.backup = backup
        self.bus = bus or EventBus()
        self.connect = connect
        self.parallel = parallel
        self.max_workers = max_workers
        self.health_retries = health_retries
        self.health_delay = health_delay
        self.run_ctx = run_ctx or new_ctx(env=env, context=cluster_name)

        renderer = renderer or TemplateRenderer()
        self.pipeline_cache = Cache()
        self.aggregator = ClusterStateAggregator(settings, self.pipeline_cache)
        self.certs = CertificateProvisioner(settings, renderer=renderer)
        self.binary = BinaryInstaller(settings, renderer=renderer)
        self.config = EtcdConfigGenerator(settings, self.pipeline_cache, renderer=renderer)
        self.membership = MembershipJoinCoordinator(settings, self.pipeline_cache)
        self.health = HealthVerifier(settings, self.pipeline_cache)
        self.backups = BackupScheduler(settings, backup, renderer=renderer) if backup else None

        self._runners: Dict[str, Runner] = {}
        self._runners_lock = threading.Lock()

    # ------------- connections -------------

    def runner(self, host: Host) -> Runner:
        with self._runners_lock:
            r = self._runners.get(host.name)
        if r is not None:
            return r

        log.debug("[%s] connecting to %s:%s", host.name, host.address, host.port)
        r = self.connect(host)
        with self._runners_lock:
            kept = self._runners.setdefault(host.name, r)
        if kept is not r:
            # another thread connected to the same host first
            r.close()
        return kept

    def close(self) -> None:
        with self._runners_lock:
            runners, self._runners = list(self._runners.values()), {}
        for r in runners:
            try:
                r.close()
            except OSError:
                log.debug("error closing connection to %s", r.hostname, exc_info=True)

    # ------------- step helpers -------------

    def _emit(self, cls, **kw) -> None:
        self.bus.emit(cls(**kw, **{**self.run_ctx, "ts": now_ts()}))

    def _each(
        self,
        stage: str,
        hosts: List[Host],
        fn: Callable[[Runner, Host], object],
        *,
        all_at_once: bool = False,
    ) -> None:
        """
        Run *fn* on every host. all_at_once forces one worker per host
        regardless of the parallel setting.
        """
        def _one(h: Host) -> None:
            fn(self.runner(h), h)
            self._emit(EtcdProgress, stage=stage, host=h.name, message="done")

        if not (self.parallel or all_at_once) or len(hosts) < 2:
            for h in hosts:
                _one(h)
            return

        workers = len(hosts) if all_at_once else self.max_workers
        errors: List[BaseException] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(_one, h): h for h in hosts}
            for fut in concurrent.futures.as_completed(futures):
                exc = fut.exception()
                if exc is not None:
                    log.error("[%s] %s failed: %s", futures[fut].name, stage, exc)
                    errors.append(exc)
        if errors:
            raise errors[0]

    def _wait_healthy(self, runner: Runner, host: Host) -> None:
        check = retry(
            retries=self.health_retries,
            delay=self.health_delay,
            retry_on=(HealthCheckError,),
            on_retry=lambda attempt, exc: log.info(
                "[%s] etcd not healthy yet (attempt %d/%d)", host.name, attempt, self.health_retries
            ),
        )(self.health.check_healthy)
        try:
            check(runner, host)
        except RetryError as e:
            raise HealthCheckError(
                f"cluster not healthy after {self.health_retries} attempts", host=host.name, step="health"
            ) from e

    # ------------- stages -------------

    def collect_status(self, inventory: Inventory) -> ClusterSnapshot:
        etcd_hosts = inventory.hosts_with_role(ETCD_ROLE)
        self._each("status", etcd_hosts, self.aggregator.probe_and_fold)
        self.aggregator.generate_access_addresses(inventory)
        return cluster_state(self.pipeline_cache).snapshot()

    def cert_host(self, inventory: Inventory) -> Host:
        """
        The host that generates the PKI: a running member if there is one, so
        its existing CA is reused, otherwise the first etcd host.
        """
        etcd_hosts = inventory.hosts_with_role(ETCD_ROLE)
        for h in etcd_hosts:
            if host_identity(h).already_member:
                return h
        return etcd_hosts[0]

    def provision_certs(self, inventory: Inventory) -> None:
        first = self.cert_host(inventory)
        self.certs.generate(self.runner(first), first, inventory)
        cert_hosts = [h for h in inventory.hosts if h.has_role(ETCD_ROLE) or h.has_role(CONTROL_PLANE_ROLE)]
        self._each("certs", cert_hosts, self.certs.distribute)

    def install_binaries(self, inventory: Inventory) -> None:
        def _install(runner: Runner, host: Host) -> None:
            if self.binary.install(runner, host):
                self.binary.install_service(runner, host)

        self._each("binary", inventory.hosts_with_role(ETCD_ROLE), _install)

    def bootstrap_new_cluster(self, etcd_hosts: List[Host]) -> None:
        self._each("config", etcd_hosts, self.config.render)
        # a founder only reports ready to systemd once it has quorum, so a
        # restart on one host blocks until enough of the others are starting
        self._each("start", etcd_hosts, restart_etcd, all_at_once=True)
        for h in etcd_hosts:
            self._wait_healthy(self.runner(h), h)

        # founders now restart against the live cluster instead of re-founding it
        self._each("refresh", etcd_hosts, lambda r, h: self.config.refresh(r, h, to_existing=True))
        for h in etcd_hosts:
            restart_etcd(self.runner(h), h)
            self._wait_healthy(self.runner(h), h)

    def grow_existing_cluster(self, etcd_hosts: List[Host]) -> None:
        members = [h for h in etcd_hosts if host_identity(h).already_member]
        joiners = [h for h in etcd_hosts if not host_identity(h).already_member]

        self._each("health", members, self._wait_healthy)

        # a joiner's initial cluster lists the running members, the joiners
        # added before it and itself, never hosts still waiting for member add
        snap = cluster_state(self.pipeline_cache).snapshot()
        known = [host_identity(h).member_name for h in members]

        for h in joiners:
            runner = self.runner(h)
            name = host_identity(h).member_name
            self.config.render(runner, h, peers=snap.peers_named(known + [name]))
            if self.membership.is_registered(runner, h):
                log.info("[%s] already listed as a member, skipping member add", h.name)
            else:
                self.membership.join(runner, h)
            restart_etcd(runner, h)
            self._wait_healthy(runner, h)
            self.membership.verify_membership(runner, h)
            known.append(name)
            self._emit(EtcdProgress, stage="join", host=h.name, message="member added")

        self._each("refresh", etcd_hosts, lambda r, h: self.config.refresh(r, h, to_existing=True))

    def install_backups(self, etcd_hosts: List[Host]) -> None:
        if self.backups is None:
            return
        self._each("backup", etcd_hosts, self.backups.install)

    # ------------- public API -------------

    def deploy(self, inventory: Inventory) -> ClusterSnapshot:
        etcd_hosts = inventory.hosts_with_role(ETCD_ROLE)
        if not etcd_hosts:
            raise EtcdError("inventory has no etcd hosts", step="deploy")

        stage = "status"
        self._emit(EtcdStarted, stage="deploy", message=f"{len(etcd_hosts)} etcd hosts")
        try:
            snap = self.collect_status(inventory)
            log.info(
                "etcd cluster %s (%d peers)",
                "exists" if snap.exists else "does not exist yet",
                len(snap.peer_addresses),
            )

            stage = "certs"
            self.provision_certs(inventory)
            stage = "binary"
            self.install_binaries(inventory)

            if snap.exists:
                stage = "join"
                self.grow_existing_cluster(etcd_hosts)
            else:
                stage = "bootstrap"
                self.bootstrap_new_cluster(etcd_hosts)

            stage = "backup"
            self.install_backups(etcd_hosts)
        except EtcdError as e:
            self._emit(EtcdFailed, stage=e.step or stage, host=e.host, error=str(e))
            self._emit(EtcdSummary, status="FAILED", members=[], error=str(e))
            raise

        final = cluster_state(self.pipeline_cache).snapshot()
        self._emit(EtcdSucceeded, stage="deploy", message=final.access_addresses)
        self._emit(EtcdSummary, status="OK", members=list(final.peer_addresses))
        return final

    def check(self, inventory: Inventory) -> ClusterSnapshot:
        """
        Probe the etcd hosts and run one health check from the first of them.
        """
        snap = self.collect_status(inventory)
        first = inventory.hosts_with_role(ETCD_ROLE)[0]
        self.health.check_healthy(self.runner(first), first)
        return snap
