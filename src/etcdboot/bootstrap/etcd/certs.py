# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/certs.py

from __future__ import annotations

import logging
import posixpath
import threading
from pathlib import Path
from typing import FrozenSet, Iterable, Optional

from ...utils.ssh_runner import CommandError, Runner
from ..template_renderer import TemplateRenderer
from .errors import CertificateError
from .models import CONTROL_PLANE_ROLE, ETCD_ROLE, EtcdSettings, Host, Inventory

log = logging.getLogger("etcdboot")

CA_FILES = ("ca.pem", "ca-key.pem")


def member_cert_files(name: str) -> tuple[str, ...]:
    return (
        f"admin-{name}.pem",
        f"admin-{name}-key.pem",
        f"member-{name}.pem",
        f"member-{name}-key.pem",
    )


def node_cert_files(name: str) -> tuple[str, ...]:
    return (f"node-{name}.pem", f"node-{name}-key.pem")


def derive_cert_files(member_hosts: Iterable[Host], control_plane_hosts: Iterable[Host]) -> FrozenSet[str]:
    """
    Every certificate/key file name the run needs. Pure and order independent.
    """
    files = set(CA_FILES)
    for h in member_hosts:
        files.update(member_cert_files(h.name))
    for h in control_plane_hosts:
        files.update(node_cert_files(h.name))
    return frozenset(files)


def cert_files_for_host(host: Host) -> FrozenSet[str]:
    """
    The subset a single host needs: the CA pair, plus its own admin/member
    pair when it runs etcd, plus its node pair when it is control plane.
    """
    files = set(CA_FILES)
    if host.has_role(ETCD_ROLE):
        files.update(member_cert_files(host.name))
    if host.has_role(CONTROL_PLANE_ROLE):
        files.update(node_cert_files(host.name))
    return frozenset(files)


class CertificateProvisioner:
    """
    Generates the etcd PKI once, on a single host, stages it locally and
    pushes each host the files it needs.
    """

    SCRIPT = "make-ssl-etcd.sh"
    OPENSSL_CONF = "openssl.conf"

    def __init__(
        self,
        settings: EtcdSettings,
        renderer: Optional[TemplateRenderer] = None,
        staging_dir: Optional[Path] = None,
        ca_days: int = 36500,
        cert_days: int = 36500,
    ):
        self.settings = settings
        self.renderer = renderer or TemplateRenderer()
        self.staging_dir = Path(staging_dir or settings.work_dir / "ETCD_certs")
        self.ca_days = ca_days
        self.cert_days = cert_days
        self._lock = threading.Lock()
        self._generated_on: Optional[str] = None
        self._files: FrozenSet[str] = frozenset()

    def _openssl_context(self, inventory: Inventory) -> dict:
        dns = ["localhost"]
        ips = ["127.0.0.1"]
        for h in inventory.hosts_with_role(ETCD_ROLE):
            for n in (h.name, f"etcd-{h.name}"):
                if n not in dns:
                    dns.append(n)
            for ip in (h.internal_address, h.address):
                if ip not in ips:
                    ips.append(ip)
        return {"dns_names": dns, "ips": ips}

    def generate(self, runner: Runner, host: Host, inventory: Inventory) -> FrozenSet[str]:
        """
        Render the script and openssl config on *host*, run it, and pull the
        derived file set into the local staging dir. Only one call per run
        succeeds; a second raises.
        """
        with self._lock:
            if self._generated_on is not None:
                raise CertificateError(
                    f"certificates were already generated on {self._generated_on}",
                    host=host.name,
                    step="certs",
                )
            self._generated_on = host.name

        cert_dir = self.settings.cert_dir
        members = inventory.hosts_with_role(ETCD_ROLE)
        nodes = inventory.hosts_with_role(CONTROL_PLANE_ROLE)
        files = derive_cert_files(members, nodes)

        log.info("[%s] Generating etcd certificates (%d files)...", host.name, len(files))
        try:
            runner.sudo_cmd(f"mkdir -p {cert_dir}")
            self.renderer.render_to(
                runner,
                f"{self.OPENSSL_CONF}.j2",
                posixpath.join(cert_dir, self.OPENSSL_CONF),
                self._openssl_context(inventory),
            )
            self.renderer.render_to(
                runner,
                f"{self.SCRIPT}.j2",
                posixpath.join(cert_dir, self.SCRIPT),
                {
                    "cert_dir": cert_dir,
                    "member_hosts": [h.name for h in members],
                    "node_hosts": [h.name for h in nodes],
                    "ca_days": self.ca_days,
                    "cert_days": self.cert_days,
                },
                mode=0o755,
            )
            runner.sudo_cmd(f"chmod +x {cert_dir}/{self.SCRIPT}")
            runner.sudo_cmd(
                f"/bin/bash -x {cert_dir}/{self.SCRIPT} -f {cert_dir}/{self.OPENSSL_CONF} -d {cert_dir}"
            )
        except CommandError as e:
            raise CertificateError("generate etcd certs failed", host=host.name, step="certs") from e

        tmp_certs_dir = posixpath.join(self.settings.remote_tmp_dir, "ETCD_certs")
        try:
            runner.sudo_cmd(
                f"rm -rf {tmp_certs_dir} && mkdir -p {self.settings.remote_tmp_dir} "
                f"&& cp -r {cert_dir} {tmp_certs_dir} && chmod -R a+r {tmp_certs_dir}"
            )
        except CommandError as e:
            raise CertificateError("copy certs result failed", host=host.name, step="certs") from e

        self.staging_dir.mkdir(parents=True, exist_ok=True)
        for name in sorted(files):
            try:
                runner.fetch_file(posixpath.join(tmp_certs_dir, name), self.staging_dir / name)
            except (OSError, CommandError) as e:
                raise CertificateError(f"fetch etcd certs file {name} failed", host=host.name, step="certs") from e

        self._files = files
        log.info("[%s] Staged etcd certificates in %s", host.name, self.staging_dir)
        return files

    def distribute(self, runner: Runner, host: Host) -> FrozenSet[str]:
        """
        Push the files *host* needs from staging into its cert dir.
        """
        if self._generated_on is None or not self._files:
            raise CertificateError("no staged certificates to distribute", host=host.name, step="certs")

        wanted = cert_files_for_host(host)
        missing = wanted - self._files
        if missing:
            raise CertificateError(
                f"staged set lacks {', '.join(sorted(missing))}", host=host.name, step="certs"
            )

        log.info("[%s] Syncing %d etcd certificate files...", host.name, len(wanted))
        for name in sorted(wanted):
            try:
                runner.put_file(
                    self.staging_dir / name,
                    posixpath.join(self.settings.cert_dir, name),
                    sudo=True,
                )
            except (OSError, CommandError) as e:
                raise CertificateError(f"scp etcd certs file {name} failed", host=host.name, step="certs") from e
        return wanted
