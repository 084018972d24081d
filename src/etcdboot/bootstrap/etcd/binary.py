# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/binary.py

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import Optional

import requests

from ...utils.ssh_runner import CommandError, Runner
from ..template_renderer import TemplateRenderer
from .errors import BinaryInstallError
from .models import EtcdSettings, Host

log = logging.getLogger("etcdboot")

RELEASE_URL = "https://github.com/etcd-io/etcd/releases/download/{version}/{name}.tar.gz"

# Architectures etcd publishes linux release tarballs for
RELEASE_ARCHES = ("amd64", "arm64", "ppc64le", "s390x")


class BinaryInstaller:
    def __init__(
        self,
        settings: EtcdSettings,
        renderer: Optional[TemplateRenderer] = None,
        download_timeout: int = 300,
    ):
        self.settings = settings
        self.renderer = renderer or TemplateRenderer()
        self.download_timeout = download_timeout

    def release_name(self, arch: str) -> str:
        return f"etcd-{self.settings.version}-linux-{arch}"

    def local_archive(self, arch: str) -> Path:
        return Path(self.settings.work_dir) / self.settings.version / arch / f"{self.release_name(arch)}.tar.gz"

    def ensure_local(self, arch: str) -> Path:
        """
        Return the cached release tarball for *arch*, downloading it first if needed.
        """
        path = self.local_archive(arch)
        if path.is_file():
            return path

        url = RELEASE_URL.format(version=self.settings.version, name=self.release_name(arch))
        log.info("Downloading %s", url)
        path.parent.mkdir(parents=True, exist_ok=True)
        part = path.with_suffix(path.suffix + ".part")
        try:
            with requests.get(url, stream=True, timeout=self.download_timeout) as r:
                r.raise_for_status()
                with part.open("wb") as f:
                    for chunk in r.iter_content(chunk_size=1 << 20):
                        f.write(chunk)
        except requests.RequestException as e:
            part.unlink(missing_ok=True)
            raise BinaryInstallError(f"download {url} failed", step="binary") from e
        part.rename(path)
        return path

    def install(self, runner: Runner, host: Host) -> bool:
        """
        Push and unpack etcd/etcdctl into the bin dir. Hosts on an arch with
        no published release are skipped and False is returned.
        """
        if host.arch not in RELEASE_ARCHES:
            log.warning("[%s] No etcd release for arch '%s', skipping binary install", host.name, host.arch)
            return False

        archive = self.ensure_local(host.arch)
        name = self.release_name(host.arch)
        tmp = self.settings.remote_tmp_dir
        remote_archive = posixpath.join(tmp, archive.name)

        log.info("[%s] Installing %s", host.name, name)
        try:
            runner.sudo_cmd(f"rm -rf {tmp} && mkdir -p {tmp}")
            runner.put_file(archive, remote_archive, sudo=True)
            runner.sudo_cmd(
                f"cd {tmp} && tar -zxf {remote_archive} "
                f"&& cp -f {name}/etcd* {self.settings.bin_dir}/ "
                f"&& chmod +x {self.settings.bin_dir}/etcd* && rm -rf {name}"
            )
        except (CommandError, OSError) as e:
            raise BinaryInstallError("install etcd binaries failed", host=host.name, step="binary") from e
        return True

    def install_service(self, runner: Runner, host: Host) -> None:
        try:
            self.renderer.render_to(
                runner,
                "etcd.service.j2",
                self.settings.service_file,
                {"env_file": self.settings.env_file, "bin_dir": self.settings.bin_dir},
            )
        except CommandError as e:
            raise BinaryInstallError("install etcd.service failed", host=host.name, step="binary") from e
