# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/backup.py

from __future__ import annotations

import logging
from typing import Optional

from ...utils.ssh_runner import CommandError, Runner
from ..template_renderer import TemplateRenderer
from .errors import BackupError
from .models import BackupSchedule, EtcdSettings, Host

log = logging.getLogger("etcdboot")

BACKUP_TEMPLATE = "etcd-backup.sh.j2"


class BackupScheduler:
    """
    Installs etcd-backup.sh and runs it once. The script registers its own
    systemd timer for later runs.
    """

    def __init__(self, settings: EtcdSettings, schedule: BackupSchedule, renderer: Optional[TemplateRenderer] = None):
        self.settings = settings
        self.schedule = schedule
        self.renderer = renderer or TemplateRenderer()

    def context(self, host: Host) -> dict:
        s = self.schedule
        return {
            "hostname": host.name,
            "endpoint": self.settings.client_url(host),
            "bin_dir": self.settings.bin_dir,
            "cert_dir": self.settings.cert_dir,
            "data_dir": self.settings.data_dir,
            "backup_dir": s.backup_dir,
            "keep_backup_number": s.keep_backup_number,
            "backup_period": s.period_minutes,
            "script_dir": s.script_dir,
            "backup_hour": s.backup_hour,
        }

    def install(self, runner: Runner, host: Host) -> None:
        script = self.schedule.script_path
        log.info("[%s] Installing etcd backup script %s", host.name, script)
        try:
            self.renderer.render_to(runner, BACKUP_TEMPLATE, script, self.context(host), mode=0o755)
            runner.sudo_cmd(f"chmod +x {script}")
        except CommandError as e:
            raise BackupError("install etcd backup script failed", host=host.name, step="backup") from e
        try:
            runner.sudo_cmd(f"bash {script}")
        except CommandError as e:
            raise BackupError("failed to run etcd-backup.sh", host=host.name, step="backup") from e
