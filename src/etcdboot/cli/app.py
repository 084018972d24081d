# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from etcdboot.bootstrap.etcd.certs import cert_files_for_host, derive_cert_files
from etcdboot.bootstrap.etcd.errors import EtcdError
from etcdboot.bootstrap.etcd.manager import EtcdManager
from etcdboot.bootstrap.etcd.models import CONTROL_PLANE_ROLE, ETCD_ROLE
from etcdboot.config.loader import load_config
from etcdboot.config.models import EtcdClusterConfig
from etcdboot.logging.log import init_logging
from etcdboot.observers.console import ConsoleObserver
from etcdboot.observers.dispatcher import EventBus
from etcdboot.observers.events import new_ctx
from etcdboot.observers.jsonfile import JsonFileObserver
from etcdboot.observers.logger import LoggerObserver


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="etcd cluster bootstrap CLI")

CONFIG_OPTION = typer.Option(..., "--config", "-c", exists=True, dir_okay=False, help="Cluster YAML")


def _build_manager(cfg: EtcdClusterConfig, *, debug: bool, console: bool = True) -> EtcdManager:
    logger, run_id, _ = init_logging(verbose=debug)

    observers = [
        LoggerObserver(logger),
        JsonFileObserver(Path.home() / ".etcdboot/logs" / f"{run_id}.jsonl"),
    ]
    if console:
        observers.insert(0, ConsoleObserver())

    run_ctx = new_ctx(env=cfg.environment, context=cfg.name)
    run_ctx["run_id"] = run_id

    return EtcdManager(
        cfg.settings(),
        backup=cfg.backup_schedule() if cfg.etcd.backup.enabled else None,
        bus=EventBus(observers=observers),
        parallel=cfg.etcd.parallel,
        max_workers=cfg.etcd.max_workers,
        health_retries=cfg.etcd.health_retries,
        health_delay=cfg.etcd.health_delay_seconds,
        run_ctx=run_ctx,
    )


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def deploy(
    config: Path = CONFIG_OPTION,
    debug: bool = typer.Option(False, "--debug", help="Verbose console logging"),
    parallel: Optional[bool] = typer.Option(None, "--parallel/--sequential", help="Override etcd.parallel"),
):
    """
    Create the etcd cluster, or add any new etcd hosts to the running one.
    """
    cfg = load_config(config)
    if parallel is not None:
        cfg.etcd.parallel = parallel
    mgr = _build_manager(cfg, debug=debug)
    try:
        snap = mgr.deploy(cfg.to_inventory())
    except EtcdError as e:
        typer.secho(f"etcd deploy failed: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    finally:
        mgr.close()

    typer.secho("etcd cluster ready", fg=typer.colors.GREEN)
    for peer in snap.peer_addresses:
        typer.echo(f"  {peer}")


@app.command()
def certs(
    config: Path = CONFIG_OPTION,
    per_host: bool = typer.Option(False, "--per-host", help="Show which files each host receives"),
):
    """
    Print the certificate and key file names the cluster needs.
    """
    cfg = load_config(config)
    inventory = cfg.to_inventory()

    if per_host:
        for h in inventory.hosts:
            if not (h.has_role(ETCD_ROLE) or h.has_role(CONTROL_PLANE_ROLE)):
                continue
            typer.echo(f"{h.name}:")
            for name in sorted(cert_files_for_host(h)):
                typer.echo(f"  {name}")
        return

    files = derive_cert_files(
        inventory.hosts_with_role(ETCD_ROLE),
        inventory.hosts_with_role(CONTROL_PLANE_ROLE),
    )
    for name in sorted(files):
        typer.echo(name)


@app.command()
def health(
    config: Path = CONFIG_OPTION,
    debug: bool = typer.Option(False, "--debug", help="Verbose console logging"),
):
    """
    Run one cluster health check from the first etcd host.
    """
    cfg = load_config(config)
    mgr = _build_manager(cfg, debug=debug, console=False)
    try:
        snap = mgr.check(cfg.to_inventory())
    except EtcdError as e:
        typer.secho(f"etcd unhealthy: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    finally:
        mgr.close()

    typer.secho(f"etcd cluster is healthy ({snap.access_addresses})", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
