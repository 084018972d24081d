# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/bootstrap/etcd/etcdctl.py

from __future__ import annotations

from .models import EtcdSettings, Host


def etcdctl_cmd(settings: EtcdSettings, host: Host, endpoints: str, args: str) -> str:
    """
    etcdctl (v2 API) invocation authenticated with *host*'s admin keypair.
    """
    cert_dir = settings.cert_dir
    return (
        "export ETCDCTL_API=2;"
        f"export ETCDCTL_CERT_FILE='{cert_dir}/admin-{host.name}.pem';"
        f"export ETCDCTL_KEY_FILE='{cert_dir}/admin-{host.name}-key.pem';"
        f"export ETCDCTL_CA_FILE='{cert_dir}/ca.pem';"
        f"{settings.bin_dir}/etcdctl --endpoints={endpoints} {args}"
    )
