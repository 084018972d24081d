from pathlib import Path
import textwrap

import pytest
from pydantic import ValidationError

from etcdboot.config.loader import load_config

CLUSTER = textwrap.dedent("""
    name: prod-etcd
    environment: prod
    hosts:
      - name: etcd-1
        address: 10.0.0.1
        roles: [etcd, control-plane]
      - name: etcd-2
        address: 10.0.0.2
        internal_address: 192.168.0.2
        arch: arm64
      - name: master-1
        address: 10.0.0.9
        roles: [control-plane]
    etcd:
      version: v3.4.13
      work_dir: ${WORK_ROOT}/work
      backup:
        period_minutes: 120
""")


def test_load_config_builds_inventory_and_settings(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("ETCDBOOT_SECRETS_FILE", raising=False)
    monkeypatch.setenv("WORK_ROOT", str(tmp_path))
    f = tmp_path / "cluster.yaml"
    f.write_text(CLUSTER)

    cfg = load_config(f)
    assert cfg.environment == "prod"

    inv = cfg.to_inventory()
    assert [h.name for h in inv.hosts_with_role("etcd")] == ["etcd-1", "etcd-2"]
    assert inv.get("etcd-2").internal_address == "192.168.0.2"
    assert inv.get("etcd-1").internal_address == "10.0.0.1"

    settings = cfg.settings()
    assert settings.work_dir == tmp_path / "work"
    assert cfg.backup_schedule().backup_hour == "2"


def test_secrets_are_merged_per_host(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("ETCDBOOT_SECRETS_FILE", raising=False)
    monkeypatch.setenv("WORK_ROOT", str(tmp_path))
    (tmp_path / "cluster.yaml").write_text(CLUSTER)
    (tmp_path / "secrets.yaml").write_text(textwrap.dedent("""
        hosts:
          etcd-2:
            password: s3cret
            user: admin
    """))

    cfg = load_config(tmp_path / "cluster.yaml")
    h = cfg.to_inventory().get("etcd-2")
    assert (h.username, h.password) == ("admin", "s3cret")
    assert cfg.to_inventory().get("etcd-1").password is None


def test_secrets_file_from_env(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("WORK_ROOT", str(tmp_path))
    (tmp_path / "cluster.yaml").write_text(CLUSTER)
    other = tmp_path / "elsewhere.yaml"
    other.write_text("etcd:\n  health_retries: 3\n")
    monkeypatch.setenv("ETCDBOOT_SECRETS_FILE", str(other))

    assert load_config(tmp_path / "cluster.yaml").etcd.health_retries == 3


@pytest.mark.parametrize("hosts", [
    "  - {name: m1, address: 10.0.0.1, roles: [control-plane]}\n",
    "  - {name: n1, address: 10.0.0.1}\n  - {name: n1, address: 10.0.0.2}\n",
    "  - {name: n1, address: 10.0.0.1, roles: [worker]}\n",
])
def test_invalid_inventories_are_rejected(tmp_path: Path, monkeypatch, hosts):
    monkeypatch.delenv("ETCDBOOT_SECRETS_FILE", raising=False)
    f = tmp_path / "cluster.yaml"
    f.write_text("hosts:\n" + hosts)
    with pytest.raises(ValidationError):
        load_config(f)
