import textwrap

from typer.testing import CliRunner

from etcdboot.cli.app import app

runner = CliRunner()


def _config(tmp_path, monkeypatch):
    monkeypatch.delenv("ETCDBOOT_SECRETS_FILE", raising=False)
    f = tmp_path / "cluster.yaml"
    f.write_text(textwrap.dedent("""
        hosts:
          - {name: etcd1, address: 10.0.0.1}
          - {name: etcd2, address: 10.0.0.2, roles: [etcd, control-plane]}
          - {name: master1, address: 10.0.0.3, roles: [control-plane]}
    """))
    return f


def test_certs_lists_every_file(tmp_path, monkeypatch):
    result = runner.invoke(app, ["certs", "--config", str(_config(tmp_path, monkeypatch))])
    assert result.exit_code == 0, result.output
    names = result.output.split()
    assert len(names) == 14
    assert names == sorted(names)
    assert "node-master1-key.pem" in names
    assert "node-etcd1.pem" not in names


def test_certs_per_host(tmp_path, monkeypatch):
    result = runner.invoke(app, ["certs", "-c", str(_config(tmp_path, monkeypatch)), "--per-host"])
    assert result.exit_code == 0, result.output
    assert "master1:\n  ca-key.pem\n  ca.pem\n  node-master1-key.pem\n  node-master1.pem\n" in result.output


def test_missing_config_fails(tmp_path):
    result = runner.invoke(app, ["certs", "--config", str(tmp_path / "nope.yaml")])
    assert result.exit_code != 0
