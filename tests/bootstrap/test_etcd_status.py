import paramiko
import pytest

from etcdboot.bootstrap.etcd.errors import MissingClusterStateError, ProbeError
from etcdboot.bootstrap.etcd.models import Host, Inventory
from etcdboot.bootstrap.etcd.state import cluster_state, host_identity
from etcdboot.bootstrap.etcd.status import ClusterStateAggregator
from etcdboot.utils.cache import Cache


def _existing_runner(make_runner, hostname, etcd_name):
    return make_runner(
        hostname,
        files={"/etc/etcd.env"},
        responses=[("grep ETCD_NAME=", (0, f"ETCD_NAME={etcd_name}\n", ""))],
    )


def test_three_fresh_hosts_found_a_new_cluster(settings, make_runner, three_hosts):
    agg = ClusterStateAggregator(settings, Cache())
    snaps = [agg.probe_and_fold(make_runner(h.name), h) for h in three_hosts]

    assert snaps[0].exists is False
    assert len(snaps[-1].peer_addresses) == 3
    assert snaps[-1].peer_addresses[0] == "etcd-node1=https://10.0.0.1:2380"
    assert all(s.token == "new" for s in snaps)
    assert host_identity(three_hosts[1]).already_member is False


def test_probe_reads_name_from_existing_env_file(settings, make_runner):
    host = Host(name="node4", address="10.0.0.4")
    runner = _existing_runner(make_runner, "node4", "etcd-legacy-4")
    identity = ClusterStateAggregator(settings, Cache()).probe(runner, host)
    assert identity.member_name == "etcd-legacy-4"
    assert identity.already_member is True
    assert host_identity(host) == identity


def test_existing_member_marks_cluster_as_existing(settings, make_runner, three_hosts):
    cache = Cache()
    agg = ClusterStateAggregator(settings, cache)
    agg.probe_and_fold(make_runner("node1"), three_hosts[0])
    snap = agg.probe_and_fold(_existing_runner(make_runner, "node2", "etcd-node2"), three_hosts[1])
    assert snap.exists is True
    snap = agg.probe_and_fold(make_runner("node3"), three_hosts[2])
    assert snap.exists is True
    assert len(snap.peer_addresses) == 3


@pytest.mark.parametrize("exc", [paramiko.SSHException("channel closed"), OSError("broken pipe")])
def test_probe_io_failure_is_fatal(settings, make_runner, exc):
    host = Host(name="node1", address="10.0.0.1")
    runner = make_runner("node1")
    runner.probe_error = exc
    with pytest.raises(ProbeError) as ei:
        ClusterStateAggregator(settings, Cache()).probe(runner, host)
    assert ei.value.host == "node1"
    assert ei.value.step == "probe"


def test_env_file_without_name_is_a_probe_error(settings, make_runner):
    host = Host(name="node1", address="10.0.0.1")
    runner = make_runner("node1", files={"/etc/etcd.env"}, responses=[("grep ETCD_NAME=", (0, "", ""))])
    with pytest.raises(ProbeError, match="no ETCD_NAME"):
        ClusterStateAggregator(settings, Cache()).probe(runner, host)


def test_access_addresses_cover_every_etcd_host(settings, make_runner, three_hosts):
    cache = Cache()
    agg = ClusterStateAggregator(settings, cache)
    inv = Inventory(three_hosts + [Host(name="cp", address="10.0.0.9", roles=("control-plane",))])

    with pytest.raises(MissingClusterStateError):
        agg.generate_access_addresses(inv)

    agg.probe_and_fold(make_runner("node1"), three_hosts[0])
    addrs = agg.generate_access_addresses(inv)
    assert addrs == "https://10.0.0.1:2379,https://10.0.0.2:2379,https://10.0.0.3:2379"
    assert cluster_state(cache).snapshot().access_addresses == addrs
