from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import pytest

from etcdboot.bootstrap.etcd.models import CONTROL_PLANE_ROLE, ETCD_ROLE, EtcdSettings, Host
from etcdboot.utils.ssh_runner import CommandError

Response = Union[Tuple[int, str, str], Callable[[str], Tuple[int, str, str]]]


# ----------------- Fake runner -----------------

class FakeRunner:
    """
    Records every command and file transfer instead of talking SSH.
    `responses` is a list of (substring, response); the first substring found
    in the command wins. A response is (rc, stdout, stderr) or a callable
    taking the command and returning one.
    """

    def __init__(self, hostname: str, responses: Optional[List[Tuple[str, Response]]] = None,
                 files: Optional[set] = None):
        self.hostname = hostname
        self.responses = list(responses or [])
        self.files = set(files or ())
        self.commands: List[str] = []
        self.written: Dict[str, str] = {}
        self.history: List[Tuple[str, str]] = []
        self.pushed: Dict[str, bytes] = {}
        self.fetched: List[str] = []
        self.fail_put: set = set()
        self.probe_error: Optional[Exception] = None
        self.closed = False

    def run(self, cmd, *, sudo=False, timeout=None):
        self.commands.append(cmd)
        for sub, resp in self.responses:
            if sub in cmd:
                return resp(cmd) if callable(resp) else resp
        return 0, "", ""

    def sudo_cmd(self, cmd, *, timeout=None):
        rc, out, err = self.run(cmd, sudo=True, timeout=timeout)
        if rc != 0:
            raise CommandError(cmd, rc, err, hostname=self.hostname)
        return out.strip()

    def file_exists(self, remote_path):
        if self.probe_error is not None:
            raise self.probe_error
        return remote_path in self.files

    def put_text(self, content, remote_path, *, sudo=False, mode=0o644):
        self.written[remote_path] = content
        self.history.append((remote_path, content))

    def put_file(self, local_path, remote_path, *, sudo=False):
        if remote_path in self.fail_put:
            raise OSError(f"sftp put {remote_path} failed")
        self.pushed[remote_path] = Path(local_path).read_bytes()

    def fetch_file(self, remote_path, local_path):
        self.fetched.append(remote_path)
        Path(local_path).write_text(f"pem from {self.hostname}:{remote_path}\n")

    def close(self):
        self.closed = True

    def ran(self, sub: str) -> bool:
        return any(sub in c for c in self.commands)


class FakeEtcdCluster:
    """
    Just enough of `etcdctl member add/list` to drive join and verify.
    Members are (name, peer_url, client_url); client_url is empty until started.
    """

    def __init__(self, members=None):
        self.members = list(members or [])

    def member_list(self, cmd):
        lines = []
        for i, (name, peer, client) in enumerate(self.members):
            lines.append(f"{i:016x}: name={name} peerURLs={peer} clientURLs={client} isLeader={'true' if i == 0 else 'false'}")
        return 0, "\n".join(lines) + "\n", ""

    def member_add(self, cmd):
        args = cmd.split("member add", 1)[1].split()
        name, peer = args[0], args[1]
        if any(m[0] == name for m in self.members):
            return 1, "", "membership: ID exists"
        self.members.append((name, peer, ""))
        return 0, f"Added member named {name} with ID 1234 to cluster\n", ""

    def start(self, name, client_url):
        self.members = [(n, p, client_url if n == name else c) for n, p, c in self.members]

    def restart_response(self, runner, name, client_url):
        """
        `systemctl restart` for a joining member. Like etcd it refuses to start
        when ETCD_INITIAL_CLUSTER disagrees with the registered members.
        """
        def _restart(cmd):
            env = runner.written.get("/etc/etcd.env", "")
            listed = {
                p.split("=", 1)[0]
                for line in env.splitlines() if line.startswith("ETCD_INITIAL_CLUSTER=")
                for p in line.split("=", 1)[1].split(",")
            }
            if listed != {m[0] for m in self.members}:
                return 1, "", "error validating peerURLs: member count is unequal"
            self.start(name, client_url)
            return 0, "", ""
        return _restart

    def responses(self):
        return [
            ("member list", self.member_list),
            ("member add", self.member_add),
            ("cluster-health", (0, "member 1 is healthy\ncluster is healthy\n", "")),
        ]


# ----------------- Fixtures -----------------

@pytest.fixture
def settings(tmp_path: Path) -> EtcdSettings:
    return EtcdSettings(work_dir=tmp_path / "work")


@pytest.fixture
def make_runner():
    def _make(hostname="node1", **kw) -> FakeRunner:
        return FakeRunner(hostname, **kw)
    return _make


@pytest.fixture
def fake_cluster_cls():
    return FakeEtcdCluster


@pytest.fixture
def three_hosts():
    return [
        Host(name=f"node{i}", address=f"10.0.0.{i}", roles=(ETCD_ROLE, CONTROL_PLANE_ROLE))
        for i in (1, 2, 3)
    ]
