import types

import pytest

from etcdboot.utils.ssh_runner import CommandError, SSHRunner, posix_dirname

# ----------------- Fakes for Paramiko -----------------

class _FakeChannel:
    def __init__(self, rc=0): self._rc = rc
    def recv_exit_status(self): return self._rc

class _Buf:
    def __init__(self, s=""): self._s = s
    def read(self): return self._s.encode()

class _FakeFile:
    def __init__(self, log, path):
        self._buf = []
        self.log = log
        self.path = path
    def write(self, data):
        self._buf.append(data)
    def __enter__(self): return self
    def __exit__(self, *exc):
        self.log.append(("sftp_write", self.path, "".join(self._buf)))
        return False

class FakeSFTP:
    def __init__(self, log): self.log = log
    def open(self, path, mode):
        return _FakeFile(self.log, path)
    def put(self, local, remote):
        self.log.append(("sftp_put", local, remote))
    def get(self, remote, local):
        self.log.append(("sftp_get", remote, local))
    def close(self): self.log.append(("sftp_close",))

class FakeSSHClient:
    def __init__(self, log, responses=None):
        self.log = log
        self._sftp = FakeSFTP(log)
        # (substring, (stdout, stderr, rc))
        self._responses = responses or []
    def open_sftp(self):
        return self._sftp
    def exec_command(self, cmd, timeout=None):
        self.log.append(("exec", cmd))
        out = next((r for sub, r in self._responses if sub in cmd), ("", "", 0))
        stdout = _Buf(out[0])
        stderr = _Buf(out[1])
        stdout.channel = _FakeChannel(out[2])
        return types.SimpleNamespace(), stdout, stderr
    def close(self):
        self.log.append(("close",))


def _execs(log):
    return [e[1] for e in log if e[0] == "exec"]

# ----------------- Tests -----------------

def test_run_wraps_command_for_sudo_and_quotes():
    log = []
    r = SSHRunner(FakeSSHClient(log, [("echo", ("hi\n", "", 0))]), hostname="node1")
    rc, out, _ = r.run("echo 'a b'", sudo=True)
    assert (rc, out) == (0, "hi\n")
    assert _execs(log) == ["sudo -H -E bash -c 'echo '\"'\"'a b'\"'\"''"]


def test_sudo_cmd_raises_on_failure():
    log = []
    r = SSHRunner(FakeSSHClient(log, [("false", ("", "boom\n", 3))]), hostname="node1")
    with pytest.raises(CommandError) as ei:
        r.sudo_cmd("false")
    assert ei.value.rc == 3
    assert ei.value.hostname == "node1"
    assert "boom" in str(ei.value)


@pytest.mark.parametrize("rc,expected", [(0, True), (1, False)])
def test_file_exists(rc, expected):
    r = SSHRunner(FakeSSHClient([], [("test -f", ("", "", rc))]))
    assert r.file_exists("/etc/etcd.env") is expected


def test_file_exists_other_errors_propagate():
    r = SSHRunner(FakeSSHClient([], [("test -f", ("", "sudo: a password is required", 255))]))
    with pytest.raises(CommandError):
        r.file_exists("/etc/etcd.env")


def test_put_text_with_sudo_installs_through_tmp():
    log = []
    r = SSHRunner(FakeSSHClient(log), hostname="node1")
    r.put_text("ETCD_NAME=etcd-node1\n", "/etc/etcd.env", sudo=True, mode=0o600)

    writes = [e for e in log if e[0] == "sftp_write"]
    assert len(writes) == 1
    tmp = writes[0][1]
    assert tmp.startswith("/tmp/.etcdboot.tmp.")
    assert writes[0][2] == "ETCD_NAME=etcd-node1\n"
    (cmd,) = _execs(log)
    assert f"mkdir -p /etc && install -m 600 {tmp} /etc/etcd.env" in cmd


def test_put_and_fetch_file(tmp_path):
    log = []
    r = SSHRunner(FakeSSHClient(log))
    r.put_file(tmp_path / "ca.pem", "/etc/ssl/etcd/ssl/ca.pem", sudo=True)
    r.fetch_file("/tmp/etcdboot/ETCD_certs/ca.pem", tmp_path / "staging" / "ca.pem")

    put = next(e for e in log if e[0] == "sftp_put")
    assert put[2].startswith("/tmp/.etcdboot.upload.")
    assert any("mv -f" in c and c.endswith("/etc/ssl/etcd/ssl/ca.pem'") for c in _execs(log))
    assert ("sftp_get", "/tmp/etcdboot/ETCD_certs/ca.pem", str(tmp_path / "staging" / "ca.pem")) in log
    assert (tmp_path / "staging").is_dir()


def test_posix_dirname():
    assert posix_dirname("/etc/etcd.env") == "/etc"
    assert posix_dirname("/etcd.env") == "/"


def test_put_text_failed_install_raises():
    log = []
    r = SSHRunner(FakeSSHClient(log, [("install -m", ("", "install: cannot create regular file: Read-only file system\n", 1))]),
                  hostname="node1")
    with pytest.raises(CommandError) as ei:
        r.put_text("ETCD_NAME=etcd-node1\n", "/etc/etcd.env", sudo=True)
    assert ei.value.rc == 1
    (cmd,) = _execs(log)
    # tmp is removed either way, and the install status is what the shell returns
    assert "rc=$?; rm -f /tmp/.etcdboot.tmp." in cmd
    assert cmd.rstrip("'").endswith("exit $rc")
