# tests/remote/test_session.py
from __future__ import annotations

import types
from pathlib import Path

import paramiko
import pytest

from winboot.errors import RemoteError
from winboot.remote import session as session_mod
from winboot.remote.session import SSHSession, initialize_remote

# ----------------- Fakes for Paramiko -----------------

class _FakeChannel:
    def __init__(self, rc=0): self._rc = rc
    def recv_exit_status(self): return self._rc

class _Buf:
    def __init__(self, s=""): self._s = s
    def read(self): return self._s.encode()

class FakeSFTP:
    def __init__(self, log, existing=()):
        self.log = log
        self.existing = set(existing)
    def stat(self, path):
        if path not in self.existing:
            raise IOError(f"no such file: {path}")
        return object()
    def mkdir(self, path):
        self.log.append(("sftp_mkdir", path))
        self.existing.add(path)
    def put(self, local, remote):
        self.log.append(("sftp_put", Path(local).name, remote))
    def close(self): self.log.append(("sftp_close",))

class FakeSSHClient:
    def __init__(self, log, responses=None, existing=()):
        self.log = log
        self._responses = responses or {}
        self._sftp = FakeSFTP(log, existing)
    def set_missing_host_key_policy(self, policy): pass
    def connect(self, **kw):
        self.log.append(("connect", kw))
    def exec_command(self, cmd, timeout=None):
        self.log.append(("exec", cmd))
        out, err, rc = self._responses.get(cmd, ("", "", 0))
        stdout = _Buf(out)
        stdout.channel = _FakeChannel(rc)
        return types.SimpleNamespace(), stdout, _Buf(err)
    def open_sftp(self):
        return self._sftp
    def close(self):
        self.log.append(("close",))


def test_run_returns_combined_output():
    log = []
    s = SSHSession(FakeSSHClient(log, {"whoami": ("admin\n", "warning\n", 0)}))
    assert s.run("whoami") == (0, "admin\nwarning\n")


def test_copy_dir_recurses(tmp_path: Path):
    (tmp_path / "cni" / "config").mkdir(parents=True)
    (tmp_path / "cni" / "flannel.exe").write_bytes(b"x")
    (tmp_path / "cni" / "config" / "cni.conf").write_text("{}")
    log = []

    SSHSession(FakeSSHClient(log)).copy_dir(tmp_path / "cni", "C:/k/cni")

    assert ("sftp_mkdir", "C:/k/cni") in log
    assert ("sftp_mkdir", "C:/k/cni/config") in log
    assert ("sftp_put", "flannel.exe", "C:/k/cni/flannel.exe") in log
    assert ("sftp_put", "cni.conf", "C:/k/cni/config/cni.conf") in log
    assert log[-1] == ("sftp_close",)


def test_close_twice_is_tolerated():
    log = []
    s = SSHSession(FakeSSHClient(log))
    s.close()
    s.close()
    assert log.count(("close",)) == 1


def test_connect_uses_password_without_key(monkeypatch):
    log = []
    monkeypatch.setattr(session_mod.paramiko, "SSHClient", lambda: FakeSSHClient(log))

    SSHSession.connect("10.0.0.9", "Administrator", password="secret")

    kw = log[0][1]
    assert kw["hostname"] == "10.0.0.9"
    assert kw["password"] == "secret"
    assert kw["pkey"] is None


def test_connect_failure_is_remote_error(monkeypatch):
    class Refusing(FakeSSHClient):
        def connect(self, **kw):
            raise paramiko.SSHException("Error reading SSH protocol banner")

    monkeypatch.setattr(session_mod.paramiko, "SSHClient", lambda: Refusing([]))
    with pytest.raises(RemoteError, match="10.0.0.9"):
        SSHSession.connect("10.0.0.9", "Administrator")


def _files(tmp_path: Path):
    ign = tmp_path / "worker.ign"
    ign.write_text("{}")
    kubelet = tmp_path / "kubelet.exe"
    kubelet.write_bytes(b"MZ")
    return ign, kubelet


def test_initialize_remote(tmp_path: Path):
    ign, kubelet = _files(tmp_path)
    cmd = (
        "winboot initialize-kubelet --ignition-file C:/Temp/wb/worker.ign "
        "--kubelet-path C:/Temp/wb/kubelet.exe --node-ip 10.0.0.9"
    )
    log = []
    client = FakeSSHClient(log, {cmd: ("Bootstrapping completed successfully\n", "", 0)}, existing={"C:/Temp/wb"})

    out = initialize_remote(SSHSession(client), ign, kubelet, remote_dir="C:/Temp/wb", extra_args=["--node-ip", "10.0.0.9"])

    assert "Bootstrapping completed successfully" in out
    assert ("sftp_put", "worker.ign", "C:/Temp/wb/worker.ign") in log
    assert ("sftp_put", "kubelet.exe", "C:/Temp/wb/kubelet.exe") in log
    assert ("exec", cmd) in log
    assert not any(e[0] == "sftp_mkdir" for e in log)


def test_initialize_remote_without_success_message(tmp_path: Path):
    ign, kubelet = _files(tmp_path)
    client = FakeSSHClient([], {})
    with pytest.raises(RemoteError, match="remote bootstrap failed"):
        initialize_remote(SSHSession(client), ign, kubelet, remote_dir="C:/Temp/wb")
