# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/remote/session.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

import paramiko

from ..bootstrap.models import BOOTSTRAP_SUCCESS_MESSAGE
from ..errors import RemoteError

log = logging.getLogger("winboot")

DEFAULT_REMOTE_DIR = "C:/Windows/Temp/winboot"


class SSHSession:
    """
    Copies files to a Windows node and runs commands on it over SSH.
    Remote paths use forward slashes, which OpenSSH for Windows accepts.
    """

    def __init__(self, client: paramiko.SSHClient):
        self.client = client
        self._closed = False

    @classmethod
    def connect(
        cls,
        address: str,
        username: str,
        *,
        port: int = 22,
        key_path: Optional[Path] = None,
        password: Optional[str] = None,
        connect_timeout: float = 20.0,
    ) -> "SSHSession":
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        pkey = None
        if key_path:
            for key_cls in (paramiko.RSAKey, paramiko.Ed25519Key, paramiko.ECDSAKey):
                try:
                    pkey = key_cls.from_private_key_file(str(key_path))
                    break
                except paramiko.SSHException:
                    continue
            if pkey is None:
                raise RemoteError(f"could not load private key {key_path}")

        try:
            client.connect(
                hostname=address,
                port=port,
                username=username,
                password=password if not pkey else None,
                pkey=pkey,
                timeout=connect_timeout,
                allow_agent=True,
                look_for_keys=True,
            )
        except (paramiko.SSHException, OSError) as exc:
            raise RemoteError(f"could not connect to {username}@{address}:{port}: {exc}") from exc
        return cls(client)

    # ------------------------------------------------------------------
    def run(self, cmd: str, *, timeout: Optional[int] = None) -> tuple[int, str]:
        """Run cmd and return its exit code and combined stdout and stderr."""
        log.debug("ssh exec: %s", cmd)
        try:
            _stdin, stdout, stderr = self.client.exec_command(cmd, timeout=timeout)
            out = stdout.read().decode()
            err = stderr.read().decode()
            rc = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as exc:
            raise RemoteError(f"could not run {cmd!r}: {exc}") from exc
        return rc, out + err

    def copy_file(self, local_path: str | Path, remote_path: str) -> None:
        sftp = self.client.open_sftp()
        try:
            sftp.put(str(local_path), remote_path)
        except (paramiko.SSHException, OSError) as exc:
            raise RemoteError(f"could not copy {local_path} to {remote_path}: {exc}") from exc
        finally:
            sftp.close()

    def copy_dir(self, local_dir: Path, remote_dir: str) -> None:
        """Recursively upload local_dir to remote_dir."""
        sftp = self.client.open_sftp()
        try:
            self._put_dir_recursive(sftp, local_dir, remote_dir)
        except (paramiko.SSHException, OSError) as exc:
            raise RemoteError(f"could not copy {local_dir} to {remote_dir}: {exc}") from exc
        finally:
            sftp.close()

    def _put_dir_recursive(self, sftp, local: Path, remote: str) -> None:
        self._ensure_remote_dir(sftp, remote)
        for item in sorted(local.iterdir()):
            rpath = f"{remote}/{item.name}"
            if item.is_dir():
                self._put_dir_recursive(sftp, item, rpath)
            else:
                sftp.put(str(item), rpath)

    @staticmethod
    def _ensure_remote_dir(sftp, remote: str) -> None:
        try:
            sftp.stat(remote)
        except IOError:
            sftp.mkdir(remote)

    def ensure_dir(self, remote_dir: str) -> None:
        sftp = self.client.open_sftp()
        try:
            self._ensure_remote_dir(sftp, remote_dir)
        except (paramiko.SSHException, OSError) as exc:
            raise RemoteError(f"could not create {remote_dir}: {exc}") from exc
        finally:
            sftp.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.client.close()


def initialize_remote(
    session: SSHSession,
    ignition_file: Path,
    kubelet_path: Path,
    *,
    remote_dir: str = DEFAULT_REMOTE_DIR,
    bootstrapper: str = "winboot",
    extra_args: Iterable[str] = (),
) -> str:
    """
    Copy the ignition file and kubelet binary to the node and run
    initialize-kubelet there. Returns the remote output.
    """
    session.ensure_dir(remote_dir)
    remote_ignition = f"{remote_dir}/{ignition_file.name}"
    remote_kubelet = f"{remote_dir}/{kubelet_path.name}"
    session.copy_file(ignition_file, remote_ignition)
    session.copy_file(kubelet_path, remote_kubelet)

    cmd = " ".join([
        bootstrapper,
        "initialize-kubelet",
        "--ignition-file", remote_ignition,
        "--kubelet-path", remote_kubelet,
        *extra_args,
    ])
    rc, output = session.run(cmd)
    # the success message is the contract, not the exit code
    if BOOTSTRAP_SUCCESS_MESSAGE not in output:
        raise RemoteError(f"remote bootstrap failed (exit {rc}): {output.strip()}")
    return output
