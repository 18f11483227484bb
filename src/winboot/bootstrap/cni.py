# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/bootstrap/cni.py

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from ..errors import FileOperationError, InputValidationError
from .kubelet_args import ArgumentSet

log = logging.getLogger("winboot")

NETWORK_PLUGIN = "cni"


@dataclass(frozen=True)
class CNIOptions:
    """
    Source CNI plugin binaries and config, and the install directory they are
    copied into. Validated on construction so a bad input fails before
    anything is copied.
    """
    install_dir: Path
    cni_dir: Path
    cni_config: Path

    def __post_init__(self):
        if not self.install_dir.is_dir():
            raise InputValidationError(f"install directory {self.install_dir} does not exist")

        if not self.cni_dir.exists():
            raise InputValidationError(f"CNI directory {self.cni_dir} does not exist")
        if not self.cni_dir.is_dir():
            raise InputValidationError(f"CNI directory {self.cni_dir} is not a directory")
        if not any(p.is_file() for p in self.cni_dir.iterdir()):
            raise InputValidationError(f"CNI directory {self.cni_dir} contains no files")

        if not self.cni_config.exists():
            raise InputValidationError(f"CNI config {self.cni_config} does not exist")
        if self.cni_config.is_dir():
            raise InputValidationError(f"CNI config {self.cni_config} is a directory")

    @property
    def bin_dest(self) -> Path:
        return self.install_dir / "cni"

    @property
    def conf_dest(self) -> Path:
        return self.install_dir / "cni" / "config"


def copy_cni_files(options: CNIOptions) -> None:
    for d in (options.bin_dest, options.conf_dest):
        try:
            d.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as exc:
            raise FileOperationError(f"could not create {d}: {exc}") from exc

    # nested directories are not copied
    for entry in sorted(options.cni_dir.iterdir()):
        if entry.is_dir():
            log.debug("skipping CNI subdirectory %s", entry)
            continue
        _copy(entry, options.bin_dest / entry.name)

    _copy(options.cni_config, options.conf_dest / options.cni_config.name)


def _copy(src: Path, dest: Path) -> None:
    try:
        shutil.copyfile(src, dest)
    except OSError as exc:
        raise FileOperationError(f"could not copy {src} to {dest}: {exc}") from exc
    log.debug("copied %s -> %s", src, dest)


def cni_arguments(options: CNIOptions, current: ArgumentSet) -> ArgumentSet:
    """Point the kubelet arguments at the copied plugin; other arguments keep their order."""
    args = ArgumentSet(current.executable, current.to_entries())
    args.set("--resolv-conf", "")
    args.set("--network-plugin", NETWORK_PLUGIN)
    args.set("--cni-bin-dir", str(options.bin_dest))
    args.set("--cni-conf-dir", str(options.conf_dest))
    return args


def configure(options: CNIOptions, current_command_line: str) -> str:
    """
    Copy the CNI plugin into the install directory and return the kubelet
    command line that uses it. The caller applies the result to the service.
    """
    copy_cni_files(options)
    current = ArgumentSet.from_command_line(current_command_line)
    return cni_arguments(options, current).to_command_line()
