# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/bootstrap/bootstrapper.py

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from typing import Callable, List, Optional

from ..cloud.metadata import get_hostname_override
from ..config.models import BootstrapperConfig
from ..errors import FileOperationError, InputValidationError, ServiceNotFoundError
from ..service.interface import ServiceControl
from ..service.lifecycle import ServiceLifecycleManager
from ..service.models import ServiceDescriptor, StartType
from ..service.sc_runner import ScExeRunner
from . import cni
from .kubelet_args import ArgumentSet
from .kubelet_conf import render_kubelet_conf
from .models import (
    CONTAINER_RUNTIME_SERVICE,
    KUBELET_DESCRIPTION,
    KUBELET_SERVICE_NAME,
    KubeletOverrides,
    KubeletPaths,
    default_file_table,
)
from .translator import IgnitionTranslator

log = logging.getLogger("winboot")


def kubelet_descriptor(command_line: str) -> ServiceDescriptor:
    return ServiceDescriptor(
        name=KUBELET_SERVICE_NAME,
        command_line=command_line,
        display_name=KUBELET_SERVICE_NAME,
        description=KUBELET_DESCRIPTION,
        start_type=StartType.AUTO,
        dependencies=[CONTAINER_RUNTIME_SERVICE],
    )


class NodeBootstrapper:
    """
    Turns a Windows host into a worker node: lays out the install directory,
    installs the kubelet as a Windows service and points it at a CNI plugin.
    """

    def __init__(
        self,
        config: BootstrapperConfig,
        *,
        control: Optional[ServiceControl] = None,
        hostname_lookup: Callable[[str], str] = get_hostname_override,
        observers: Optional[List] = None,
        run_id: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.paths = KubeletPaths(config.install_dir, config.log_dir)
        self.hostname_lookup = hostname_lookup
        self.kubelet = ServiceLifecycleManager(
            control or ScExeRunner.connect(),
            KUBELET_SERVICE_NAME,
            timeouts=config.timeouts,
            observers=observers,
            run_id=run_id,
            sleep=sleep,
            clock=clock,
        )

    # ------------------------------------------------------------------
    def initialize_kubelet(self) -> ArgumentSet:
        cfg = self.config
        if cfg.ignition_file is None:
            raise InputValidationError("an ignition file is required to initialize the kubelet")
        if cfg.kubelet_path is None:
            raise InputValidationError("a kubelet binary is required to initialize the kubelet")

        translator = IgnitionTranslator(
            self.paths,
            KubeletOverrides(
                node_ip=cfg.node_ip,
                verbosity=cfg.verbosity,
                platform_type=cfg.platform_type,
            ),
            self.hostname_lookup,
        )

        # a running kubelet holds kubelet.exe open
        self.kubelet.stop()

        for d in (self.paths.install_dir, self.paths.log_dir, self.paths.pod_manifest_dir):
            _mkdir(d)
        _copy(cfg.kubelet_path, self.paths.kubelet_exe)
        _write(self.paths.kubelet_conf, render_kubelet_conf(self.paths.install_dir, cfg.cluster_dns))

        try:
            raw = cfg.ignition_file.read_bytes()
        except OSError as exc:
            raise FileOperationError(f"could not read ignition file {cfg.ignition_file}: {exc}") from exc

        args = translator.translate(raw, default_file_table(self.paths))
        log.debug("kubelet arguments: %s", args.to_list())

        self.kubelet.install_or_update(kubelet_descriptor(args.to_command_line()))
        self.kubelet.start()
        return args

    def configure_cni(self) -> str:
        cfg = self.config
        if not self.kubelet.installed:
            raise ServiceNotFoundError(f"{KUBELET_SERVICE_NAME} service is not present")
        if cfg.cni_dir is None or cfg.cni_config is None:
            raise InputValidationError("both the CNI directory and the CNI config are required")

        options = cni.CNIOptions(
            install_dir=self.paths.install_dir,
            cni_dir=cfg.cni_dir,
            cni_config=cfg.cni_config,
        )
        current = self.kubelet.descriptor()
        command_line = cni.configure(options, current.command_line)
        log.debug("kubelet command line: %s", command_line)

        self.kubelet.refresh(kubelet_descriptor(command_line))
        return command_line

    def uninstall_kubelet(self) -> None:
        if not self.kubelet.installed:
            raise ServiceNotFoundError(f"{KUBELET_SERVICE_NAME} service is not present")
        self.kubelet.uninstall()

    def disconnect(self) -> None:
        self.kubelet.disconnect()


def _mkdir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileOperationError(f"could not create directory {path}: {exc}") from exc


def _copy(src: Path, dest: Path) -> None:
    try:
        shutil.copyfile(src, dest)
    except OSError as exc:
        raise FileOperationError(f"could not copy {src} to {dest}: {exc}") from exc


def _write(path: Path, data: bytes) -> None:
    try:
        path.write_bytes(data)
    except OSError as exc:
        raise FileOperationError(f"could not write {path}: {exc}") from exc
