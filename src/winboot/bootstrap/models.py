# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/bootstrap/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

# Names fixed by the kubelet and the cluster it joins
KUBELET_SERVICE_NAME = "kubelet"
KUBELET_DESCRIPTION = "Kubernetes Kubelet"
KUBELET_UNIT_NAME = "kubelet.service"
KUBELET_EXE = "kubelet.exe"
CONTAINER_RUNTIME_SERVICE = "containerd"

CERT_DIRECTORY = "c:\\var\\lib\\kubelet\\pki\\"
WINDOWS_TAINTS = "os=Windows:NoSchedule"
WINDOWS_NODE_LABEL = "node.openshift.io/os_id=Windows"
WORKER_LABEL = "node-role.kubernetes.io/worker"
CONTAINER_RUNTIME = "remote"
CONTAINER_RUNTIME_ENDPOINT = "npipe://./pipe/containerd-containerd"
DEFAULT_VERBOSITY = "2"

# Well-known paths inside the boot document
BOOTSTRAP_KUBECONFIG_SOURCE = "/etc/kubernetes/kubeconfig"
KUBELET_CA_SOURCE = "/etc/kubernetes/kubelet-ca.crt"

# A transform takes decoded file content and returns what should be written
FileTransform = Callable[[bytes], bytes]


@dataclass(frozen=True)
class KubeletPaths:
    """
    Fixed layout of the install directory; the kubelet is configured to look
    for its files at exactly these locations.
    """
    install_dir: Path
    log_dir: Path

    @property
    def kubelet_exe(self) -> Path:
        return self.install_dir / KUBELET_EXE

    @property
    def kubelet_conf(self) -> Path:
        return self.install_dir / "kubelet.conf"

    @property
    def bootstrap_kubeconfig(self) -> Path:
        return self.install_dir / "bootstrap-kubeconfig"

    @property
    def kubeconfig(self) -> Path:
        return self.install_dir / "kubeconfig"

    @property
    def kubelet_ca(self) -> Path:
        return self.install_dir / "kubelet-ca.crt"

    @property
    def pod_manifest_dir(self) -> Path:
        return self.install_dir / "etc" / "kubernetes" / "manifests"

    @property
    def log_file(self) -> Path:
        return self.log_dir / "kubelet.log"


@dataclass(frozen=True)
class KubeletOverrides:
    """Operator-supplied values that take part in building the kubelet arguments."""
    node_ip: Optional[str] = None
    verbosity: Optional[str] = None
    platform_type: Optional[str] = None


@dataclass
class ExtractedValues:
    """Values mined from the kubelet unit of the boot document."""
    cloud_provider: Optional[str] = None
    cloud_config: Optional[str] = None     # destination path, not the source path
    verbosity: Optional[str] = None
    node_labels: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class FileTranslation:
    """Where a boot document file is written and how its content is changed first."""
    dest: Path
    transform: Optional[FileTransform] = None


FileTable = Dict[str, FileTranslation]


def default_file_table(paths: KubeletPaths) -> FileTable:
    return {
        BOOTSTRAP_KUBECONFIG_SOURCE: FileTranslation(dest=paths.bootstrap_kubeconfig),
        KUBELET_CA_SOURCE: FileTranslation(dest=paths.kubelet_ca),
    }

# Printed on stdout when a command succeeds; the supervising operator waits for these
BOOTSTRAP_SUCCESS_MESSAGE = "Bootstrapping completed successfully"
CNI_SUCCESS_MESSAGE = "CNI configuration completed successfully"
UNINSTALL_SUCCESS_MESSAGE = "kubelet uninstalled successfully"
