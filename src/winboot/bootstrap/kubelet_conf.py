# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/bootstrap/kubelet_conf.py

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional


def render_kubelet_conf(install_dir: Path, cluster_dns: Optional[str] = None) -> bytes:
    """
    Render the KubeletConfiguration for a Windows worker.

    cgroups do not exist on Windows, so per-QoS cgroups and node allocatable
    enforcement are switched off; enforceNodeAllocatable must be written as an
    empty list, omitting it makes the kubelet default to ["pods"].
    """
    config = {
        "kind": "KubeletConfiguration",
        "apiVersion": "kubelet.config.k8s.io/v1beta1",
        "rotateCertificates": True,
        "serverTLSBootstrap": True,
        "authentication": {
            "x509": {"clientCAFile": str(install_dir / "kubelet-ca.crt")},
            "anonymous": {"enabled": False},
        },
        "clusterDomain": "cluster.local",
        "clusterDNS": [cluster_dns] if cluster_dns else [],
        "cgroupsPerQOS": False,
        "runtimeRequestTimeout": "10m0s",
        "maxPods": 250,
        "kubeAPIQPS": 50,
        "kubeAPIBurst": 100,
        "serializeImagePulls": False,
        "containerLogMaxSize": "50Mi",
        "systemReserved": {"cpu": "500m", "ephemeral-storage": "1Gi", "memory": "1Gi"},
        "enforceNodeAllocatable": [],
    }
    return json.dumps(config, separators=(",", ":")).encode()
