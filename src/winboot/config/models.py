# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/config/models.py

from __future__ import annotations

import ipaddress
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_INSTALL_DIR = Path("C:\\k")
DEFAULT_LOG_DIR = Path("C:\\var\\log\\kubelet")


class ServiceTimeouts(BaseModel):
    """Poll settings for the service state waits, in seconds."""

    stop_poll_interval: float = Field(0.3, gt=0)
    stop_timeout: float = Field(10.0, gt=0)
    run_poll_interval: float = Field(30.0, gt=0)
    run_timeout: float = Field(120.0, gt=0)


class BootstrapperConfig(BaseModel):
    install_dir: Path = DEFAULT_INSTALL_DIR
    log_dir: Path = DEFAULT_LOG_DIR

    ignition_file: Optional[Path] = None
    kubelet_path: Optional[Path] = None

    node_ip: Optional[str] = None
    cluster_dns: Optional[str] = None
    platform_type: Optional[str] = None
    verbosity: Optional[str] = None

    cni_dir: Optional[Path] = None
    cni_config: Optional[Path] = None

    timeouts: ServiceTimeouts = Field(default_factory=ServiceTimeouts)

    @field_validator("node_ip", "cluster_dns")
    @classmethod
    def _ip_literal(cls, value: Optional[str]) -> Optional[str]:
        if value in (None, ""):
            return None
        try:
            ipaddress.ip_address(value)
        except ValueError as exc:
            raise ValueError(f"{value!r} is not a valid IP address") from exc
        return value

    @model_validator(mode="after")
    def _cni_inputs_paired(self) -> "BootstrapperConfig":
        if (self.cni_dir is None) != (self.cni_config is None):
            raise ValueError("cni_dir and cni_config must be provided together")
        return self
