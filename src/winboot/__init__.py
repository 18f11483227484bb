# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

"""Windows node bootstrapper: installs and configures the kubelet as a Windows service."""

__version__ = "0.1.0"
