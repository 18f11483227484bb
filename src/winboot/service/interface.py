# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import List, Protocol

from .models import RecoveryPolicy, ServiceDescriptor, ServiceState


class ServiceControl(Protocol):
    """The host service manager, as the lifecycle manager uses it."""

    def exists(self, name: str) -> bool: ...

    def query(self, name: str) -> ServiceState: ...

    def config(self, name: str) -> ServiceDescriptor: ...

    def create(self, descriptor: ServiceDescriptor) -> None: ...

    def update_config(self, descriptor: ServiceDescriptor) -> None: ...

    def start(self, name: str) -> None: ...

    def stop(self, name: str) -> ServiceState: ...

    def delete(self, name: str) -> None: ...

    def set_recovery(self, name: str, policy: RecoveryPolicy) -> None: ...

    def dependents(self, name: str) -> List[str]: ...

    def disconnect(self) -> None: ...
