# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/service/lifecycle.py

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import replace
from typing import Callable, List, Optional

from ..config.models import ServiceTimeouts
from ..errors import (
    ServiceError,
    ServiceManagerConnectionError,
    ServiceNotFoundError,
    ServiceTimeoutError,
)
from ..observers.dispatcher import EventBus
from ..observers.interface import Observer
from ..observers.events import (
    DependentStartFailed,
    ServiceInstalled,
    ServiceRefreshed,
    ServiceRemoved,
    ServiceStarted,
    ServiceStopped,
    ServiceUpdated,
    new_ctx,
)
from ..utils.wait import WaitTimeoutError, poll_until
from .interface import ServiceControl
from .models import LifecycleState, RecoveryPolicy, ServiceDescriptor, ServiceState

log = logging.getLogger("winboot")


class ServiceLifecycleManager:
    """
    Installs, reconfigures, starts and stops one host service and the
    services that depend on it.

    The state is looked up once at construction and then tracked locally;
    this process assumes it is the only writer of the service definition
    while it runs.
    """

    def __init__(
        self,
        control: ServiceControl,
        name: str,
        *,
        timeouts: Optional[ServiceTimeouts] = None,
        recovery: Optional[RecoveryPolicy] = None,
        observers: Optional[List[Observer]] = None,
        run_id: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.control = control
        self.name = name
        self.timeouts = timeouts or ServiceTimeouts()
        self.recovery = recovery or RecoveryPolicy()
        self.bus = EventBus(observers)
        self.run_id = run_id or str(uuid.uuid4())
        self._sleep = sleep
        self._clock = clock
        self._disconnected = False

        self.dependents: List[str] = []
        if not control.exists(name):
            self._state = LifecycleState.NOT_INSTALLED
            return
        status = control.query(name)
        self._state = LifecycleState.STOPPED if status == ServiceState.STOPPED else LifecycleState.RUNNING
        self.dependents = control.dependents(name)
        log.debug("service %s is %s, dependents: %s", name, self._state.value, self.dependents)

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def installed(self) -> bool:
        return self._state != LifecycleState.NOT_INSTALLED

    def _ctx(self):
        return new_ctx(self.name, self.run_id)

    def _require_installed(self, action: str) -> None:
        if not self.installed:
            raise ServiceNotFoundError(f"cannot {action} {self.name}: service is not installed")

    # ------------------------------------------------------------------
    def install_or_update(self, descriptor: ServiceDescriptor) -> None:
        if self.installed:
            self.update(descriptor)
        else:
            log.info("Creating service %s", self.name)
            self.control.create(descriptor)
            self._state = LifecycleState.STOPPED
            self.bus.emit(ServiceInstalled(**self._ctx(), command_line=descriptor.command_line))

        try:
            self.control.set_recovery(self.name, self.recovery)
        except ServiceError as exc:
            raise ServiceError(f"failed to set recovery actions on {self.name}: {exc}") from exc

    def update(self, descriptor: ServiceDescriptor) -> None:
        self._require_installed("update")
        current = self.control.config(self.name)
        # open handles on the binary block reconfiguration
        self.stop()

        updated = replace(
            current,
            command_line=descriptor.command_line,
            display_name=descriptor.display_name,
            description=descriptor.description or current.description,
            start_type=descriptor.start_type,
            dependencies=list(descriptor.dependencies),
        )
        log.info("Updating service %s", self.name)
        self.control.update_config(updated)
        self.dependents = self.control.dependents(self.name)
        self.bus.emit(ServiceUpdated(**self._ctx(), command_line=updated.command_line))

    def start(self) -> None:
        self._require_installed("start")
        if self._state == LifecycleState.RUNNING:
            return

        log.info("Starting service %s", self.name)
        self.control.start(self.name)
        self._state = LifecycleState.RUNNING

        for dep in self.dependents:
            try:
                if self.control.query(dep) != ServiceState.RUNNING:
                    self.control.start(dep)
            except ServiceManagerConnectionError:
                raise
            except ServiceError as exc:
                self.bus.emit(DependentStartFailed(**self._ctx(), dependent=dep, error=str(exc)))
        self.bus.emit(ServiceStarted(**self._ctx(), dependents=list(self.dependents)))

    def stop(self) -> None:
        if self._state in (LifecycleState.NOT_INSTALLED, LifecycleState.STOPPED):
            return

        # dependents rely on the primary, so they go down first
        for dep in self.dependents:
            log.debug("Stopping dependent service %s", dep)
            self._stop_one(dep)

        log.info("Stopping service %s", self.name)
        self._stop_one(self.name)
        self._state = LifecycleState.STOPPED
        self.bus.emit(ServiceStopped(**self._ctx(), dependents=list(self.dependents)))

    def _stop_one(self, name: str) -> None:
        if self.control.stop(name) == ServiceState.STOPPED:
            return
        self._wait_for(
            name,
            ServiceState.STOPPED,
            interval=self.timeouts.stop_poll_interval,
            timeout=self.timeouts.stop_timeout,
        )

    def refresh(self, descriptor: ServiceDescriptor) -> None:
        self._require_installed("refresh")
        started = self._clock()
        self.stop()
        self.update(descriptor)
        self.start()
        self._wait_for(
            self.name,
            ServiceState.RUNNING,
            interval=self.timeouts.run_poll_interval,
            timeout=self.timeouts.run_timeout,
        )
        duration_ms = int((self._clock() - started) * 1000)
        self.bus.emit(ServiceRefreshed(**self._ctx(), duration_ms=duration_ms))

    def uninstall(self) -> None:
        if not self.installed:
            return
        self.stop()
        log.info("Deleting service %s", self.name)
        self.control.delete(self.name)
        self._state = LifecycleState.NOT_INSTALLED
        self.dependents = []
        self.bus.emit(ServiceRemoved(**self._ctx()))

    def descriptor(self) -> ServiceDescriptor:
        self._require_installed("read")
        return self.control.config(self.name)

    def disconnect(self) -> None:
        if self._disconnected:
            return
        self._disconnected = True
        self.control.disconnect()

    # ------------------------------------------------------------------
    def _wait_for(self, name: str, want: ServiceState, *, interval: float, timeout: float) -> None:
        def reached() -> bool:
            try:
                return self.control.query(name) == want
            except ServiceManagerConnectionError:
                raise
            except ServiceError as exc:
                # transitions often make the status briefly unreadable
                log.debug("status query for %s failed: %s", name, exc)
                return False

        try:
            poll_until(
                reached,
                interval=interval,
                timeout=timeout,
                description=f"{name} to reach {want.name}",
                sleep=self._sleep,
                clock=self._clock,
            )
        except WaitTimeoutError as exc:
            raise ServiceTimeoutError(str(exc)) from exc
