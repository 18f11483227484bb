# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/service/sc_runner.py

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Dict, List

from ..errors import ServiceError, ServiceManagerConnectionError, ServiceNotFoundError
from .models import RecoveryPolicy, ServiceDescriptor, ServiceState, StartType

log = logging.getLogger("winboot")

# Win32 error codes sc.exe exits with
ERROR_SERVICE_ALREADY_RUNNING = 1056
ERROR_SERVICE_DOES_NOT_EXIST = 1060
ERROR_SERVICE_NOT_ACTIVE = 1062
ERROR_SERVICE_MARKED_FOR_DELETE = 1072

_START_TYPES = {"2": StartType.AUTO, "3": StartType.DEMAND, "4": StartType.DISABLED}

# enumdepend fails with ERROR_MORE_DATA on the default 1024 byte buffer
ENUM_BUFFER_SIZE = "16384"


def _parse_fields(output: str) -> Dict[str, List[str]]:
    """
    Parse "KEY : value" lines from sc.exe output. Continuation lines
    (": value" with no key, as DEPENDENCIES uses) extend the previous key.
    """
    fields: Dict[str, List[str]] = {}
    last = None
    for line in output.splitlines():
        stripped = line.strip()
        if stripped.startswith(":"):
            if last is not None:
                value = stripped[1:].strip()
                if value:
                    fields[last].append(value)
            continue
        key, sep, value = stripped.partition(":")
        key = key.strip()
        if not sep or not key or " " in key:
            continue
        last = key
        value = value.strip()
        fields.setdefault(key, [])
        if value:
            fields[key].append(value)
    return fields


class ScExeRunner:
    """
    Drives the Windows service control manager through sc.exe.
    Every call is a blocking subprocess; sc.exe exits with the Win32 error code.
    """

    def __init__(self, sc_binary: str = "sc.exe"):
        self.sc_binary = sc_binary
        self._connected = True

    @classmethod
    def connect(cls, sc_binary: str = "sc.exe") -> "ScExeRunner":
        if shutil.which(sc_binary) is None:
            raise ServiceManagerConnectionError(
                f"could not connect to the Windows service manager: {sc_binary} not found"
            )
        return cls(sc_binary)

    # ------------------------------------------------------------------
    def _sc(self, *args: str) -> subprocess.CompletedProcess:
        if not self._connected:
            raise ServiceManagerConnectionError("service manager connection is closed")
        argv = [self.sc_binary, *args]
        log.debug("exec: %s", " ".join(argv))
        try:
            return subprocess.run(argv, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise ServiceManagerConnectionError(f"could not run {self.sc_binary}: {exc}") from exc

    def _check(self, cp: subprocess.CompletedProcess, action: str, name: str) -> None:
        if cp.returncode == 0:
            return
        detail = (cp.stdout or cp.stderr or "").strip()
        if cp.returncode == ERROR_SERVICE_DOES_NOT_EXIST:
            raise ServiceNotFoundError(f"{action} {name}: service does not exist")
        raise ServiceError(f"{action} {name} failed ({cp.returncode}): {detail}")

    @staticmethod
    def _state(output: str) -> ServiceState:
        values = _parse_fields(output).get("STATE")
        if not values:
            raise ServiceError(f"no STATE in sc.exe output: {output.strip()!r}")
        try:
            return ServiceState(int(values[0].split()[0]))
        except ValueError as exc:
            raise ServiceError(f"unrecognised service state {values[0]!r}") from exc

    # ------------------------------------------------------------------
    def exists(self, name: str) -> bool:
        cp = self._sc("query", name)
        if cp.returncode == ERROR_SERVICE_DOES_NOT_EXIST:
            return False
        self._check(cp, "query", name)
        return True

    def query(self, name: str) -> ServiceState:
        cp = self._sc("query", name)
        self._check(cp, "query", name)
        return self._state(cp.stdout)

    def config(self, name: str) -> ServiceDescriptor:
        cp = self._sc("qc", name, ENUM_BUFFER_SIZE)
        self._check(cp, "read config of", name)
        fields = _parse_fields(cp.stdout)

        start_code = (fields.get("START_TYPE") or ["3"])[0].split()[0]
        desc = self._sc("qdescription", name, ENUM_BUFFER_SIZE)
        description = ""
        if desc.returncode == 0:
            description = " ".join(_parse_fields(desc.stdout).get("DESCRIPTION", []))

        return ServiceDescriptor(
            name=name,
            command_line=" ".join(fields.get("BINARY_PATH_NAME", [])),
            display_name=" ".join(fields.get("DISPLAY_NAME", [])),
            description=description,
            start_type=_START_TYPES.get(start_code, StartType.DEMAND),
            dependencies=list(fields.get("DEPENDENCIES", [])),
        )

    def _definition_args(self, d: ServiceDescriptor) -> List[str]:
        args = ["binPath=", d.command_line, "start=", d.start_type.value]
        if d.display_name:
            args += ["DisplayName=", d.display_name]
        if d.dependencies:
            args += ["depend=", "/".join(d.dependencies)]
        return args

    def create(self, descriptor: ServiceDescriptor) -> None:
        cp = self._sc("create", descriptor.name, *self._definition_args(descriptor))
        self._check(cp, "create", descriptor.name)
        self._set_description(descriptor)

    def update_config(self, descriptor: ServiceDescriptor) -> None:
        cp = self._sc("config", descriptor.name, *self._definition_args(descriptor))
        self._check(cp, "update", descriptor.name)
        self._set_description(descriptor)

    def _set_description(self, descriptor: ServiceDescriptor) -> None:
        if not descriptor.description:
            return
        cp = self._sc("description", descriptor.name, descriptor.description)
        self._check(cp, "set description of", descriptor.name)

    def start(self, name: str) -> None:
        cp = self._sc("start", name)
        if cp.returncode == ERROR_SERVICE_ALREADY_RUNNING:
            return
        self._check(cp, "start", name)

    def stop(self, name: str) -> ServiceState:
        cp = self._sc("stop", name)
        if cp.returncode == ERROR_SERVICE_NOT_ACTIVE:
            return ServiceState.STOPPED
        self._check(cp, "stop", name)
        return self._state(cp.stdout)

    def delete(self, name: str) -> None:
        cp = self._sc("delete", name)
        if cp.returncode in (ERROR_SERVICE_DOES_NOT_EXIST, ERROR_SERVICE_MARKED_FOR_DELETE):
            return
        self._check(cp, "delete", name)

    def set_recovery(self, name: str, policy: RecoveryPolicy) -> None:
        cp = self._sc(
            "failure", name,
            "reset=", str(policy.reset_period_s),
            "actions=", f"restart/{policy.restart_delay_ms}",
        )
        self._check(cp, "set recovery actions of", name)

    def dependents(self, name: str) -> List[str]:
        cp = self._sc("enumdepend", name, ENUM_BUFFER_SIZE)
        if cp.returncode == ERROR_SERVICE_DOES_NOT_EXIST:
            return []
        self._check(cp, "enumerate dependents of", name)
        return list(_parse_fields(cp.stdout).get("SERVICE_NAME", []))

    def disconnect(self) -> None:
        self._connected = False
