# tests/conftest.py
from __future__ import annotations

import base64
import json
import logging
from dataclasses import replace
from typing import Dict, List

import pytest

from winboot.errors import ServiceError, ServiceNotFoundError
from winboot.service.models import RecoveryPolicy, ServiceDescriptor, ServiceState

MUTATING_CALLS = {"create", "update_config", "start", "stop", "delete", "set_recovery"}


class FakeServiceControl:
    """
    In-memory host service manager. Every call is recorded in .calls;
    .mutations keeps only the ones that change host state.
    """

    def __init__(self):
        self.services: Dict[str, dict] = {}
        self.dependents_of: Dict[str, List[str]] = {}
        self.recovery: Dict[str, RecoveryPolicy] = {}
        self.calls: List[tuple] = []
        self.disconnects = 0

        # knobs for failure scenarios
        self.stop_polls_needed: Dict[str, int] = {}
        self.query_errors: Dict[str, int] = {}
        self.start_stuck: set = set()
        self.start_errors: set = set()
        self.fail_recovery = False

    def install(self, name, command_line="C:\\k\\kubelet.exe", state=ServiceState.RUNNING, dependents=()):
        self.services[name] = {
            "descriptor": ServiceDescriptor(name=name, command_line=command_line),
            "state": state,
        }
        self.dependents_of[name] = list(dependents)

    @property
    def mutations(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in MUTATING_CALLS]

    def _get(self, name):
        if name not in self.services:
            raise ServiceNotFoundError(f"{name}: service does not exist")
        return self.services[name]

    # ServiceControl -----------------------------------------------------
    def exists(self, name):
        self.calls.append(("exists", name))
        return name in self.services

    def query(self, name):
        self.calls.append(("query", name))
        svc = self._get(name)
        if self.query_errors.get(name, 0) > 0:
            self.query_errors[name] -= 1
            raise ServiceError(f"query {name} failed")
        if svc["state"] == ServiceState.STOP_PENDING:
            remaining = self.stop_polls_needed.get(name, 0)
            if remaining <= 1:
                self.stop_polls_needed.pop(name, None)
                svc["state"] = ServiceState.STOPPED
            else:
                self.stop_polls_needed[name] = remaining - 1
        return svc["state"]

    def config(self, name):
        self.calls.append(("config", name))
        return replace(self._get(name)["descriptor"])

    def create(self, descriptor):
        self.calls.append(("create", descriptor.name))
        self.services[descriptor.name] = {"descriptor": replace(descriptor), "state": ServiceState.STOPPED}
        self.dependents_of.setdefault(descriptor.name, [])

    def update_config(self, descriptor):
        self.calls.append(("update_config", descriptor.name))
        self._get(descriptor.name)["descriptor"] = replace(descriptor)

    def start(self, name):
        self.calls.append(("start", name))
        svc = self._get(name)
        if name in self.start_errors:
            raise ServiceError(f"start {name} failed")
        svc["state"] = ServiceState.START_PENDING if name in self.start_stuck else ServiceState.RUNNING

    def stop(self, name):
        self.calls.append(("stop", name))
        svc = self._get(name)
        if name in self.stop_polls_needed:
            svc["state"] = ServiceState.STOP_PENDING
        else:
            svc["state"] = ServiceState.STOPPED
        return svc["state"]

    def delete(self, name):
        self.calls.append(("delete", name))
        self.services.pop(name, None)

    def set_recovery(self, name, policy):
        self.calls.append(("set_recovery", name))
        if self.fail_recovery:
            raise ServiceError(f"set recovery actions of {name} failed")
        self.recovery[name] = policy

    def dependents(self, name):
        self.calls.append(("dependents", name))
        return list(self.dependents_of.get(name, []))

    def disconnect(self):
        self.disconnects += 1


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_winboot_logger():
    yield
    logger = logging.getLogger("winboot")
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = True


@pytest.fixture
def fake_control():
    return FakeServiceControl()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def data_url():
    def _make(content: bytes | str) -> str:
        if isinstance(content, str):
            content = content.encode()
        return "data:;base64," + base64.b64encode(content).decode()
    return _make


@pytest.fixture
def make_ignition():
    """
    Build an ignition document. files maps path -> data URL source,
    units maps name -> contents.
    """
    def _make(files: Dict[str, str] = None, units: Dict[str, str] = None, version: str = "3.2.0") -> bytes:
        files = files or {}
        units = units or {}
        if version.startswith("2."):
            file_entries = [
                {"filesystem": "root", "path": p, "contents": {"source": s}, "mode": 420}
                for p, s in files.items()
            ]
        else:
            file_entries = [{"path": p, "contents": {"source": s}, "mode": 420} for p, s in files.items()]
        doc = {
            "ignition": {"version": version},
            "storage": {"files": file_entries},
            "systemd": {"units": [{"name": n, "enabled": True, "contents": c} for n, c in units.items()]},
        }
        return json.dumps(doc).encode()
    return _make


KUBELET_UNIT = """[Unit]
Description=Kubernetes Kubelet
Wants=rpc-statd.service crio.service
After=crio.service

[Service]
ExecStart=/usr/bin/hyperkube \\
    kubelet \\
      --config=/etc/kubernetes/kubelet.conf \\
      --bootstrap-kubeconfig=/etc/kubernetes/kubeconfig \\
      --kubeconfig=/var/lib/kubelet/kubeconfig \\
      --container-runtime=remote \\
      --node-labels=node-role.kubernetes.io/worker,node.openshift.io/os_id=${{ID}} \\
      --minimum-container-ttl-duration=6m0s \\
{extra}

Restart=always
RestartSec=10

[Install]
WantedBy=multi-user.target
"""


@pytest.fixture
def kubelet_unit():
    """Render a kubelet.service unit with extra ExecStart arguments."""
    def _make(*extra_args: str) -> str:
        return KUBELET_UNIT.format(extra="\n".join(f"      {a} \\" for a in extra_args))
    return _make
