# tests/service/test_lifecycle.py
import pytest

from winboot.config.models import ServiceTimeouts
from winboot.errors import ServiceError, ServiceNotFoundError, ServiceTimeoutError
from winboot.observers.events import (
    DependentStartFailed,
    ServiceInstalled,
    ServiceRefreshed,
    ServiceRemoved,
    ServiceStopped,
)
from winboot.service.lifecycle import ServiceLifecycleManager
from winboot.service.models import LifecycleState, ServiceDescriptor, ServiceState


class CollectingObserver:
    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)


def _manager(control, clock, **kw):
    return ServiceLifecycleManager(control, "kubelet", sleep=clock.sleep, clock=clock, **kw)


def _descriptor(cmd="C:\\k\\kubelet.exe --v=3"):
    return ServiceDescriptor(
        name="kubelet",
        command_line=cmd,
        display_name="kubelet",
        description="Kubernetes Kubelet",
        dependencies=["containerd"],
    )


# ------------------------------------------------------------------
# initial state
# ------------------------------------------------------------------

def test_initial_state_not_installed(fake_control, fake_clock):
    assert _manager(fake_control, fake_clock).state == LifecycleState.NOT_INSTALLED


@pytest.mark.parametrize("status, expected", [
    (ServiceState.STOPPED, LifecycleState.STOPPED),
    (ServiceState.RUNNING, LifecycleState.RUNNING),
    (ServiceState.START_PENDING, LifecycleState.RUNNING),
])
def test_initial_state_from_host(fake_control, fake_clock, status, expected):
    fake_control.install("kubelet", state=status, dependents=["hybrid-overlay-node"])
    mgr = _manager(fake_control, fake_clock)
    assert mgr.state == expected
    assert mgr.dependents == ["hybrid-overlay-node"]


# ------------------------------------------------------------------
# no-ops
# ------------------------------------------------------------------

def test_start_when_running_does_not_touch_host(fake_control, fake_clock):
    fake_control.install("kubelet", state=ServiceState.RUNNING)
    mgr = _manager(fake_control, fake_clock)
    fake_control.calls.clear()

    mgr.start()

    assert fake_control.mutations == []


def test_stop_when_stopped_does_not_touch_host(fake_control, fake_clock):
    fake_control.install("kubelet", state=ServiceState.STOPPED)
    mgr = _manager(fake_control, fake_clock)
    fake_control.calls.clear()

    mgr.stop()

    assert fake_control.mutations == []


def test_uninstall_absent_service_is_noop(fake_control, fake_clock):
    mgr = _manager(fake_control, fake_clock)
    mgr.uninstall()
    assert fake_control.mutations == []


# ------------------------------------------------------------------
# dependents
# ------------------------------------------------------------------

def test_stop_stops_dependents_before_primary(fake_control, fake_clock):
    fake_control.install("kubelet", dependents=["hybrid-overlay-node", "windows_exporter"])
    fake_control.install("hybrid-overlay-node")
    fake_control.install("windows_exporter")
    mgr = _manager(fake_control, fake_clock)

    mgr.stop()

    assert fake_control.mutations == [
        ("stop", "hybrid-overlay-node"),
        ("stop", "windows_exporter"),
        ("stop", "kubelet"),
    ]
    assert mgr.state == LifecycleState.STOPPED


def test_start_starts_dependents_after_primary(fake_control, fake_clock):
    fake_control.install("kubelet", state=ServiceState.STOPPED, dependents=["hybrid-overlay-node", "windows_exporter"])
    fake_control.install("hybrid-overlay-node", state=ServiceState.STOPPED)
    fake_control.install("windows_exporter", state=ServiceState.RUNNING)
    mgr = _manager(fake_control, fake_clock)

    mgr.start()

    # the running dependent is left alone
    assert fake_control.mutations == [("start", "kubelet"), ("start", "hybrid-overlay-node")]


def test_dependent_start_failure_is_reported_not_raised(fake_control, fake_clock):
    fake_control.install("kubelet", state=ServiceState.STOPPED, dependents=["hybrid-overlay-node"])
    fake_control.install("hybrid-overlay-node", state=ServiceState.STOPPED)
    fake_control.start_errors.add("hybrid-overlay-node")
    observer = CollectingObserver()
    mgr = _manager(fake_control, fake_clock, observers=[observer])

    mgr.start()

    assert mgr.state == LifecycleState.RUNNING
    assert fake_control.services["kubelet"]["state"] == ServiceState.RUNNING
    failed = [e for e in observer.events if isinstance(e, DependentStartFailed)]
    assert [e.dependent for e in failed] == ["hybrid-overlay-node"]


# ------------------------------------------------------------------
# install / update
# ------------------------------------------------------------------

def test_install_creates_service_and_sets_recovery(fake_control, fake_clock):
    observer = CollectingObserver()
    mgr = _manager(fake_control, fake_clock, observers=[observer])

    mgr.install_or_update(_descriptor())

    assert fake_control.mutations == [("create", "kubelet"), ("set_recovery", "kubelet")]
    assert mgr.state == LifecycleState.STOPPED
    assert fake_control.recovery["kubelet"].reset_period_s == 600
    assert isinstance(observer.events[0], ServiceInstalled)


def test_install_existing_service_updates_it(fake_control, fake_clock):
    fake_control.install("kubelet", command_line="C:\\k\\kubelet.exe --v=2", dependents=["hybrid-overlay-node"])
    fake_control.install("hybrid-overlay-node")
    mgr = _manager(fake_control, fake_clock)
    # a dependent added since the manager last looked
    fake_control.dependents_of["kubelet"].append("windows_exporter")
    fake_control.calls.clear()

    mgr.install_or_update(_descriptor())

    ops = [c for c in fake_control.calls if c[0] in ("config", "stop", "update_config", "dependents")]
    assert ops == [
        ("config", "kubelet"),
        ("stop", "hybrid-overlay-node"),
        ("stop", "kubelet"),
        ("update_config", "kubelet"),
        ("dependents", "kubelet"),
    ]
    svc = fake_control.services["kubelet"]["descriptor"]
    assert svc.command_line == "C:\\k\\kubelet.exe --v=3"
    assert svc.dependencies == ["containerd"]
    assert mgr.dependents == ["hybrid-overlay-node", "windows_exporter"]


def test_recovery_failure_is_fatal(fake_control, fake_clock):
    fake_control.fail_recovery = True
    with pytest.raises(ServiceError, match="recovery"):
        _manager(fake_control, fake_clock).install_or_update(_descriptor())


def test_update_requires_installed_service(fake_control, fake_clock):
    with pytest.raises(ServiceNotFoundError):
        _manager(fake_control, fake_clock).update(_descriptor())


# ------------------------------------------------------------------
# polling
# ------------------------------------------------------------------

def test_stop_polls_until_stopped(fake_control, fake_clock):
    fake_control.install("kubelet")
    fake_control.stop_polls_needed["kubelet"] = 3
    mgr = _manager(fake_control, fake_clock)

    mgr.stop()

    assert fake_clock.sleeps == [0.3, 0.3]
    assert mgr.state == LifecycleState.STOPPED


def test_stop_poll_treats_query_errors_as_not_yet(fake_control, fake_clock):
    fake_control.install("kubelet")
    fake_control.stop_polls_needed["kubelet"] = 1
    mgr = _manager(fake_control, fake_clock)
    fake_control.query_errors["kubelet"] = 2

    mgr.stop()

    assert len(fake_clock.sleeps) == 2


def test_stop_timeout_is_fatal(fake_control, fake_clock):
    fake_control.install("kubelet")
    fake_control.stop_polls_needed["kubelet"] = 10_000
    mgr = _manager(fake_control, fake_clock)

    with pytest.raises(ServiceTimeoutError, match="kubelet"):
        mgr.stop()
    assert 10 <= fake_clock.now < 10.5


def test_refresh_waits_for_running(fake_control, fake_clock):
    fake_control.install("kubelet")
    observer = CollectingObserver()
    mgr = _manager(fake_control, fake_clock, observers=[observer])

    mgr.refresh(_descriptor("C:\\k\\kubelet.exe --network-plugin=cni"))

    assert fake_control.services["kubelet"]["descriptor"].command_line == "C:\\k\\kubelet.exe --network-plugin=cni"
    assert mgr.state == LifecycleState.RUNNING
    assert any(isinstance(e, ServiceRefreshed) for e in observer.events)
    assert any(isinstance(e, ServiceStopped) for e in observer.events)


def test_refresh_timeout_leaves_service_as_is(fake_control, fake_clock):
    fake_control.install("kubelet")
    fake_control.start_stuck.add("kubelet")
    mgr = _manager(fake_control, fake_clock, timeouts=ServiceTimeouts(run_poll_interval=30, run_timeout=120))

    with pytest.raises(ServiceTimeoutError):
        mgr.refresh(_descriptor())

    assert fake_clock.sleeps == [30, 30, 30, 30]
    assert fake_control.services["kubelet"]["state"] == ServiceState.START_PENDING
    assert "delete" not in [c[0] for c in fake_control.mutations]


# ------------------------------------------------------------------
# removal
# ------------------------------------------------------------------

def test_uninstall_stops_then_deletes(fake_control, fake_clock):
    fake_control.install("kubelet")
    observer = CollectingObserver()
    mgr = _manager(fake_control, fake_clock, observers=[observer])

    mgr.uninstall()

    assert fake_control.mutations == [("stop", "kubelet"), ("delete", "kubelet")]
    assert mgr.state == LifecycleState.NOT_INSTALLED
    assert isinstance(observer.events[-1], ServiceRemoved)


def test_events_share_one_run_id_when_none_given(fake_control, fake_clock):
    fake_control.install("kubelet")
    observer = CollectingObserver()
    mgr = _manager(fake_control, fake_clock, observers=[observer])

    mgr.stop()
    mgr.uninstall()

    assert len(observer.events) >= 2
    assert {e.run_id for e in observer.events} == {mgr.run_id}


def test_events_carry_given_run_id(fake_control, fake_clock):
    fake_control.install("kubelet")
    observer = CollectingObserver()
    mgr = _manager(fake_control, fake_clock, observers=[observer], run_id="run-42")

    mgr.uninstall()

    assert observer.events
    assert all(e.run_id == "run-42" for e in observer.events)


def test_disconnect_is_idempotent(fake_control, fake_clock):
    mgr = _manager(fake_control, fake_clock)
    mgr.disconnect()
    mgr.disconnect()
    assert fake_control.disconnects == 1
