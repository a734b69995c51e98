import subprocess

import pytest

from slimrmm.agentservice import ServiceController, default_service_name
from slimrmm.services import ServiceError


class FakeRun:
    """Stands in for subprocess.run, answering per command and recording calls."""

    def __init__(self, responses=None):
        self.responses = {key: list(value) for key, value in (responses or {}).items()}
        self.calls = []

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        queue = self.responses.get(tuple(args))
        returncode, output = 0, ""
        if queue:
            returncode, output = queue.pop(0) if len(queue) > 1 else queue[0]
        return subprocess.CompletedProcess(args, returncode, stdout=output.encode())


@pytest.fixture
def fake(monkeypatch):
    def install(responses=None):
        runner = FakeRun(responses)
        monkeypatch.setattr(subprocess, "run", runner)
        return runner

    monkeypatch.setattr("time.sleep", lambda seconds: None)
    return install


def test_default_service_names():
    assert default_service_name("darwin") == "io.slimrmm.agent"
    assert default_service_name("Windows") == "SlimRMMAgent"
    assert default_service_name("linux") == "slimrmm-agent"


def test_controller_uses_default_name():
    assert ServiceController(system="Darwin").service_name == "io.slimrmm.agent"
    assert ServiceController("custom", system="linux").service_name == "custom"


def test_linux_stop_runs_systemctl(fake):
    runner = fake()
    result = ServiceController(system="linux").stop()
    assert result is None
    assert runner.calls == [["systemctl", "stop", "slimrmm-agent"]]


def test_linux_stop_failure_raises(fake):
    fake({("systemctl", "stop", "slimrmm-agent"): [(1, "denied")]})
    with pytest.raises(ServiceError):
        ServiceController(system="linux").stop()


def test_darwin_stop_falls_back_to_unload(fake):
    plist = "/Library/LaunchDaemons/io.slimrmm.agent.plist"
    runner = fake({("launchctl", "bootout", "system", plist): [(5, "")]})
    result = ServiceController(system="darwin").stop()
    assert result is None
    assert runner.calls == [
        ["launchctl", "bootout", "system", plist],
        ["launchctl", "unload", "-w", plist],
    ]


def test_windows_stop_waits_after_sc_stop(fake):
    runner = fake(
        {
            ("net", "stop", "SlimRMMAgent"): [(2, "")],
            ("sc", "query", "SlimRMMAgent"): [(0, "STATE : 4 RUNNING"), (0, "STATE : 1 STOPPED")],
        }
    )
    result = ServiceController(system="windows").stop()
    assert result is None
    assert runner.calls == [
        ["net", "stop", "SlimRMMAgent"],
        ["sc", "stop", "SlimRMMAgent"],
        ["sc", "query", "SlimRMMAgent"],
        ["sc", "query", "SlimRMMAgent"],
    ]


def test_windows_stop_raises_when_sc_fails(fake):
    fake({("net", "stop", "SlimRMMAgent"): [(2, "")], ("sc", "stop", "SlimRMMAgent"): [(1, "")]})
    with pytest.raises(ServiceError):
        ServiceController(system="windows").stop()


def test_unsupported_system_raises(fake):
    controller = ServiceController(system="plan9")
    with pytest.raises(ServiceError, match="unsupported OS"):
        controller.stop()
    with pytest.raises(ServiceError, match="unsupported OS"):
        controller.start()
    with pytest.raises(ServiceError, match="unsupported OS"):
        controller.is_running()


def test_linux_start_failure_raises(fake):
    fake({("systemctl", "start", "slimrmm-agent"): [(1, "unit not found")]})
    with pytest.raises(ServiceError, match="unit not found"):
        ServiceController(system="linux").start()


def test_darwin_start_falls_back_to_load(fake):
    plist = "/Library/LaunchDaemons/io.slimrmm.agent.plist"
    runner = fake({("launchctl", "bootstrap", "system", plist): [(5, "")]})
    result = ServiceController(system="darwin").start()
    assert result is None
    assert runner.calls[-1] == ["launchctl", "load", "-w", plist]


def test_windows_start_falls_back_to_sc(fake):
    runner = fake({("net", "start", "SlimRMMAgent"): [(2, "")]})
    result = ServiceController(system="windows").start()
    assert result is None
    assert runner.calls == [["net", "start", "SlimRMMAgent"], ["sc", "start", "SlimRMMAgent"]]


@pytest.mark.parametrize(
    "system,output,expected",
    [
        ("linux", "active\n", True),
        ("linux", "inactive\n", False),
        ("darwin", '{ "Label" = "io.slimrmm.agent"; }', True),
        ("darwin", "{ }", False),
        ("windows", "STATE : 4 RUNNING", True),
        ("windows", "STATE : 1 STOPPED", False),
    ],
)
def test_is_running_parses_output(fake, system, output, expected):
    controller = ServiceController(system=system)
    fake({key: [(0, output)] for key in [
        ("systemctl", "is-active", controller.service_name),
        ("launchctl", "list", controller.service_name),
        ("sc", "query", controller.service_name),
    ]})
    assert controller.is_running() is expected


def test_is_running_false_when_command_fails(fake):
    fake({("systemctl", "is-active", "slimrmm-agent"): [(3, "active")]})
    assert ServiceController(system="linux").is_running() is False


def test_wait_for_stopped_returns_when_query_fails(fake):
    runner = fake({("sc", "query", "SlimRMMAgent"): [(1060, "")]})
    result = ServiceController(system="windows").wait_for_stopped(10)
    assert result is None
    assert runner.calls == [["sc", "query", "SlimRMMAgent"]]


def test_wait_for_stopped_times_out(fake):
    fake({("sc", "query", "SlimRMMAgent"): [(0, "RUNNING")]})
    with pytest.raises(ServiceError, match="timeout waiting for service to stop"):
        ServiceController(system="windows").wait_for_stopped(0)