"""Stopping, starting and querying the agent's own system service."""

from __future__ import annotations

import logging
import platform
import subprocess
import time

from slimrmm.services import ServiceError

_logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.5
STOP_TIMEOUT = 30.0


def default_service_name(system: str | None = None) -> str:
    """Return the agent's service name on the given (or current) system."""
    system = (system or platform.system()).lower()
    if system == "darwin":
        return "io.slimrmm.agent"
    if system == "windows":
        return "SlimRMMAgent"
    return "slimrmm-agent"


def _run(args: list[str], *, combine: bool = False) -> tuple[bool, str]:
    """Run a command; return success and its stdout (with stderr when combined)."""
    try:
        proc = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if combine else subprocess.DEVNULL,
            check=False,
        )
    except OSError as exc:
        return False, str(exc) if combine else ""
    output = (proc.stdout or b"").decode("utf-8", errors="replace")
    return proc.returncode == 0, output


def _require(args: list[str]) -> None:
    ok, output = _run(args, combine=True)
    if not ok:
        raise ServiceError(f"{' '.join(args)} failed: {output.strip()}")


class ServiceController:
    """Controls the agent service with the system's own service tools."""

    def __init__(self, service_name: str | None = None, system: str | None = None):
        self.system = (system or platform.system()).lower()
        self.service_name = service_name or default_service_name(self.system)

    @property
    def plist_path(self) -> str:
        return "/Library/LaunchDaemons/" + self.service_name + ".plist"

    def _unsupported(self) -> ServiceError:
        return ServiceError(f"unsupported OS: {self.system}")

    def stop(self) -> None:
        """Stop the service, waiting until it has stopped where the system allows."""
        name = self.service_name
        if self.system == "linux":
            _require(["systemctl", "stop", name])
        elif self.system == "darwin":
            if not _run(["launchctl", "bootout", "system", self.plist_path])[0]:
                _logger.debug("bootout failed, trying unload")
                _require(["launchctl", "unload", "-w", self.plist_path])
        elif self.system == "windows":
            if not _run(["net", "stop", name])[0]:
                _logger.debug("net stop failed, trying sc stop with wait")
                _require(["sc", "stop", name])
                self.wait_for_stopped(STOP_TIMEOUT)
        else:
            raise self._unsupported()

    def start(self) -> None:
        """Start the service."""
        name = self.service_name
        if self.system == "linux":
            ok, output = _run(["systemctl", "start", name], combine=True)
            if not ok:
                _logger.error("systemctl start failed: %s", output)
                raise ServiceError(f"systemctl start {name} failed: {output.strip()}")
            _logger.info("systemctl start completed: %s", output)
        elif self.system == "darwin":
            if not _run(["launchctl", "bootstrap", "system", self.plist_path])[0]:
                _logger.debug("bootstrap failed, trying load")
                _require(["launchctl", "load", "-w", self.plist_path])
        elif self.system == "windows":
            if not _run(["net", "start", name])[0]:
                _logger.debug("net start failed, trying sc start")
                _require(["sc", "start", name])
        else:
            raise self._unsupported()

    def is_running(self) -> bool:
        """Return True if the service is running."""
        name = self.service_name
        if self.system == "linux":
            command = ["systemctl", "is-active", name]
        elif self.system == "darwin":
            command = ["launchctl", "list", name]
        elif self.system == "windows":
            command = ["sc", "query", name]
        else:
            raise self._unsupported()

        ok, output = _run(command)
        if not ok:
            return False
        if self.system == "linux":
            return output.strip() == "active"
        if self.system == "darwin":
            return name in output
        return "RUNNING" in output

    def wait_for_stopped(self, timeout: float) -> None:
        """Poll the Windows service until it reports STOPPED or the timeout passes."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            ok, output = _run(["sc", "query", self.service_name])
            if not ok or "STOPPED" in output:
                return
            time.sleep(_POLL_INTERVAL)
        raise ServiceError("timeout waiting for service to stop")