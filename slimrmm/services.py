"""Cross-platform system service management (systemd and launchd)."""

from __future__ import annotations

import os
import platform
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

SYSTEMD_UNIT_DIR = "/etc/systemd/system"
LAUNCHD_PLIST_DIR = "/Library/LaunchDaemons"


class ServiceStatus(str, Enum):
    """State of a system service."""

    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


@dataclass
class ServiceInfo:
    """Information about a system service."""

    name: str
    status: ServiceStatus
    enabled: bool = False
    display_name: str = ""
    description: str = ""
    start_type: str = ""  # auto, manual, disabled

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"name": self.name}
        if self.display_name:
            data["display_name"] = self.display_name
        if self.description:
            data["description"] = self.description
        data["status"] = self.status.value
        data["enabled"] = self.enabled
        if self.start_type:
            data["start_type"] = self.start_type
        return data


@dataclass
class ServiceConfig:
    """Configuration used to install a service."""

    name: str
    display_name: str = ""
    description: str = ""
    exec_path: str = ""
    args: list[str] = field(default_factory=list)
    working_dir: str = ""
    user: str = ""
    group: str = ""
    environment: dict[str, str] = field(default_factory=dict)


class ServiceError(Exception):
    """A service operation failed."""


class ServiceNotFoundError(ServiceError):
    def __init__(self, message: str = "service not found"):
        super().__init__(message)


class ServiceExistsError(ServiceError):
    def __init__(self, message: str = "service already exists"):
        super().__init__(message)


def default_config(exec_path: str) -> ServiceConfig:
    """Return the default agent service configuration."""
    return ServiceConfig(
        name="slimrmm-agent",
        display_name="SlimRMM Agent",
        description="SlimRMM Remote Monitoring & Management Agent",
        exec_path=exec_path,
        working_dir="/var/lib/slimrmm",
        user="root",
        group="root",
    )


def render_systemd_unit(config: ServiceConfig) -> str:
    """Return the systemd unit file text for a service configuration."""
    environment = "".join(
        f'\nEnvironment="{key}={value}"\n' for key, value in sorted(config.environment.items())
    )
    return (
        "[Unit]\n"
        f"Description={config.description}\n"
        "After=network.target\n"
        "Wants=network-online.target\n"
        "\n"
        "[Service]\n"
        "Type=simple\n"
        f"ExecStart={config.exec_path}\n"
        f"WorkingDirectory={config.working_dir}\n"
        "Restart=always\n"
        "RestartSec=10\n"
        f"User={config.user}\n"
        f"Group={config.group}\n"
        f"{environment}"
        "\n"
        "\n"
        "# Security hardening\n"
        "NoNewPrivileges=true\n"
        "ProtectSystem=strict\n"
        "ProtectHome=read-only\n"
        "PrivateTmp=true\n"
        "ReadWritePaths=/var/lib/slimrmm /var/log/slimrmm\n"
        "\n"
        "# Logging - use standard log location\n"
        "StandardOutput=append:/var/log/slimrmm/agent.log\n"
        "StandardError=append:/var/log/slimrmm/agent.log\n"
        "\n"
        "[Install]\n"
        "WantedBy=multi-user.target\n"
    )


def render_launchd_plist(config: ServiceConfig) -> str:
    """Return the launchd property list text for a service configuration."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" '
        '"http://www.apple.com/DTDs/PropertyList-1.0.dtd">\n'
        '<plist version="1.0">\n'
        "<dict>\n"
        "    <key>Label</key>\n"
        f"    <string>{config.name}</string>\n"
        "    <key>ProgramArguments</key>\n"
        "    <array>\n"
        f"        <string>{config.exec_path}</string>\n"
        "    </array>\n"
        "    <key>WorkingDirectory</key>\n"
        f"    <string>{config.working_dir}</string>\n"
        "    <key>RunAtLoad</key>\n"
        "    <true/>\n"
        "    <key>KeepAlive</key>\n"
        "    <dict>\n"
        "        <key>SuccessfulExit</key>\n"
        "        <false/>\n"
        "    </dict>\n"
        "    <key>StandardOutPath</key>\n"
        "    <string>/var/log/slimrmm/stdout.log</string>\n"
        "    <key>StandardErrorPath</key>\n"
        "    <string>/var/log/slimrmm/stderr.log</string>\n"
        "    <key>ThrottleInterval</key>\n"
        "    <integer>10</integer>\n"
        "</dict>\n"
        "</plist>\n"
    )


class _Result(NamedTuple):
    ok: bool
    output: str


def _run(args: list[str], *, combine: bool = False) -> _Result:
    """Run a command; output is stdout, or stdout and stderr together when combined."""
    try:
        proc = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if combine else subprocess.DEVNULL,
            check=False,
        )
    except OSError as exc:
        return _Result(False, str(exc) if combine else "")
    output = (proc.stdout or b"").decode("utf-8", errors="replace")
    return _Result(proc.returncode == 0, output)


def _write_file(path: str, text: str, what: str) -> None:
    try:
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(text)
    except OSError as exc:
        raise ServiceError(f"creating {what}: {exc}") from exc


def _remove_file(path: str, what: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise ServiceError(f"removing {what}: {exc}") from exc


class Manager(ABC):
    """Service management operations."""

    @abstractmethod
    def install(self, name: str, display_name: str, description: str, exec_path: str) -> None: ...

    @abstractmethod
    def uninstall(self, name: str) -> None: ...

    @abstractmethod
    def start(self, name: str) -> None: ...

    @abstractmethod
    def stop(self, name: str) -> None: ...

    @abstractmethod
    def restart(self, name: str) -> None: ...

    @abstractmethod
    def status(self, name: str) -> ServiceStatus: ...

    @abstractmethod
    def is_installed(self, name: str) -> bool: ...

    @abstractmethod
    def list(self) -> list[ServiceInfo]: ...


class SystemdManager(Manager):
    """Manages systemd services."""

    def __init__(self, unit_dir: str = SYSTEMD_UNIT_DIR):
        self.unit_dir = unit_dir

    def _unit_path(self, name: str) -> str:
        return os.path.join(self.unit_dir, name + ".service")

    def install(self, name: str, display_name: str, description: str, exec_path: str) -> None:
        if self.is_installed(name):
            raise ServiceExistsError()
        self.install_with_config(
            ServiceConfig(
                name=name,
                display_name=display_name,
                description=description,
                exec_path=exec_path,
                working_dir="/var/lib/slimrmm",
                user="root",
                group="root",
            )
        )

    def install_with_config(self, config: ServiceConfig) -> None:
        _write_file(self._unit_path(config.name), render_systemd_unit(config), "unit file")

        if not _run(["systemctl", "daemon-reload"]).ok:
            raise ServiceError("reloading systemd: systemctl daemon-reload failed")
        if not _run(["systemctl", "enable", config.name]).ok:
            raise ServiceError(f"enabling service: systemctl enable {config.name} failed")

    def uninstall(self, name: str) -> None:
        _run(["systemctl", "stop", name])
        _run(["systemctl", "disable", name])
        _remove_file(self._unit_path(name), "unit file")
        _run(["systemctl", "daemon-reload"])

    def start(self, name: str) -> None:
        result = _run(["systemctl", "start", name], combine=True)
        if not result.ok:
            raise ServiceError(f"starting service: {result.output}")

    def stop(self, name: str) -> None:
        result = _run(["systemctl", "stop", name], combine=True)
        if not result.ok:
            raise ServiceError(f"stopping service: {result.output}")

    def restart(self, name: str) -> None:
        result = _run(["systemctl", "restart", name], combine=True)
        if not result.ok:
            raise ServiceError(f"restarting service: {result.output}")

    def status(self, name: str) -> ServiceStatus:
        state = _run(["systemctl", "is-active", name]).output.strip()
        if state == "active":
            return ServiceStatus.RUNNING
        if state in ("inactive", "failed"):
            return ServiceStatus.STOPPED
        return ServiceStatus.UNKNOWN

    def is_installed(self, name: str) -> bool:
        return os.path.exists(self._unit_path(name))

    def list(self) -> list[ServiceInfo]:
        result = _run(
            ["systemctl", "list-units", "--type=service", "--all", "--no-pager", "--no-legend"]
        )
        if not result.ok:
            raise ServiceError("listing services: systemctl list-units failed")

        services = []
        for line in result.output.splitlines():
            fields = line.split()
            if len(fields) < 4:
                continue

            name = fields[0].removesuffix(".service")
            active = fields[2]
            description = " ".join(fields[4:])

            enabled_state = _run(["systemctl", "is-enabled", name]).output.strip()
            enabled = enabled_state == "enabled"
            if enabled:
                start_type = "auto"
            elif enabled_state == "disabled":
                start_type = "disabled"
            else:
                start_type = "manual"

            services.append(
                ServiceInfo(
                    name=name,
                    display_name=name,
                    description=description,
                    status=ServiceStatus.RUNNING if active == "active" else ServiceStatus.STOPPED,
                    enabled=enabled,
                    start_type=start_type,
                )
            )
        return services


class LaunchdManager(Manager):
    """Manages launchd services."""

    def __init__(self, plist_dir: str = LAUNCHD_PLIST_DIR):
        self.plist_dir = plist_dir
        self.agents_dir = os.path.join(os.path.dirname(os.path.normpath(plist_dir)), "LaunchAgents")

    def _plist_path(self, name: str) -> str:
        return os.path.join(self.plist_dir, name + ".plist")

    def install(self, name: str, display_name: str, description: str, exec_path: str) -> None:
        if self.is_installed(name):
            raise ServiceExistsError()
        self.install_with_config(
            ServiceConfig(
                name=name,
                exec_path=exec_path,
                working_dir="/Applications/SlimRMM.app/Contents/Data",
            )
        )

    def install_with_config(self, config: ServiceConfig) -> None:
        plist_path = self._plist_path(config.name)
        _write_file(plist_path, render_launchd_plist(config), "plist file")

        try:
            os.chmod(plist_path, 0o644)
        except OSError as exc:
            raise ServiceError(f"setting permissions: {exc}") from exc

        if not _run(["launchctl", "bootstrap", "system", plist_path]).ok:
            _run(["launchctl", "load", "-w", plist_path])

    def uninstall(self, name: str) -> None:
        plist_path = self._plist_path(name)
        _run(["launchctl", "bootout", "system", plist_path])
        _run(["launchctl", "unload", "-w", plist_path])
        _remove_file(plist_path, "plist file")

    def start(self, name: str) -> None:
        if _run(["launchctl", "kickstart", "-k", "system/" + name], combine=True).ok:
            return
        result = _run(["launchctl", "start", name], combine=True)
        if not result.ok:
            raise ServiceError(f"starting service: {result.output}")

    def stop(self, name: str) -> None:
        if not _run(["launchctl", "kill", "SIGTERM", "system/" + name], combine=True).ok:
            _run(["launchctl", "stop", name])

    def restart(self, name: str) -> None:
        self.stop(name)
        self.start(name)

    def status(self, name: str) -> ServiceStatus:
        result = _run(["launchctl", "list", name])
        if not result.ok:
            return ServiceStatus.STOPPED

        if "PID" in result.output:
            return ServiceStatus.RUNNING

        for line in result.output.split("\n"):
            fields = line.split()
            if len(fields) >= 3 and fields[2] == name and fields[0] != "-":
                return ServiceStatus.RUNNING

        return ServiceStatus.STOPPED

    def is_installed(self, name: str) -> bool:
        return os.path.exists(self._plist_path(name))

    def list(self) -> list[ServiceInfo]:
        result = _run(["launchctl", "list"])
        if not result.ok:
            raise ServiceError("listing services: launchctl list failed")

        services = []
        for line in result.output.split("\n")[1:]:
            fields = line.split()
            if len(fields) < 3:
                continue

            pid, name = fields[0], fields[2]
            if name.startswith("com.apple."):
                continue

            enabled = os.path.exists(os.path.join(self.plist_dir, name + ".plist")) or os.path.exists(
                os.path.join(self.agents_dir, name + ".plist")
            )

            services.append(
                ServiceInfo(
                    name=name,
                    display_name=name,
                    status=ServiceStatus.STOPPED if pid == "-" else ServiceStatus.RUNNING,
                    enabled=enabled,
                    start_type="auto" if enabled else "manual",
                )
            )
        return services


def new_manager(system: str | None = None) -> Manager | None:
    """Return the service manager for the given (or current) operating system, if any."""
    system = (system or platform.system()).lower()
    if system == "linux":
        return SystemdManager()
    if system == "darwin":
        return LaunchdManager()
    return None