"""Build version information for the agent."""

from __future__ import annotations

import platform
from dataclasses import asdict, dataclass

VERSION = "dev"
GIT_COMMIT = "unknown"
BUILD_DATE = "unknown"

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
}


def _current_os() -> str:
    return platform.system().lower()


def _current_arch() -> str:
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


@dataclass(frozen=True)
class Info:
    """Version details of the running agent."""

    version: str
    git_commit: str
    build_date: str
    python_version: str
    os: str
    arch: str

    def __str__(self) -> str:
        commit = self.git_commit[:8]
        return (
            f"SlimRMM Agent {self.version} ({commit}) "
            f"built {self.build_date} with {self.python_version}"
        )

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def get() -> Info:
    """Return the version information of the running agent."""
    return Info(
        version=VERSION,
        git_commit=GIT_COMMIT,
        build_date=BUILD_DATE,
        python_version=platform.python_version(),
        os=_current_os(),
        arch=_current_arch(),
    )