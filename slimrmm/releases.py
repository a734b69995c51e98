"""Release metadata, version comparison, checksums and archive extraction for updates."""

from __future__ import annotations

import hashlib
import os
import re
import shutil
import tarfile
import zipfile
from collections.abc import Mapping
from dataclasses import asdict, dataclass

from slimrmm import version as _version

BINARY_NAME = "slimrmm-agent"
WINDOWS_BINARY_NAME = "slimrmm-agent.exe"
ASSET_PREFIX = "slimrmm-agent_"

_ARCHIVE_EXTENSIONS = {"windows": "zip"}
_DEFAULT_ARCHIVE_EXTENSION = "tar.gz"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class ChecksumMismatchError(Exception):
    """A file's SHA-256 checksum does not match the expected value."""


class BinaryNotFoundError(Exception):
    """The agent binary is missing from a release archive."""

    def __init__(self, message: str = "binary not found in archive"):
        super().__init__(message)


@dataclass(frozen=True)
class Asset:
    """A downloadable file attached to a release."""

    name: str
    browser_download_url: str = ""
    size: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Asset":
        return cls(
            name=str(data.get("name", "")),
            browser_download_url=str(data.get("browser_download_url", "")),
            size=int(data.get("size") or 0),
        )


@dataclass(frozen=True)
class Release:
    """A published release and its assets."""

    tag_name: str
    assets: tuple[Asset, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Release":
        assets = data.get("assets") or []
        return cls(
            tag_name=str(data.get("tag_name", "")),
            assets=tuple(Asset.from_dict(asset) for asset in assets),
        )

    @property
    def version(self) -> str:
        """The tag without a leading 'v'."""
        return self.tag_name.removeprefix("v")

    def find_asset(self, system: str | None = None, arch: str | None = None) -> Asset | None:
        """Return the first asset built for the platform, or None."""
        return next(
            (asset for asset in self.assets if matches_asset_pattern(asset.name, system, arch)),
            None,
        )


@dataclass(frozen=True)
class UpdateInfo:
    """An available update."""

    version: str
    download_url: str
    asset_name: str
    size: int = 0

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class UpdateResult:
    """The outcome of an update attempt."""

    success: bool = False
    old_version: str = ""
    new_version: str = ""
    rolled_back: bool = False
    error: str = ""
    restart_needed: bool = False

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "success": self.success,
            "old_version": self.old_version,
            "new_version": self.new_version,
            "rolled_back": self.rolled_back,
        }
        if self.error:
            data["error"] = self.error
        data["restart_needed"] = self.restart_needed
        return data


def current_platform() -> tuple[str, str]:
    """Return (operating system, architecture) of the running agent."""
    info = _version.get()
    return info.os, info.arch


def _resolve(system: str | None, arch: str | None) -> tuple[str, str, str]:
    current_system, current_arch = current_platform()
    system = (system or current_system).lower()
    arch = (arch or current_arch).lower()
    return system, arch, _ARCHIVE_EXTENSIONS.get(system, _DEFAULT_ARCHIVE_EXTENSION)


def parse_version(version: str) -> list[int]:
    """Split a dotted version into integers; pre-release suffixes and junk count as 0."""
    parts = []
    for part in version.split("."):
        match = _LEADING_INT.match(part.split("-")[0])
        parts.append(int(match.group(1)) if match else 0)
    return parts


def is_newer_version(latest: str, current: str) -> bool:
    """Return True if latest is a newer version than current."""
    if current in ("unknown", "dev"):
        return True

    latest_parts = parse_version(latest)
    current_parts = parse_version(current)
    for new, old in zip(latest_parts, current_parts):
        if new != old:
            return new > old
    return len(latest_parts) > len(current_parts)


def asset_pattern(system: str | None = None, arch: str | None = None) -> str:
    """Return the glob naming the release asset for a platform."""
    system, arch, extension = _resolve(system, arch)
    return f"{ASSET_PREFIX}*_{system}_{arch}.{extension}"


def matches_asset_pattern(asset_name: str, system: str | None = None, arch: str | None = None) -> bool:
    """Return True if the asset name is the release archive for the platform."""
    system, arch, extension = _resolve(system, arch)
    suffix = f"_{system}_{arch}.{extension}"
    return asset_name.startswith(ASSET_PREFIX) and asset_name.endswith(suffix)


def parse_checksums(text: str) -> dict[str, str]:
    """Parse 'HASH  NAME' lines into a mapping of name to hash."""
    checksums = {}
    for line in text.split("\n"):
        parts = line.split()
        if len(parts) == 2:
            checksums[parts[1]] = parts[0]
    return checksums


def verify_checksum(file_path: str, expected_hash: str) -> None:
    """Raise ChecksumMismatchError unless the file's SHA-256 equals expected_hash."""
    digest = hashlib.sha256()
    with open(file_path, "rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 16), b""):
            digest.update(chunk)
    actual = digest.hexdigest()
    if actual != expected_hash:
        raise ChecksumMismatchError(f"checksum mismatch: expected {expected_hash}, got {actual}")


def extract_binary(archive_path: str, dest_path: str) -> None:
    """Extract the agent binary from a .zip or .tar.gz release archive."""
    if archive_path.endswith(".zip"):
        extract_zip(archive_path, dest_path)
    else:
        extract_tar_gz(archive_path, dest_path)


def extract_tar_gz(archive_path: str, dest_path: str) -> None:
    """Extract the agent binary from a tar.gz archive to dest_path, made executable."""
    with tarfile.open(archive_path, "r:gz") as archive:
        for member in archive:
            if member.type not in (tarfile.REGTYPE, tarfile.AREGTYPE):
                continue
            if member.name != BINARY_NAME and os.path.basename(member.name) != BINARY_NAME:
                continue
            source = archive.extractfile(member)
            if source is None:
                continue
            with source, open(dest_path, "wb") as out:
                shutil.copyfileobj(source, out)
            os.chmod(dest_path, 0o755)
            return
    raise BinaryNotFoundError()


def extract_zip(archive_path: str, dest_path: str) -> None:
    """Extract the Windows agent binary from a zip archive to dest_path."""
    with zipfile.ZipFile(archive_path) as archive:
        for entry in archive.infolist():
            if os.path.basename(entry.filename) != WINDOWS_BINARY_NAME:
                continue
            with archive.open(entry) as source, open(dest_path, "wb") as out:
                shutil.copyfileobj(source, out)
            return
    raise BinaryNotFoundError()