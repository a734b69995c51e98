"""Safe zip handling with path traversal (zip slip) and size protection."""

from __future__ import annotations

import os
import shutil
import stat
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024
DEFAULT_MAX_TOTAL_SIZE = 1024 * 1024 * 1024
DEFAULT_MAX_FILE_COUNT = 10000
DEFAULT_MAX_PATH_LENGTH = 256


class ArchiveError(Exception):
    """Base error for archive handling."""

    default_message = "invalid archive"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class ZipSlipError(ArchiveError):
    default_message = "zip slip: path traversal detected"


class FileTooLargeError(ArchiveError):
    default_message = "file exceeds maximum size"


class TooManyFilesError(ArchiveError):
    default_message = "archive contains too many files"


class TotalSizeTooLargeError(ArchiveError):
    default_message = "archive total size exceeds limit"


class PathTooLongError(ArchiveError):
    default_message = "file path too long"


@dataclass(frozen=True)
class Limits:
    """Extraction limits."""

    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    max_total_size: int = DEFAULT_MAX_TOTAL_SIZE
    max_file_count: int = DEFAULT_MAX_FILE_COUNT
    max_path_length: int = DEFAULT_MAX_PATH_LENGTH


def _error(cls: type[ArchiveError], detail: str) -> ArchiveError:
    return cls(f"{cls.default_message}: {detail}")


def validate_zip_entry(dest_dir: str, entry: zipfile.ZipInfo, limits: Limits | None = None) -> str:
    """Check that an entry is safe to extract and return its destination path."""
    limits = limits or Limits()
    name = entry.filename

    if len(name.encode("utf-8")) > limits.max_path_length:
        raise _error(PathTooLongError, name)

    if os.path.isabs(name):
        raise _error(ZipSlipError, "absolute path in archive")

    clean_name = os.path.normpath(name)
    if clean_name.startswith("..") or (".." + os.sep) in clean_name:
        raise _error(ZipSlipError, name)

    dest_path = os.path.normpath(os.path.join(dest_dir, clean_name))
    if not dest_path.startswith(os.path.normpath(dest_dir) + os.sep):
        raise _error(ZipSlipError, f"{name} escapes destination")

    if not entry.is_dir() and entry.file_size > limits.max_file_size:
        raise _error(FileTooLargeError, f"{name} ({entry.file_size} bytes)")

    return dest_path


def _entry_mode(entry: zipfile.ZipInfo) -> int:
    mode = (entry.external_attr >> 16) & 0o777
    if mode:
        return mode
    return 0o777 if entry.is_dir() else 0o666


def _extract_file(archive: zipfile.ZipFile, entry: zipfile.ZipInfo, dest_path: str) -> None:
    try:
        os.makedirs(os.path.dirname(dest_path), 0o755, exist_ok=True)
    except OSError as exc:
        raise ArchiveError(f"creating parent directory: {exc}") from exc

    try:
        fd = os.open(dest_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _entry_mode(entry))
    except OSError as exc:
        raise ArchiveError(f"creating file: {exc}") from exc

    try:
        with os.fdopen(fd, "wb") as dst, archive.open(entry) as src:
            shutil.copyfileobj(src, dst)
    except (OSError, zipfile.BadZipFile) as exc:
        raise ArchiveError(f"extracting file: {exc}") from exc


def extract_zip(zip_path: str, dest_dir: str, limits: Limits | None = None) -> None:
    """Extract a zip archive into dest_dir, enforcing the given limits."""
    limits = limits or Limits()
    try:
        archive = zipfile.ZipFile(zip_path)
    except (OSError, zipfile.BadZipFile) as exc:
        raise ArchiveError(f"opening zip: {exc}") from exc

    with archive:
        entries = archive.infolist()
        if len(entries) > limits.max_file_count:
            raise _error(TooManyFilesError, f"{len(entries)} files")

        total_size = sum(entry.file_size for entry in entries)
        if total_size > limits.max_total_size:
            raise _error(TotalSizeTooLargeError, f"{total_size} bytes")

        try:
            os.makedirs(dest_dir, 0o755, exist_ok=True)
        except OSError as exc:
            raise ArchiveError(f"creating destination: {exc}") from exc

        for entry in entries:
            dest_path = validate_zip_entry(dest_dir, entry, limits)
            if entry.is_dir():
                try:
                    os.makedirs(dest_path, _entry_mode(entry), exist_ok=True)
                except OSError as exc:
                    raise ArchiveError(f"creating directory: {exc}") from exc
                continue
            _extract_file(archive, entry, dest_path)


def _walk(path: str) -> Iterator[str]:
    """Yield path and everything below it, depth first in lexical order."""
    yield path
    if stat.S_ISDIR(os.lstat(path).st_mode):
        for name in sorted(os.listdir(path)):
            yield from _walk(os.path.join(path, name))


def create_zip(src_path: str, zip_path: str) -> None:
    """Create a zip archive of a file or directory tree."""
    try:
        is_dir = os.path.isdir(src_path)
        os.stat(src_path)
    except OSError as exc:
        raise ArchiveError(f"stat source: {exc}") from exc

    parent = os.path.dirname(os.path.abspath(src_path))

    with zipfile.ZipFile(zip_path, "w") as archive:
        for path in _walk(src_path):
            if is_dir:
                arcname = os.path.relpath(os.path.abspath(path), parent)
            else:
                arcname = os.path.basename(path)

            info = zipfile.ZipInfo.from_file(path, arcname)
            if info.is_dir():
                archive.writestr(info, b"")
                continue

            info.compress_type = zipfile.ZIP_DEFLATED
            with open(path, "rb") as src, archive.open(info, "w") as dst:
                shutil.copyfileobj(src, dst)