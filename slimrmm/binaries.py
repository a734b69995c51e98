"""Backup, replacement and rollback of the agent binary on disk."""

from __future__ import annotations

import logging
import os
import shutil

EXECUTABLE_MODE = 0o755

_logger = logging.getLogger(__name__)


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass


def _copy_into_place(src_path: str, dest_path: str, temp_suffix: str) -> None:
    """Copy src to a temporary file beside dest, make it executable, then move it over dest."""
    tmp_path = dest_path + temp_suffix
    with open(src_path, "rb") as src:
        try:
            with open(tmp_path, "wb") as dst:
                shutil.copyfileobj(src, dst)
            os.chmod(tmp_path, EXECUTABLE_MODE)
            os.replace(tmp_path, dest_path)
        except OSError:
            _discard(tmp_path)
            raise


def _swap_in(src_path: str, dest_path: str, aside_suffix: str, temp_suffix: str) -> None:
    """Move src over dest, setting the current dest aside first.

    Renaming works even while the current binary is running; when the move
    crosses file systems the file is copied instead.
    """
    aside_path = dest_path + aside_suffix
    _discard(aside_path)

    try:
        os.replace(dest_path, aside_path)
    except OSError as exc:
        _logger.warning("setting aside current binary failed (may be fresh install): %s", exc)

    try:
        os.replace(src_path, dest_path)
    except OSError as exc:
        _logger.warning("rename failed (cross-device?), falling back to copy: %s", exc)
        _copy_into_place(src_path, dest_path, temp_suffix)

    try:
        os.chmod(dest_path, EXECUTABLE_MODE)
    except OSError as exc:
        _logger.warning("chmod failed: %s", exc)

    _discard(aside_path)


def backup_binary(binary_path: str, backup_path: str) -> None:
    """Copy the binary to backup_path, preserving its permissions."""
    shutil.copyfile(binary_path, backup_path)
    shutil.copymode(binary_path, backup_path)


def replace_binary(src_path: str, dest_path: str) -> None:
    """Install the new binary at src_path as dest_path."""
    _swap_in(src_path, dest_path, ".old", ".new")


def copy_binary(src_path: str, dest_path: str) -> None:
    """Copy the binary at src_path over dest_path, leaving the source in place."""
    aside_path = dest_path + ".old"
    _discard(aside_path)

    try:
        os.replace(dest_path, aside_path)
    except OSError as exc:
        _logger.warning("rename of binary failed: %s", exc)

    _copy_into_place(src_path, dest_path, ".new")
    _discard(aside_path)


def rollback_binary(backup_path: str, dest_path: str) -> None:
    """Restore dest_path from the backup, discarding the failed binary."""
    _logger.info("rolling back to previous version from %s", backup_path)
    _swap_in(backup_path, dest_path, ".failed", ".rollback")


def clean_old_backups(backup_dir: str, keep: int) -> list[str]:
    """Remove all but the last `keep` *.backup files (by name) and return the removed paths."""
    try:
        names = sorted(os.listdir(backup_dir))
    except OSError:
        return []

    backups = [os.path.join(backup_dir, name) for name in names if name.endswith(".backup")]
    excess = backups[: max(len(backups) - keep, 0)]
    for path in excess:
        _discard(path)
        _logger.info("removed old backup %s", path)
    return excess