import errno
import os
import stat

import pytest

from slimrmm import binaries


def _mode(path):
    return stat.S_IMODE(os.stat(path).st_mode)


def test_backup_binary_copies_content_and_mode(tmp_path):
    src = tmp_path / "agent"
    src.write_bytes(b"current")
    os.chmod(src, 0o750)
    backup = tmp_path / "agent.dev.backup"
    binaries.backup_binary(str(src), str(backup))
    assert backup.read_bytes() == b"current"
    assert _mode(backup) == _mode(src)


def test_backup_binary_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        binaries.backup_binary(str(tmp_path / "nope"), str(tmp_path / "b.backup"))


def test_replace_binary_moves_new_file_into_place(tmp_path):
    dest = tmp_path / "agent"
    dest.write_bytes(b"old")
    new = tmp_path / "new-agent"
    new.write_bytes(b"new")
    binaries.replace_binary(str(new), str(dest))
    assert dest.read_bytes() == b"new"
    assert not new.exists()
    assert not (tmp_path / "agent.old").exists()
    assert _mode(dest) == 0o755


def test_replace_binary_fresh_install(tmp_path):
    dest = tmp_path / "agent"
    new = tmp_path / "new-agent"
    new.write_bytes(b"new")
    binaries.replace_binary(str(new), str(dest))
    assert dest.read_bytes() == b"new"


def test_replace_binary_falls_back_to_copy(tmp_path, monkeypatch):
    dest = tmp_path / "agent"
    dest.write_bytes(b"old")
    new = tmp_path / "new-agent"
    new.write_bytes(b"new")
    real_replace = os.replace

    def fake_replace(src, dst):
        if src == str(new):
            raise OSError(errno.EXDEV, "cross-device link")
        return real_replace(src, dst)

    monkeypatch.setattr(os, "replace", fake_replace)
    binaries.replace_binary(str(new), str(dest))
    assert dest.read_bytes() == b"new"
    assert new.exists()
    assert not (tmp_path / "agent.new").exists()
    assert not (tmp_path / "agent.old").exists()


def test_copy_binary_keeps_source(tmp_path):
    src = tmp_path / "app-agent"
    src.write_bytes(b"fresh")
    dest = tmp_path / "cli-agent"
    dest.write_bytes(b"stale")
    binaries.copy_binary(str(src), str(dest))
    assert dest.read_bytes() == b"fresh"
    assert src.read_bytes() == b"fresh"
    assert _mode(dest) == 0o755
    assert sorted(p.name for p in tmp_path.iterdir()) == ["app-agent", "cli-agent"]


def test_copy_binary_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        binaries.copy_binary(str(tmp_path / "missing"), str(tmp_path / "dest"))


def test_rollback_binary_restores_backup(tmp_path):
    dest = tmp_path / "agent"
    dest.write_bytes(b"broken")
    backup = tmp_path / "agent.1.0.backup"
    backup.write_bytes(b"good")
    binaries.rollback_binary(str(backup), str(dest))
    assert dest.read_bytes() == b"good"
    assert not backup.exists()
    assert not (tmp_path / "agent.failed").exists()


def test_clean_old_backups_keeps_last_by_name(tmp_path):
    for name in ("a.backup", "b.backup", "c.backup", "notes.txt"):
        (tmp_path / name).write_bytes(b"x")
    removed = binaries.clean_old_backups(str(tmp_path), 2)
    assert removed == [str(tmp_path / "a.backup")]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["b.backup", "c.backup", "notes.txt"]


def test_clean_old_backups_nothing_to_remove(tmp_path):
    (tmp_path / "only.backup").write_bytes(b"x")
    assert binaries.clean_old_backups(str(tmp_path), 2) == []
    assert (tmp_path / "only.backup").exists()


def test_clean_old_backups_missing_dir(tmp_path):
    assert binaries.clean_old_backups(str(tmp_path / "absent"), 2) == []