import os
import zipfile

import pytest

from slimrmm.archive import (
    ArchiveError,
    FileTooLargeError,
    Limits,
    PathTooLongError,
    TooManyFilesError,
    TotalSizeTooLargeError,
    ZipSlipError,
    create_zip,
    extract_zip,
    validate_zip_entry,
)


def _make_zip(path, entries):
    with zipfile.ZipFile(path, "w") as archive:
        for name, data in entries:
            archive.writestr(name, data)
    return str(path)


@pytest.fixture
def source_tree(tmp_path):
    root = tmp_path / "src"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("alpha")
    (root / "sub" / "b.txt").write_text("beta")
    return root


def test_validate_returns_destination(tmp_path):
    entry = zipfile.ZipInfo("a/b.txt")
    assert validate_zip_entry(str(tmp_path), entry, Limits()) == os.path.join(str(tmp_path), "a", "b.txt")


@pytest.mark.parametrize("name", ["../evil", "a/../../evil", "/etc/cron.d/job", "."])
def test_validate_rejects_traversal(tmp_path, name):
    with pytest.raises(ZipSlipError):
        validate_zip_entry(str(tmp_path), zipfile.ZipInfo(name), Limits())


def test_validate_rejects_long_path(tmp_path):
    with pytest.raises(PathTooLongError):
        validate_zip_entry(str(tmp_path), zipfile.ZipInfo("abcdefgh"), Limits(max_path_length=5))


def test_validate_rejects_large_file(tmp_path):
    entry = zipfile.ZipInfo("big.bin")
    entry.file_size = 11
    with pytest.raises(FileTooLargeError):
        validate_zip_entry(str(tmp_path), entry, Limits(max_file_size=10))


def test_validate_ignores_size_of_directories(tmp_path):
    entry = zipfile.ZipInfo("dir/")
    entry.file_size = 11
    assert validate_zip_entry(str(tmp_path), entry, Limits(max_file_size=10)) == os.path.join(str(tmp_path), "dir")


def test_extract_zip_writes_files(tmp_path):
    zip_path = _make_zip(tmp_path / "in.zip", [("dir/", b""), ("dir/file.txt", b"content")])
    out = tmp_path / "out"
    extract_zip(zip_path, str(out), Limits())
    assert (out / "dir" / "file.txt").read_bytes() == b"content"
    assert (out / "dir").is_dir()


def test_extract_zip_rejects_slip(tmp_path):
    zip_path = _make_zip(tmp_path / "in.zip", [("../escape.txt", b"x")])
    with pytest.raises(ZipSlipError):
        extract_zip(zip_path, str(tmp_path / "out"), Limits())
    assert not (tmp_path / "escape.txt").exists()


def test_extract_zip_too_many_files(tmp_path):
    zip_path = _make_zip(tmp_path / "in.zip", [("a", b"1"), ("b", b"2")])
    with pytest.raises(TooManyFilesError):
        extract_zip(zip_path, str(tmp_path / "out"), Limits(max_file_count=1))


def test_extract_zip_total_size(tmp_path):
    zip_path = _make_zip(tmp_path / "in.zip", [("a", b"12"), ("b", b"34")])
    with pytest.raises(TotalSizeTooLargeError):
        extract_zip(zip_path, str(tmp_path / "out"), Limits(max_total_size=3))


def test_extract_zip_file_too_large(tmp_path):
    zip_path = _make_zip(tmp_path / "in.zip", [("a", b"0123456789")])
    with pytest.raises(FileTooLargeError):
        extract_zip(zip_path, str(tmp_path / "out"), Limits(max_file_size=5))


def test_extract_zip_invalid_archive(tmp_path):
    bogus = tmp_path / "bogus.zip"
    bogus.write_bytes(b"not a zip")
    with pytest.raises(ArchiveError):
        extract_zip(str(bogus), str(tmp_path / "out"), Limits())


def test_create_zip_of_directory_order_and_compression(tmp_path, source_tree):
    zip_path = tmp_path / "tree.zip"
    create_zip(str(source_tree), str(zip_path))
    with zipfile.ZipFile(zip_path) as archive:
        assert archive.namelist() == ["src/", "src/a.txt", "src/sub/", "src/sub/b.txt"]
        assert archive.getinfo("src/a.txt").compress_type == zipfile.ZIP_DEFLATED


def test_create_and_extract_round_trip(tmp_path, source_tree):
    zip_path = tmp_path / "tree.zip"
    create_zip(str(source_tree), str(zip_path))
    out = tmp_path / "out"
    extract_zip(str(zip_path), str(out), Limits())
    assert (out / "src" / "a.txt").read_text() == "alpha"
    assert (out / "src" / "sub" / "b.txt").read_text() == "beta"


def test_create_zip_of_single_file(tmp_path, source_tree):
    zip_path = tmp_path / "one.zip"
    create_zip(str(source_tree / "sub" / "b.txt"), str(zip_path))
    with zipfile.ZipFile(zip_path) as archive:
        assert archive.namelist() == ["b.txt"]
        assert archive.read("b.txt") == b"beta"


def test_create_zip_missing_source(tmp_path):
    with pytest.raises(ArchiveError):
        create_zip(str(tmp_path / "missing"), str(tmp_path / "out.zip"))