import os

import pytest

from fileindex.core import crawler
from fileindex.core.crawler import CrawlEntry, crawl
from fileindex.core.fs_utils import format_size, mtime_to_str
from fileindex.test.conftest import JAN_1_2024, TREE, write_file


def test_mtime_to_str():
    assert mtime_to_str(JAN_1_2024) == "2024-01-01T00:00:00Z"
    assert mtime_to_str(JAN_1_2024 + 0.9) == "2024-01-01T00:00:00Z"


def test_format_size():
    assert format_size(12) == "12 B"
    assert format_size(2048) == "2.00 KB"
    assert format_size(3 * 1024 * 1024) == "3.00 MB"


def test_crawl_yields_every_regular_file(data_root):
    entries = list(crawl(data_root))

    assert len(entries) == len(TREE)
    assert all(isinstance(e, CrawlEntry) for e in entries)

    got = {(e.directory, e.filename, e.size) for e in entries}
    expected = set()
    for rel, size in TREE.items():
        parent, _, name = rel.rpartition("/")
        directory = data_root + "/" + parent if parent else data_root
        expected.add((directory, name, size))
    assert got == expected


def test_crawl_entry_fields(data_root):
    report = [e for e in crawl(data_root) if e.filename == "report.pdf"]
    assert report == [CrawlEntry(data_root, "report.pdf", 120, "2024-01-01T00:00:00Z")]


def test_directories_are_not_emitted(tmp_path):
    os.makedirs(tmp_path / "empty" / "nested")
    write_file(str(tmp_path / "only.txt"), 1)

    assert [e.filename for e in crawl(str(tmp_path))] == ["only.txt"]


def test_skip_dirs(data_root):
    names = {e.filename for e in crawl(data_root, skip_dirs=["IMG"])}

    assert "photo.png" not in names
    assert "notes_2024.txt" not in names
    assert "report.pdf" in names


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlink not supported")
def test_symlinks_are_skipped(tmp_path):
    write_file(str(tmp_path / "real.txt"), 4)
    os.makedirs(tmp_path / "dir")
    try:
        os.symlink(tmp_path / "real.txt", tmp_path / "link.txt")
        os.symlink(tmp_path / "dir", tmp_path / "dirlink")
    except OSError:
        pytest.skip("symlink not permitted")

    assert [e.filename for e in crawl(str(tmp_path))] == ["real.txt"]


def test_unreadable_directory_is_skipped(data_root, monkeypatch):
    real_scandir = os.scandir

    def fake_scandir(path):
        if str(path).endswith("img"):
            raise PermissionError("denied")
        return real_scandir(path)

    monkeypatch.setattr(crawler.os, "scandir", fake_scandir)

    names = {e.filename for e in crawl(data_root)}
    assert "report.pdf" in names
    assert "photo.png" not in names
    assert "notes_2024.txt" not in names


def test_crawl_is_a_fresh_generator_each_time(data_root):
    first = crawl(data_root)
    list(first)
    assert list(first) == []
    assert len(list(crawl(data_root))) == len(TREE)


def _make_gbk_names(root):
    """在 root 下建一个 GBK 编码的文件和目录；文件系统不支持时跳过"""
    broot = os.fsencode(root)
    try:
        with open(os.path.join(broot, b"\xb1\xa8\xb8\xe6.txt"), "wb") as f:
            f.write(b"x")
        os.makedirs(os.path.join(broot, b"\xc4\xbf\xc2\xbc"))
        with open(os.path.join(broot, b"\xc4\xbf\xc2\xbc", b"inside.txt"), "wb") as f:
            f.write(b"x")
    except OSError:
        pytest.skip("filesystem rejects non UTF-8 names")


@pytest.mark.skipif(os.name != "posix", reason="bytes filenames need a posix filesystem")
def test_non_utf8_names_are_skipped(data_root):
    _make_gbk_names(data_root)

    entries = list(crawl(data_root))

    assert len(entries) == len(TREE)
    assert "inside.txt" not in {e.filename for e in entries}
    for e in entries:
        e.directory.encode("utf-8")
        e.filename.encode("utf-8")


class _StatFailsEntry:
    def __init__(self, entry):
        self._entry = entry
        self.name = entry.name
        self.path = entry.path

    def is_dir(self, follow_symlinks=True):
        return self._entry.is_dir(follow_symlinks=follow_symlinks)

    def stat(self, follow_symlinks=True):
        raise FileNotFoundError(self.path)


class _Scandir:
    """包装 os.scandir，让指定文件名的 stat 失败（模拟扫描中被删除）"""

    def __init__(self, it, broken):
        self._it = it
        self._broken = broken

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self._it.close()
        return False

    def __iter__(self):
        for entry in self._it:
            yield _StatFailsEntry(entry) if entry.name in self._broken else entry


def test_entry_stat_failure_is_skipped(data_root, monkeypatch):
    real_scandir = os.scandir
    monkeypatch.setattr(crawler.os, "scandir", lambda path: _Scandir(real_scandir(path), {"photo.png", "a_b.txt"}))

    names = {e.filename for e in crawl(data_root)}

    assert "photo.png" not in names
    assert "a_b.txt" not in names
    assert names == {rel.rpartition("/")[2] for rel in TREE} - {"photo.png", "a_b.txt"}
