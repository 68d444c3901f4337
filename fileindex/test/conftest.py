import os

import pytest

from fileindex.core.config import Settings
from fileindex.core.context import build_context
from fileindex.core.fs_utils import to_slash
from fileindex.core.store import Store

# 2024-01-01T00:00:00Z
JAN_1_2024 = 1704067200

TREE = {
    "report.pdf": 120,
    "img/photo.png": 64,
    "img/deep/notes_2024.txt": 10,
    "docs/Report-final.DOCX": 7,
    "docs/50%_off.txt": 3,
    "docs/a_b.txt": 1,
    "docs/axb.txt": 1,
    "docs/说明文档.md": 5,
}


def write_file(path, size, mtime=JAN_1_2024):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(b"x" * size)
    os.utime(path, (mtime, mtime))


@pytest.fixture
def data_root(tmp_path):
    root = tmp_path / "data"
    for rel, size in TREE.items():
        write_file(str(root / rel), size)
    return to_slash(str(root))


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "index" / "sql.db")


@pytest.fixture
def store(db_path):
    s = Store(db_path)
    s.initialize()
    return s


@pytest.fixture
def settings(data_root, db_path):
    return Settings(target_path=data_root, schedule_time="03:00", db_path=db_path)


@pytest.fixture
def context(settings):
    return build_context(settings)


def all_records(store):
    """当前索引中的全部 (path, filename, size, create_time)"""
    return {(r.path, r.filename, r.size, r.create_time) for r in store.search("")}
