"""
Store - 文件名索引的持久化存储
使用 SQLite 保存两张表: paths（目录）与 files（文件）

重建是一次完整的事务: 先清空两张表再全部重新写入，
提交之前读连接看到的始终是上一代的完整数据（WAL 快照隔离）。
"""

import logging
import os
import sqlite3
from typing import Dict, List

from fileindex.core.errors import RebuildError, RebuildSessionClosed, StoreError
from fileindex.vo.file_search import FileInfo

logger = logging.getLogger(__name__)

# auto_vacuum 必须在建表之前设置才会生效
PRAGMAS = """
PRAGMA auto_vacuum = INCREMENTAL;
PRAGMA journal_mode = WAL;
PRAGMA synchronous = NORMAL;
"""

SCHEMA = """
CREATE TABLE IF NOT EXISTS paths (
    id INTEGER PRIMARY KEY,
    path TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY,
    path_id INTEGER NOT NULL,
    filename TEXT NOT NULL,
    size INTEGER,
    create_time DATETIME,
    FOREIGN KEY(path_id) REFERENCES paths(id)
);
CREATE INDEX IF NOT EXISTS idx_filename ON files(filename);
"""

SEARCH_SQL = """
SELECT p.path, f.filename, f.size, f.create_time
FROM files f
JOIN paths p ON f.path_id = p.id
WHERE {condition}
ORDER BY p.path, f.filename
"""


def escape_like(term: str, escape: str = "\\") -> str:
    """转义 LIKE 通配符，让关键字只按字面子串匹配"""
    return (
        term.replace(escape, escape + escape)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )


class RebuildSession:
    """
    一次全量重建的工作单元
    - 开始时已在事务内清空 paths / files
    - path_cache: 本次重建内 目录路径 -> id，重建结束即丢弃
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self.path_cache: Dict[str, int] = {}
        self.file_count = 0
        self.closed = False

    def __enter__(self) -> "RebuildSession":
        return self

    def __exit__(self, exc_type, exc, tb):
        # 出现异常或没有显式提交就离开 with 块，都按放弃处理
        self.abort()
        return False

    def _check_open(self):
        if self.closed:
            raise RebuildSessionClosed("重建会话已结束")

    def upsert_directory(self, path: str) -> int:
        self._check_open()

        dir_id = self.path_cache.get(path)
        if dir_id is not None:
            return dir_id

        try:
            cur = self._conn.execute("INSERT OR IGNORE INTO paths (path) VALUES (?)", (path,))
            if cur.rowcount == 1:
                dir_id = cur.lastrowid
            else:
                row = self._conn.execute("SELECT id FROM paths WHERE path = ?", (path,)).fetchone()
                dir_id = row[0]
        except (sqlite3.Error, UnicodeEncodeError) as e:
            raise RebuildError(f"写入目录失败: {path!r}: {e}") from e

        self.path_cache[path] = dir_id
        return dir_id

    def insert_file(self, directory_id: int, filename: str, size: int, create_time: str):
        self._check_open()
        try:
            self._conn.execute(
                "INSERT INTO files (path_id, filename, size, create_time) VALUES (?, ?, ?, ?)",
                (directory_id, filename, size, create_time),
            )
        except (sqlite3.Error, UnicodeEncodeError) as e:
            raise RebuildError(f"写入文件失败: {filename!r}: {e}") from e
        self.file_count += 1

    def commit(self):
        self._check_open()
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            self.abort()
            raise RebuildError(f"提交重建事务失败: {e}") from e
        self._close()

    def abort(self):
        if self.closed:
            return
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            # 连接异常时 SQLite 会自动回滚未提交的事务
            logger.warning("回滚重建事务失败: %s", e)
        finally:
            self._close()

    def _close(self):
        self.closed = True
        self.path_cache.clear()
        self._conn.close()


class Store:
    def __init__(self, db_path: str = "./sql.db", case_sensitive: bool = False):
        self.db_path = db_path
        self.case_sensitive = case_sensitive

    def exists(self) -> bool:
        """数据库文件是否已存在（存在则跳过首次扫描）"""
        return os.path.exists(self.db_path)

    def _connect(self, read_only: bool = False) -> sqlite3.Connection:
        # isolation_level=None: 事务由 RebuildSession 显式控制
        conn = sqlite3.connect(self.db_path, isolation_level=None, check_same_thread=False)
        conn.execute("PRAGMA foreign_keys = ON")
        if read_only:
            conn.execute("PRAGMA query_only = ON")
        else:
            conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def initialize(self):
        """建表与索引，可重复调用"""
        try:
            parent = os.path.dirname(os.path.abspath(self.db_path))
            os.makedirs(parent, exist_ok=True)

            conn = self._connect()
            try:
                conn.executescript(PRAGMAS)
                conn.executescript(SCHEMA)
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"数据库初始化失败: {e}") from e

    def begin_rebuild(self) -> RebuildSession:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise RebuildError(f"打开数据库失败: {e}") from e

        try:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute("DELETE FROM files")
            conn.execute("DELETE FROM paths")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            conn.close()
            raise RebuildError(f"清空旧索引失败: {e}") from e

        return RebuildSession(conn)

    def search(self, term: str) -> List[FileInfo]:
        """
        按文件名子串搜索
        - term: 关键字（按字面匹配，% 和 _ 不是通配符）
        返回: 按 path, filename 排序的 FileInfo 列表
        """
        if self.case_sensitive:
            condition = "instr(f.filename, ?) > 0"
            params = (term,)
        else:
            condition = "f.filename LIKE ? ESCAPE '\\'"
            params = ("%" + escape_like(term) + "%",)

        try:
            conn = self._connect(read_only=True)
            try:
                rows = conn.execute(SEARCH_SQL.format(condition=condition), params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"查询失败: {e}") from e

        return [
            FileInfo(path=path, filename=filename, size=size or 0, create_time=create_time or "")
            for path, filename, size, create_time in rows
        ]

    def _count(self, table: str) -> int:
        try:
            conn = self._connect(read_only=True)
            try:
                return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"查询失败: {e}") from e

    def count_files(self) -> int:
        return self._count("files")

    def count_directories(self) -> int:
        return self._count("paths")
