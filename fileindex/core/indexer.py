import logging
import time
from typing import Callable, Iterable, Iterator, List, NamedTuple, Optional

from fileindex.core.crawler import CrawlEntry, crawl
from fileindex.core.errors import RebuildError
from fileindex.core.fs_utils import format_size
from fileindex.core.store import Store

logger = logging.getLogger(__name__)


class RebuildResult(NamedTuple):
    files: int
    directories: int
    total_size: int
    elapsed: float


class Indexer:
    """
    全量重建索引
    一次重建 = 一个事务: 清空 -> 按扫描结果写入 -> 提交；中途出错整体回滚
    """

    def __init__(
            self,
            store: Store,
            root: str,
            skip_dirs: Optional[Iterable[str]] = None,
            crawl_func: Callable[..., Iterator[CrawlEntry]] = crawl,
    ):
        self.store = store
        self.root = root
        self.skip_dirs: List[str] = list(skip_dirs or [])
        self.crawl_func = crawl_func

    def run(self) -> RebuildResult:
        logger.info("开始扫描目录: %s", self.root)
        start = time.time()
        total_size = 0

        try:
            with self.store.begin_rebuild() as session:
                for entry in self.crawl_func(self.root, self.skip_dirs):
                    dir_id = session.upsert_directory(entry.directory)
                    session.insert_file(dir_id, entry.filename, entry.size, entry.create_time)
                    total_size += entry.size

                files = session.file_count
                directories = len(session.path_cache)
                session.commit()
        except RebuildError as e:
            logger.error("扫描失败，已保留上一次的索引: %s", e)
            raise

        elapsed = time.time() - start
        logger.info(
            "文件扫描完成，数据已更新: 文件 %d, 目录 %d, 总大小 %s, 耗时 %.2fs",
            files, directories, format_size(total_size), elapsed,
        )
        return RebuildResult(files, directories, total_size, elapsed)
