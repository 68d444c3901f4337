import logging
import os
import stat
from typing import Iterable, Iterator, NamedTuple, Optional

from fileindex.core.fs_utils import mtime_to_str, to_slash

logger = logging.getLogger(__name__)


class CrawlEntry(NamedTuple):
    directory: str
    filename: str
    size: int
    create_time: str


def crawl(root: str, skip_dirs: Optional[Iterable[str]] = None) -> Iterator[CrawlEntry]:
    """
    遍历 root 下的整棵目录树，只产出普通文件
    - root: 已校验过的绝对目录
    - skip_dirs: 不进入的目录名（忽略大小写）
    读不到元数据的条目直接跳过，不影响整次扫描
    """
    skip = set(d.lower() for d in (skip_dirs or ()))
    stack = [root]

    while stack:
        path = stack.pop()
        try:
            it = os.scandir(path)
        except OSError as e:
            logger.debug("跳过无法读取的目录 %s: %s", path, e)
            continue

        directory = to_slash(path)
        with it:
            for entry in it:
                try:
                    # 非 UTF-8 文件名（如 GBK）会解码成代理字符，无法写入数据库
                    entry.name.encode("utf-8")
                    if entry.is_dir(follow_symlinks=False):
                        if entry.name.lower() not in skip:
                            stack.append(entry.path)
                        continue

                    st = entry.stat(follow_symlinks=False)
                except (OSError, UnicodeEncodeError) as e:
                    logger.debug("跳过无法读取的条目 %r: %s", entry.path, e)
                    continue

                # 符号链接、设备文件等都不入索引
                if not stat.S_ISREG(st.st_mode):
                    continue

                yield CrawlEntry(directory, entry.name, st.st_size, mtime_to_str(st.st_mtime))
