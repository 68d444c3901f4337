import logging
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional

from fileindex.core.config import Settings
from fileindex.core.indexer import Indexer
from fileindex.core.scheduler import ScanScheduler
from fileindex.core.store import Store

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """启动时构造一次，传给各个组件使用"""
    settings: Settings
    store: Store
    indexer: Indexer
    scheduler: ScanScheduler

    def startup(self) -> Optional[Future]:
        """
        初始化数据库并启动定时任务
        返回: 数据库原本不存在时首次扫描的 Future，否则 None
        """
        existed = self.store.exists()
        self.store.initialize()
        self.scheduler.start()

        if existed:
            logger.info("检测到已存在 %s 文件，跳过首次扫描", self.store.db_path)
            return None

        logger.info("执行首次目录扫描...")
        return self.scheduler.trigger("startup")

    def shutdown(self):
        self.scheduler.stop()


def build_context(settings: Settings) -> AppContext:
    store = Store(settings.db_path, case_sensitive=settings.case_sensitive)
    indexer = Indexer(store, settings.target_path, skip_dirs=settings.skip_dirs)
    hour, minute = settings.schedule
    scheduler = ScanScheduler(indexer, hour, minute)
    return AppContext(settings=settings, store=store, indexer=indexer, scheduler=scheduler)
