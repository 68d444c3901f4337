"""
ScanScheduler - 决定什么时候重建索引

状态只有 IDLE / SCANNING 两种，同一时间最多一次扫描；
扫描中再次触发直接忽略（不排队），上一次提交的索引依然完整可用。
"""

import datetime
import enum
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from fileindex.core.indexer import Indexer, RebuildResult

logger = logging.getLogger(__name__)


class ScanState(str, enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"


def seconds_until_next(hour: int, minute: int, now: Optional[datetime.datetime] = None) -> float:
    """距离下一次 HH:MM（本地时间）还有多少秒；恰好到点时算作明天"""
    if now is None:
        now = datetime.datetime.now()
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += datetime.timedelta(days=1)
    return (target - now).total_seconds()


class ScanScheduler:
    def __init__(self, indexer: Indexer, hour: int, minute: int):
        self.indexer = indexer
        self.hour = hour
        self.minute = minute

        self.state = ScanState.IDLE
        self.last_result: Optional[RebuildResult] = None
        self.last_error: Optional[str] = None
        self.last_finished_at: Optional[datetime.datetime] = None

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._timer: Optional[threading.Thread] = None
        # 单线程执行器，扫描不占用定时线程与请求线程
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fileindex-scan")

    # =========================
    # 触发
    # =========================
    def trigger(self, reason: str = "manual") -> Optional[Future]:
        """
        请求一次重建
        返回: 本次扫描的 Future；已有扫描在进行时返回 None
        """
        with self._lock:
            if self.state is ScanState.SCANNING:
                logger.info("扫描进行中，忽略本次触发 (%s)", reason)
                return None
            self.state = ScanState.SCANNING

        logger.info("触发文件扫描 (%s)", reason)
        try:
            return self._executor.submit(self._run)
        except RuntimeError:
            # 执行器已关闭
            with self._lock:
                self.state = ScanState.IDLE
            raise

    def _run(self) -> RebuildResult:
        try:
            result = self.indexer.run()
        except Exception as e:
            self.last_error = str(e)
            raise
        else:
            self.last_result = result
            self.last_error = None
            self.last_finished_at = datetime.datetime.now()
            return result
        finally:
            with self._lock:
                self.state = ScanState.IDLE

    # =========================
    # 定时线程
    # =========================
    def start(self):
        if self._timer is not None:
            return
        self._stop.clear()
        self._timer = threading.Thread(target=self._loop, name="fileindex-timer", daemon=True)
        self._timer.start()
        logger.info("定时扫描已启动，每天 %02d:%02d 执行", self.hour, self.minute)

    def _loop(self):
        while True:
            now = datetime.datetime.now()
            next_run = now + datetime.timedelta(seconds=seconds_until_next(self.hour, self.minute, now))
            logger.debug("下一次定时扫描: %s", next_run.isoformat(timespec="seconds"))

            # wait 可能因时钟调整提前返回，没到点就继续等
            while True:
                remaining = (next_run - datetime.datetime.now()).total_seconds()
                if remaining <= 0:
                    break
                if self._stop.wait(remaining):
                    return
            if self._stop.is_set():
                return

            logger.info("开始定时文件扫描...")
            future = self.trigger("schedule")
            if future is not None:
                future.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(future: Future):
        # 失败原因 Indexer 已记录，这里只确认进程继续提供旧索引
        if future.exception() is not None:
            logger.warning("定时扫描失败，继续使用上一次的索引")

    def stop(self):
        self._stop.set()
        if self._timer is not None:
            self._timer.join()
            self._timer = None
        self._executor.shutdown(wait=True)
