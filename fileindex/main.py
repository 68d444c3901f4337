import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fileindex.core.config import load_settings
from fileindex.core.context import AppContext, build_context
from fileindex.core.errors import ConfigError
from fileindex.routers import file_search, health

logger = logging.getLogger(__name__)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context if context is not None else build_context(load_settings())
        app.state.context = ctx

        first_scan = ctx.startup()
        try:
            if first_scan is not None:
                # 首次扫描完成后才开始对外提供查询
                await asyncio.wrap_future(first_scan)
            yield
        finally:
            ctx.shutdown()

    app = FastAPI(
        title="File Index",
        version="1.0.0",
        description="目录文件名索引与搜索服务",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    # 注册路由
    app.include_router(file_search.router, tags=["FileSearch"])
    app.include_router(health.router, prefix="/health", tags=["Health"])

    return app


app = create_app()


def main():
    """
    main 方法启动项目
    """
    try:
        settings = load_settings()
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        logger.error("加载配置文件失败: %s", e)
        sys.exit(1)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # 数据库初始化和首次扫描在 lifespan 中执行，失败时 uvicorn 直接退出
    context = build_context(settings)

    logger.info("服务器启动，监听端口 :%d", settings.port)
    uvicorn.run(
        create_app(context),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
