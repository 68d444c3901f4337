from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from fileindex.core.context import AppContext
from fileindex.core.errors import StoreError
from fileindex.vo.file_search import SEARCH_TYPES, FileInfo, ReloadResponse, SearchRequest

router = APIRouter()


def get_context(request: Request) -> AppContext:
    return request.app.state.context


@router.get("/get", response_model=List[FileInfo])
def search(
        key: Optional[str] = None,
        query_type: Optional[str] = Query(None, alias="type"),
        context: AppContext = Depends(get_context),
):
    """
    文件搜索接口
    - key: 关键字（文件名子串）
    - type: 查询类型，目前只支持 file
    返回: [{"path": 目录, "filename": 文件名, "size": 文件大小, "create_time": 修改时间}, ...]
    """
    search_query = SearchRequest(keyword=key, type=query_type)
    if not search_query.keyword or not search_query.type:
        raise HTTPException(status_code=400, detail="缺少查询参数")
    if search_query.type not in SEARCH_TYPES:
        raise HTTPException(status_code=400, detail="无效的查询类型")

    try:
        return context.store.search(search_query.keyword)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/reload/index", response_model=ReloadResponse)
def reload_index(context: AppContext = Depends(get_context)):
    """
    手动触发一次全量重建
    扫描进行中时不会重复触发
    """
    future = context.scheduler.trigger("manual")
    return ReloadResponse(started=future is not None)
