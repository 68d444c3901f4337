from typing import Optional

from pydantic import BaseModel

# 目前只开发了 file 类型
SEARCH_TYPES = ("file",)


class SearchRequest(BaseModel):
    keyword: Optional[str] = None
    type: Optional[str] = None


class FileInfo(BaseModel):
    path: str
    filename: str
    size: int
    create_time: str


class ReloadResponse(BaseModel):
    started: bool


class ScanSummary(BaseModel):
    files: int
    directories: int
    elapsed: float
    finished_at: str


class HealthInfo(BaseModel):
    status: str = "ok"
    state: str
    files: int
    directories: int
    last_scan: Optional[ScanSummary] = None
    last_error: Optional[str] = None
