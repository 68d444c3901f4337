from fastapi import APIRouter, Depends, HTTPException

from fileindex.core.context import AppContext
from fileindex.core.errors import StoreError
from fileindex.routers.file_search import get_context
from fileindex.vo.file_search import HealthInfo, ScanSummary

router = APIRouter()


@router.get("/", response_model=HealthInfo)
def health_check(context: AppContext = Depends(get_context)):
    scheduler = context.scheduler
    try:
        files = context.store.count_files()
        directories = context.store.count_directories()
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))

    last_scan = None
    if scheduler.last_result is not None and scheduler.last_finished_at is not None:
        last_scan = ScanSummary(
            files=scheduler.last_result.files,
            directories=scheduler.last_result.directories,
            elapsed=round(scheduler.last_result.elapsed, 3),
            finished_at=scheduler.last_finished_at.isoformat(timespec="seconds"),
        )

    return HealthInfo(
        state=scheduler.state.value,
        files=files,
        directories=directories,
        last_scan=last_scan,
        last_error=scheduler.last_error,
    )
