"""系統管理 API 路由（日誌 / 效能指標）"""

import aiofiles
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, PlainTextResponse

from phonebook.core.exceptions import NotFoundError
from phonebook.core.security import Principal, admin_only, get_log_service
from phonebook.schemas.system import SystemMetricsResponse
from phonebook.services.log_service import LogService
from phonebook.services.metrics import collect_metrics

router = APIRouter(tags=["系統"])


def _resolve_log(log_service: LogService, log: str):
    path = log_service.resolve(log)
    if path is None:
        raise NotFoundError("Archivo log no encontrado")
    return path


@router.get("/logs", response_model=list[str], summary="日誌檔清單")
async def list_logs(
    principal: Principal = Depends(admin_only),
    log_service: LogService = Depends(get_log_service)
):
    """所有日誌檔名，最新在前"""
    return log_service.list_logs()


@router.get("/logs/{log}", response_class=PlainTextResponse, summary="讀取日誌內容")
async def read_log(
    log: str,
    principal: Principal = Depends(admin_only),
    log_service: LogService = Depends(get_log_service)
):
    path = _resolve_log(log_service, log)
    async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
        content = await f.read()
    return PlainTextResponse(content)


@router.get("/logs/{log}/download", summary="下載日誌檔")
async def download_log(
    log: str,
    principal: Principal = Depends(admin_only),
    log_service: LogService = Depends(get_log_service)
):
    path = _resolve_log(log_service, log)
    return FileResponse(path, filename=path.name, media_type="text/plain")


@router.get(
    "/system",
    response_model=SystemMetricsResponse,
    response_model_by_alias=True,
    summary="系統效能指標",
)
async def system_metrics(principal: Principal = Depends(admin_only)):
    """
    - **CpuUsagePercent**: 約 100ms 取樣的整體 CPU 使用率
    - **MemoryUsedMB**: 行程常駐記憶體
    - **ThreadsCount**: 邏輯 CPU 數
    - **UptimeSeconds**: 行程運行秒數
    """
    return await collect_metrics()
