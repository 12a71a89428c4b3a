"""系統（效能指標）Schemas"""

from pydantic import BaseModel, ConfigDict, Field


class SystemMetricsResponse(BaseModel):
    """行程效能指標；欄位名稱沿用前端既有的 PascalCase"""

    model_config = ConfigDict(populate_by_name=True)

    cpu_usage_percent: float = Field(..., alias="CpuUsagePercent")
    memory_used_mb: float = Field(..., alias="MemoryUsedMB")
    threads_count: int = Field(..., alias="ThreadsCount")
    uptime_seconds: int = Field(..., alias="UptimeSeconds")
