"""系統效能指標 (System Metrics)"""

import asyncio
import os
import time
from typing import Sequence

import psutil

# 兩次 CPU 取樣之間的間隔（秒）
SAMPLE_INTERVAL = 0.1


def _totals(snapshot: Sequence) -> tuple[float, float]:
    """加總所有核心的 (idle, total) 時間"""
    idle = 0.0
    total = 0.0
    for cpu in snapshot:
        idle += cpu.idle
        total += sum(cpu)
    return idle, total


def compute_cpu_percent(start: Sequence, end: Sequence) -> float:
    """
    由兩次 ``psutil.cpu_times(percpu=True)`` 取樣計算整體 CPU 使用率

    使用率 = 100 - idle 差值 / total 差值 * 100，四捨五入到小數點後兩位。
    """
    idle_start, total_start = _totals(start)
    idle_end, total_end = _totals(end)
    total_delta = total_end - total_start
    if total_delta <= 0:
        return 0.0
    idle_delta = idle_end - idle_start
    return round(100 - idle_delta / total_delta * 100, 2)


async def sample_cpu_percent(interval: float = SAMPLE_INTERVAL) -> float:
    start = psutil.cpu_times(percpu=True)
    await asyncio.sleep(interval)
    end = psutil.cpu_times(percpu=True)
    return compute_cpu_percent(start, end)


async def collect_metrics() -> dict:
    """CPU 使用率、行程記憶體、CPU 執行緒數與行程運行秒數"""
    process = psutil.Process(os.getpid())
    cpu = await sample_cpu_percent()
    memory = process.memory_info().rss / (1024 * 1024)
    return {
        "CpuUsagePercent": cpu,
        "MemoryUsedMB": round(memory, 2),
        # 邏輯 CPU（硬體執行緒）數量
        "ThreadsCount": psutil.cpu_count(logical=True) or 1,
        "UptimeSeconds": int(time.time() - process.create_time()),
    }
