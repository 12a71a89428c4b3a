"""日誌服務 (Log Service)

每天一個 ``YYYY-MM-DD.log`` 檔，格式 ``[YYYY-MM-DD HH:MM:SS] [LEVEL] 訊息``。
一般等級以 aiofiles 非同步寫入（不阻塞請求），CRITICAL 同步寫入，
用於啟動失敗等行程即將結束的情況。

另提供工單稽核日誌 ``TicketAuditLog``，以固定欄寬記錄每一次工單狀態變更。
"""

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiofiles


class LogService:
    """伺服器日誌服務"""

    def __init__(self, log_dir: str, max_files: int = 30):
        self.log_dir = Path(log_dir)
        self.max_files = max_files
        self._pending: set[asyncio.Task] = set()
        self._started = False

    def start(self) -> None:
        """建立日誌目錄"""
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._started = True

    async def flush(self) -> None:
        """等待所有尚未完成的寫入"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def shutdown(self) -> None:
        await self.flush()
        self._started = False

    # ===== 公開 API =====

    def info(self, message: str) -> None:
        self._dispatch("INFO", message)

    def warn(self, message: str) -> None:
        self._dispatch("WARN", message)

    def error(self, message: str) -> None:
        self._dispatch("ERROR", message)

    def critical(self, message: str) -> None:
        """同步寫入，確保在行程結束前落地"""
        path, line = self._prepare("CRITICAL", message)
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            print(f"❌ 無法寫入日誌 {path}: {e}", file=sys.stderr)
        self.cleanup()

    def list_logs(self) -> list[str]:
        """列出所有日誌檔名（最新在前）"""
        if not self.log_dir.exists():
            return []
        return sorted((p.name for p in self.log_dir.glob("*.log")), reverse=True)

    def resolve(self, name: str) -> Optional[Path]:
        """
        將日誌名稱轉成檔案路徑

        接受 ``2025-01-01`` 或 ``2025-01-01.log``；
        路徑跳出日誌目錄或檔案不存在時回傳 None。
        """
        filename = name if name.endswith(".log") else f"{name}.log"
        base = self.log_dir.resolve()
        candidate = (base / filename).resolve()
        if candidate.parent != base or not candidate.is_file():
            return None
        return candidate

    def cleanup(self) -> None:
        """保留最新的 max_files 個日誌檔，其餘依修改時間由舊到新刪除"""
        if not self.log_dir.exists():
            return
        files = sorted(self.log_dir.glob("*.log"), key=lambda p: p.stat().st_mtime)
        excess = len(files) - self.max_files
        for path in files[:max(excess, 0)]:
            try:
                path.unlink()
            except OSError as e:
                print(f"⚠️ 刪除舊日誌失敗 {path.name}: {e}", file=sys.stderr)

    # ===== 內部方法 =====

    def _prepare(self, level: str, message: str) -> tuple[Path, str]:
        if not self._started:
            self.start()
        now = datetime.now()
        path = self.log_dir / f"{now:%Y-%m-%d}.log"
        line = f"[{now:%Y-%m-%d %H:%M:%S}] [{level}] {message}\n"
        return path, line

    def _dispatch(self, level: str, message: str) -> None:
        path, line = self._prepare(level, message)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            # 沒有事件迴圈（例如 CLI 腳本），直接同步寫入
            try:
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as e:
                print(f"❌ 無法寫入日誌 {path}: {e}", file=sys.stderr)
            self.cleanup()
            return

        task = loop.create_task(self._write(path, line))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, path: Path, line: str) -> None:
        try:
            async with aiofiles.open(path, "a", encoding="utf-8") as f:
                await f.write(line)
        except OSError as e:
            print(f"❌ 無法寫入日誌 {path}: {e}", file=sys.stderr)
            return
        self.cleanup()


class TicketAuditLog:
    """工單稽核日誌（固定欄寬文字檔）"""

    HEADER = f"{'TICKET_ID':<10} | {'ACTION':<10} | {'USER_ID':<10} | TIMESTAMP\n"

    def __init__(self, path: str):
        self.path = Path(path)

    @staticmethod
    def format_line(ticket_id: int, action: str, user_id: Optional[int], timestamp: datetime) -> str:
        user = "" if user_id is None else str(user_id)
        return f"{ticket_id:<10} | {action:<10} | {user:<10} | {timestamp.isoformat()}\n"

    async def record(
        self,
        ticket_id: int,
        action: str,
        user_id: Optional[int],
        timestamp: Optional[datetime] = None,
    ) -> None:
        """追加一筆稽核紀錄，檔案不存在時先寫入標題列"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        write_header = not self.path.exists() or self.path.stat().st_size == 0
        line = self.format_line(ticket_id, action, user_id, timestamp or datetime.now(timezone.utc))
        async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
            if write_header:
                await f.write(self.HEADER)
            await f.write(line)
