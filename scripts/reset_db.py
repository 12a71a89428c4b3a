"""重置並初始化資料庫

此腳本會：
1. 刪除所有表格
2. 重新建立所有表格
3. 建立初始超級管理員（加上 --seed 時一併建立範例部門）

執行方式：
    python scripts/reset_db.py [--seed]
"""

import argparse
import asyncio
import sys
from pathlib import Path

# 添加專案根目錄到 Python 路徑
sys.path.insert(0, str(Path(__file__).parent.parent))

from phonebook.core.database import engine
from phonebook.models import Base
from scripts.init_db import main as init_main


async def drop_all_tables():
    """刪除所有表格"""
    print("🗑️  正在刪除所有表格...")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    print("✅ 所有表格已刪除\n")


async def main(seed: bool):
    print("⚠️  警告：此操作會刪除所有通訊錄、帳號與工單資料！")
    await drop_all_tables()
    await init_main(seed)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="重置資料庫")
    parser.add_argument("--seed", action="store_true", help="建立範例部門與子部門")
    args = parser.parse_args()

    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    asyncio.run(main(args.seed))
