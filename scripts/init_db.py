"""資料庫預設資料初始化腳本

建立資料表、初始超級管理員，並可選擇建立範例部門。

執行方式：
    python scripts/init_db.py [--seed]
"""

import argparse
import asyncio
import sys
from pathlib import Path

# 添加專案根目錄到 Python 路徑
sys.path.insert(0, str(Path(__file__).parent.parent))

from phonebook.config import settings
from phonebook.core.database import AsyncSessionLocal, close_db, init_db
from phonebook.services.bootstrap import ensure_superadmin, seed_departments


async def main(seed: bool):
    """執行所有初始化"""
    print("=" * 60)
    print("🚀 Listín Telefónico - 資料庫初始化")
    print("=" * 60)
    print()

    try:
        await init_db()
        print("✅ 資料表已建立\n")

        async with AsyncSessionLocal() as session:
            if seed:
                await seed_departments(session)
            await ensure_superadmin(session)

        print()
        print("=" * 60)
        print("🎉 資料庫初始化完成！")
        print("=" * 60)
        print()
        print("   🔑 超級管理員：")
        print(f"      帳號：{settings.ADMIN_USER}")
        print()
    except Exception as e:
        print(f"\n❌ 初始化失敗：{e}")
        raise
    finally:
        await close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="初始化資料庫")
    parser.add_argument("--seed", action="store_true", help="建立範例部門與子部門")
    args = parser.parse_args()

    # Windows 平台修正
    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    asyncio.run(main(args.seed or settings.SEED_DEFAULT_DEPARTMENTS))
