"""資料庫連線與 Session 管理"""

from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from phonebook.config import settings


def _engine_options() -> dict:
    """依資料庫類型決定連線池參數（SQLite 不支援 pool_size）"""
    if settings.is_sqlite:
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,  # 連線前檢測是否有效
        "pool_recycle": 3600,   # 1小時回收連線
    }


def _ensure_sqlite_dir(url: str) -> None:
    """SQLite 檔案所在資料夾不存在時先建立"""
    database = make_url(url).database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


def enable_sqlite_foreign_keys(async_engine) -> None:
    """SQLite 預設不檢查外鍵，需在每條連線上開啟（ON DELETE CASCADE / SET NULL 依賴此設定）"""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


if settings.is_sqlite:
    _ensure_sqlite_dir(settings.DATABASE_URL)

# 建立異步引擎
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,  # 開發環境顯示 SQL
    **_engine_options(),
)

if settings.is_sqlite:
    enable_sqlite_foreign_keys(engine)

# 建立 Session Factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


# 建立 Base 類別供所有模型繼承
class Base(DeclarativeBase):
    """所有模型的基礎類別"""
    pass


# 依賴注入：取得資料庫 Session
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    資料庫 Session 依賴注入

    使用方式:
        @router.get("/")
        async def get_items(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Item))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """初始化資料庫：建立所有資料表"""
    # 確保所有模型都已註冊到 metadata
    import phonebook.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """關閉資料庫連線"""
    await engine.dispose()
