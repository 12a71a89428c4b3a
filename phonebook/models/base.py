"""資料庫模型基礎類別"""

from datetime import datetime, timezone
from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column

# 版本計數器上限，超過時歸零
VERSION_LIMIT = 100000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_version(current: int) -> int:
    """遞增樂觀鎖版本，超過上限時歸零"""
    value = current + 1
    return 0 if value > VERSION_LIMIT else value


class TimestampMixin:
    """時間戳記 Mixin"""
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="建立時間"
    )
    
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="更新時間"
    )
