"""通訊錄全域更新標記（單一資料列 id = 1）"""

from datetime import datetime
from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column
from phonebook.core.database import Base
from phonebook.models.base import utcnow

MARKER_ID = 1


class UpdateMarker(Base):
    """任何通訊錄資料新增或修改時遞增，前端據此判斷快取是否過期"""
    
    __tablename__ = "update_marker"
    
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="最後更新時間"
    )
    
    version: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="更新次數（超過上限歸零）"
    )
    
    def __repr__(self) -> str:
        return f"<UpdateMarker(version={self.version})>"
