"""工單模型"""

from datetime import datetime
from typing import Optional, TYPE_CHECKING
from sqlalchemy import DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum
from phonebook.core.crypto import EncryptedString, EncryptedText
from phonebook.core.database import Base
from phonebook.models.base import utcnow

if TYPE_CHECKING:
    from phonebook.models.user_account import UserAccount
    from phonebook.models.user_data import UserData


class TicketStatus(str, Enum):
    """工單狀態"""
    OPEN = "OPEN"            # 新建 / 重新開啟
    READ = "READ"            # 已讀
    WARNED = "WARNED"        # 已通知
    RESOLVED = "RESOLVED"    # 已解決


class Ticket(Base):
    """工單表"""

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(primary_key=True, comment="工單 ID")

    topic: Mapped[str] = mapped_column(
        EncryptedString(1024),
        nullable=False,
        comment="主旨（加密）"
    )

    information: Mapped[str] = mapped_column(
        EncryptedText,
        nullable=False,
        comment="內容（加密）"
    )

    status: Mapped[TicketStatus] = mapped_column(
        SQLEnum(TicketStatus),
        default=TicketStatus.OPEN,
        nullable=False,
        index=True,
        comment="工單狀態"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="建立時間"
    )

    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    warned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # 外鍵
    user_requester_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("user_accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="提出者帳號 ID"
    )

    user_resolver_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("user_accounts.id", ondelete="SET NULL"),
        nullable=True,
        comment="處理者帳號 ID"
    )

    id_affected_data: Mapped[int] = mapped_column(
        ForeignKey("user_data.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="相關通訊錄資料 ID"
    )

    # 關聯
    requester: Mapped[Optional["UserAccount"]] = relationship(
        "UserAccount",
        foreign_keys=[user_requester_id]
    )

    resolver: Mapped[Optional["UserAccount"]] = relationship(
        "UserAccount",
        foreign_keys=[user_resolver_id]
    )

    affected_data: Mapped["UserData"] = relationship(
        "UserData",
        back_populates="tickets"
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, status='{self.status}')>"
