"""Refresh Token 模型"""

from datetime import datetime, timedelta
from typing import TYPE_CHECKING
from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from phonebook.core.crypto import EncryptedString
from phonebook.core.database import Base
from phonebook.models.base import TimestampMixin, utcnow

if TYPE_CHECKING:
    from phonebook.models.user_account import UserAccount


def default_expire_date() -> datetime:
    return utcnow() + timedelta(days=7)


class RefreshToken(Base, TimestampMixin):
    """
    伺服器端保存的 refresh token

    token 欄位存的是 JWT 內 jti 的密文，token_hash 用來比對；
    刪除某使用者的所有資料列即等於讓其登出。
    """

    __tablename__ = "refresh_tokens"

    id: Mapped[int] = mapped_column(primary_key=True)

    token: Mapped[str] = mapped_column(
        EncryptedString(512),
        nullable=False,
        comment="Token 識別碼（加密）"
    )

    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
        comment="Token 識別碼雜湊"
    )

    expire_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=default_expire_date,
        nullable=False,
        comment="到期時間"
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("user_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="使用者 ID"
    )

    user: Mapped["UserAccount"] = relationship(
        "UserAccount",
        back_populates="refresh_tokens"
    )

    def __repr__(self) -> str:
        return f"<RefreshToken(id={self.id}, user_id={self.user_id})>"
