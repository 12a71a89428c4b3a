"""通訊錄資料模型（一筆 = 一位人員的聯絡資訊）"""

from typing import List, Optional, TYPE_CHECKING
from sqlalchemy import String, Boolean, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from phonebook.core.crypto import EncryptedString, hash_value
from phonebook.core.database import Base
from phonebook.models.base import TimestampMixin

if TYPE_CHECKING:
    from phonebook.models.department import Department, SubDepartment
    from phonebook.models.user_account import UserAccount
    from phonebook.models.ticket import Ticket


class UserData(Base, TimestampMixin):
    """通訊錄資料表"""

    __tablename__ = "user_data"

    id: Mapped[int] = mapped_column(primary_key=True, comment="資料 ID")

    name: Mapped[str] = mapped_column(
        EncryptedString(512),
        nullable=False,
        comment="姓名（加密）"
    )

    name_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
        comment="姓名雜湊"
    )

    extension: Mapped[Optional[str]] = mapped_column(
        EncryptedString(512),
        nullable=True,
        comment="分機（加密）"
    )

    number: Mapped[Optional[str]] = mapped_column(
        EncryptedString(512),
        nullable=True,
        comment="電話號碼（加密）"
    )

    email: Mapped[Optional[str]] = mapped_column(
        EncryptedString(512),
        nullable=True,
        comment="電子郵件（加密）"
    )

    show: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="是否出現在公開通訊錄"
    )

    version: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="樂觀鎖版本"
    )

    # 外鍵
    department_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="部門 ID"
    )

    subdepartment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("subdepartments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="子部門 ID"
    )

    user_account_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("user_accounts.id", ondelete="CASCADE"),
        unique=True,
        nullable=True,
        comment="對應帳號 ID（可無）"
    )

    # 關聯
    department: Mapped[Optional["Department"]] = relationship(
        "Department",
        back_populates="entries"
    )

    subdepartment: Mapped[Optional["SubDepartment"]] = relationship(
        "SubDepartment",
        back_populates="entries"
    )

    user_account: Mapped[Optional["UserAccount"]] = relationship(
        "UserAccount",
        back_populates="user_data"
    )

    tickets: Mapped[List["Ticket"]] = relationship(
        "Ticket",
        back_populates="affected_data",
        cascade="all",
        passive_deletes=True,
    )

    @validates("name")
    def _sync_name_hash(self, key, value):
        self.name_hash = hash_value(value)
        return value

    def __repr__(self) -> str:
        return f"<UserData(id={self.id}, department_id={self.department_id})>"
