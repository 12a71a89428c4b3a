"""部門與子部門模型"""

from typing import List, TYPE_CHECKING
from sqlalchemy import String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from phonebook.core.crypto import EncryptedString, hash_value
from phonebook.core.database import Base
from phonebook.models.base import TimestampMixin

if TYPE_CHECKING:
    from phonebook.models.user_account import UserAccount
    from phonebook.models.user_data import UserData


class Department(Base, TimestampMixin):
    """部門表"""

    __tablename__ = "departments"

    # 主鍵
    id: Mapped[int] = mapped_column(primary_key=True, comment="部門 ID")

    # 名稱加密保存，唯一性以雜湊欄位判斷
    name: Mapped[str] = mapped_column(
        EncryptedString(512),
        nullable=False,
        comment="部門名稱（加密）"
    )

    name_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
        comment="部門名稱雜湊"
    )

    # 關聯（刪除交由資料庫外鍵處理）
    subdepartments: Mapped[List["SubDepartment"]] = relationship(
        "SubDepartment",
        back_populates="department",
        cascade="all",
        passive_deletes=True,
        order_by="SubDepartment.id",
    )

    accounts: Mapped[List["UserAccount"]] = relationship(
        "UserAccount",
        back_populates="department",
        passive_deletes=True,
    )

    entries: Mapped[List["UserData"]] = relationship(
        "UserData",
        back_populates="department",
        passive_deletes=True,
    )

    @validates("name")
    def _sync_name_hash(self, key, value):
        self.name_hash = hash_value(value)
        return value

    def __repr__(self) -> str:
        return f"<Department(id={self.id})>"


class SubDepartment(Base, TimestampMixin):
    """子部門表（名稱在同一部門內唯一）"""

    __tablename__ = "subdepartments"
    __table_args__ = (
        UniqueConstraint("name_hash", "department_id", name="unique_name_per_department"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, comment="子部門 ID")

    name: Mapped[str] = mapped_column(
        EncryptedString(512),
        nullable=False,
        comment="子部門名稱（加密）"
    )

    name_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="子部門名稱雜湊"
    )

    department_id: Mapped[int] = mapped_column(
        ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="所屬部門 ID"
    )

    department: Mapped["Department"] = relationship(
        "Department",
        back_populates="subdepartments"
    )

    entries: Mapped[List["UserData"]] = relationship(
        "UserData",
        back_populates="subdepartment",
        passive_deletes=True,
    )

    @validates("name")
    def _sync_name_hash(self, key, value):
        self.name_hash = hash_value(value)
        return value

    def __repr__(self) -> str:
        return f"<SubDepartment(id={self.id}, department_id={self.department_id})>"
