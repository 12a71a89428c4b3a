"""使用者帳號模型"""

from typing import List, Optional, TYPE_CHECKING
from sqlalchemy import String, Boolean, Integer, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum
from phonebook.core.crypto import EncryptedString
from phonebook.core.database import Base
from phonebook.models.base import TimestampMixin

if TYPE_CHECKING:
    from phonebook.models.department import Department
    from phonebook.models.user_data import UserData
    from phonebook.models.refresh_token import RefreshToken


class UserType(str, Enum):
    """使用者角色（權限由低到高）"""
    WORKER = "WORKER"            # 一般員工
    DEPARTMENT = "DEPARTMENT"    # 部門管理者
    ADMIN = "ADMIN"              # 系統管理員
    SUPERADMIN = "SUPERADMIN"    # 超級管理員

    @property
    def rank(self) -> int:
        return list(UserType).index(self)

    @property
    def is_admin(self) -> bool:
        return self in (UserType.ADMIN, UserType.SUPERADMIN)


class UserAccount(Base, TimestampMixin):
    """使用者帳號表"""

    __tablename__ = "user_accounts"

    # 主鍵
    id: Mapped[int] = mapped_column(primary_key=True, comment="帳號 ID")

    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="使用者名稱"
    )

    # 可逆加密（非雜湊），讀取時自動解密
    password: Mapped[str] = mapped_column(
        EncryptedString(512),
        nullable=False,
        comment="密碼（加密）"
    )

    usertype: Mapped[UserType] = mapped_column(
        SQLEnum(UserType),
        default=UserType.WORKER,
        nullable=False,
        comment="使用者角色"
    )

    force_pwd_change: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="下次登入需變更密碼"
    )

    version: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="樂觀鎖版本"
    )

    mail: Mapped[Optional[str]] = mapped_column(
        EncryptedString(512),
        nullable=True,
        comment="工單通知信箱（加密）"
    )

    # 外鍵
    department_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="所屬部門 ID"
    )

    # 關聯
    department: Mapped[Optional["Department"]] = relationship(
        "Department",
        back_populates="accounts"
    )

    user_data: Mapped[Optional["UserData"]] = relationship(
        "UserData",
        back_populates="user_account",
        uselist=False,
        cascade="all",
        passive_deletes=True,
    )

    refresh_tokens: Mapped[List["RefreshToken"]] = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<UserAccount(id={self.id}, username='{self.username}', usertype='{self.usertype}')>"
