"""通訊錄資料 Schemas"""

import re
from datetime import datetime
from typing import Optional
from pydantic import Field, field_validator

from phonebook.schemas import CamelModel

EXTENSION_PATTERN = re.compile(r"^\d+$")
NUMBER_PATTERN = re.compile(r"^[0-9+\-\s()]*$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def check_extension(value: Optional[str]) -> Optional[str]:
    if value and not EXTENSION_PATTERN.match(value):
        raise ValueError("Extension debe ser numérica")
    return value


def check_number(value: Optional[str]) -> Optional[str]:
    if value and not NUMBER_PATTERN.match(value):
        raise ValueError("Number no válido")
    return value


def check_email(value: Optional[str]) -> Optional[str]:
    if value and not EMAIL_PATTERN.match(value):
        raise ValueError("Email no válido")
    return value


class _ContactFields(CamelModel):
    """分機 / 電話 / Email 格式檢查"""

    @field_validator("extension", check_fields=False)
    @classmethod
    def _validate_extension(cls, value):
        return check_extension(value)

    @field_validator("number", check_fields=False)
    @classmethod
    def _validate_number(cls, value):
        return check_number(value)

    @field_validator("email", check_fields=False)
    @classmethod
    def _validate_email(cls, value):
        return check_email(value)


class UserDataCreate(_ContactFields):
    """建立通訊錄資料請求"""
    name: str = Field(..., min_length=1, max_length=255, description="姓名")
    extension: Optional[str] = Field(None, max_length=20, description="分機（純數字）")
    number: Optional[str] = Field(None, max_length=30, description="電話號碼")
    email: Optional[str] = Field(None, max_length=255, description="電子郵件")
    show: bool = Field(True, description="是否顯示於公開通訊錄")
    department_id: Optional[int] = Field(None, description="部門 ID")
    subdepartment_id: Optional[int] = Field(None, description="子部門 ID")


class UserDataUpdate(_ContactFields):
    """更新通訊錄資料請求（只更新有提供的欄位）"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    extension: Optional[str] = Field(None, max_length=20)
    number: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=255)
    show: Optional[bool] = None
    department_id: Optional[int] = None
    subdepartment_id: Optional[int] = None
    version: int = Field(..., ge=0, description="目前版本（樂觀鎖）")

    @field_validator("name", "show")
    @classmethod
    def _reject_null(cls, value):
        # 只在明確送出 null 時觸發；未提供的欄位不會經過驗證
        if value is None:
            raise ValueError("No puede ser nulo")
        return value


class PublicEntryResponse(CamelModel):
    """公開通訊錄項目（不含姓名與 Email）"""
    number: Optional[str] = None
    extension: Optional[str] = None
    department_id: int
    department_name: Optional[str] = None
    subdepartment_id: Optional[int] = None
    subdepartment_name: Optional[str] = None


class UserDataResponse(CamelModel):
    """完整通訊錄項目"""
    id: int
    name: str
    extension: Optional[str] = None
    number: Optional[str] = None
    email: Optional[str] = None
    show: bool
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    subdepartment_id: Optional[int] = None
    subdepartment_name: Optional[str] = None
    user_account_id: Optional[int] = None
    version: int


class DepartmentEntryResponse(UserDataResponse):
    """部門通訊錄項目（附帶是否有未解決工單）"""
    has_open_ticket: bool = False


class PublicListResponse(CamelModel):
    users: list[PublicEntryResponse]


class UserDataListResponse(CamelModel):
    users: list[UserDataResponse]


class DepartmentEntryListResponse(CamelModel):
    users: list[DepartmentEntryResponse]


class UpdateMarkerResponse(CamelModel):
    """通訊錄全域更新標記"""
    date: Optional[datetime] = None
    version: int = 0
