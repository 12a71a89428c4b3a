"""使用者帳號 Schemas"""

from typing import Optional
from pydantic import Field, field_validator

from phonebook.models import UserType
from phonebook.schemas import CamelModel
from phonebook.schemas.user_data import (
    UserDataCreate,
    UserDataResponse,
    UserDataUpdate,
    check_email,
)


class _MailField(CamelModel):

    @field_validator("mail", check_fields=False)
    @classmethod
    def _validate_mail(cls, value):
        return check_email(value)


class UserAccountCreate(_MailField):
    """建立帳號的帳號部分"""
    username: str = Field(..., min_length=1, max_length=50, description="使用者名稱")
    password: str = Field(..., min_length=1, max_length=128, description="密碼")
    usertype: UserType = Field(UserType.WORKER, description="使用者角色")
    department_id: Optional[int] = Field(None, description="所屬部門 ID")
    mail: Optional[str] = Field(None, max_length=255, description="工單通知信箱")


class UserAccountCreateRequest(CamelModel):
    """建立帳號請求（可同時建立對應的通訊錄資料）"""
    user_account: UserAccountCreate
    user_data: Optional[UserDataCreate] = None


class UserAccountUpdate(_MailField):
    """更新帳號的帳號部分"""
    username: Optional[str] = Field(None, min_length=1, max_length=50)
    password: Optional[str] = Field(None, max_length=128)
    usertype: Optional[UserType] = None
    department_id: Optional[int] = None
    mail: Optional[str] = Field(None, max_length=255)
    version: int = Field(..., ge=0, description="目前版本（樂觀鎖）")


class UserAccountUpdateRequest(CamelModel):
    """更新帳號請求；若帳號已有通訊錄資料，userData.version 也必須一致"""
    user_account: UserAccountUpdate
    user_data: Optional[UserDataUpdate] = None


class ForcePasswordRequest(CamelModel):
    """管理員設定臨時密碼"""
    password: str = Field(..., min_length=1, max_length=128, description="臨時密碼")


class ProfileUpdateRequest(_MailField):
    """使用者修改自己的帳號"""
    old_password: str = Field(..., min_length=1, description="目前密碼")
    new_password: Optional[str] = Field(None, max_length=128, description="新密碼")
    username: Optional[str] = Field(None, min_length=1, max_length=50)
    usertype: Optional[UserType] = None
    department_id: Optional[int] = None
    mail: Optional[str] = Field(None, max_length=255)


class PasswordChangeRequest(CamelModel):
    """被標記後變更密碼"""
    new_password: str = Field(..., min_length=1, max_length=128, description="新密碼")


class UserAccountResponse(CamelModel):
    """帳號響應（不含密碼）"""
    id: int
    username: str
    usertype: UserType
    force_pwd_change: bool
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    mail: Optional[str] = None
    version: int


class UserAccountDetailResponse(UserAccountResponse):
    """帳號響應，附帶通訊錄資料"""
    user_data: Optional[UserDataResponse] = None


class UserAccountListResponse(CamelModel):
    users: list[UserAccountResponse]


class ProfileResponse(CamelModel):
    """目前登入者的帳號與通訊錄資料"""
    user_account: UserAccountResponse
    user_data: Optional[UserDataResponse] = None


class ProfileUpdateResponse(CamelModel):
    """修改自己帳號後重新簽發的 access token"""
    access_token: str
    token_type: str = "bearer"
    user: UserAccountResponse
