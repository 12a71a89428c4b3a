"""認證相關 Schemas"""

from typing import Optional
from pydantic import Field

from phonebook.models import UserType
from phonebook.schemas import CamelModel
from phonebook.schemas.user_data import UserDataResponse


class LoginRequest(CamelModel):
    """登入請求"""
    username: str = Field(..., min_length=1, description="使用者名稱")
    password: str = Field(..., min_length=1, description="密碼")
    remember: bool = Field(False, description="記住我（refresh token 有效 7 天，否則 1 小時）")


class SessionUser(CamelModel):
    """登入後回傳給前端的使用者資訊"""
    id: int
    username: str
    usertype: UserType
    force_pwd_change: bool
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    mail: Optional[str] = None
    version: int
    user_data: Optional[UserDataResponse] = None


class LoginResponse(CamelModel):
    """登入響應；refresh token 另以 HttpOnly cookie 傳遞"""
    access_token: str
    token_type: str = "bearer"
    user: SessionUser


class AccessTokenResponse(CamelModel):
    """刷新 access token 的響應"""
    access_token: str
    token_type: str = "bearer"


class VersionResponse(CamelModel):
    version: int
