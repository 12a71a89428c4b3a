"""Pydantic Schemas - 用於 API 請求/響應的資料驗證

前端（React）使用 camelCase，這裡的 Schema 一律以 snake_case 定義欄位，
透過 alias 輸出 camelCase，輸入則兩種寫法都接受。
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


def to_camel(string: str) -> str:
    """snake_case 轉 camelCase（user_name -> userName）"""
    parts = string.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class CamelModel(BaseModel):
    """所有 API Schema 的基礎類別"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ===== 通用 Schemas =====

class MessageResponse(CamelModel):
    """通用訊息響應"""
    message: str = Field(..., description="訊息內容")
    detail: Optional[str] = Field(None, description="詳細資訊")


class IdResponse(CamelModel):
    """只回傳 ID 的響應"""
    id: int


class ErrorResponse(CamelModel):
    """錯誤響應"""
    error: str = Field(..., description="錯誤訊息")
    code: str = Field(..., description="錯誤代碼")


__all__ = [
    "to_camel",
    "CamelModel",
    "MessageResponse",
    "IdResponse",
    "ErrorResponse",
]

# 註: 各實體的 Schemas 在各自的模組中
# from phonebook.schemas.auth import *
# from phonebook.schemas.department import *
