"""工單 Schemas"""

from datetime import datetime
from typing import Optional
from pydantic import Field, model_validator

from phonebook.models import TicketStatus
from phonebook.schemas import CamelModel


class TicketCreate(CamelModel):
    """建立工單請求"""
    topic: str = Field(..., min_length=1, max_length=255, description="主旨")
    information: str = Field(..., min_length=1, description="內容")
    id_affected_data: int = Field(..., description="相關通訊錄資料 ID")


class TicketMarkRequest(CamelModel):
    """
    批次標記工單

    優先順序 resolved > warned > read；三者皆為 false 時重新開啟。
    接受 ``ids`` 陣列或單一 ``id``。
    """
    ids: list[int] = Field(default_factory=list, description="工單 ID 列表")
    id: Optional[int] = Field(None, description="單一工單 ID")
    read: bool = False
    warned: bool = False
    resolved: bool = False

    @model_validator(mode="after")
    def _merge_ids(self):
        if self.id is not None and self.id not in self.ids:
            self.ids.append(self.id)
        if not self.ids:
            raise ValueError("Debe indicar al menos un ticket")
        return self


class TicketResponse(CamelModel):
    """工單響應（附帶關聯名稱）"""
    id: int
    topic: str
    information: str
    status: TicketStatus
    created_at: datetime
    read_at: Optional[datetime] = None
    warned_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    user_requester_id: Optional[int] = None
    requester_username: Optional[str] = None
    user_resolver_id: Optional[int] = None
    resolver_username: Optional[str] = None
    id_affected_data: int
    affected_name: Optional[str] = None
    department_name: Optional[str] = None
    subdepartment_name: Optional[str] = None


class TicketListResponse(CamelModel):
    tickets: list[TicketResponse]


class TicketCountResponse(CamelModel):
    count: int


class TicketMarkResponse(CamelModel):
    ids: list[int]
    status: TicketStatus
