"""部門 / 子部門 Schemas"""

from typing import Optional
from pydantic import Field

from phonebook.schemas import CamelModel


class DepartmentCreate(CamelModel):
    """建立部門請求"""
    name: str = Field(..., min_length=1, max_length=255, description="部門名稱")


class DepartmentUpdate(CamelModel):
    """更新部門請求"""
    name: str = Field(..., min_length=1, max_length=255, description="部門名稱")


class SubDepartmentResponse(CamelModel):
    """子部門響應"""
    id: int
    name: str
    department_id: int


class DepartmentResponse(CamelModel):
    """部門響應"""
    id: int
    name: str


class DepartmentNestedResponse(DepartmentResponse):
    """包含子部門的部門響應"""
    subdepartments: list[SubDepartmentResponse] = Field(default_factory=list)


class SubDepartmentCreate(CamelModel):
    """建立子部門請求"""
    name: str = Field(..., min_length=1, max_length=255, description="子部門名稱")
    department_id: int = Field(..., description="所屬部門 ID")


class SubDepartmentUpdate(CamelModel):
    """更新子部門請求"""
    name: Optional[str] = Field(None, min_length=1, max_length=255, description="子部門名稱")
    department_id: Optional[int] = Field(None, description="所屬部門 ID")
