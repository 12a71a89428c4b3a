"""API 路由總入口"""

from fastapi import APIRouter
from phonebook.api import auth, departments, subdepartments, user_accounts, user_data, tickets, system

# 建立 API 路由器
api_router = APIRouter()

# 健康檢查端點
@api_router.get("/health", tags=["系統"])
async def health_check():
    """API 健康檢查"""
    return {
        "status": "healthy",
        "message": "API is running"
    }

# 註冊各模組路由
api_router.include_router(auth.router)
api_router.include_router(departments.router)
api_router.include_router(subdepartments.router)
api_router.include_router(user_accounts.router)
api_router.include_router(user_data.router)
api_router.include_router(tickets.router)
api_router.include_router(system.router)

__all__ = ["api_router"]
