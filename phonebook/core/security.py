"""安全性與認證核心功能

提供 Bearer Token 驗證、角色檢查與「可否修改某帳號」的權限矩陣
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from phonebook.config import settings
from phonebook.core.database import get_db
from phonebook.core.exceptions import (
    AuthError,
    InvalidTokenError,
    NotFoundError,
    PermissionDeniedError,
)
from phonebook.models import UserAccount, UserType
from phonebook.services import tokens
from phonebook.services.log_service import LogService

# 缺少 Authorization 時不自動回 403，由下方自行回 401
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class Principal:
    """已驗證的呼叫者（來自 access token 的 claims）"""
    id: int
    username: str
    usertype: UserType
    department_id: Optional[int] = None
    remember: bool = False

    @property
    def is_admin(self) -> bool:
        return self.usertype.is_admin

    @classmethod
    def from_claims(cls, claims: dict) -> "Principal":
        return cls(
            id=int(claims["sub"]),
            username=claims.get("username", ""),
            usertype=UserType(claims.get("usertype", UserType.WORKER.value)),
            department_id=claims.get("departmentId"),
            remember=bool(claims.get("remember", False)),
        )


def get_log_service(request: Request) -> LogService:
    """取得在 lifespan 中建立的日誌服務"""
    return request.app.state.log_service


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    log_service: LogService = Depends(get_log_service),
) -> Principal:
    """
    從 Authorization: Bearer 取得當前使用者

    Raises:
        AuthError: 缺少 token
        InvalidTokenError: token 無效或過期
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Token requerido", code="TokenRequired")

    token = credentials.credentials
    try:
        claims = tokens.verify(token, tokens.ACCESS)
        principal = Principal.from_claims(claims)
    except InvalidTokenError:
        unverified = tokens.decode_unsafe(token) or {}
        log_service.warn(f"Token inválido del usuario: {unverified.get('username', 'desconocido')}")
        raise
    except (KeyError, ValueError):
        log_service.warn("Token con datos incompletos")
        raise InvalidTokenError("Token inválido o expirado")

    request.state.principal = principal
    return principal


def require_role(*allowed_roles: UserType):
    """
    權限檢查依賴工廠

    Example:
        @router.get("/admin")
        async def admin_view(principal: Principal = Depends(require_role(UserType.ADMIN))):
            ...
    """
    async def role_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.usertype not in allowed_roles:
            raise PermissionDeniedError("No tienes permisos")
        return principal

    return role_checker


admin_only = require_role(UserType.ADMIN, UserType.SUPERADMIN)
department_or_above = require_role(UserType.DEPARTMENT, UserType.ADMIN, UserType.SUPERADMIN)


def can_modify(principal: Principal, target: UserAccount) -> bool:
    """
    帳號修改權限矩陣

    - 初始超級管理員只能被自己修改
    - SUPERADMIN：任何人
    - ADMIN：SUPERADMIN 以外的任何人
    - DEPARTMENT：同部門的 WORKER / DEPARTMENT
    - WORKER：無
    """
    if target.id == settings.BOOTSTRAP_ADMIN_ID and principal.id != target.id:
        return False

    if principal.usertype == UserType.SUPERADMIN:
        return True
    if principal.usertype == UserType.ADMIN:
        return target.usertype != UserType.SUPERADMIN
    if principal.usertype == UserType.DEPARTMENT:
        return (
            principal.department_id is not None
            and target.department_id == principal.department_id
            and target.usertype in (UserType.WORKER, UserType.DEPARTMENT)
        )
    return False


async def can_modify_user(
    user_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> UserAccount:
    """路徑參數 user_id 指向的帳號，呼叫者無權修改時回 403"""
    target = await db.get(UserAccount, user_id)
    if target is None:
        raise NotFoundError("Usuario no encontrado")
    if not can_modify(principal, target):
        raise PermissionDeniedError("No tienes permisos para modificar este usuario")
    return target
