"""認證相關 API 路由"""

import secrets
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from phonebook.config import settings
from phonebook.core.database import get_db
from phonebook.core.exceptions import AuthError, NotFoundError
from phonebook.core.security import Principal, get_current_principal, get_log_service
from phonebook.models import UserAccount
from phonebook.schemas import MessageResponse
from phonebook.schemas.auth import (
    AccessTokenResponse,
    LoginRequest,
    LoginResponse,
    VersionResponse,
)
from phonebook.services import tokens
from phonebook.services.directory import ACCOUNT_OPTIONS, account_to_dict
from phonebook.services.log_service import LogService

router = APIRouter(prefix="/auth", tags=["認證"])


def set_refresh_cookie(response: Response, token: str, remember: bool) -> None:
    """refresh token 只透過 HttpOnly cookie 傳遞"""
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        max_age=int(tokens.refresh_lifetime(remember).total_seconds()),
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="strict",
        path=f"{settings.API_V1_PREFIX}/auth",
    )


def clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path=f"{settings.API_V1_PREFIX}/auth",
    )


@router.post("/login", response_model=LoginResponse, summary="使用者登入")
async def login(
    login_data: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    使用者登入

    - **username**: 使用者名稱
    - **password**: 密碼
    - **remember**: 記住我

    回傳 access token 與使用者資訊（含通訊錄資料），refresh token 寫入 cookie
    """
    result = await db.execute(
        select(UserAccount)
        .options(*ACCOUNT_OPTIONS)
        .where(UserAccount.username == login_data.username)
    )
    user = result.scalar_one_or_none()

    if user is None or not secrets.compare_digest(
        user.password.encode("utf-8"), login_data.password.encode("utf-8")
    ):
        log_service.warn(f"Intento de inicio de sesión fallido para {login_data.username}")
        raise AuthError("Credenciales incorrectas", code="InvalidCredentials")

    access_token = tokens.issue_access_token(tokens.user_claims(user, login_data.remember))
    refresh_token = await tokens.issue_refresh_token(db, user.id, login_data.remember)
    await db.commit()

    set_refresh_cookie(response, refresh_token, login_data.remember)
    log_service.info(f"Sesion iniciada por {user.username}")

    return LoginResponse(
        access_token=access_token,
        user=account_to_dict(user, with_user_data=True),
    )


@router.post("/refresh", response_model=AccessTokenResponse, summary="刷新 Access Token")
async def refresh(
    refresh_token: Optional[str] = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """以 HttpOnly cookie 內的 refresh token 換發新的 access token"""
    if not refresh_token:
        raise AuthError("Token requerido", code="TokenRequired")

    access_token, user = await tokens.rotate(db, refresh_token)
    log_service.info(f"Token renovado para el usuario con id {user.id}")
    return AccessTokenResponse(access_token=access_token)


@router.post("/logout", response_model=MessageResponse, summary="使用者登出")
async def logout(
    response: Response,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    使用者登出

    - 刪除該使用者所有 refresh token
    - 清除 cookie（access token 在過期前仍然有效，客戶端需自行丟棄）
    """
    await tokens.revoke_user_tokens(db, principal.id)
    await db.commit()

    clear_refresh_cookie(response)
    log_service.info(f"Sesion cerrada por {principal.username}")
    return MessageResponse(message="Sesión cerrada correctamente")


@router.get("/version", response_model=VersionResponse, summary="取得帳號目前版本")
async def account_version(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """前端比對版本，不一致時要求重新登入"""
    user = await db.get(UserAccount, principal.id)
    if user is None:
        raise NotFoundError("Usuario no encontrado")
    return VersionResponse(version=user.version)
