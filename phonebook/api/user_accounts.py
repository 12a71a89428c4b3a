"""使用者帳號管理 API 路由"""

import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from phonebook.api.auth import clear_refresh_cookie, set_refresh_cookie
from phonebook.config import settings
from phonebook.core.database import get_db
from phonebook.core.exceptions import PermissionDeniedError, ValidationError, VersionConflictError
from phonebook.core.security import (
    Principal,
    admin_only,
    can_modify_user,
    department_or_above,
    get_current_principal,
    get_log_service,
)
from phonebook.models import UserAccount, UserData, UserType
from phonebook.schemas import IdResponse
from phonebook.schemas.user_account import (
    ForcePasswordRequest,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    UserAccountCreateRequest,
    UserAccountDetailResponse,
    UserAccountListResponse,
    UserAccountUpdateRequest,
)
from phonebook.services import tokens
from phonebook.services.directory import (
    ACCOUNT_OPTIONS,
    account_to_dict,
    bump_update_marker,
    bump_version,
    check_version,
    ensure_unique_name,
    load_account,
    record_entry_change,
    validate_linkage,
)
from phonebook.services.log_service import LogService

router = APIRouter(prefix="/user", tags=["使用者管理"])

ENTRY_DUPLICATE_MESSAGE = "Ya existe un usuario con ese nombre"


async def _ensure_username_free(db: AsyncSession, username: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(UserAccount.id).where(UserAccount.username == username)
    if exclude_id is not None:
        stmt = stmt.where(UserAccount.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise ValidationError("El nombre de usuario ya está en uso")


def _check_password(stored: str, supplied: str) -> bool:
    return secrets.compare_digest(stored.encode("utf-8"), supplied.encode("utf-8"))


# ===== 查詢 =====

@router.get("/list", response_model=UserAccountListResponse, summary="取得所有帳號")
async def list_users(
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(UserAccount).options(*ACCOUNT_OPTIONS).order_by(UserAccount.id)
    )
    return {"users": [account_to_dict(u) for u in result.scalars().all()]}


@router.get("/list-department", response_model=UserAccountListResponse, summary="取得同部門帳號")
async def list_users_by_department(
    principal: Principal = Depends(department_or_above),
    db: AsyncSession = Depends(get_db)
):
    """
    取得與呼叫者同部門的帳號

    不包含呼叫者本人，也不包含 ADMIN / SUPERADMIN
    """
    if principal.department_id is None:
        raise ValidationError("El usuario no tiene departamento asignado")

    result = await db.execute(
        select(UserAccount)
        .options(*ACCOUNT_OPTIONS)
        .where(
            UserAccount.department_id == principal.department_id,
            UserAccount.usertype.not_in([UserType.ADMIN, UserType.SUPERADMIN]),
            UserAccount.id != principal.id,
        )
        .order_by(UserAccount.id)
    )
    return {"users": [account_to_dict(u) for u in result.scalars().all()]}


# ===== 自己的帳號 =====
# 必須宣告在 /{user_id} 之前

@router.put("/profile-update", response_model=ProfileUpdateResponse, summary="修改自己的帳號")
async def update_my_account(
    data: ProfileUpdateRequest,
    response: Response,
    version: int = Query(..., description="目前版本"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    修改自己的帳號

    - **oldPassword** 必須與目前密碼一致才會接受任何變更
    - 只有 ADMIN / SUPERADMIN 能改自己的部門與角色，ADMIN 不能升為 SUPERADMIN
    - 成功後重新簽發 access / refresh token
    """
    user = await load_account(db, principal.id)
    check_version(user.version, version, "Su usuario ha sido modificado anteriormente")

    if not _check_password(user.password, data.old_password):
        raise ValidationError("La contraseña actual no es correcta")

    if data.new_password:
        if data.new_password == data.old_password:
            raise ValidationError("La contraseña nueva debe ser diferente a la actual")
        user.password = data.new_password
        user.force_pwd_change = False

    if data.username and data.username != user.username:
        await _ensure_username_free(db, data.username, exclude_id=user.id)
        user.username = data.username

    if "department_id" in data.model_fields_set and data.department_id != user.department_id:
        if not principal.is_admin:
            raise PermissionDeniedError("No puede cambiar su departamento")
        await validate_linkage(db, data.department_id, None)
        user.department_id = data.department_id

    if data.usertype is not None and data.usertype != user.usertype:
        if not principal.is_admin or user.id == settings.BOOTSTRAP_ADMIN_ID:
            raise PermissionDeniedError("No puede cambiar su tipo de usuario")
        if data.usertype == UserType.SUPERADMIN and principal.usertype != UserType.SUPERADMIN:
            raise PermissionDeniedError("Solo un SUPERADMIN puede asignar SUPERADMIN")
        user.usertype = data.usertype

    if "mail" in data.model_fields_set:
        user.mail = data.mail

    bump_version(user)
    await tokens.revoke_user_tokens(db, user.id)
    refresh_token = await tokens.issue_refresh_token(db, user.id, principal.remember)
    await db.commit()

    user = await load_account(db, user.id)
    set_refresh_cookie(response, refresh_token, principal.remember)
    log_service.info(f"Usuario {user.id} actualizó su perfil")

    return ProfileUpdateResponse(
        access_token=tokens.issue_access_token(tokens.user_claims(user, principal.remember)),
        user=account_to_dict(user),
    )


@router.delete("/profile-del", response_model=IdResponse, summary="刪除自己的帳號")
async def delete_my_account(
    response: Response,
    version: int = Query(..., description="目前版本"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    user = await load_account(db, principal.id)
    check_version(user.version, version, "Su usuario ha sido modificado anteriormente")

    if user.usertype == UserType.SUPERADMIN:
        raise PermissionDeniedError("Un SUPERADMIN no puede eliminarse")

    had_entry = user.user_data is not None
    await db.delete(user)
    if had_entry:
        await bump_update_marker(db)
    await db.commit()

    clear_refresh_cookie(response)
    log_service.info(f"Usuario {principal.username} se elimino a si mismo")
    return IdResponse(id=principal.id)


@router.patch("/profile-PWD", response_model=IdResponse, summary="被標記後變更密碼")
async def forced_password_change(
    data: PasswordChangeRequest,
    response: Response,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    只有被標記為「下次登入需變更密碼」的帳號可以使用

    變更後舊的 refresh token 全部失效，並重新簽發 refresh cookie
    """
    user = await load_account(db, principal.id)
    if not user.force_pwd_change:
        raise PermissionDeniedError("El usuario no tiene un cambio de contraseña pendiente")

    user.password = data.new_password
    user.force_pwd_change = False
    bump_version(user)
    await tokens.revoke_user_tokens(db, user.id)
    refresh_token = await tokens.issue_refresh_token(db, user.id, principal.remember)
    await db.commit()

    set_refresh_cookie(response, refresh_token, principal.remember)
    log_service.info(f"Usuario {user.id} cambió su contraseña")
    return IdResponse(id=user.id)


# ===== 管理 =====

@router.get("/{user_id}", response_model=UserAccountDetailResponse, summary="取得帳號詳情")
async def get_user(
    user_id: int,
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db)
):
    user = await load_account(db, user_id)
    return account_to_dict(user, with_user_data=True)


@router.post("/", response_model=IdResponse, status_code=status.HTTP_201_CREATED, summary="建立帳號")
async def create_user(
    data: UserAccountCreateRequest,
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    建立帳號（需要管理員權限）

    - 只有 SUPERADMIN 能建立 SUPERADMIN
    - 可同時建立對應的通訊錄資料（userData）
    - 新帳號一律需要在首次登入時變更密碼
    """
    account = data.user_account

    if account.usertype == UserType.SUPERADMIN and principal.usertype != UserType.SUPERADMIN:
        raise PermissionDeniedError("Solo un SUPERADMIN puede crear a otro SUPERADMIN")

    await _ensure_username_free(db, account.username)
    await validate_linkage(db, account.department_id, None)

    user = UserAccount(
        username=account.username,
        password=account.password,
        usertype=account.usertype,
        department_id=account.department_id,
        mail=account.mail,
        force_pwd_change=True,
    )
    db.add(user)

    if data.user_data is not None:
        entry_data = data.user_data
        department_id = entry_data.department_id
        if department_id is None:
            department_id = account.department_id
        await validate_linkage(db, department_id, entry_data.subdepartment_id)
        await ensure_unique_name(db, UserData, entry_data.name, message=ENTRY_DUPLICATE_MESSAGE)

        entry = UserData(
            name=entry_data.name,
            extension=entry_data.extension,
            number=entry_data.number,
            email=entry_data.email,
            show=entry_data.show,
            department_id=department_id,
            subdepartment_id=entry_data.subdepartment_id,
        )
        user.user_data = entry
        await record_entry_change(db, entry, is_new=True)

    await db.commit()

    log_service.info(f"Usuario con id {user.id} creado correctamente por el usuario con id {principal.id}")
    return IdResponse(id=user.id)


@router.put("/{user_id}", response_model=UserAccountDetailResponse, summary="更新帳號")
async def update_user(
    user_id: int,
    data: UserAccountUpdateRequest,
    principal: Principal = Depends(admin_only),
    target: UserAccount = Depends(can_modify_user),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    更新帳號（需要管理員權限且可修改該帳號）

    帳號與其通訊錄資料的 version 都必須一致，否則回 409；
    更新後該帳號所有 refresh token 失效
    """
    user = await load_account(db, target.id)
    changes = data.user_account

    check_version(user.version, changes.version, "El usuario ha sido modificado anteriormente")
    if user.user_data is not None:
        if data.user_data is None:
            raise VersionConflictError("Los datos de usuario han sido modificados anteriormente")
        check_version(
            user.user_data.version, data.user_data.version,
            "Los datos de usuario han sido modificados anteriormente",
        )

    if changes.username and changes.username != user.username:
        await _ensure_username_free(db, changes.username, exclude_id=user.id)
        user.username = changes.username

    if changes.usertype is not None and changes.usertype != user.usertype:
        if changes.usertype == UserType.SUPERADMIN and principal.usertype != UserType.SUPERADMIN:
            raise PermissionDeniedError("Solo un SUPERADMIN puede asignar SUPERADMIN")
        user.usertype = changes.usertype

    if "department_id" in changes.model_fields_set and changes.department_id != user.department_id:
        await validate_linkage(db, changes.department_id, None)
        user.department_id = changes.department_id

    if changes.password:
        user.password = changes.password
        user.force_pwd_change = False

    if "mail" in changes.model_fields_set:
        user.mail = changes.mail

    if user.user_data is not None:
        entry = user.user_data
        entry_changes = data.user_data.model_dump(exclude_unset=True, exclude={"version"})
        department_id = entry_changes.get("department_id", entry.department_id)
        subdepartment_id = entry_changes.get("subdepartment_id", entry.subdepartment_id)
        await validate_linkage(db, department_id, subdepartment_id)
        if "name" in entry_changes and entry_changes["name"] != entry.name:
            await ensure_unique_name(
                db, UserData, entry_changes["name"], exclude_id=entry.id,
                message=ENTRY_DUPLICATE_MESSAGE,
            )
        for field, value in entry_changes.items():
            setattr(entry, field, value)
        bump_version(entry)
        await bump_update_marker(db)

    bump_version(user)
    await tokens.revoke_user_tokens(db, user.id)
    await db.commit()

    user = await load_account(db, user.id)
    log_service.info(f"Usuario con id {user.id} actualizado correctamente por el usuario con id {principal.id}")
    return account_to_dict(user, with_user_data=True)


@router.patch("/{user_id}/forcepwd", response_model=IdResponse, summary="設定臨時密碼並要求變更")
async def force_password_change(
    user_id: int,
    data: ForcePasswordRequest,
    version: int = Query(..., description="目前版本"),
    principal: Principal = Depends(department_or_above),
    target: UserAccount = Depends(can_modify_user),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    設定臨時密碼並要求下次登入變更

    DEPARTMENT 以上可用；DEPARTMENT 只能處理同部門的 WORKER / DEPARTMENT 帳號
    """
    check_version(target.version, version, "El usuario ha sido modificado anteriormente")

    target.password = data.password
    target.force_pwd_change = True
    bump_version(target)
    await tokens.revoke_user_tokens(db, target.id)
    await db.commit()

    log_service.info(
        f"Usuario con id {target.id} marcado para cambio de contraseña por el usuario con id {principal.id}"
    )
    return IdResponse(id=target.id)


@router.delete("/{user_id}", response_model=IdResponse, summary="刪除帳號")
async def delete_user(
    user_id: int,
    version: int = Query(..., description="目前版本"),
    principal: Principal = Depends(admin_only),
    target: UserAccount = Depends(can_modify_user),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """刪除帳號，其通訊錄資料與 refresh token 一併刪除"""
    user = await load_account(db, target.id)
    check_version(user.version, version, "El usuario ha sido modificado anteriormente")

    had_entry = user.user_data is not None
    await db.delete(user)
    if had_entry:
        await bump_update_marker(db)
    await db.commit()

    log_service.info(f"Usuario con id {user_id} eliminado por el usuario con id {principal.id}")
    return IdResponse(id=user_id)
