"""通訊錄共用邏輯 (Directory Service)

部門 / 子部門一致性檢查、樂觀鎖版本、全域更新標記，
以及把 ORM 物件轉成 API 響應用的 dict。
"""

from typing import Optional, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from phonebook.core.crypto import hash_value
from phonebook.core.exceptions import (
    DuplicateNameError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    VersionConflictError,
)
from phonebook.core.security import Principal
from phonebook.models import (
    MARKER_ID,
    Department,
    SubDepartment,
    UpdateMarker,
    UserAccount,
    UserData,
    UserType,
)
from phonebook.models.base import next_version, utcnow
from phonebook.services import tokens

# 查詢通訊錄資料時一併載入部門與子部門（async 下不能延遲載入）
ENTRY_OPTIONS = (
    selectinload(UserData.department),
    selectinload(UserData.subdepartment),
)

ACCOUNT_OPTIONS = (
    selectinload(UserAccount.department),
    selectinload(UserAccount.user_data).selectinload(UserData.department),
    selectinload(UserAccount.user_data).selectinload(UserData.subdepartment),
)


# ===== 版本 =====

def check_version(current: int, submitted: Optional[int], message: str = "El registro ha sido modificado anteriormente") -> None:
    """送出的版本與目前不一致時拒絕（資料不做任何變更）"""
    if submitted is None or int(submitted) != current:
        raise VersionConflictError(message)


def bump_version(obj) -> None:
    obj.version = next_version(obj.version or 0)


async def bump_update_marker(db: AsyncSession) -> UpdateMarker:
    """遞增全域更新標記（單一資料列，不存在時建立）"""
    marker = await db.get(UpdateMarker, MARKER_ID)
    if marker is None:
        marker = UpdateMarker(id=MARKER_ID, date=utcnow(), version=0)
        db.add(marker)
    marker.version = next_version(marker.version or 0)
    marker.date = utcnow()
    return marker


async def record_entry_change(db: AsyncSession, entry: UserData, is_new: bool = False) -> None:
    """
    通訊錄資料新增或修改後的連動

    - 修改時遞增資料本身的版本，以及對應帳號的版本
    - 對應帳號有變更，其 refresh token 全部失效
    - 遞增全域更新標記
    """
    if not is_new:
        bump_version(entry)
        if entry.user_account_id is not None:
            account = await db.get(UserAccount, entry.user_account_id)
            if account is not None:
                bump_version(account)
                await tokens.revoke_user_tokens(db, account.id)
    await bump_update_marker(db)


# ===== 一致性檢查 =====

async def validate_linkage(
    db: AsyncSession,
    department_id: Optional[int],
    subdepartment_id: Optional[int],
) -> None:
    """
    檢查部門 / 子部門組合

    - 有子部門就必須有部門
    - 部門必須存在
    - 子部門必須存在且屬於該部門
    """
    if subdepartment_id is not None and department_id is None:
        raise ValidationError("Debe indicar un departamento para la subdivisión")

    if department_id is not None:
        department = await db.get(Department, department_id)
        if department is None:
            raise ValidationError("El departamento no existe")

    if subdepartment_id is not None:
        subdepartment = await db.get(SubDepartment, subdepartment_id)
        if subdepartment is None or subdepartment.department_id != department_id:
            raise ValidationError("La subdivisión no pertenece al departamento indicado")


async def ensure_unique_name(
    db: AsyncSession,
    model: Type,
    name: str,
    exclude_id: Optional[int] = None,
    message: str = "Ya existe un registro con ese nombre",
    **scope,
) -> None:
    """以 name_hash 檢查名稱是否重複；scope 可限制範圍（例如 department_id）"""
    stmt = select(model.id).where(model.name_hash == hash_value(name))
    for column, value in scope.items():
        stmt = stmt.where(getattr(model, column) == value)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise DuplicateNameError(message)


def ensure_department_scope(principal: Principal, department_id: Optional[int]) -> None:
    """DEPARTMENT 角色只能管理自己部門的資料"""
    if principal.usertype != UserType.DEPARTMENT:
        return
    if principal.department_id is None or department_id != principal.department_id:
        raise PermissionDeniedError("Solo puede gestionar datos de su departamento")


# ===== 查詢 =====

async def load_entry(db: AsyncSession, entry_id: int) -> UserData:
    result = await db.execute(
        select(UserData)
        .options(*ENTRY_OPTIONS)
        .where(UserData.id == entry_id)
        .execution_options(populate_existing=True)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFoundError("Datos de usuario no encontrados")
    return entry


async def load_account(db: AsyncSession, user_id: int) -> UserAccount:
    result = await db.execute(
        select(UserAccount)
        .options(*ACCOUNT_OPTIONS)
        .where(UserAccount.id == user_id)
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise NotFoundError("Usuario no encontrado")
    return account


# ===== 序列化 =====

def entry_to_dict(entry: UserData) -> dict:
    return {
        "id": entry.id,
        "name": entry.name,
        "extension": entry.extension,
        "number": entry.number,
        "email": entry.email,
        "show": entry.show,
        "department_id": entry.department_id,
        "department_name": entry.department.name if entry.department else None,
        "subdepartment_id": entry.subdepartment_id,
        "subdepartment_name": entry.subdepartment.name if entry.subdepartment else None,
        "user_account_id": entry.user_account_id,
        "version": entry.version,
    }


def public_entry_to_dict(entry: UserData) -> dict:
    """公開通訊錄只顯示電話、分機與部門"""
    return {
        "number": entry.number,
        "extension": entry.extension,
        "department_id": entry.department_id,
        "department_name": entry.department.name if entry.department else None,
        "subdepartment_id": entry.subdepartment_id,
        "subdepartment_name": entry.subdepartment.name if entry.subdepartment else None,
    }


def account_to_dict(account: UserAccount, with_user_data: bool = False) -> dict:
    data = {
        "id": account.id,
        "username": account.username,
        "usertype": account.usertype,
        "force_pwd_change": account.force_pwd_change,
        "department_id": account.department_id,
        "department_name": account.department.name if account.department else None,
        "mail": account.mail,
        "version": account.version,
    }
    if with_user_data:
        data["user_data"] = entry_to_dict(account.user_data) if account.user_data else None
    return data
