"""通訊錄資料 API 路由"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from phonebook.core.database import get_db
from phonebook.core.security import (
    Principal,
    department_or_above,
    get_current_principal,
    get_log_service,
)
from phonebook.models import MARKER_ID, Ticket, TicketStatus, UpdateMarker, UserData
from phonebook.schemas import IdResponse
from phonebook.schemas.user_account import ProfileResponse
from phonebook.schemas.user_data import (
    DepartmentEntryListResponse,
    PublicListResponse,
    UpdateMarkerResponse,
    UserDataCreate,
    UserDataListResponse,
    UserDataResponse,
    UserDataUpdate,
)
from phonebook.services.directory import (
    ENTRY_OPTIONS,
    account_to_dict,
    bump_update_marker,
    check_version,
    ensure_department_scope,
    ensure_unique_name,
    entry_to_dict,
    load_account,
    load_entry,
    public_entry_to_dict,
    record_entry_change,
    validate_linkage,
)
from phonebook.services.log_service import LogService

router = APIRouter(prefix="/userdata", tags=["通訊錄"])

DUPLICATE_MESSAGE = "Ya existe un usuario con ese nombre"


# ===== 公開端點 =====

@router.get("/", response_model=PublicListResponse, summary="公開通訊錄")
async def public_list(db: AsyncSession = Depends(get_db)):
    """
    公開通訊錄（不需要認證）

    只回傳 show = true 且有部門的資料，不含姓名與 Email
    """
    result = await db.execute(
        select(UserData)
        .options(*ENTRY_OPTIONS)
        .where(UserData.show.is_(True), UserData.department_id.is_not(None))
        .order_by(UserData.department_id, UserData.id)
    )
    return {"users": [public_entry_to_dict(e) for e in result.scalars().all()]}


@router.get("/last-update", response_model=UpdateMarkerResponse, summary="通訊錄最後更新")
async def last_update(db: AsyncSession = Depends(get_db)):
    """前端以此判斷快取的通訊錄是否需要重新下載"""
    marker = await db.get(UpdateMarker, MARKER_ID)
    if marker is None:
        return UpdateMarkerResponse()
    return UpdateMarkerResponse(date=marker.date, version=marker.version)


# ===== 已登入 =====

@router.get("/worker", response_model=UserDataListResponse, summary="完整通訊錄")
async def worker_list(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(UserData).options(*ENTRY_OPTIONS).order_by(UserData.department_id, UserData.id)
    )
    return {"users": [entry_to_dict(e) for e in result.scalars().all()]}


@router.get(
    "/worker-department/{department_id}",
    response_model=DepartmentEntryListResponse,
    summary="部門通訊錄",
)
async def worker_list_by_department(
    department_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """部門內的完整資料，並標示是否有尚未解決的工單"""
    result = await db.execute(
        select(UserData)
        .options(*ENTRY_OPTIONS)
        .where(UserData.department_id == department_id)
        .order_by(UserData.id)
    )
    entries = result.scalars().all()

    open_result = await db.execute(
        select(Ticket.id_affected_data)
        .where(Ticket.status != TicketStatus.RESOLVED)
        .distinct()
    )
    with_open_ticket = set(open_result.scalars().all())

    users = []
    for entry in entries:
        item = entry_to_dict(entry)
        item["has_open_ticket"] = entry.id in with_open_ticket
        users.append(item)
    return {"users": users}


@router.get("/profile", response_model=ProfileResponse, summary="目前登入者的資料")
async def get_profile(
    version: int = Query(..., description="目前版本"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    user = await load_account(db, principal.id)
    check_version(user.version, version, "Su perfil ha sido modificado anteriormente")
    return {
        "user_account": account_to_dict(user),
        "user_data": entry_to_dict(user.user_data) if user.user_data else None,
    }


# ===== 管理（DEPARTMENT 以上）=====

@router.post(
    "/",
    response_model=UserDataResponse,
    status_code=status.HTTP_201_CREATED,
    summary="建立通訊錄資料",
)
async def create_entry(
    data: UserDataCreate,
    principal: Principal = Depends(department_or_above),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    建立未綁定帳號的通訊錄資料

    DEPARTMENT 角色只能建立在自己的部門
    """
    ensure_department_scope(principal, data.department_id)
    await validate_linkage(db, data.department_id, data.subdepartment_id)
    await ensure_unique_name(db, UserData, data.name, message=DUPLICATE_MESSAGE)

    entry = UserData(**data.model_dump())
    db.add(entry)
    await record_entry_change(db, entry, is_new=True)
    await db.commit()

    entry = await load_entry(db, entry.id)
    log_service.info(f"Datos de usuario con id {entry.id} creados por el usuario con id {principal.id}")
    return entry_to_dict(entry)


@router.put("/{entry_id}", response_model=UserDataResponse, summary="更新通訊錄資料")
async def update_entry(
    entry_id: int,
    data: UserDataUpdate,
    principal: Principal = Depends(department_or_above),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    更新通訊錄資料

    - version 不一致回 409，資料不變
    - DEPARTMENT 角色只能修改自己部門的資料，也不能移到其他部門
    """
    entry = await load_entry(db, entry_id)
    ensure_department_scope(principal, entry.department_id)
    check_version(entry.version, data.version, "Los datos de usuario han sido modificados anteriormente")

    changes = data.model_dump(exclude_unset=True, exclude={"version"})
    department_id = changes.get("department_id", entry.department_id)
    subdepartment_id = changes.get("subdepartment_id", entry.subdepartment_id)
    ensure_department_scope(principal, department_id)
    await validate_linkage(db, department_id, subdepartment_id)

    if "name" in changes and changes["name"] != entry.name:
        await ensure_unique_name(
            db, UserData, changes["name"], exclude_id=entry.id, message=DUPLICATE_MESSAGE
        )

    for field, value in changes.items():
        setattr(entry, field, value)
    await record_entry_change(db, entry)
    await db.commit()

    entry = await load_entry(db, entry.id)
    log_service.info(f"Datos de usuario con id {entry.id} actualizados por el usuario con id {principal.id}")
    return entry_to_dict(entry)


@router.delete("/{entry_id}", response_model=IdResponse, summary="刪除通訊錄資料")
async def delete_entry(
    entry_id: int,
    version: int = Query(..., description="目前版本"),
    principal: Principal = Depends(department_or_above),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    entry = await load_entry(db, entry_id)
    ensure_department_scope(principal, entry.department_id)
    check_version(entry.version, version, "Los datos de usuario han sido modificados anteriormente")

    await db.delete(entry)
    await bump_update_marker(db)
    await db.commit()

    log_service.info(f"Datos de usuario con id {entry_id} eliminados por el usuario con id {principal.id}")
    return IdResponse(id=entry_id)
