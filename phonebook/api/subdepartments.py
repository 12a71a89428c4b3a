"""子部門管理 API 路由"""

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from phonebook.core.database import get_db
from phonebook.core.exceptions import NotFoundError, ValidationError
from phonebook.core.security import Principal, admin_only, get_current_principal, get_log_service
from phonebook.models import Department, SubDepartment
from phonebook.schemas import MessageResponse
from phonebook.schemas.department import (
    SubDepartmentCreate,
    SubDepartmentResponse,
    SubDepartmentUpdate,
)
from phonebook.services.directory import bump_update_marker, ensure_unique_name
from phonebook.services.log_service import LogService

router = APIRouter(prefix="/subdepartment", tags=["子部門管理"])

DUPLICATE_MESSAGE = "Ya existe una subdivisión con ese nombre en el departamento"


async def _get_subdepartment(db: AsyncSession, subdepartment_id: int) -> SubDepartment:
    subdepartment = await db.get(SubDepartment, subdepartment_id)
    if subdepartment is None:
        raise NotFoundError("Subdepartamento no encontrado")
    return subdepartment


async def _require_department(db: AsyncSession, department_id: int) -> None:
    if await db.get(Department, department_id) is None:
        raise ValidationError("El departamento no existe")


@router.get("/", response_model=list[SubDepartmentResponse], summary="取得子部門列表")
async def list_subdepartments(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(SubDepartment).order_by(SubDepartment.id))
    return result.scalars().all()


@router.get(
    "/department/{department_id}",
    response_model=list[SubDepartmentResponse],
    summary="取得部門下的子部門",
)
async def list_by_department(
    department_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(SubDepartment)
        .where(SubDepartment.department_id == department_id)
        .order_by(SubDepartment.id)
    )
    return result.scalars().all()


@router.get("/{subdepartment_id}", response_model=SubDepartmentResponse, summary="取得子部門詳情")
async def get_subdepartment(
    subdepartment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    return await _get_subdepartment(db, subdepartment_id)


@router.post(
    "/",
    response_model=SubDepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="建立子部門",
)
async def create_subdepartment(
    data: SubDepartmentCreate,
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    建立子部門（需要管理員權限）

    同一部門內名稱不可重複，不同部門可以同名
    """
    await _require_department(db, data.department_id)
    await ensure_unique_name(
        db, SubDepartment, data.name,
        message=DUPLICATE_MESSAGE, department_id=data.department_id,
    )

    subdepartment = SubDepartment(name=data.name, department_id=data.department_id)
    db.add(subdepartment)
    await db.commit()
    await db.refresh(subdepartment)

    log_service.info(f"Subdepartamento con id {subdepartment.id} creado por el usuario con id {principal.id}")
    return subdepartment


@router.put("/{subdepartment_id}", response_model=SubDepartmentResponse, summary="更新子部門")
async def update_subdepartment(
    subdepartment_id: int,
    data: SubDepartmentUpdate,
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    subdepartment = await _get_subdepartment(db, subdepartment_id)

    department_id = data.department_id if data.department_id is not None else subdepartment.department_id
    name = data.name if data.name is not None else subdepartment.name

    if department_id != subdepartment.department_id:
        await _require_department(db, department_id)
    await ensure_unique_name(
        db, SubDepartment, name, exclude_id=subdepartment.id,
        message=DUPLICATE_MESSAGE, department_id=department_id,
    )

    if data.name is not None:
        subdepartment.name = data.name
    subdepartment.department_id = department_id
    await bump_update_marker(db)
    await db.commit()
    await db.refresh(subdepartment)

    log_service.info(f"Subdepartamento con id {subdepartment.id} actualizado por el usuario con id {principal.id}")
    return subdepartment


@router.delete("/{subdepartment_id}", response_model=MessageResponse, summary="刪除子部門")
async def delete_subdepartment(
    subdepartment_id: int,
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    subdepartment = await _get_subdepartment(db, subdepartment_id)
    await db.delete(subdepartment)
    await bump_update_marker(db)
    await db.commit()

    log_service.info(f"Subdepartamento con id {subdepartment_id} eliminado por el usuario con id {principal.id}")
    return MessageResponse(message="Subdepartamento eliminado correctamente")
