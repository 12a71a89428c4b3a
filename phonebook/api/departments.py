"""部門管理 API 路由"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from phonebook.core.database import get_db
from phonebook.core.exceptions import NotFoundError
from phonebook.core.security import Principal, admin_only, get_current_principal, get_log_service
from phonebook.models import Department
from phonebook.schemas import MessageResponse
from phonebook.schemas.department import (
    DepartmentCreate,
    DepartmentNestedResponse,
    DepartmentResponse,
    DepartmentUpdate,
)
from phonebook.services.directory import bump_update_marker, ensure_unique_name
from phonebook.services.log_service import LogService

router = APIRouter(prefix="/department", tags=["部門管理"])

DUPLICATE_MESSAGE = "Ya existe un departamento con ese nombre"


async def _get_department(db: AsyncSession, department_id: int) -> Department:
    department = await db.get(Department, department_id)
    if department is None:
        raise NotFoundError("Departamento no encontrado")
    return department


@router.get(
    "/",
    response_model=list[DepartmentNestedResponse],
    response_model_exclude_unset=True,
    summary="取得部門列表",
)
async def list_departments(
    nested: bool = Query(False, description="是否一併回傳子部門"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """
    取得所有部門

    - **nested**: true 時每個部門附帶 subdepartments
    """
    query = select(Department).order_by(Department.id)
    if nested:
        query = query.options(selectinload(Department.subdepartments))

    result = await db.execute(query)
    departments = result.scalars().all()

    if nested:
        return [DepartmentNestedResponse.model_validate(d) for d in departments]
    # 未載入子部門時不輸出 subdepartments 欄位
    return [DepartmentNestedResponse(id=d.id, name=d.name) for d in departments]


@router.get("/{department_id}", response_model=DepartmentResponse, summary="取得部門詳情")
async def get_department(
    department_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    return await _get_department(db, department_id)


@router.post(
    "/",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="建立部門",
)
async def create_department(
    data: DepartmentCreate,
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    建立新部門（需要管理員權限）

    名稱以雜湊比對，重複時回 400 DuplicateName
    """
    await ensure_unique_name(db, Department, data.name, message=DUPLICATE_MESSAGE)

    department = Department(name=data.name)
    db.add(department)
    await db.commit()
    await db.refresh(department)

    log_service.info(f"Departamento con id {department.id} creado por el usuario con id {principal.id}")
    return department


@router.put("/{department_id}", response_model=DepartmentResponse, summary="更新部門")
async def update_department(
    department_id: int,
    data: DepartmentUpdate,
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    department = await _get_department(db, department_id)
    await ensure_unique_name(
        db, Department, data.name, exclude_id=department.id, message=DUPLICATE_MESSAGE
    )

    department.name = data.name
    await bump_update_marker(db)
    await db.commit()
    await db.refresh(department)

    log_service.info(f"Departamento con id {department.id} actualizado por el usuario con id {principal.id}")
    return department


@router.delete("/{department_id}", response_model=MessageResponse, summary="刪除部門")
async def delete_department(
    department_id: int,
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service)
):
    """
    刪除部門

    子部門一併刪除；帳號與通訊錄資料的部門欄位設為 NULL
    公開通訊錄隨之改變，遞增全域更新標記
    """
    department = await _get_department(db, department_id)
    await db.delete(department)
    await bump_update_marker(db)
    await db.commit()

    log_service.info(f"Departamento con id {department_id} eliminado por el usuario con id {principal.id}")
    return MessageResponse(message="Departamento eliminado correctamente")
