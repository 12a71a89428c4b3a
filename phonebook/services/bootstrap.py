"""啟動時的預設資料

- 不存在任何 SUPERADMIN 時，以 ADMIN_USER / ADMIN_PASS 建立初始超級管理員
- SEED_DEFAULT_DEPARTMENTS 開啟且沒有任何部門時，建立範例部門與子部門
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from phonebook.config import settings
from phonebook.models import Department, SubDepartment, UserAccount, UserType
from phonebook.services.log_service import LogService

DEFAULT_DEPARTMENTS = [
    "Ventanilla (SAC)", "Estadística", "Informática", "Rentas", "Tesorería",
    "Intervención", "Patrimonio", "Personal", "Contratación", "Archivo Municipal",
    "Secretaría", "Equipo de Gobierno", "Salud y Consumo", "Servicios Inseccion",
    "Servicios Sociales", "Turismo", "Policía Local", "Concejalía Matalascañas",
    "Desarrollo Local", "Agricultura", "Urbanismo", "Concejalía El Rocío", "Alcaldía",
    "Ciudad de la Cultura", "Otros", "Moviles Coporativos", "Escuelas Infatiles",
    "Part. Ciudadana y Dllo. Comunitario", "Institutos",
    "Centro Sociocultural Barrio Obrero",
]

DEFAULT_SUBDEPARTMENTS = {
    "Servicios Sociales": [
        "Técnicas y Responsables", "Administración", "CIM", "Educación", "ETF",
        "Inmigración", "Psícologos", "Trabajadoras Sociales (UTS)",
        "Trabajadoras Sociales (Dependencia)", "PROMMESSAS",
    ],
    "Policía Local": ["Almonte", "El Rocío", "Matalascañas"],
    "Urbanismo": [
        "Vivienda", "Dllo Industrial El Tomillar", "Ordenación Territorio",
        "Obras Municipales", "Licencias de Obras", "Licencias de Aperturas",
        "Disciplina Urbanistica", "Servicios Júridicos", "Servicios Minicipales",
    ],
    "Ciudad de la Cultura": ["Biblioteca", "Juventud (Iglesia de Baler)"],
}


async def seed_departments(session: AsyncSession, log_service: Optional[LogService] = None) -> int:
    """建立範例部門（已有部門時不做任何事），回傳建立數量"""
    existing = await session.scalar(select(func.count(Department.id)))
    if existing:
        print("⏭️  部門已存在，跳過範例資料")
        return 0

    created = {}
    for name in DEFAULT_DEPARTMENTS:
        department = Department(name=name)
        session.add(department)
        created[name] = department
    await session.flush()

    for parent, children in DEFAULT_SUBDEPARTMENTS.items():
        for name in children:
            session.add(SubDepartment(name=name, department_id=created[parent].id))

    await session.commit()
    print(f"✅ 建立 {len(created)} 個範例部門")
    if log_service is not None:
        log_service.info("Departamentos de ejemplo creados")
    return len(created)


async def ensure_superadmin(session: AsyncSession, log_service: Optional[LogService] = None) -> UserAccount:
    """確保至少有一個 SUPERADMIN；第一個使用固定 ID（BOOTSTRAP_ADMIN_ID）"""
    result = await session.execute(
        select(UserAccount)
        .where(UserAccount.usertype == UserType.SUPERADMIN)
        .order_by(UserAccount.id)
        .limit(1)
    )
    admin = result.scalar_one_or_none()
    if admin is not None:
        print("⏭️  超級管理員已存在")
        return admin

    admin = UserAccount(
        id=settings.BOOTSTRAP_ADMIN_ID,
        username=settings.ADMIN_USER,
        password=settings.ADMIN_PASS,
        usertype=UserType.SUPERADMIN,
        force_pwd_change=False,
        mail=settings.ADMIN_EMAIL,
    )
    session.add(admin)
    await session.commit()

    print(f"✅ 建立超級管理員: {admin.username}")
    if log_service is not None:
        log_service.info("Superadmin creado correctamente")
    return admin


async def bootstrap(session: AsyncSession, log_service: Optional[LogService] = None) -> None:
    """啟動時執行的預設資料初始化"""
    if settings.SEED_DEFAULT_DEPARTMENTS:
        await seed_departments(session, log_service)
    await ensure_superadmin(session, log_service)
