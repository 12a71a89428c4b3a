"""工單 API 路由"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from phonebook.core.database import get_db
from phonebook.core.exceptions import NotFoundError
from phonebook.core.security import Principal, admin_only, get_current_principal, get_log_service
from phonebook.models import Ticket, TicketStatus, UserData
from phonebook.models.base import utcnow
from phonebook.schemas.ticket import (
    TicketCountResponse,
    TicketCreate,
    TicketListResponse,
    TicketMarkRequest,
    TicketMarkResponse,
    TicketResponse,
)
from phonebook.services.log_service import LogService, TicketAuditLog
from phonebook.services.mailer import MailService

router = APIRouter(prefix="/ticket", tags=["工單"])

TICKET_OPTIONS = (
    selectinload(Ticket.requester),
    selectinload(Ticket.resolver),
    selectinload(Ticket.affected_data).selectinload(UserData.department),
    selectinload(Ticket.affected_data).selectinload(UserData.subdepartment),
)


def get_ticket_audit(request: Request) -> TicketAuditLog:
    return request.app.state.ticket_audit


def get_mail_service(request: Request) -> MailService:
    return request.app.state.mail_service


def get_session_factory(request: Request) -> async_sessionmaker:
    """背景工作自行開 session（請求的 session 在回應後就關閉）"""
    return request.app.state.session_factory


def ticket_to_dict(ticket: Ticket) -> dict:
    affected = ticket.affected_data
    return {
        "id": ticket.id,
        "topic": ticket.topic,
        "information": ticket.information,
        "status": ticket.status,
        "created_at": ticket.created_at,
        "read_at": ticket.read_at,
        "warned_at": ticket.warned_at,
        "resolved_at": ticket.resolved_at,
        "user_requester_id": ticket.user_requester_id,
        "requester_username": ticket.requester.username if ticket.requester else None,
        "user_resolver_id": ticket.user_resolver_id,
        "resolver_username": ticket.resolver.username if ticket.resolver else None,
        "id_affected_data": ticket.id_affected_data,
        "affected_name": affected.name if affected else None,
        "department_name": affected.department.name if affected and affected.department else None,
        "subdepartment_name": (
            affected.subdepartment.name if affected and affected.subdepartment else None
        ),
    }


def apply_mark(ticket: Ticket, mark: TicketMarkRequest, actor_id: int) -> str:
    """
    依旗標設定工單狀態，回傳稽核動作名稱

    優先順序 resolved > warned > read；都沒有時重新開啟並清空時間
    """
    now = utcnow()
    if mark.resolved:
        ticket.status = TicketStatus.RESOLVED
        ticket.resolved_at = now
        ticket.read_at = ticket.read_at or now
        ticket.user_resolver_id = actor_id
        return "RESOLVE"

    # 不是已解決就清掉解決資訊
    ticket.resolved_at = None
    ticket.user_resolver_id = None

    if mark.warned:
        ticket.status = TicketStatus.WARNED
        ticket.warned_at = now
        ticket.read_at = ticket.read_at or now
        return "WARN"

    ticket.warned_at = None

    if mark.read:
        ticket.status = TicketStatus.READ
        ticket.read_at = ticket.read_at or now
        return "READ"

    ticket.status = TicketStatus.OPEN
    ticket.read_at = None
    return "REOPEN"


async def _load_ticket(db: AsyncSession, ticket_id: int) -> Ticket:
    result = await db.execute(
        select(Ticket)
        .options(*TICKET_OPTIONS)
        .where(Ticket.id == ticket_id)
        .execution_options(populate_existing=True)
    )
    ticket = result.scalar_one_or_none()
    if ticket is None:
        raise NotFoundError("Ticket no encontrado")
    return ticket


@router.post(
    "/",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="建立工單",
)
async def create_ticket(
    data: TicketCreate,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service),
    audit: TicketAuditLog = Depends(get_ticket_audit),
    mail_service: MailService = Depends(get_mail_service),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    建立工單（任何已登入使用者）

    - 狀態為 OPEN
    - 寫入稽核日誌 CREATE
    - 背景寄信通知管理員；寄信失敗不影響回應
    """
    if await db.get(UserData, data.id_affected_data) is None:
        raise NotFoundError("Datos de usuario no encontrados")

    ticket = Ticket(
        topic=data.topic,
        information=data.information,
        status=TicketStatus.OPEN,
        created_at=utcnow(),
        user_requester_id=principal.id,
        id_affected_data=data.id_affected_data,
    )
    db.add(ticket)
    await db.commit()

    await audit.record(ticket.id, "CREATE", principal.id)
    background_tasks.add_task(mail_service.send_ticket_notification, session_factory)

    ticket = await _load_ticket(db, ticket.id)
    log_service.info(f"Ticket creado por el usuario {principal.username} con id {principal.id}")
    return ticket_to_dict(ticket)


@router.get("/", response_model=TicketListResponse, summary="取得工單列表")
async def list_tickets(
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Ticket).options(*TICKET_OPTIONS).order_by(Ticket.created_at.desc(), Ticket.id.desc())
    )
    return {"tickets": [ticket_to_dict(t) for t in result.scalars().all()]}


@router.get("/count", response_model=TicketCountResponse, summary="未解決工單數量")
async def count_unresolved(
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db)
):
    count = await db.scalar(
        select(func.count(Ticket.id)).where(Ticket.status != TicketStatus.RESOLVED)
    )
    return TicketCountResponse(count=count or 0)


@router.patch("/mark", response_model=TicketMarkResponse, summary="標記工單")
async def mark_tickets(
    data: TicketMarkRequest,
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    log_service: LogService = Depends(get_log_service),
    audit: TicketAuditLog = Depends(get_ticket_audit)
):
    """
    批次標記工單

    任一 ID 不存在時回 404，所有工單都不變更
    """
    result = await db.execute(select(Ticket).where(Ticket.id.in_(data.ids)))
    tickets = {t.id: t for t in result.scalars().all()}
    missing = [ticket_id for ticket_id in data.ids if ticket_id not in tickets]
    if missing:
        raise NotFoundError(f"Ticket no encontrado: {', '.join(str(i) for i in missing)}")

    actions = {}
    for ticket_id in data.ids:
        actions[ticket_id] = apply_mark(tickets[ticket_id], data, principal.id)
    await db.commit()

    now = utcnow()
    for ticket_id, action in actions.items():
        await audit.record(ticket_id, action, principal.id, now)

    new_status = tickets[data.ids[0]].status
    log_service.info(
        f"Tickets {data.ids} marcados como {new_status.value} por el usuario con id {principal.id}"
    )
    return TicketMarkResponse(ids=data.ids, status=new_status)
