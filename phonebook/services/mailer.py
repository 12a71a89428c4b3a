"""郵件通知服務 (Mailer Service)

新工單建立時寄信給所有有設定信箱的管理員帳號。
寄送失敗只寫入日誌，不會影響 API 回應。
"""

from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from phonebook.models import UserAccount, UserType
from phonebook.services.log_service import LogService

NOTIFICATION_BODY = (
    "Un nuevo ticket ha sido generado en la página del Listín Telefónico "
    "del ayuntamiento de Almonte."
)


class MailService:
    """以 aiosmtplib 寄送工單通知"""

    def __init__(
        self,
        log_service: LogService,
        host: Optional[str],
        port: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        sender: str = "informatica@localhost",
        subject: str = "Nuevo Ticket en Listin Telefonico",
    ):
        self.log_service = log_service
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.subject = subject

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    def build_message(self, recipients: list[str]) -> MIMEText:
        message = MIMEText(NOTIFICATION_BODY, "html", "utf-8")
        message["From"] = self.sender
        message["To"] = ", ".join(recipients)
        message["Subject"] = self.subject
        return message

    async def admin_recipients(self, session_factory: async_sessionmaker) -> list[str]:
        """所有 ADMIN / SUPERADMIN 帳號中有設定信箱者"""
        async with session_factory() as db:
            result = await db.execute(
                select(UserAccount).where(
                    UserAccount.usertype.in_([UserType.ADMIN, UserType.SUPERADMIN]),
                    UserAccount.mail.is_not(None),
                )
            )
            return [user.mail for user in result.scalars().all() if user.mail]

    async def send_ticket_notification(self, session_factory: async_sessionmaker) -> bool:
        """
        寄送「新工單」通知

        在 BackgroundTasks 中執行，因此自行開啟資料庫 session。

        Returns:
            bool: 是否成功寄出
        """
        if not self.is_configured:
            self.log_service.warn("SMTP no configurado, no se mandan notificaciones.")
            return False

        try:
            recipients = await self.admin_recipients(session_factory)
            if not recipients:
                self.log_service.info("No hay administradores con correo para notificar.")
                return False

            await aiosmtplib.send(
                self.build_message(recipients),
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                use_tls=self.use_tls,
            )
        except Exception as e:
            self.log_service.error(f"No se pudo mandar las notificaciones. {e}")
            return False

        self.log_service.info("Correos de notificación mandados correctamente.")
        return True
