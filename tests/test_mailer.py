"""
郵件通知服務測試
"""
import pytest

from phonebook.core.database import AsyncSessionLocal
from phonebook.services import mailer
from phonebook.services.mailer import NOTIFICATION_BODY, MailService


@pytest.fixture
def mail_service(log_service) -> MailService:
    return MailService(log_service, host="smtp.test", port=587, username="u", password="p", sender="from@test")


@pytest.mark.unit
class TestMailService:
    """通知寄送測試"""

    def test_build_message(self, log_service):
        service = MailService(log_service, host="smtp.test", port=465, sender="from@test", subject="Aviso")
        message = service.build_message(["a@test", "b@test"])

        assert message["To"] == "a@test, b@test"
        assert message["From"] == "from@test"
        assert message["Subject"] == "Aviso"
        assert message.get_content_subtype() == "html"
        assert NOTIFICATION_BODY in message.get_payload(decode=True).decode("utf-8")

    async def test_not_configured(self, log_service, db_session):
        service = MailService(log_service, host=None, port=465)
        assert not service.is_configured
        assert await service.send_ticket_notification(AsyncSessionLocal) is False

    async def test_sends_to_admins_with_mail(
        self, mail_service, create_account, db_session, monkeypatch
    ):
        await create_account("boss", usertype="ADMIN", mail="boss@example.com")
        await create_account("boss2", usertype="ADMIN")
        await create_account("plain", mail="plain@example.com")

        sent = []

        async def fake_send(message, **kwargs):
            sent.append((message, kwargs))

        monkeypatch.setattr(mailer.aiosmtplib, "send", fake_send)

        assert await mail_service.send_ticket_notification(AsyncSessionLocal) is True
        message, kwargs = sent[0]
        assert sorted(message["To"].split(", ")) == ["boss@example.com", "superadmin@example.com"]
        assert kwargs["hostname"] == "smtp.test"
        assert kwargs["port"] == 587

    async def test_send_failure_returns_false(self, mail_service, db_session, monkeypatch):
        async def failing_send(message, **kwargs):
            raise OSError("timeout")

        monkeypatch.setattr(mailer.aiosmtplib, "send", failing_send)
        assert await mail_service.send_ticket_notification(AsyncSessionLocal) is False
