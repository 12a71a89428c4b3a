"""
工單 API 測試
測試建立、稽核日誌、郵件通知與狀態標記
"""
from pathlib import Path

import pytest
from httpx import AsyncClient

from phonebook.main import app
from phonebook.services import mailer
from phonebook.services.mailer import MailService


@pytest.fixture
def audit_path(client) -> Path:
    """每個測試使用全新的稽核檔"""
    path = app.state.ticket_audit.path
    path.unlink(missing_ok=True)
    return path


def audit_rows(path: Path) -> list[list[str]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [[part.strip() for part in line.split("|")] for line in lines[1:]]


@pytest.fixture
async def ticket(client: AsyncClient, worker, worker_headers, audit_path) -> dict:
    response = await client.post(
        "/api/ticket/",
        json={
            "topic": "Error",
            "information": "El número de teléfono es incorrecto",
            "idAffectedData": worker["user"]["userData"]["id"],
        },
        headers=worker_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def mark(client: AsyncClient, headers: dict, ids: list, **flags):
    body = {"ids": ids, "read": False, "warned": False, "resolved": False}
    body.update(flags)
    return await client.patch("/api/ticket/mark", json=body, headers=headers)


@pytest.mark.api
class TestCreateTicket:
    """建立工單測試"""

    async def test_create(self, client: AsyncClient, worker, ticket, audit_path):
        assert ticket["status"] == "OPEN"
        assert ticket["topic"] == "Error"
        assert ticket["information"] == "El número de teléfono es incorrecto"
        assert ticket["userRequesterId"] == worker["user"]["id"]
        assert ticket["requesterUsername"] == "worker"
        assert ticket["affectedName"] == "Ana García"
        assert ticket["departmentName"] == "Informática"
        assert ticket["readAt"] is None
        assert ticket["resolvedAt"] is None

        lines = audit_path.read_text(encoding="utf-8").splitlines()
        assert lines[0].startswith("TICKET_ID")
        rows = audit_rows(audit_path)
        assert len(rows) == 1
        assert rows[0][:3] == [str(ticket["id"]), "CREATE", str(worker["user"]["id"])]

    async def test_unknown_affected_data(self, client: AsyncClient, worker_headers):
        response = await client.post(
            "/api/ticket/",
            json={"topic": "Error", "information": "x", "idAffectedData": 999},
            headers=worker_headers,
        )
        assert response.status_code == 404

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.post(
            "/api/ticket/", json={"topic": "Error", "information": "x", "idAffectedData": 1}
        )
        assert response.status_code == 401

    async def test_mail_failure_does_not_fail_create(
        self, client: AsyncClient, worker, worker_headers, audit_path, monkeypatch
    ):
        """SMTP 失敗只寫日誌，建立工單仍然成功"""
        calls = []

        async def failing_send(message, **kwargs):
            calls.append((message, kwargs))
            raise OSError("connection refused")

        monkeypatch.setattr(mailer.aiosmtplib, "send", failing_send)
        monkeypatch.setattr(
            app.state,
            "mail_service",
            MailService(app.state.log_service, host="smtp.test", port=465, sender="noreply@test"),
        )

        response = await client.post(
            "/api/ticket/",
            json={"topic": "Error", "information": "x", "idAffectedData": worker["user"]["userData"]["id"]},
            headers=worker_headers,
        )

        assert response.status_code == 201
        assert len(calls) == 1
        message, kwargs = calls[0]
        assert message["To"] == "superadmin@example.com"
        assert kwargs["hostname"] == "smtp.test"


@pytest.mark.api
class TestListTickets:
    """工單列表測試"""

    async def test_list_requires_admin(self, client: AsyncClient, worker_headers, ticket):
        response = await client.get("/api/ticket/", headers=worker_headers)
        assert response.status_code == 403

    async def test_list_and_count(self, client: AsyncClient, admin_headers, ticket):
        response = await client.get("/api/ticket/", headers=admin_headers)
        assert response.status_code == 200
        assert [t["id"] for t in response.json()["tickets"]] == [ticket["id"]]

        response = await client.get("/api/ticket/count", headers=admin_headers)
        assert response.json() == {"count": 1}


@pytest.mark.api
class TestMarkTickets:
    """工單狀態標記測試"""

    async def test_resolve_then_reopen(self, client: AsyncClient, admin_headers, ticket, audit_path):
        response = await mark(client, admin_headers, [ticket["id"]], resolved=True)

        assert response.status_code == 200
        assert response.json() == {"ids": [ticket["id"]], "status": "RESOLVED"}

        tickets = (await client.get("/api/ticket/", headers=admin_headers)).json()["tickets"]
        resolved = tickets[0]
        assert resolved["status"] == "RESOLVED"
        assert resolved["resolvedAt"] is not None
        assert resolved["readAt"] is not None
        assert resolved["resolverUsername"] == "superadmin"

        count = (await client.get("/api/ticket/count", headers=admin_headers)).json()
        assert count == {"count": 0}

        response = await mark(client, admin_headers, [ticket["id"]])
        assert response.json()["status"] == "OPEN"

        reopened = (await client.get("/api/ticket/", headers=admin_headers)).json()["tickets"][0]
        assert reopened["status"] == "OPEN"
        assert reopened["readAt"] is None
        assert reopened["warnedAt"] is None
        assert reopened["resolvedAt"] is None
        assert reopened["userResolverId"] is None

        actions = [row[1] for row in audit_rows(audit_path)]
        assert actions == ["CREATE", "RESOLVE", "REOPEN"]

    async def test_precedence(self, client: AsyncClient, admin_headers, ticket):
        """resolved > warned > read"""
        response = await mark(client, admin_headers, [ticket["id"]], read=True, warned=True)
        assert response.json()["status"] == "WARNED"

        response = await mark(client, admin_headers, [ticket["id"]], read=True, warned=True, resolved=True)
        assert response.json()["status"] == "RESOLVED"

        response = await mark(client, admin_headers, [ticket["id"]], read=True)
        assert response.json()["status"] == "READ"

        current = (await client.get("/api/ticket/", headers=admin_headers)).json()["tickets"][0]
        assert current["readAt"] is not None
        assert current["warnedAt"] is None
        assert current["resolvedAt"] is None

    async def test_single_id_field(self, client: AsyncClient, admin_headers, ticket):
        response = await client.patch(
            "/api/ticket/mark",
            json={"id": ticket["id"], "read": True},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "READ"

    async def test_missing_ids(self, client: AsyncClient, admin_headers):
        response = await client.patch("/api/ticket/mark", json={"read": True}, headers=admin_headers)
        assert response.status_code == 400

    async def test_unknown_id_changes_nothing(self, client: AsyncClient, admin_headers, ticket):
        response = await mark(client, admin_headers, [ticket["id"], 999], resolved=True)
        assert response.status_code == 404

        current = (await client.get("/api/ticket/", headers=admin_headers)).json()["tickets"][0]
        assert current["status"] == "OPEN"

    async def test_worker_cannot_mark(self, client: AsyncClient, worker_headers, ticket):
        response = await mark(client, worker_headers, [ticket["id"]], read=True)
        assert response.status_code == 403

    async def test_deleting_entry_removes_tickets(self, client: AsyncClient, admin_headers, worker, ticket):
        entry = worker["user"]["userData"]
        response = await client.delete(
            f"/api/userdata/{entry['id']}?version={entry['version']}", headers=admin_headers
        )
        assert response.status_code == 200

        response = await client.get("/api/ticket/", headers=admin_headers)
        assert response.json()["tickets"] == []
