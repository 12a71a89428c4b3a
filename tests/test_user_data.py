"""
通訊錄資料 API 測試
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from phonebook.models import RefreshToken


async def create_entry(client: AsyncClient, headers: dict, **fields) -> dict:
    response = await client.post("/api/userdata/", json=fields, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.api
class TestPublicDirectory:
    """公開通訊錄測試"""

    async def test_public_list_hides_private_fields(self, client: AsyncClient, worker):
        response = await client.get("/api/userdata/")

        assert response.status_code == 200
        users = response.json()["users"]
        assert users == [
            {
                "number": "+34 959 000 000",
                "extension": "1234",
                "departmentId": worker["user"]["departmentId"],
                "departmentName": "Informática",
                "subdepartmentId": None,
                "subdepartmentName": None,
            }
        ]

    async def test_hidden_and_unassigned_entries_excluded(
        self, client: AsyncClient, admin_headers, department
    ):
        await create_entry(client, admin_headers, name="Oculto", show=False, departmentId=department["id"])
        await create_entry(client, admin_headers, name="Sin departamento")

        response = await client.get("/api/userdata/")
        assert response.json()["users"] == []

    async def test_last_update_empty(self, client: AsyncClient):
        response = await client.get("/api/userdata/last-update")

        assert response.status_code == 200
        assert response.json() == {"date": None, "version": 0}

    async def test_marker_bumped_on_create(self, client: AsyncClient, admin_headers, department):
        await create_entry(client, admin_headers, name="Recepción", departmentId=department["id"])

        data = (await client.get("/api/userdata/last-update")).json()
        assert data["version"] == 1
        assert data["date"] is not None


@pytest.mark.api
class TestWorkerDirectory:
    """已登入使用者的通訊錄"""

    async def test_worker_list_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/userdata/worker")
        assert response.status_code == 401

    async def test_worker_list_has_full_fields(self, client: AsyncClient, worker_headers):
        response = await client.get("/api/userdata/worker", headers=worker_headers)

        assert response.status_code == 200
        entry = response.json()["users"][0]
        assert entry["name"] == "Ana García"
        assert entry["email"] == "ana@example.com"
        assert entry["version"] == 0

    async def test_open_ticket_flag(self, client: AsyncClient, worker, worker_headers):
        entry = worker["user"]["userData"]
        department_id = entry["departmentId"]

        response = await client.get(
            f"/api/userdata/worker-department/{department_id}", headers=worker_headers
        )
        assert response.json()["users"][0]["hasOpenTicket"] is False

        response = await client.post(
            "/api/ticket/",
            json={"topic": "Error", "information": "Extensión incorrecta", "idAffectedData": entry["id"]},
            headers=worker_headers,
        )
        assert response.status_code == 201

        response = await client.get(
            f"/api/userdata/worker-department/{department_id}", headers=worker_headers
        )
        assert response.json()["users"][0]["hasOpenTicket"] is True


@pytest.mark.api
class TestManageEntries:
    """通訊錄資料管理測試"""

    @pytest.mark.parametrize(
        "fields",
        [
            {"name": "X", "extension": "12a"},
            {"name": "X", "number": "call me"},
            {"name": "X", "email": "not-an-email"},
            {"name": ""},
            {"extension": "100"},
        ],
    )
    async def test_validation(self, client: AsyncClient, admin_headers, fields):
        response = await client.post("/api/userdata/", json=fields, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "ValidationError"

    async def test_subdepartment_requires_department(
        self, client: AsyncClient, admin_headers, subdepartment
    ):
        response = await client.post(
            "/api/userdata/",
            json={"name": "X", "subdepartmentId": subdepartment["id"]},
            headers=admin_headers,
        )
        assert response.status_code == 400

    async def test_duplicate_name(self, client: AsyncClient, admin_headers, worker):
        response = await client.post(
            "/api/userdata/", json={"name": "Ana García"}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["code"] == "DuplicateName"

    async def test_worker_cannot_create(self, client: AsyncClient, worker_headers):
        response = await client.post("/api/userdata/", json={"name": "X"}, headers=worker_headers)
        assert response.status_code == 403

    async def test_manager_scope(self, client: AsyncClient, admin_headers, manager_headers, department):
        entry = await create_entry(
            client, manager_headers, name="Conserjería", departmentId=department["id"]
        )
        assert entry["departmentName"] == "Informática"

        other = await client.post("/api/department/", json={"name": "Rentas"}, headers=admin_headers)
        response = await client.post(
            "/api/userdata/",
            json={"name": "Caja", "departmentId": other.json()["id"]},
            headers=manager_headers,
        )
        assert response.status_code == 403

        # 不能把自己部門的資料移到其他部門
        response = await client.put(
            f"/api/userdata/{entry['id']}",
            json={"departmentId": other.json()["id"], "version": entry["version"]},
            headers=manager_headers,
        )
        assert response.status_code == 403

    async def test_update(self, client: AsyncClient, admin_headers, department):
        entry = await create_entry(client, admin_headers, name="Archivo", departmentId=department["id"])

        response = await client.put(
            f"/api/userdata/{entry['id']}",
            json={"extension": "555", "version": entry["version"]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["extension"] == "555"
        assert data["name"] == "Archivo"
        assert data["version"] == entry["version"] + 1

        marker = (await client.get("/api/userdata/last-update")).json()
        assert marker["version"] == 2

    async def test_update_stale_version(self, client: AsyncClient, admin_headers, department):
        entry = await create_entry(client, admin_headers, name="Archivo", departmentId=department["id"])

        response = await client.put(
            f"/api/userdata/{entry['id']}",
            json={"extension": "555", "version": entry["version"] + 1},
            headers=admin_headers,
        )

        assert response.status_code == 409
        response = await client.get("/api/userdata/worker", headers=admin_headers)
        assert response.json()["users"][0]["extension"] is None

    async def test_update_bumps_linked_account(self, client: AsyncClient, admin_headers, worker):
        entry = worker["user"]["userData"]

        response = await client.put(
            f"/api/userdata/{entry['id']}",
            json={"number": "959 111 222", "version": entry["version"]},
            headers=admin_headers,
        )
        assert response.status_code == 200

        account = (await client.get(f"/api/user/{worker['user']['id']}", headers=admin_headers)).json()
        assert account["version"] == worker["user"]["version"] + 1

    @pytest.mark.parametrize("field", ["name", "show"])
    async def test_update_rejects_null(self, client: AsyncClient, admin_headers, department, field):
        entry = await create_entry(client, admin_headers, name="Archivo", departmentId=department["id"])

        response = await client.put(
            f"/api/userdata/{entry['id']}",
            json={field: None, "version": entry["version"]},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "ValidationError"
        current = (await client.get("/api/userdata/worker", headers=admin_headers)).json()["users"][0]
        assert current["name"] == "Archivo"
        assert current["version"] == entry["version"]

    async def test_account_update_rejects_null_entry_name(self, client: AsyncClient, admin_headers, worker):
        response = await client.put(
            f"/api/user/{worker['user']['id']}",
            json={
                "userAccount": {"version": 0},
                "userData": {"name": None, "version": worker["user"]["userData"]["version"]},
            },
            headers=admin_headers,
        )
        assert response.status_code == 400

    async def test_update_revokes_linked_account_sessions(
        self, client: AsyncClient, admin_headers, worker, db_session
    ):
        """修改帳號綁定的通訊錄資料時，該帳號的 refresh token 失效"""
        login_response = await client.post(
            "/api/auth/login", json={"username": "worker", "password": "workerpass"}
        )
        refresh_token = login_response.cookies.get("refreshToken")
        entry = worker["user"]["userData"]

        response = await client.put(
            f"/api/userdata/{entry['id']}",
            json={"extension": "99", "version": entry["version"]},
            headers=admin_headers,
        )
        assert response.status_code == 200

        remaining = await db_session.scalar(
            select(func.count(RefreshToken.id)).where(RefreshToken.user_id == worker["user"]["id"])
        )
        assert remaining == 0

        response = await client.post("/api/auth/refresh", headers={"Cookie": f"refreshToken={refresh_token}"})
        assert response.status_code == 401

    async def test_delete(self, client: AsyncClient, admin_headers, department):
        entry = await create_entry(client, admin_headers, name="Archivo", departmentId=department["id"])

        response = await client.delete(f"/api/userdata/{entry['id']}?version=3", headers=admin_headers)
        assert response.status_code == 409

        response = await client.delete(
            f"/api/userdata/{entry['id']}?version={entry['version']}", headers=admin_headers
        )
        assert response.status_code == 200

        response = await client.get("/api/userdata/worker", headers=admin_headers)
        assert response.json()["users"] == []

    async def test_delete_missing(self, client: AsyncClient, admin_headers):
        response = await client.delete("/api/userdata/999?version=0", headers=admin_headers)
        assert response.status_code == 404
