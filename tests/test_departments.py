"""
部門與子部門 API 測試
"""
import pytest
from httpx import AsyncClient


@pytest.mark.api
class TestDepartments:
    """部門管理測試"""

    async def test_create_department(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/department/", json={"name": "Informática"}, headers=admin_headers
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Informática"
        assert isinstance(data["id"], int)

    async def test_duplicate_department(self, client: AsyncClient, admin_headers, department):
        response = await client.post(
            "/api/department/", json={"name": "Informática"}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["code"] == "DuplicateName"

    async def test_empty_name_rejected(self, client: AsyncClient, admin_headers):
        response = await client.post("/api/department/", json={"name": ""}, headers=admin_headers)
        assert response.status_code == 400

    async def test_list_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/department/")
        assert response.status_code == 401

    async def test_list_flat(self, client: AsyncClient, admin_headers, subdepartment):
        response = await client.get("/api/department/", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == [{"id": subdepartment["departmentId"], "name": "Informática"}]

    async def test_list_nested(self, client: AsyncClient, admin_headers, department, subdepartment):
        response = await client.get("/api/department/?nested=true", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["subdepartments"] == [
            {"id": subdepartment["id"], "name": "Redes", "departmentId": department["id"]}
        ]

    async def test_get_missing(self, client: AsyncClient, admin_headers):
        response = await client.get("/api/department/999", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "NotFound"

    async def test_update(self, client: AsyncClient, admin_headers, department):
        response = await client.put(
            f"/api/department/{department['id']}",
            json={"name": "Informática y Sistemas"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Informática y Sistemas"

    async def test_update_to_existing_name(self, client: AsyncClient, admin_headers, department):
        other = await client.post("/api/department/", json={"name": "Rentas"}, headers=admin_headers)

        response = await client.put(
            f"/api/department/{other.json()['id']}",
            json={"name": "Informática"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    async def test_worker_cannot_create(self, client: AsyncClient, worker_headers):
        response = await client.post(
            "/api/department/", json={"name": "Cultura"}, headers=worker_headers
        )
        assert response.status_code == 403

    async def test_delete_cascades_and_unlinks(
        self, client: AsyncClient, admin_headers, department, subdepartment, worker
    ):
        """刪除部門：子部門一併刪除，帳號與通訊錄資料的部門設為 NULL"""
        response = await client.delete(f"/api/department/{department['id']}", headers=admin_headers)
        assert response.status_code == 200

        response = await client.get(
            f"/api/subdepartment/{subdepartment['id']}", headers=admin_headers
        )
        assert response.status_code == 404

        user_id = worker["user"]["id"]
        response = await client.get(f"/api/user/{user_id}", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["departmentId"] is None
        assert data["userData"]["departmentId"] is None


@pytest.mark.api
class TestSubDepartments:
    """子部門管理測試"""

    async def test_duplicate_under_same_department(
        self, client: AsyncClient, admin_headers, department, subdepartment
    ):
        response = await client.post(
            "/api/subdepartment/",
            json={"name": "Redes", "departmentId": department["id"]},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "DuplicateName"

    async def test_same_name_under_other_department(
        self, client: AsyncClient, admin_headers, subdepartment
    ):
        other = await client.post("/api/department/", json={"name": "Urbanismo"}, headers=admin_headers)

        response = await client.post(
            "/api/subdepartment/",
            json={"name": "Redes", "departmentId": other.json()["id"]},
            headers=admin_headers,
        )
        assert response.status_code == 201

    async def test_unknown_department(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/subdepartment/",
            json={"name": "Redes", "departmentId": 999},
            headers=admin_headers,
        )
        assert response.status_code == 400

    async def test_list_by_department(
        self, client: AsyncClient, admin_headers, department, subdepartment
    ):
        response = await client.get(
            f"/api/subdepartment/department/{department['id']}", headers=admin_headers
        )

        assert response.status_code == 200
        assert [s["name"] for s in response.json()] == ["Redes"]

    async def test_update_and_delete(self, client: AsyncClient, admin_headers, subdepartment):
        response = await client.put(
            f"/api/subdepartment/{subdepartment['id']}",
            json={"name": "Sistemas"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Sistemas"

        response = await client.delete(
            f"/api/subdepartment/{subdepartment['id']}", headers=admin_headers
        )
        assert response.status_code == 200

        response = await client.get("/api/subdepartment/", headers=admin_headers)
        assert response.json() == []


@pytest.mark.api
class TestDirectoryMarker:
    """部門異動會改變公開通訊錄，需遞增全域更新標記"""

    async def marker_version(self, client: AsyncClient) -> int:
        return (await client.get("/api/userdata/last-update")).json()["version"]

    async def test_rename_department(self, client: AsyncClient, admin_headers, department):
        before = await self.marker_version(client)

        await client.put(
            f"/api/department/{department['id']}", json={"name": "Sistemas"}, headers=admin_headers
        )
        assert await self.marker_version(client) == before + 1

    async def test_delete_department(self, client: AsyncClient, admin_headers, department):
        before = await self.marker_version(client)

        await client.delete(f"/api/department/{department['id']}", headers=admin_headers)
        assert await self.marker_version(client) == before + 1

    async def test_subdepartment_changes(self, client: AsyncClient, admin_headers, subdepartment):
        before = await self.marker_version(client)

        await client.put(
            f"/api/subdepartment/{subdepartment['id']}", json={"name": "Soporte"}, headers=admin_headers
        )
        await client.delete(f"/api/subdepartment/{subdepartment['id']}", headers=admin_headers)
        assert await self.marker_version(client) == before + 2
