"""
測試配置和 Fixtures
提供測試所需的共用資源和工具
"""
import os
import tempfile
from typing import AsyncGenerator, Optional

# 必須在匯入 phonebook 之前設定，Settings 於匯入時讀取環境變數
TEST_LOG_DIR = tempfile.mkdtemp(prefix="phonebook-test-logs-")

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_phonebook.db"
os.environ["JWT_ACCESS_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["AES_SECRET"] = "0123456789abcdef0123456789abcdef"
os.environ["ADMIN_USER"] = "superadmin"
os.environ["ADMIN_PASS"] = "superpass"
os.environ["ADMIN_EMAIL"] = "superadmin@example.com"
os.environ["LOG_DIR"] = TEST_LOG_DIR
os.environ["SEED_DEFAULT_DEPARTMENTS"] = "false"
os.environ.pop("SMTP_HOST", None)

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from phonebook.core.database import AsyncSessionLocal, Base, engine
from phonebook.main import app

SUPERADMIN = {"username": "superadmin", "password": "superpass"}


# ===== 資料庫 / 客戶端 Fixtures =====

@pytest.fixture(scope="function")
async def client() -> AsyncGenerator[AsyncClient, None]:
    """
    異步測試客戶端

    透過 lifespan 建表並建立初始超級管理員，測試結束後刪除所有表
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(client) -> AsyncGenerator[AsyncSession, None]:
    """提供資料庫 Session（與 API 共用同一個資料庫）"""
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def log_service(client):
    return app.state.log_service


# ===== 認證工具 =====

def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login(client):
    """登入並回傳完整響應 JSON"""
    async def _login(username: str, password: str, remember: bool = False) -> dict:
        response = await client.post(
            "/api/auth/login",
            json={"username": username, "password": password, "remember": remember},
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _login


@pytest.fixture
async def admin_token(login) -> str:
    """超級管理員 Token"""
    data = await login(SUPERADMIN["username"], SUPERADMIN["password"])
    return data["accessToken"]


@pytest.fixture
def admin_headers(admin_token) -> dict:
    return bearer(admin_token)


# ===== 測試資料 Fixtures =====

@pytest.fixture
async def department(client, admin_headers) -> dict:
    """建立測試部門「Informática」"""
    response = await client.post(
        "/api/department/", json={"name": "Informática"}, headers=admin_headers
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
async def subdepartment(client, admin_headers, department) -> dict:
    """在測試部門下建立子部門「Redes」"""
    response = await client.post(
        "/api/subdepartment/",
        json={"name": "Redes", "departmentId": department["id"]},
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def create_account(client, admin_headers):
    """以超級管理員建立帳號，回傳新帳號 ID"""
    async def _create(
        username: str,
        password: str = "secret",
        usertype: str = "WORKER",
        department_id: Optional[int] = None,
        user_data: Optional[dict] = None,
        mail: Optional[str] = None,
    ) -> int:
        body = {
            "userAccount": {
                "username": username,
                "password": password,
                "usertype": usertype,
                "departmentId": department_id,
                "mail": mail,
            }
        }
        if user_data is not None:
            body["userData"] = user_data
        response = await client.post("/api/user/", json=body, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()["id"]

    return _create


@pytest.fixture
async def worker(create_account, login, department) -> dict:
    """部門內的一般員工（附通訊錄資料），回傳登入資料"""
    await create_account(
        "worker",
        password="workerpass",
        department_id=department["id"],
        user_data={
            "name": "Ana García",
            "extension": "1234",
            "number": "+34 959 000 000",
            "email": "ana@example.com",
            "departmentId": department["id"],
        },
    )
    return await login("worker", "workerpass")


@pytest.fixture
def worker_headers(worker) -> dict:
    return bearer(worker["accessToken"])


@pytest.fixture
async def manager(create_account, login, department) -> dict:
    """部門管理者（DEPARTMENT），回傳登入資料"""
    await create_account(
        "manager",
        password="managerpass",
        usertype="DEPARTMENT",
        department_id=department["id"],
    )
    return await login("manager", "managerpass")


@pytest.fixture
def manager_headers(manager) -> dict:
    return bearer(manager["accessToken"])
