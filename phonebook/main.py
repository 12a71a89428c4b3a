"""FastAPI 應用程式主入口"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from phonebook.api import api_router  # 導入 API 路由
from phonebook.config import settings
from phonebook.core.database import AsyncSessionLocal, close_db, init_db
from phonebook.core.exceptions import register_exception_handlers
from phonebook.services.bootstrap import bootstrap
from phonebook.services.log_service import LogService, TicketAuditLog
from phonebook.services.mailer import MailService


def build_services(app: FastAPI) -> LogService:
    """建立具有生命週期的服務並掛在 app.state 上"""
    log_service = LogService(settings.LOG_DIR, settings.LOG_MAX_FILES)
    log_service.start()

    app.state.log_service = log_service
    app.state.ticket_audit = TicketAuditLog(str(Path(settings.LOG_DIR) / settings.TICKET_AUDIT_FILE))
    app.state.mail_service = MailService(
        log_service,
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        use_tls=settings.SMTP_USE_TLS,
        sender=settings.MAIL_FROM,
        subject=settings.MAIL_SUBJECT,
    )
    app.state.session_factory = AsyncSessionLocal
    return log_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """應用程式生命週期管理"""
    log_service = build_services(app)

    # 啟動時初始化資料庫；失敗時以代碼 1 結束行程
    try:
        await init_db()
        async with app.state.session_factory() as session:
            await bootstrap(session, log_service)
    except Exception as e:
        print(f"❌ 資料庫初始化失敗: {e}")
        log_service.critical(f"Error inicializando la base de datos: {e}")
        raise SystemExit(1)

    print("✅ 資料庫連線已初始化")
    log_service.info("Base de datos sincronizada correctamente")

    yield

    # 關閉時清理資料庫連線
    await log_service.shutdown()
    await close_db()
    print("✅ 資料庫連線已關閉")


# 建立 FastAPI 應用程式
app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Listín telefónico municipal - API",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan  # 添加生命週期管理
)

# 設定 CORS（refresh token 走 cookie，需要 credentials）
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# 註冊 API 路由
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """根端點"""
    return {
        "message": "Listin Telefonico API",
        "version": "1.0.0",
        "status": "running"
    }


def run():
    """以 uvicorn 啟動（phonebook-server 指令）"""
    import uvicorn
    uvicorn.run(
        "phonebook.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run()
