"""應用程式配置管理"""

from typing import List, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """應用程式設定"""

    # 應用設定
    APP_NAME: str = "Listín Telefónico"
    DEBUG: bool = False  # 設為 False 關閉 SQL 日誌
    API_V1_PREFIX: str = "/api"
    PORT: int = 5000

    # JWT：access 與 refresh 使用不同密鑰
    JWT_ACCESS_SECRET: str
    JWT_REFRESH_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7  # remember = True
    REFRESH_TOKEN_SHORT_EXPIRE_MINUTES: int = 60  # remember = False
    REFRESH_COOKIE_NAME: str = "refreshToken"
    COOKIE_SECURE: bool = False

    # 欄位加密（AES-256 需要 32 bytes）
    AES_SECRET: str

    # 資料庫
    DATABASE_URL: str = "sqlite+aiosqlite:///./database/data.db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 40

    # 郵件通知（未設定 SMTP_HOST 時略過寄送）
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 465
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    MAIL_FROM: str = "informatica@localhost"
    MAIL_SUBJECT: str = "Nuevo Ticket en Listin Telefonico"

    # 初始超級管理員
    ADMIN_USER: str = "superadmin"
    ADMIN_PASS: str
    ADMIN_EMAIL: Optional[str] = None
    BOOTSTRAP_ADMIN_ID: int = 1
    SEED_DEFAULT_DEPARTMENTS: bool = False

    # 日誌
    LOG_DIR: str = "./logs"
    LOG_MAX_FILES: int = 30
    TICKET_AUDIT_FILE: str = "tickets.audit"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator("AES_SECRET")
    @classmethod
    def _check_aes_secret(cls, value: str) -> str:
        if len(value.encode("utf-8")) != 32:
            raise ValueError("AES_SECRET must be exactly 32 bytes")
        return value

    @property
    def cors_origins_list(self) -> List[str]:
        """將 CORS_ORIGINS 字串轉換為列表"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


# 建立全域設定實例
settings = Settings()
