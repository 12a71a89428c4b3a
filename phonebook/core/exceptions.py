"""應用程式錯誤類型

路由中直接 raise，由 ``register_exception_handlers`` 轉成
``{"error": 訊息, "code": 代碼}`` 的 JSON 回應。
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppError(Exception):
    """所有可預期錯誤的基礎類別"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "InternalError"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(AppError):
    """欄位缺漏、格式錯誤、部門/子部門不一致"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "ValidationError"


class DuplicateNameError(ValidationError):
    """名稱（雜湊）重複"""
    code = "DuplicateName"


class AuthError(AppError):
    """缺少 Token、Token 無效或過期、帳密錯誤"""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AuthError"


class InvalidTokenError(AuthError):
    """簽章錯誤、過期或 token 類型不符"""
    code = "InvalidOrExpiredToken"


class PermissionDeniedError(AppError):
    """角色或擁有權檢查失敗"""
    status_code = status.HTTP_403_FORBIDDEN
    code = "PermissionDenied"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NotFound"


class VersionConflictError(AppError):
    """送出的 version 與資料庫不一致（樂觀鎖衝突）"""
    status_code = status.HTTP_409_CONFLICT
    code = "VersionConflict"


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "InternalError"


def _actor_id(request: Request):
    principal = getattr(request.state, "principal", None)
    return principal.id if principal is not None else None


def register_exception_handlers(app: FastAPI) -> None:
    """註冊錯誤處理器"""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            log_service = getattr(request.app.state, "log_service", None)
            if log_service is not None:
                log_service.error(
                    f"{request.method} {request.url.path} por el usuario con id "
                    f"{_actor_id(request)}: {exc.message}"
                )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "code": exc.code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ())[1:])
            message = first.get("msg", "Datos no válidos")
            if field:
                message = f"{field}: {message}"
        else:
            message = "Datos no válidos"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": message, "code": ValidationError.code},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log_service = getattr(request.app.state, "log_service", None)
        if log_service is not None:
            log_service.error(
                f"Error en {request.method} {request.url.path} por el usuario con id "
                f"{_actor_id(request)}"
            )
            log_service.error(f"Error - {exc}")
        # 詳細錯誤只寫入日誌，不回傳給客戶端
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Error interno del servidor", "code": InternalError.code},
        )
