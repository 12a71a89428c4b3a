"""Token 服務

- Access token：HS256、15 分鐘、``JWT_ACCESS_SECRET``
- Refresh token：HS256、記住我 7 天否則 1 小時、``JWT_REFRESH_SECRET``；
  JWT 內的 ``jti`` 以密文 + 雜湊存在 ``refresh_tokens``，刪除資料列即撤銷。
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from phonebook.config import settings
from phonebook.core.crypto import hash_value
from phonebook.core.exceptions import InvalidTokenError
from phonebook.models import RefreshToken, UserAccount

ACCESS = "access"
REFRESH = "refresh"


def _as_utc(value: datetime) -> datetime:
    # SQLite 取回的時間沒有時區資訊，一律視為 UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _secret(kind: str) -> str:
    return settings.JWT_ACCESS_SECRET if kind == ACCESS else settings.JWT_REFRESH_SECRET


def user_claims(user: UserAccount, remember: bool = False) -> dict:
    """組成 access token 內的使用者資訊"""
    return {
        "sub": str(user.id),
        "id": user.id,
        "username": user.username,
        "usertype": user.usertype.value,
        "departmentId": user.department_id,
        "remember": remember,
    }


def issue_access_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    建立 JWT Access Token

    Args:
        claims: 要編碼的使用者資訊
        expires_delta: 過期時間（預設使用設定檔中的值）
    """
    to_encode = claims.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "type": ACCESS})
    return jwt.encode(to_encode, _secret(ACCESS), algorithm=settings.JWT_ALGORITHM)


def refresh_lifetime(remember: bool) -> timedelta:
    if remember:
        return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return timedelta(minutes=settings.REFRESH_TOKEN_SHORT_EXPIRE_MINUTES)


async def issue_refresh_token(db: AsyncSession, user_id: int, remember: bool = False) -> str:
    """建立 refresh token 並保存其 jti（呼叫端負責 commit）"""
    jti = uuid.uuid4().hex
    expire = datetime.now(timezone.utc) + refresh_lifetime(remember)

    db.add(RefreshToken(
        token=jti,
        token_hash=hash_value(jti),
        expire_date=expire,
        user_id=user_id,
    ))
    await db.flush()

    payload = {
        "sub": str(user_id),
        "jti": jti,
        "remember": remember,
        "type": REFRESH,
        "exp": expire,
    }
    return jwt.encode(payload, _secret(REFRESH), algorithm=settings.JWT_ALGORITHM)


def verify(token: str, kind: str = ACCESS) -> dict:
    """
    驗證 token 並回傳 claims

    Raises:
        InvalidTokenError: 簽章錯誤、過期或類型不符
    """
    try:
        claims = jwt.decode(token, _secret(kind), algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise InvalidTokenError("Token inválido o expirado")

    if claims.get("type") != kind or claims.get("sub") is None:
        raise InvalidTokenError("Token inválido o expirado")
    return claims


def decode_unsafe(token: str) -> Optional[dict]:
    """不驗證簽章解出 claims，只用於記錄是哪個使用者的 token 失敗"""
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


async def revoke_user_tokens(db: AsyncSession, user_id: int) -> None:
    """刪除使用者所有 refresh token（呼叫端負責 commit）"""
    await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))


async def rotate(db: AsyncSession, refresh_token: str) -> tuple[str, UserAccount]:
    """
    以 refresh token 換發新的 access token

    Returns:
        tuple: (access_token, user)

    Raises:
        InvalidTokenError: token 無效、已撤銷或已過期
    """
    claims = verify(refresh_token, REFRESH)
    jti = claims.get("jti")
    if not jti:
        raise InvalidTokenError("Token inválido o expirado")

    result = await db.execute(
        select(RefreshToken).where(RefreshToken.token_hash == hash_value(jti))
    )
    row = result.scalar_one_or_none()
    if row is None or row.user_id != int(claims["sub"]):
        raise InvalidTokenError("Token inválido o expirado")

    if _as_utc(row.expire_date) <= datetime.now(timezone.utc):
        await db.delete(row)
        await db.commit()
        raise InvalidTokenError("Token inválido o expirado")

    user = await db.get(UserAccount, row.user_id)
    if user is None:
        raise InvalidTokenError("Token inválido o expirado")

    access_token = issue_access_token(user_claims(user, bool(claims.get("remember"))))
    return access_token, user
