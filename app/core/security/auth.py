from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt

from app.core.config import settings


def create_access_token(
    user_id,
    email: Optional[str] = None,
    scopes: Optional[list[str]] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Создает JWT токен для пользователя
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload = {
        "user_id": str(user_id),
        "scopes": scopes or ["user"],
        "exp": expire
    }
    if email:
        payload["sub"] = email

    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict:
    """Raises jose.JWTError on a bad signature or an expired token"""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
