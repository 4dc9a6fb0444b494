from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from quizroom.core.config import settings
from quizroom.core.errors import Unauthenticated
from quizroom.db.session import get_db
from quizroom.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token")


def user_id_from_token(token: Optional[str]) -> int:
    if not token:
        raise Unauthenticated("No authentication token provided")

    payload = decode_access_token(token)
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        raise Unauthenticated("Token has no valid subject")


async def get_user_from_token(db: AsyncSession, token: Optional[str]) -> User:
    user = await db.get(User, user_id_from_token(token))
    if not user:
        raise Unauthenticated("User not found")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    token = credentials.credentials if credentials else None
    return await get_user_from_token(db, token)
