"""
tournament_hub/rbac.py
Authentication and role checks

JWT access tokens (python-jose) carry the user id in "sub". Passwords are
hashed with passlib bcrypt. Banned profiles are refused at login and on
every authenticated request.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.config.settings import settings
from tournament_hub.database import get_db
from tournament_hub.errors import AuthError, ForbiddenError, ErrorCode
from tournament_hub.orm.user import User

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

# ================= PASSWORDS =================

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


# bcrypt blocks the event loop; hash in the default executor
async def hash_password_async(password: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, hash_password, password)


async def verify_password_async(password: str, password_hash: str) -> bool:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, verify_password, password, password_hash)

# ================= TOKEN UTILS =================

def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token for a user id"""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": user_id,
        "exp": expire,
        "type": ACCESS_TOKEN_TYPE,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate JWT token"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def ensure_not_banned(user: User) -> None:
    if user.profile is not None and user.profile.is_banned:
        logger.warning(f"Banned user {user.id} refused")
        raise AuthError("Your account has been banned", code=ErrorCode.ACCOUNT_BANNED)

# ================= AUTH DEPENDENCIES =================

async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to a user.
    401 if the token is missing, invalid or expired, or the user is banned.
    """
    if not token:
        raise AuthError()

    payload = decode_token(token)
    if not payload or payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
        raise AuthError("Invalid or expired token", code=ErrorCode.AUTH_INVALID)

    result = await db.execute(select(User).where(User.id == payload["sub"]))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthError("Invalid or expired token", code=ErrorCode.AUTH_INVALID)

    ensure_not_banned(user)
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """403 unless the user holds the admin role"""
    if not current_user.is_admin:
        logger.warning(f"Access denied: user {current_user.id} attempted an admin action")
        raise ForbiddenError("Admin access required", code=ErrorCode.ADMIN_REQUIRED)
    return current_user


def client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"
