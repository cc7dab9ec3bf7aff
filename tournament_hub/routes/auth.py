"""
tournament_hub/routes/auth.py
Registration, login, profile and admin user management
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.config.settings import settings
from tournament_hub.database import get_db
from tournament_hub.errors import AuthError, ConflictError, NotFoundError, ErrorCode, translate_integrity_error
from tournament_hub.orm.user import User, UserRole, Profile, AppRole
from tournament_hub.rbac import (
    create_access_token, get_current_user, require_admin, ensure_not_banned,
    hash_password_async, verify_password_async, client_host
)
from tournament_hub.services.storage import ObjectStore, get_object_store, object_path, read_upload, AVATARS_BUCKET

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

# ================= SCHEMAS =================

class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    username: str = Field(..., min_length=1, max_length=100)
    riot_id: Optional[str] = Field(None, max_length=100)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=1, max_length=100)
    riot_id: Optional[str] = Field(None, max_length=100)
    rank: Optional[str] = Field(None, max_length=50)


class BanRequest(BaseModel):
    is_banned: bool


def user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "roles": sorted(r.role.value for r in user.roles),
        "is_admin": user.is_admin,
        "profile": user.profile.to_dict() if user.profile else None,
    }


async def _load_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", user_id)
    return user

# ================= ROUTES =================

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(data: UserRegister, db: AsyncSession = Depends(get_db)):
    """Create an account with a profile and the 'user' role."""
    email = data.email.lower()

    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("An account with this email already exists")

    user = User(email=email, password_hash=await hash_password_async(data.password))
    roles = [UserRole(role=AppRole.user)]
    if email in settings.admin_emails:
        roles.append(UserRole(role=AppRole.admin))
    user.roles = roles
    user.profile = Profile(username=data.username.strip(), riot_id=data.riot_id)
    db.add(user)

    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise translate_integrity_error(e, conflict_message="An account with this email already exists")

    logger.info(f"User registered: {user.id} ({email})")
    return {
        "success": True,
        "message": "Account created",
        "user": user_payload(user),
        "access_token": create_access_token(user.id),
        "token_type": "bearer",
    }


@router.post("/login")
async def login(data: UserLogin, request: Request, db: AsyncSession = Depends(get_db)):
    """Exchange credentials for an access token. Banned accounts get no token."""
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    user = result.scalar_one_or_none()

    if user is None or not await verify_password_async(data.password, user.password_hash):
        logger.warning(f"Failed login for {data.email} from {client_host(request)}")
        raise AuthError("Invalid email or password", code=ErrorCode.AUTH_INVALID)

    ensure_not_banned(user)

    logger.info(f"User logged in: {user.id}")
    return {
        "access_token": create_access_token(user.id),
        "token_type": "bearer",
        "user": user_payload(user),
    }


@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    return user_payload(current_user)


@router.patch("/me/profile")
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    profile = current_user.profile
    if profile is None:
        raise NotFoundError("Profile", current_user.id)

    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(profile, key, value)
    await db.commit()

    return {"success": True, "message": "Profile updated", "profile": profile.to_dict()}


@router.post("/me/avatar")
async def upload_avatar(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    """Store an avatar in the public bucket and point the profile at it."""
    path = object_path(current_user.id, file.filename)
    await store.upload(AVATARS_BUCKET, path, await read_upload(file))

    profile = current_user.profile
    if profile is None:
        raise NotFoundError("Profile", current_user.id)
    profile.avatar_url = store.public_url(AVATARS_BUCKET, path)
    await db.commit()

    return {"success": True, "message": "Avatar updated", "avatar_url": profile.avatar_url}

# ================= ADMIN =================

@router.get("/users")
async def list_users(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> List[dict]:
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return [user_payload(u) for u in result.scalars().all()]


@router.post("/users/{user_id}/admin")
async def grant_admin(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = await _load_user(db, user_id)
    if user.is_admin:
        raise ConflictError("User is already an admin")

    user.roles.append(UserRole(role=AppRole.admin))
    await db.commit()

    logger.info(f"Admin role granted to {user_id} by {admin.id}")
    return {"success": True, "message": "Admin role granted", "user": user_payload(user)}


@router.patch("/users/{user_id}/ban")
async def set_ban(
    user_id: str,
    data: BanRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        raise NotFoundError("Profile", user_id)

    profile.is_banned = data.is_banned
    await db.commit()

    logger.info(f"User {user_id} {'banned' if data.is_banned else 'unbanned'} by {admin.id}")
    return {"success": True, "message": "User banned" if data.is_banned else "User unbanned", "profile": profile.to_dict()}
