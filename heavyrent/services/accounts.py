import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import AuthError, NotFoundError, ValidationError
from ..models import AuthSession, AuthUser, Profile
from ..schemas import Login, ProfileUpdate, Register
from ..security import CurrentUser, hash_password, open_session, verify_password

logger = logging.getLogger(__name__)


async def register(db: AsyncSession, data: Register) -> Profile:
    result = await db.execute(select(AuthUser).where(AuthUser.email == data.email))
    if result.scalar_one_or_none():
        raise ValidationError(
            "Email already exists",
            details=[{"field": "email", "message": "Email already exists"}],
        )

    user = AuthUser(email=data.email, password=hash_password(data.password))
    db.add(user)
    await db.flush()

    profile = Profile(
        user_id=user.id,
        name=data.name,
        email=data.email,
        phone=data.phone,
        role=data.role,
        rating=0,
        total_reviews=0,
    )
    db.add(profile)
    await db.commit()

    logger.info("registered %s as %s", profile.id, profile.role)
    return profile


async def login(db: AsyncSession, data: Login) -> tuple[str, AuthSession, Profile]:
    result = await db.execute(select(AuthUser).where(AuthUser.email == data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(data.password, user.password):
        raise AuthError("Invalid credentials")

    result = await db.execute(select(Profile).where(Profile.user_id == user.id))
    profile = result.scalar_one_or_none()
    if not profile:
        raise AuthError("No profile exists for this account")

    token, session = await open_session(db, user.id)
    await db.commit()
    return token, session, profile


async def get_profile(db: AsyncSession, profile_id: str) -> Profile:
    result = await db.execute(select(Profile).where(Profile.id == profile_id))
    profile = result.scalar_one_or_none()
    if not profile:
        raise NotFoundError("Profile not found")
    return profile


async def update_profile(db: AsyncSession, caller: CurrentUser, data: ProfileUpdate) -> Profile:
    profile = await get_profile(db, caller.profile_id)

    for key, value in data.model_dump(exclude_unset=True).items():
        if key == "name" and value is None:
            continue
        setattr(profile, key, value)

    await db.commit()
    return profile
