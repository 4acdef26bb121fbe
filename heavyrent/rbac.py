from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import ForbiddenError, NotFoundError
from .models import Profile, Role


async def resolve_role(db: AsyncSession, profile_id: str) -> Role:
    """Single source of a caller's role: the profiles table.

    Roles are never taken from token claims or client-supplied metadata.
    """
    res = await db.execute(select(Profile.role).where(Profile.id == profile_id))
    role = res.scalar_one_or_none()
    if role is None:
        raise NotFoundError("Profile not found")
    return Role(role)


def require_role(role: Role, allowed_roles: list[Role]) -> None:
    if role not in set(allowed_roles):
        raise ForbiddenError("Access forbidden for this role")


async def require_profile_role(db: AsyncSession, profile_id: str, allowed_roles: list[Role]) -> Role:
    role = await resolve_role(db, profile_id)
    require_role(role, allowed_roles)
    return role
