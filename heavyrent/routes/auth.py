from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..schemas import Login, ProfileOut, ProfileUpdate, PublicProfileOut, Register, TokenResponse
from ..security import CurrentUser, close_session, get_current_user
from ..services import accounts

router = APIRouter()


@router.post("/auth/register")
async def register(data: Register, db: AsyncSession = Depends(get_db)):
    profile = await accounts.register(db, data)
    return {"success": True, "message": "User registered", "profile": ProfileOut.model_validate(profile)}


@router.post("/auth/login")
async def login(data: Login, db: AsyncSession = Depends(get_db)):
    token, session, profile = await accounts.login(db, data)
    token_out = TokenResponse(
        access_token=token,
        expires_at=session.expires_at,
        profile=ProfileOut.model_validate(profile),
    )
    return {"success": True, **token_out.model_dump()}


@router.post("/auth/logout")
async def logout(user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await close_session(db, user.session_id)
    return {"success": True, "message": "Signed out"}


@router.get("/auth/me")
async def me(user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    profile = await accounts.get_profile(db, user.profile_id)
    return {"success": True, "profile": ProfileOut.model_validate(profile)}


@router.get("/profiles/{profile_id}")
async def get_profile(profile_id: str, db: AsyncSession = Depends(get_db)):
    profile = await accounts.get_profile(db, profile_id)
    return {"success": True, "profile": PublicProfileOut.model_validate(profile)}


@router.patch("/profiles/me")
async def update_profile(
    data: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    profile = await accounts.update_profile(db, user, data)
    return {"success": True, "profile": ProfileOut.model_validate(profile)}
