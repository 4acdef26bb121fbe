from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..schemas import CreateQuoteRequest, QuoteOut
from ..security import CurrentUser, get_current_user, get_optional_user
from ..services import quotes

router = APIRouter()


@router.post("/quotes")
async def create_quote(
    data: CreateQuoteRequest,
    user: CurrentUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    quote = await quotes.create_quote(db, user, data)
    return {
        "success": True,
        "quote": QuoteOut.model_validate(quote),
        "message": "Quote request received. Our team will contact you shortly.",
    }


@router.get("/quotes")
async def list_quotes(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await quotes.list_quotes(db, user)
    return {"success": True, "quotes": [QuoteOut.model_validate(q) for q in rows]}
