from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..schemas import CreateReviewRequest, ReviewOut
from ..security import CurrentUser, get_current_user
from ..services import reviews

router = APIRouter()


@router.post("/reviews")
async def create_review(
    data: CreateReviewRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    review = await reviews.create_review(db, user, data)
    return {"success": True, "review": ReviewOut.model_validate(review)}


@router.get("/reviews")
async def list_reviews(
    equipment_id: str | None = Query(None),
    operator_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    rows = await reviews.list_reviews(db, equipment_id=equipment_id, operator_id=operator_id)
    out = []
    for review, reviewer_name in rows:
        item = ReviewOut.model_validate(review)
        item.reviewer_name = reviewer_name
        out.append(item)
    return {"success": True, "reviews": out}
