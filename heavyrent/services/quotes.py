import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import CustomQuote, Role
from ..rbac import require_profile_role
from ..schemas import CreateQuoteRequest
from ..security import CurrentUser

logger = logging.getLogger(__name__)


async def create_quote(db: AsyncSession, caller: CurrentUser | None, data: CreateQuoteRequest) -> CustomQuote:
    quote = CustomQuote(
        client_id=caller.profile_id if caller else None,
        name=data.name,
        phone=data.phone,
        email=data.email,
        equipment_type=data.equipment_type.strip(),
        project_description=data.project_description.strip(),
        location=data.location.strip(),
        duration=data.duration.strip(),
        budget_range=data.budget_range,
        status="pending",
    )
    db.add(quote)
    await db.commit()

    logger.info("custom quote %s received for %s", quote.id, quote.equipment_type)
    return quote


async def list_quotes(db: AsyncSession, caller: CurrentUser) -> list[CustomQuote]:
    await require_profile_role(db, caller.profile_id, [Role.ADMIN])
    res = await db.execute(select(CustomQuote).order_by(CustomQuote.created_at.desc()))
    return list(res.scalars().all())
