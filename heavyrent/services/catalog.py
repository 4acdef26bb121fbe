import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import config
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..geo import within_radius
from ..models import Equipment, EquipmentStatus, Profile, Role
from ..rbac import require_profile_role
from ..schemas import CatalogFilters, EquipmentCreate, EquipmentUpdate
from ..security import CurrentUser

logger = logging.getLogger(__name__)


@dataclass
class CatalogItem:
    equipment: Equipment
    owner: Profile
    distance_km: float | None = None


@dataclass
class CatalogPage:
    items: list[CatalogItem]
    total: int
    page: int
    limit: int

    @property
    def has_more(self) -> bool:
        return self.total > self.page * self.limit


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filtered_query(filters: CatalogFilters):
    stmt = select(Equipment, Profile).join(Profile, Profile.id == Equipment.owner_id)

    if filters.category:
        stmt = stmt.where(Equipment.category == filters.category)
    if filters.city:
        stmt = stmt.where(Equipment.city.ilike(f"%{_escape_like(filters.city.strip())}%", escape="\\"))
    if filters.min_price is not None:
        stmt = stmt.where(Equipment.daily_rate >= filters.min_price)
    if filters.max_price is not None:
        stmt = stmt.where(Equipment.daily_rate <= filters.max_price)
    if filters.available:
        stmt = stmt.where(Equipment.status == EquipmentStatus.AVAILABLE.value)

    return stmt


async def list_available(db: AsyncSession, filters: CatalogFilters) -> CatalogPage:
    """Filtered, paginated catalog listing joined with the owner's profile.

    A radius search is applied in Python after the SQL filters; listings
    that never received coordinates stay in the result and sort last.
    """
    stmt = _filtered_query(filters)
    offset = (filters.page - 1) * filters.limit

    if not filters.geo:
        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await db.execute(count_stmt)).scalar_one()

        res = await db.execute(
            stmt.order_by(Equipment.created_at.desc(), Equipment.id).offset(offset).limit(filters.limit)
        )
        items = [CatalogItem(equipment=eq, owner=owner) for eq, owner in res.all()]
        return CatalogPage(items=items, total=total, page=filters.page, limit=filters.limit)

    radius = filters.radius or config.DEFAULT_SEARCH_RADIUS_KM
    res = await db.execute(stmt.order_by(Equipment.id))

    matched = []
    for eq, owner in res.all():
        inside, distance = within_radius(filters.lat, filters.lng, eq.latitude, eq.longitude, radius)
        if not inside:
            continue
        matched.append(
            CatalogItem(
                equipment=eq,
                owner=owner,
                distance_km=round(distance, 2) if distance is not None else None,
            )
        )

    matched.sort(key=lambda item: (item.distance_km is None, item.distance_km or 0.0))
    return CatalogPage(
        items=matched[offset:offset + filters.limit],
        total=len(matched),
        page=filters.page,
        limit=filters.limit,
    )


async def get_equipment(db: AsyncSession, equipment_id: str) -> CatalogItem:
    res = await db.execute(
        select(Equipment, Profile)
        .join(Profile, Profile.id == Equipment.owner_id)
        .where(Equipment.id == equipment_id)
    )
    row = res.one_or_none()
    if not row:
        raise NotFoundError("Equipment not found")
    return CatalogItem(equipment=row[0], owner=row[1])


async def create_equipment(db: AsyncSession, caller: CurrentUser, data: EquipmentCreate) -> CatalogItem:
    await require_profile_role(db, caller.profile_id, [Role.OPERATOR, Role.ADMIN])

    equipment = Equipment(
        owner_id=caller.profile_id,
        name=data.name.strip(),
        category=data.category.strip(),
        type=data.type.strip(),
        description=data.description,
        daily_rate=data.daily_rate,
        city=data.city.strip(),
        address=data.address.strip(),
        latitude=data.latitude,
        longitude=data.longitude,
        status=EquipmentStatus.AVAILABLE.value,
        specifications=dict(data.specifications),
        images=list(data.images),
    )
    db.add(equipment)
    await db.commit()

    logger.info("equipment %s listed by %s", equipment.id, caller.profile_id)
    return await get_equipment(db, equipment.id)


async def update_equipment(
    db: AsyncSession, caller: CurrentUser, equipment_id: str, data: EquipmentUpdate
) -> CatalogItem:
    item = await get_equipment(db, equipment_id)
    equipment = item.equipment

    if equipment.owner_id != caller.profile_id:
        raise ForbiddenError("Only the equipment owner can update this listing")

    changes = data.model_dump(exclude_unset=True)
    if "status" in changes and changes["status"] is not None:
        changes["status"] = EquipmentStatus(changes["status"]).value

    lat = changes.get("latitude", equipment.latitude)
    lng = changes.get("longitude", equipment.longitude)
    if (lat is None) != (lng is None):
        raise ValidationError(
            "latitude and longitude must be provided together",
            details=[{"field": "latitude", "message": "latitude and longitude must be provided together"}],
        )

    for key, value in changes.items():
        if value is None and key not in ("description", "latitude", "longitude"):
            continue
        setattr(equipment, key, value)

    await db.commit()
    return await get_equipment(db, equipment_id)
