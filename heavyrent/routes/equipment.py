from datetime import datetime
from decimal import Decimal

import pydantic
from dateutil import parser
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..errors import ValidationError, field_details
from ..schemas import CatalogFilters, EquipmentCreate, EquipmentOut, EquipmentUpdate, OwnerOut
from ..security import CurrentUser, get_current_user
from ..services import catalog
from ..services.bookings import find_conflicts
from ..validators import as_utc

router = APIRouter()


def catalog_filters(
    category: str | None = None,
    city: str | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
    lat: float | None = None,
    lng: float | None = None,
    radius: float | None = None,
    available: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> CatalogFilters:
    try:
        return CatalogFilters(
            category=category,
            city=city,
            min_price=min_price,
            max_price=max_price,
            lat=lat,
            lng=lng,
            radius=radius,
            available=available,
            page=page,
            limit=limit,
        )
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid filters", details=field_details(e.errors()))


def equipment_out(item: catalog.CatalogItem) -> EquipmentOut:
    out = EquipmentOut.model_validate(item.equipment)
    out.owner = OwnerOut.model_validate(item.owner)
    out.distance_km = item.distance_km
    return out


def _parse_instant(value: str, field: str) -> datetime:
    try:
        return as_utc(parser.isoparse(value))
    except (ValueError, OverflowError):
        raise ValidationError(
            "Invalid datetime format",
            details=[{"field": field, "message": "Expected an ISO-8601 timestamp"}],
        )


@router.get("/equipment")
async def list_equipment(
    filters: CatalogFilters = Depends(catalog_filters),
    db: AsyncSession = Depends(get_db),
):
    result = await catalog.list_available(db, filters)
    return {
        "success": True,
        "data": [equipment_out(item) for item in result.items],
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "total": result.total,
            "hasMore": result.has_more,
        },
    }


@router.post("/equipment")
async def create_equipment(
    data: EquipmentCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item = await catalog.create_equipment(db, user, data)
    return {"success": True, "equipment": equipment_out(item)}


@router.get("/equipment/{equipment_id}")
async def get_equipment(equipment_id: str, db: AsyncSession = Depends(get_db)):
    item = await catalog.get_equipment(db, equipment_id)
    return {"success": True, "equipment": equipment_out(item)}


@router.patch("/equipment/{equipment_id}")
async def update_equipment(
    equipment_id: str,
    data: EquipmentUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item = await catalog.update_equipment(db, user, equipment_id, data)
    return {"success": True, "equipment": equipment_out(item)}


@router.get("/equipment/{equipment_id}/availability")
async def check_availability(
    equipment_id: str,
    start: str,
    end: str,
    db: AsyncSession = Depends(get_db),
):
    """
    Reports whether [start, end) is free, with the live bookings that block it.
    """
    ds = _parse_instant(start, "start")
    de = _parse_instant(end, "end")
    if de <= ds:
        raise ValidationError(
            "end must be after start",
            details=[{"field": "end", "message": "end must be after start"}],
        )

    await catalog.get_equipment(db, equipment_id)
    conflicts = await find_conflicts(db, equipment_id, ds, de)
    return {
        "success": True,
        "available": not conflicts,
        "conflicts": [{"start_time": b.start_time, "end_time": b.end_time} for b in conflicts],
    }
