# shopagenda/crud/shop.py

from __future__ import annotations
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shopagenda.core.errors import NotFound
from shopagenda.db.models.shop import Customer, Shop


async def get_shop(db: AsyncSession, shop_id: int) -> Optional[Shop]:
    return await db.get(Shop, shop_id)


async def require_shop(db: AsyncSession, shop_id: int) -> Shop:
    shop = await get_shop(db, shop_id)
    if shop is None:
        raise NotFound("Shop not found")
    return shop


async def get_customer(db: AsyncSession, customer_id: Optional[int]) -> Optional[Customer]:
    if customer_id is None:
        return None
    return await db.get(Customer, customer_id)
