from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import or_, select

from fulfillment_api.core.pagination import PageRequest
from fulfillment_api.db.models.orders import (
    FinancialStatusHistory,
    Order,
    OrderItem,
    OrderStatusHistory,
)
from fulfillment_api.db.models.platform import Company
from fulfillment_api.db.models.pricing import OrderPrice
from .base import BaseRepository

ORDER_SORT_FIELDS = (
    "order_id",
    "order_status",
    "financial_status",
    "event_start_date",
    "created_at",
    "updated_at",
)


def _as_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


class OrderRepository(BaseRepository):
    """Orders, their items, price snapshots and status history."""

    SORTABLE = {name: getattr(Order, name) for name in ORDER_SORT_FIELDS}

    async def get(self, platform_id: UUID, ref: str | UUID) -> Optional[Order]:
        """Load an order by UUID or by its human-readable ORD-... id, refreshing relationships."""
        uid = _as_uuid(str(ref))
        cond = Order.id == uid if uid else Order.order_id == str(ref)
        stmt = (
            select(Order)
            .where(Order.platform_id == platform_id, cond)
            .execution_options(populate_existing=True)
        )
        return await self.scalar_one_or_none(stmt)

    def _filtered(
        self,
        platform_id: UUID,
        *,
        search: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
    ):
        stmt = select(Order).where(Order.platform_id == platform_id)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Order.order_id.ilike(like),
                    Order.venue_name.ilike(like),
                    Order.contact_name.ilike(like),
                )
            )
        for field, value in (filters or {}).items():
            if value is not None:
                stmt = stmt.where(getattr(Order, field) == value)
        return stmt

    async def list_orders(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Sequence[Order], int]:
        stmt = self._filtered(platform_id, search=search, filters=filters)
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def export_rows(
        self,
        platform_id: UUID,
        *,
        search: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Flat rows (order + company name + final total) for file exports."""
        base = self._filtered(platform_id, search=search, filters=filters).subquery()
        stmt = (
            select(
                base.c.order_id,
                Company.name.label("company"),
                base.c.order_status,
                base.c.financial_status,
                base.c.venue_name,
                base.c.event_start_date,
                base.c.event_end_date,
                base.c.calculated_totals,
                OrderPrice.final_total,
                base.c.created_at,
            )
            .join(Company, Company.id == base.c.company_id)
            .outerjoin(OrderPrice, OrderPrice.id == base.c.order_pricing_id)
            .order_by(base.c.created_at.desc())
        )
        rows = []
        for r in (await self.execute(stmt)).all():
            totals = r.calculated_totals or {}
            rows.append(
                {
                    "order_id": r.order_id,
                    "company": r.company,
                    "order_status": r.order_status,
                    "financial_status": r.financial_status,
                    "venue": r.venue_name,
                    "event_start": r.event_start_date,
                    "event_end": r.event_end_date,
                    "volume_m3": totals.get("volume"),
                    "weight_kg": totals.get("weight"),
                    "final_total": float(r.final_total) if r.final_total is not None else None,
                    "created_at": r.created_at,
                }
            )
        return rows

    async def latest_order_id_for_day(self, platform_id: UUID, day: date) -> Optional[str]:
        prefix = f"ORD-{day.strftime('%Y%m%d')}-"
        stmt = (
            select(Order.order_id)
            .where(Order.platform_id == platform_id, Order.order_id.like(f"{prefix}%"))
            .order_by(Order.order_id.desc())
            .limit(1)
        )
        return await self.scalar_one_or_none(stmt)

    async def create_price(self, platform_id: UUID, fields: Dict[str, Any]) -> OrderPrice:
        return await self.save(OrderPrice(platform_id=platform_id, **fields))

    async def update_price(self, price: OrderPrice, fields: Dict[str, Any]) -> OrderPrice:
        for field, value in fields.items():
            setattr(price, field, value)
        return await self.save(price)

    async def create_order(self, platform_id: UUID, fields: Dict[str, Any]) -> Order:
        order = Order(platform_id=platform_id, **fields)
        self.session.add(order)
        await self.session.flush()
        return order

    async def add_items(self, order: Order, items: List[Dict[str, Any]]) -> None:
        await self.add_all(
            OrderItem(platform_id=order.platform_id, order_id=order.id, **fields) for fields in items
        )
        await self.session.flush()

    async def get_item(self, order: Order, item_id: UUID) -> Optional[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order.id, OrderItem.id == item_id)
        return await self.scalar_one_or_none(stmt)

    async def update_item(self, item: OrderItem, fields: Dict[str, Any]) -> OrderItem:
        for field, value in fields.items():
            setattr(item, field, value)
        return await self.save(item)

    async def delete_item(self, item: OrderItem) -> None:
        await self.remove(item)

    async def list_items(self, order_id: UUID) -> List[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id).execution_options(populate_existing=True)
        return list((await self.scalars(stmt)).all())

    async def update_order(self, order: Order, fields: Dict[str, Any]) -> Order:
        for field, value in fields.items():
            setattr(order, field, value)
        self.session.add(order)
        await self.session.flush()
        return order

    async def add_status_history(
        self, order: Order, status: str, notes: Optional[str], user_id: Optional[UUID]
    ) -> None:
        await self.add(
            OrderStatusHistory(
                platform_id=order.platform_id, order_id=order.id, status=status, notes=notes, updated_by=user_id
            )
        )
        await self.session.flush()

    async def add_financial_history(
        self, order: Order, status: str, notes: Optional[str], user_id: Optional[UUID]
    ) -> None:
        await self.add(
            FinancialStatusHistory(
                platform_id=order.platform_id, order_id=order.id, status=status, notes=notes, updated_by=user_id
            )
        )
        await self.session.flush()

    async def list_status_history(self, order_id: UUID) -> List[OrderStatusHistory]:
        stmt = (
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.timestamp.desc())
        )
        return list((await self.scalars(stmt)).all())
