from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import Numeric, cast, func, literal_column, select

from fulfillment_api.db.models.billing import Invoice
from fulfillment_api.db.models.orders import Order
from fulfillment_api.db.models.platform import Company
from fulfillment_api.db.models.pricing import OrderPrice
from .base import BaseRepository

TRUNC_UNITS = ("month", "quarter", "year")

_MARGIN_AMOUNT = cast(OrderPrice.margin["amount"].astext, Numeric(12, 2))
_MARGIN_PERCENT = cast(OrderPrice.margin["percent"].astext, Numeric(5, 2))


def _num(value: Any) -> float:
    return float(value) if value is not None else 0.0


class AnalyticsRepository(BaseRepository):
    """
    Revenue and margin aggregates over paid invoices.

    All reports share one filter: orders of the platform (optionally one company)
    whose invoice was paid within [start, end], excluding cancelled orders.
    """

    def _paid_orders(
        self,
        stmt,
        platform_id: UUID,
        start: datetime,
        end: datetime,
        company_id: Optional[UUID] = None,
    ):
        stmt = (
            stmt.select_from(Order)
            .join(Invoice, Invoice.order_id == Order.id)
            .join(OrderPrice, OrderPrice.id == Order.order_pricing_id)
            .where(
                Order.platform_id == platform_id,
                Order.order_status != "CANCELLED",
                Invoice.invoice_paid_at.is_not(None),
                Invoice.invoice_paid_at >= start,
                Invoice.invoice_paid_at <= end,
                OrderPrice.final_total.is_not(None),
            )
        )
        if company_id:
            stmt = stmt.where(Order.company_id == company_id)
        return stmt

    @staticmethod
    def _aggregates():
        return (
            func.coalesce(func.sum(OrderPrice.final_total), 0).label("revenue"),
            func.coalesce(func.sum(_MARGIN_AMOUNT), 0).label("margin"),
            func.coalesce(func.avg(_MARGIN_PERCENT), 0).label("avg_margin_percent"),
            func.count(Order.id).label("order_count"),
        )

    async def totals(
        self, platform_id: UUID, start: datetime, end: datetime, company_id: Optional[UUID] = None
    ) -> Dict[str, Any]:
        stmt = self._paid_orders(select(*self._aggregates()), platform_id, start, end, company_id)
        row = (await self.execute(stmt)).one()
        return {
            "revenue": _num(row.revenue),
            "margin": _num(row.margin),
            "avg_margin_percent": _num(row.avg_margin_percent),
            "order_count": int(row.order_count or 0),
        }

    async def time_series(
        self,
        platform_id: UUID,
        start: datetime,
        end: datetime,
        unit: str,
        company_id: Optional[UUID] = None,
    ) -> List[Dict[str, Any]]:
        """Rows per date_trunc(unit) bucket of invoice_paid_at, evaluated in UTC."""
        if unit not in TRUNC_UNITS:
            raise ValueError(f"Unsupported time unit: {unit}")
        # Inlined literals so the GROUP BY expression matches the SELECT expression.
        bucket = func.date_trunc(
            literal_column(f"'{unit}'"), func.timezone(literal_column("'UTC'"), Invoice.invoice_paid_at)
        ).label("bucket")
        stmt = self._paid_orders(select(bucket, *self._aggregates()), platform_id, start, end, company_id)
        stmt = stmt.group_by(bucket).order_by(bucket)
        return [
            {
                "bucket": row.bucket,
                "revenue": _num(row.revenue),
                "margin": _num(row.margin),
                "avg_margin_percent": _num(row.avg_margin_percent),
                "order_count": int(row.order_count or 0),
            }
            for row in (await self.execute(stmt)).all()
        ]

    async def company_breakdown(
        self, platform_id: UUID, start: datetime, end: datetime
    ) -> List[Dict[str, Any]]:
        stmt = self._paid_orders(
            select(Company.id.label("company_id"), Company.name.label("company_name"), *self._aggregates()),
            platform_id,
            start,
            end,
        )
        stmt = stmt.join(Company, Company.id == Order.company_id).group_by(Company.id, Company.name)
        return [
            {
                "company_id": row.company_id,
                "company_name": row.company_name,
                "revenue": _num(row.revenue),
                "margin": _num(row.margin),
                "avg_margin_percent": _num(row.avg_margin_percent),
                "order_count": int(row.order_count or 0),
            }
            for row in (await self.execute(stmt)).all()
        ]
