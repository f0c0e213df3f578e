from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

import pandas as pd
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.api.routes.orders import order_filters
from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.repositories.orders import OrderRepository
from fulfillment_api.services.documents import export_dataframe

# PUBLIC_INTERFACE
router = APIRouter(
    prefix="/exports",
    tags=["Exports"],
)

ORDER_EXPORT_COLUMNS = [
    "order_id",
    "company",
    "order_status",
    "financial_status",
    "venue",
    "event_start",
    "event_end",
    "volume_m3",
    "weight_kg",
    "final_total",
    "created_at",
]


# PUBLIC_INTERFACE
@router.get(
    "/orders",
    summary="Export orders",
    description="Export the filtered order list as CSV, XLSX or PDF.",
    response_class=StreamingResponse,
)
async def export_orders(
    export_format: Literal["csv", "xlsx", "pdf"] = Query("csv", alias="format"),
    search_term: Optional[str] = Query(None),
    order_status: Optional[str] = Query(None),
    financial_status: Optional[str] = Query(None),
    company_id: Optional[UUID] = Query(None),
    brand_id: Optional[UUID] = Query(None),
    user=Depends(require_roles(UserRole.ADMIN.value, UserRole.LOGISTICS.value)),
    session: AsyncSession = Depends(get_db_session),
) -> StreamingResponse:
    filters = order_filters(user, order_status, financial_status, company_id, brand_id)
    rows = await OrderRepository(session).export_rows(user.platform_id, search=search_term, filters=filters)
    df = pd.DataFrame(rows, columns=ORDER_EXPORT_COLUMNS)
    return export_dataframe(df, "orders", export_format)
