from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import FinancialStatus, OrderStatus, UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.core.pagination import ListQuery, list_query, validate_query_values
from fulfillment_api.repositories.orders import ORDER_SORT_FIELDS, OrderRepository
from fulfillment_api.schemas.common import ApiResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.orders import (
    AddOrderItem,
    CancelOrder,
    DeclineQuote,
    MarginOverride,
    OrderRead,
    OrderSubmit,
    OrderSummary,
    StatusHistoryRead,
    StatusProgress,
    UpdateOrderItemQuantity,
)
from fulfillment_api.services.orders import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

ADMIN = UserRole.ADMIN.value
CLIENT = UserRole.CLIENT.value
STAFF = (UserRole.ADMIN.value, UserRole.LOGISTICS.value)
ANY_ROLE = STAFF + (CLIENT,)


# PUBLIC_INTERFACE
def order_filters(
    user: Any,
    order_status: Optional[str] = None,
    financial_status: Optional[str] = None,
    company_id: Optional[UUID] = None,
    brand_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    """Validated list filters; CLIENT users are pinned to their own company."""
    if order_status:
        validate_query_values("order_status", order_status, [s.value for s in OrderStatus])
    if financial_status:
        validate_query_values("financial_status", financial_status, [s.value for s in FinancialStatus])
    if user.role == CLIENT:
        company_id = user.company_id
    return {
        "order_status": order_status,
        "financial_status": financial_status,
        "company_id": company_id,
        "brand_id": brand_id,
    }


def _read(order) -> OrderRead:
    return OrderRead.model_validate(order)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[OrderRead],
    status_code=status.HTTP_201_CREATED,
    summary="Submit order",
    description="Check out a cart: reserve the assets, price the order and send it to pricing review.",
)
async def submit_order(
    payload: OrderSubmit,
    user=Depends(require_roles(CLIENT)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    order = await OrderService(session).submit(user, payload)
    return ok(_read(order), "Order submitted successfully")


# PUBLIC_INTERFACE
@router.get("", response_model=PaginatedResponse[OrderSummary], summary="List orders")
async def list_orders(
    query: ListQuery = Depends(list_query(*ORDER_SORT_FIELDS)),
    order_status: Optional[str] = Query(None),
    financial_status: Optional[str] = Query(None),
    company_id: Optional[UUID] = Query(None),
    brand_id: Optional[UUID] = Query(None),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    filters = order_filters(user, order_status, financial_status, company_id, brand_id)
    rows, total = await OrderRepository(session).list_orders(
        user.platform_id, query.paging, search=query.search_term, filters=filters
    )
    return paginated([OrderSummary.model_validate(o) for o in rows], total, query.paging, "Orders retrieved successfully")


# PUBLIC_INTERFACE
@router.get(
    "/{order_ref}",
    response_model=ApiResponse[OrderRead],
    summary="Get order",
    description="`order_ref` is the order UUID or its ORD-YYYYMMDD-NNN id.",
)
async def get_order(
    order_ref: str = Path(...),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    return ok(_read(await OrderService(session).get_order(user, order_ref)), "Order retrieved successfully")


# PUBLIC_INTERFACE
@router.get("/{order_ref}/status-history", response_model=ApiResponse[List[StatusHistoryRead]], summary="Status history")
async def order_status_history(
    order_ref: str = Path(...),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    rows = await OrderService(session).status_history(user, order_ref)
    return ok([StatusHistoryRead.model_validate(r) for r in rows], "Status history retrieved successfully")


# PUBLIC_INTERFACE
@router.patch("/{order_ref}/status", response_model=ApiResponse[OrderRead], summary="Progress order status")
async def progress_order_status(
    payload: StatusProgress,
    order_ref: str = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    order = await OrderService(session).progress_status(user, order_ref, payload)
    return ok(_read(order), f"Order status updated to {order.order_status}")


# PUBLIC_INTERFACE
@router.post("/{order_ref}/approve-quote", response_model=ApiResponse[OrderRead], summary="Approve quote")
async def approve_quote(
    order_ref: str = Path(...),
    user=Depends(require_roles(CLIENT)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    return ok(_read(await OrderService(session).approve_quote(user, order_ref)), "Quote approved successfully")


# PUBLIC_INTERFACE
@router.post("/{order_ref}/decline-quote", response_model=ApiResponse[OrderRead], summary="Decline quote")
async def decline_quote(
    payload: DeclineQuote,
    order_ref: str = Path(...),
    user=Depends(require_roles(CLIENT)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    order = await OrderService(session).decline_quote(user, order_ref, payload)
    return ok(_read(order), "Quote declined successfully")


# PUBLIC_INTERFACE
@router.post("/{order_ref}/cancel", response_model=ApiResponse[OrderRead], summary="Cancel order")
async def cancel_order(
    payload: CancelOrder,
    order_ref: str = Path(...),
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    return ok(_read(await OrderService(session).cancel(user, order_ref, payload)), "Order cancelled successfully")


# PUBLIC_INTERFACE
@router.post("/{order_ref}/items", response_model=ApiResponse[OrderRead], summary="Add order item")
async def add_order_item(
    payload: AddOrderItem,
    order_ref: str = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    return ok(_read(await OrderService(session).add_item(user, order_ref, payload)), "Order item added successfully")


# PUBLIC_INTERFACE
@router.patch("/{order_ref}/items/{item_id}", response_model=ApiResponse[OrderRead], summary="Change item quantity")
async def update_order_item(
    payload: UpdateOrderItemQuantity,
    order_ref: str = Path(...),
    item_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    order = await OrderService(session).update_item_quantity(user, order_ref, item_id, payload.quantity)
    return ok(_read(order), "Order item updated successfully")


# PUBLIC_INTERFACE
@router.delete("/{order_ref}/items/{item_id}", response_model=ApiResponse[OrderRead], summary="Remove order item")
async def remove_order_item(
    order_ref: str = Path(...),
    item_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    order = await OrderService(session).remove_item(user, order_ref, item_id)
    return ok(_read(order), "Order item removed successfully")


# PUBLIC_INTERFACE
@router.patch("/{order_ref}/pricing", response_model=ApiResponse[OrderRead], summary="Override margin")
async def override_order_margin(
    payload: MarginOverride,
    order_ref: str = Path(...),
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    order = await OrderService(session).override_margin(user, order_ref, payload)
    return ok(_read(order), "Order pricing updated successfully")
