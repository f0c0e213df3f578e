from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import (
    FinancialStatus,
    NotificationType,
    OrderStatus,
    UserRole,
)
from fulfillment_api.core.errors import raise_for_unique_violation
from fulfillment_api.db.models.inventory import Asset
from fulfillment_api.db.models.orders import Order, OrderItem
from fulfillment_api.repositories.inventory import AssetRepository, BrandRepository
from fulfillment_api.repositories.location import CityRepository, CountryRepository
from fulfillment_api.repositories.orders import OrderRepository
from fulfillment_api.repositories.platform import CompanyRepository
from fulfillment_api.schemas.orders import (
    AddOrderItem,
    CancelOrder,
    DeclineQuote,
    MarginOverride,
    OrderSubmit,
    StatusProgress,
)
from fulfillment_api.services.base import BaseService
from fulfillment_api.services.notifications import NotificationService
from fulfillment_api.services.pricing import (
    PricingTierService,
    money,
    quote_price,
    to_decimal,
    volume,
)

logger = logging.getLogger(__name__)

S = OrderStatus

VALID_STATE_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.DRAFT: frozenset({S.SUBMITTED}),
    S.SUBMITTED: frozenset({S.PRICING_REVIEW}),
    S.PRICING_REVIEW: frozenset({S.QUOTED, S.PENDING_APPROVAL}),
    S.PENDING_APPROVAL: frozenset({S.QUOTED}),
    S.QUOTED: frozenset({S.CONFIRMED, S.DECLINED}),
    S.CONFIRMED: frozenset({S.IN_PREPARATION}),
    S.IN_PREPARATION: frozenset({S.READY_FOR_DELIVERY}),
    S.READY_FOR_DELIVERY: frozenset({S.IN_TRANSIT}),
    S.IN_TRANSIT: frozenset({S.DELIVERED}),
    S.DELIVERED: frozenset({S.IN_USE}),
    S.IN_USE: frozenset({S.AWAITING_RETURN}),
    S.AWAITING_RETURN: frozenset({S.CLOSED}),
}

# Fulfilment chain a LOGISTICS user may drive.
LOGISTICS_TRANSITIONS: FrozenSet[Tuple[OrderStatus, OrderStatus]] = frozenset(
    {
        (S.CONFIRMED, S.IN_PREPARATION),
        (S.IN_PREPARATION, S.READY_FOR_DELIVERY),
        (S.READY_FOR_DELIVERY, S.IN_TRANSIT),
        (S.IN_TRANSIT, S.DELIVERED),
        (S.DELIVERED, S.IN_USE),
        (S.IN_USE, S.AWAITING_RETURN),
        (S.AWAITING_RETURN, S.CLOSED),
    }
)

CLIENT_TRANSITIONS: FrozenSet[Tuple[OrderStatus, OrderStatus]] = frozenset(
    {(S.QUOTED, S.CONFIRMED), (S.QUOTED, S.DECLINED)}
)

STATUS_NOTIFICATIONS: Dict[OrderStatus, NotificationType] = {
    S.QUOTED: NotificationType.QUOTE_SENT,
    S.CONFIRMED: NotificationType.ORDER_CONFIRMED,
    S.DECLINED: NotificationType.QUOTE_DECLINED,
    S.IN_TRANSIT: NotificationType.IN_TRANSIT,
    S.DELIVERED: NotificationType.DELIVERED,
    S.CLOSED: NotificationType.ORDER_CLOSED,
    S.CANCELLED: NotificationType.ORDER_CANCELLED,
}

NON_CANCELLABLE = frozenset({S.CLOSED, S.DECLINED, S.CANCELLED})
MARGIN_EDITABLE = frozenset({S.PRICING_REVIEW, S.PENDING_APPROVAL})

ORDER_CONSTRAINT_MESSAGES = {
    "orders_platform_order_id_unique": "Another order was created at the same moment, please retry",
    "order_items_order_asset_unique": "Asset is already on this order",
}


# PUBLIC_INTERFACE
def is_valid_transition(current: str, new: str) -> bool:
    """True when `new` is a permitted successor of `current`."""
    try:
        return OrderStatus(new) in VALID_STATE_TRANSITIONS.get(OrderStatus(current), frozenset())
    except ValueError:
        return False


# PUBLIC_INTERFACE
def role_may_transition(role: str, current: str, new: str) -> bool:
    """ADMIN may make any valid move; LOGISTICS only fulfilment moves; CLIENT only quote answers."""
    if role == UserRole.ADMIN.value:
        return True
    pair = (OrderStatus(current), OrderStatus(new))
    if role == UserRole.LOGISTICS.value:
        return pair in LOGISTICS_TRANSITIONS
    if role == UserRole.CLIENT.value:
        return pair in CLIENT_TRANSITIONS
    return False


# PUBLIC_INTERFACE
def next_reference(prefix: str, day: date, latest: Optional[str]) -> str:
    """
    Next daily sequence id, e.g. ORD-20250114-001.

    `latest` is the highest id already issued for that day (or None).
    """
    stem = f"{prefix}-{day.strftime('%Y%m%d')}-"
    seq = 1
    if latest and latest.startswith(stem):
        try:
            seq = int(latest[len(stem):]) + 1
        except ValueError:
            seq = 1
    return f"{stem}{seq:03d}"


def item_line(asset: Asset, quantity: int) -> Dict[str, Any]:
    """Snapshot of an asset's per-unit volume/weight and the line totals."""
    vpu = to_decimal(asset.volume_per_unit)
    wpu = to_decimal(asset.weight_per_unit)
    return {
        "asset_id": asset.id,
        "asset_name": asset.name,
        "quantity": quantity,
        "volume_per_unit": vpu,
        "weight_per_unit": wpu,
        "total_volume": volume(vpu * quantity),
        "total_weight": money(wpu * quantity),
        "handling_tags": list(asset.handling_tags or []),
    }


# PUBLIC_INTERFACE
def summarize_items(items: Iterable[Any]) -> Dict[str, float]:
    """Order totals: volume to 3 dp, weight to 2 dp."""
    total_volume = Decimal("0")
    total_weight = Decimal("0")
    for item in items:
        get = item.get if isinstance(item, dict) else lambda k, _i=item: getattr(_i, k)
        total_volume += to_decimal(get("total_volume"))
        total_weight += to_decimal(get("total_weight"))
    return {"volume": float(volume(total_volume)), "weight": float(money(total_weight))}


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class OrderService(BaseService):
    """
    Order lifecycle: submission, pricing review adjustments, status progression,
    quote answers and cancellation.

    Submitting reserves asset quantity (available_quantity is decremented);
    declining, cancelling or closing an order releases it again.
    """

    def __init__(self, session: AsyncSession, notifier: Optional[NotificationService] = None) -> None:
        super().__init__(session)
        self.orders = OrderRepository(session)
        self.assets = AssetRepository(session)
        self.brands = BrandRepository(session)
        self.companies = CompanyRepository(session)
        self.countries = CountryRepository(session)
        self.cities = CityRepository(session)
        self.pricing = PricingTierService(session)
        self.notifier = notifier or NotificationService(session)

    # ---- lookups ---------------------------------------------------------

    # PUBLIC_INTERFACE
    async def get_order(self, user: Any, ref: str | UUID) -> Order:
        """Load an order visible to `user` (CLIENT users only see their company's orders)."""
        order = await self.orders.get(user.platform_id, ref)
        if order is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
        if user.role == UserRole.CLIENT.value and order.company_id != user.company_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this order")
        return order

    async def _venue_names(self, platform_id: UUID, country_id: UUID, city_id: UUID) -> Tuple[str, str]:
        country = await self.countries.get(platform_id, country_id)
        if country is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Country not found")
        city = await self.cities.get(platform_id, city_id)
        if city is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="City not found")
        if city.country_id != country.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="City does not belong to the selected country",
            )
        return country.name, city.name

    # ---- pricing ---------------------------------------------------------

    async def _price_fields(
        self,
        platform_id: UUID,
        *,
        country: str,
        city: str,
        total_volume: Any,
        company_id: UUID,
        user_id: Optional[UUID],
        override: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Price row values for an order: tier base price plus margin.

        With no matching tier the price stays open (base and final are None)
        and the order waits for manual pricing.
        """
        tier = await self.pricing.find_matching_tier(platform_id, country, city, total_volume)
        if override:
            percent = to_decimal(override["percent"])
        else:
            percent = await self.pricing.margin_percent_for(platform_id, company_id)
        margin: Dict[str, Any] = {
            "percent": float(money(percent)),
            "amount": None,
            "is_override": bool(override),
            "override_reason": override.get("override_reason") if override else None,
        }
        fields: Dict[str, Any] = {
            "pricing_tier_id": tier.id if tier else None,
            "volume": volume(total_volume),
            "base_price": None,
            "logistics_sub_total": None,
            "final_total": None,
            "calculated_at": _utcnow(),
            "calculated_by": user_id,
        }
        if tier is not None:
            quote = quote_price(tier.base_price, percent)
            margin["amount"] = float(quote.margin_amount)
            fields.update(
                base_price=quote.base_price,
                logistics_sub_total=quote.base_price,
                final_total=quote.final_total,
            )
        fields["margin"] = margin
        return fields

    async def _reprice(
        self, order: Order, user: Any, override: Optional[Dict[str, Any]] = None
    ) -> None:
        """Recompute totals and price from the current items (inside the caller's transaction)."""
        items = await self.orders.list_items(order.id)
        totals = summarize_items(items)
        if override is None and order.pricing is not None and (order.pricing.margin or {}).get("is_override"):
            override = order.pricing.margin
        country, city = await self._venue_names(order.platform_id, order.venue_country_id, order.venue_city_id)
        fields = await self._price_fields(
            order.platform_id,
            country=country,
            city=city,
            total_volume=totals["volume"],
            company_id=order.company_id,
            user_id=user.id,
            override=override,
        )
        if order.pricing is not None:
            await self.orders.update_price(order.pricing, fields)
            price_id = order.pricing.id
        else:
            price_id = (await self.orders.create_price(order.platform_id, fields)).id
        await self.orders.update_order(
            order,
            {
                "calculated_totals": totals,
                "pricing_tier_id": fields["pricing_tier_id"],
                "order_pricing_id": price_id,
            },
        )

    # ---- submission ------------------------------------------------------

    async def _load_assets(self, platform_id: UUID, company_id: UUID, payload: OrderSubmit) -> Dict[UUID, Asset]:
        ids = [i.asset_id for i in payload.items]
        assets = await self.assets.get_many(platform_id, ids)
        missing = [str(i) for i in ids if i not in assets]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail=f"Asset(s) not found: {', '.join(missing)}"
            )
        for item in payload.items:
            asset = assets[item.asset_id]
            if asset.company_id != company_id:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Asset {asset.name} does not belong to your company",
                )
            self._check_availability(asset, item.quantity, asset.available_quantity)
        return assets

    @staticmethod
    def _check_availability(asset: Asset, requested: int, available: int) -> None:
        if requested > available:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Insufficient availability for {asset.name}: requested {requested}, available {available}",
            )

    # PUBLIC_INTERFACE
    async def submit(self, user: Any, payload: OrderSubmit) -> Order:
        """Create an order from a cart and send it to pricing review."""
        platform_id = user.platform_id
        if not user.company_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only users linked to a company can submit orders",
            )
        company = await self.companies.get(platform_id, user.company_id)
        if company is None or not company.is_active:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")

        country, city = await self._venue_names(platform_id, payload.venue_country_id, payload.venue_city_id)
        if payload.brand_id:
            brand = await self.brands.get(platform_id, payload.brand_id)
            if brand is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Brand not found")
            if brand.company_id != company.id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST, detail="Brand does not belong to your company"
                )

        assets = await self._load_assets(platform_id, company.id, payload)
        lines = [item_line(assets[i.asset_id], i.quantity) for i in payload.items]
        totals = summarize_items(lines)
        price_fields = await self._price_fields(
            platform_id,
            country=country,
            city=city,
            total_volume=totals["volume"],
            company_id=company.id,
            user_id=user.id,
        )

        try:
            async with self.unit_of_work():
                today = _utcnow().date()
                order_ref = next_reference(
                    "ORD", today, await self.orders.latest_order_id_for_day(platform_id, today)
                )
                price = await self.orders.create_price(platform_id, price_fields)
                order = await self.orders.create_order(
                    platform_id,
                    {
                        "order_id": order_ref,
                        "company_id": company.id,
                        "brand_id": payload.brand_id,
                        "created_by": user.id,
                        "contact_name": payload.contact_name,
                        "contact_email": str(payload.contact_email),
                        "contact_phone": payload.contact_phone,
                        "event_start_date": payload.event_start_date,
                        "event_end_date": payload.event_end_date,
                        "venue_name": payload.venue_name,
                        "venue_country_id": payload.venue_country_id,
                        "venue_city_id": payload.venue_city_id,
                        "venue_address": payload.venue_address,
                        "venue_access_notes": payload.venue_access_notes,
                        "special_instructions": payload.special_instructions,
                        "trip_type": payload.trip_type.value,
                        "calculated_totals": totals,
                        "pricing_tier_id": price_fields["pricing_tier_id"],
                        "order_pricing_id": price.id,
                        "order_status": S.PRICING_REVIEW.value,
                        "financial_status": FinancialStatus.PENDING_QUOTE.value,
                    },
                )
                await self.orders.add_items(order, lines)
                for item in payload.items:
                    asset = assets[item.asset_id]
                    await self.assets.update(
                        asset, {"available_quantity": asset.available_quantity - item.quantity}
                    )
                await self.orders.add_status_history(order, S.PRICING_REVIEW.value, "Order created", user.id)
        except IntegrityError as exc:
            raise_for_unique_violation(exc, ORDER_CONSTRAINT_MESSAGES)

        order = await self.orders.get(platform_id, order.id)
        logger.info("Order %s submitted by %s (%s m³)", order.order_id, user.id, totals["volume"])
        await self.notifier.notify_order(order, NotificationType.ORDER_SUBMITTED)
        return order

    # ---- status ----------------------------------------------------------

    async def _release_assets(self, order: Order) -> None:
        for item in await self.orders.list_items(order.id):
            asset = await self.assets.get(order.platform_id, item.asset_id)
            if asset is not None:
                restored = min(asset.total_quantity, asset.available_quantity + item.quantity)
                await self.assets.update(asset, {"available_quantity": restored})

    async def _set_status(
        self,
        order: Order,
        user: Any,
        new_status: OrderStatus,
        notes: Optional[str],
        *,
        financial_status: Optional[FinancialStatus] = None,
        extra: Optional[Dict[str, Any]] = None,
        notification: Optional[NotificationType] = None,
    ) -> Order:
        fields: Dict[str, Any] = {"order_status": new_status.value, **(extra or {})}
        if financial_status is not None:
            fields["financial_status"] = financial_status.value
        async with self.unit_of_work():
            if new_status in (S.CLOSED, S.DECLINED, S.CANCELLED):
                await self._release_assets(order)
            await self.orders.update_order(order, fields)
            await self.orders.add_status_history(order, new_status.value, notes, user.id)
            if financial_status is not None:
                await self.orders.add_financial_history(order, financial_status.value, notes, user.id)
        order = await self.orders.get(order.platform_id, order.id)
        notification = notification or STATUS_NOTIFICATIONS.get(new_status)
        if notification is not None:
            await self.notifier.notify_order(order, notification)
        return order

    # PUBLIC_INTERFACE
    async def progress_status(self, user: Any, ref: str | UUID, payload: StatusProgress) -> Order:
        """Move an order one step along its lifecycle."""
        order = await self.get_order(user, ref)
        current = OrderStatus(order.order_status)
        new = payload.new_status

        if new == S.CONFIRMED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Orders are confirmed by approving the quote",
            )
        if not is_valid_transition(current.value, new.value):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status transition from {current.value} to {new.value}",
            )
        if user.role == UserRole.CLIENT.value or not role_may_transition(user.role, current.value, new.value):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{user.role} users cannot change status from {current.value} to {new.value}",
            )

        now = _utcnow()
        if current == S.DELIVERED and new == S.IN_USE and now < _aware(order.event_start_date):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot mark order as in use before the event start date",
            )
        if current == S.IN_USE and new == S.AWAITING_RETURN and now < _aware(order.event_end_date):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot mark order as awaiting return before the event end date",
            )

        financial = None
        if new == S.QUOTED:
            if order.pricing is None or order.pricing.final_total is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Order must be priced before a quote can be sent",
                )
            financial = FinancialStatus.QUOTE_SENT
        return await self._set_status(order, user, new, payload.notes, financial_status=financial)

    # PUBLIC_INTERFACE
    async def approve_quote(self, user: Any, ref: str | UUID) -> Order:
        order = await self._quoted_order_for_client(user, ref)
        return await self._set_status(
            order, user, S.CONFIRMED, "Quote approved by client",
            financial_status=FinancialStatus.QUOTE_ACCEPTED,
            notification=NotificationType.QUOTE_APPROVED,
        )

    # PUBLIC_INTERFACE
    async def decline_quote(self, user: Any, ref: str | UUID, payload: DeclineQuote) -> Order:
        order = await self._quoted_order_for_client(user, ref)
        return await self._set_status(order, user, S.DECLINED, f"Quote declined: {payload.decline_reason}")

    async def _quoted_order_for_client(self, user: Any, ref: str | UUID) -> Order:
        order = await self.get_order(user, ref)
        if order.company_id != user.company_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this order")
        if order.order_status != S.QUOTED.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Order is not awaiting quote approval (current status: {order.order_status})",
            )
        return order

    # PUBLIC_INTERFACE
    async def cancel(self, user: Any, ref: str | UUID, payload: CancelOrder) -> Order:
        order = await self.get_order(user, ref)
        if OrderStatus(order.order_status) in NON_CANCELLABLE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Order cannot be cancelled in {order.order_status} status",
            )
        return await self._set_status(
            order,
            user,
            S.CANCELLED,
            f"Order cancelled: {payload.reason}",
            financial_status=FinancialStatus.CANCELLED,
            extra={"cancellation_reason": payload.reason, "cancelled_at": _utcnow()},
        )

    # ---- pricing review adjustments --------------------------------------

    @staticmethod
    def _require_pricing_review(order: Order) -> None:
        if order.order_status != S.PRICING_REVIEW.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Can only adjust items during PRICING_REVIEW",
            )

    async def _item_or_404(self, order: Order, item_id: UUID) -> OrderItem:
        item = await self.orders.get_item(order, item_id)
        if item is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order item not found")
        return item

    async def _commit_adjustment(self, order: Order, user: Any, note: str, work) -> Order:
        """Run `work`, reprice and log history as one transaction."""
        try:
            async with self.unit_of_work():
                await work()
                await self._reprice(order, user)
                await self.orders.add_status_history(order, order.order_status, note, user.id)
        except IntegrityError as exc:
            raise_for_unique_violation(exc, ORDER_CONSTRAINT_MESSAGES)
        return await self.orders.get(order.platform_id, order.id)  # type: ignore[return-value]

    # PUBLIC_INTERFACE
    async def add_item(self, user: Any, ref: str | UUID, payload: AddOrderItem) -> Order:
        order = await self.get_order(user, ref)
        self._require_pricing_review(order)
        asset = await self.assets.get(order.platform_id, payload.asset_id)
        if asset is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")
        if asset.company_id != order.company_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Asset does not belong to the order's company"
            )
        if any(i.asset_id == asset.id for i in order.items):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Asset is already on this order; update its quantity instead",
            )
        self._check_availability(asset, payload.quantity, asset.available_quantity)

        async def work():
            await self.orders.add_items(order, [item_line(asset, payload.quantity)])
            await self.assets.update(asset, {"available_quantity": asset.available_quantity - payload.quantity})

        return await self._commit_adjustment(
            order, user, f"Order item added: {asset.name} (x{payload.quantity})", work
        )

    # PUBLIC_INTERFACE
    async def update_item_quantity(self, user: Any, ref: str | UUID, item_id: UUID, quantity: int) -> Order:
        order = await self.get_order(user, ref)
        self._require_pricing_review(order)
        item = await self._item_or_404(order, item_id)
        asset = await self.assets.get(order.platform_id, item.asset_id)
        if asset is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")
        # Quantity already reserved by this line counts as available.
        allowed = asset.available_quantity + item.quantity
        self._check_availability(asset, quantity, allowed)
        old_quantity = item.quantity

        async def work():
            line = item_line(asset, quantity)
            await self.orders.update_item(
                item,
                {k: line[k] for k in ("quantity", "total_volume", "total_weight")},
            )
            await self.assets.update(asset, {"available_quantity": allowed - quantity})

        return await self._commit_adjustment(
            order, user, f"Item quantity updated: {item.asset_name} ({old_quantity} → {quantity})", work
        )

    # PUBLIC_INTERFACE
    async def remove_item(self, user: Any, ref: str | UUID, item_id: UUID) -> Order:
        order = await self.get_order(user, ref)
        self._require_pricing_review(order)
        item = await self._item_or_404(order, item_id)
        if len(order.items) <= 1:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot remove the last item from an order"
            )
        name, quantity = item.asset_name, item.quantity

        async def work():
            asset = await self.assets.get(order.platform_id, item.asset_id)
            if asset is not None:
                restored = min(asset.total_quantity, asset.available_quantity + quantity)
                await self.assets.update(asset, {"available_quantity": restored})
            await self.orders.delete_item(item)

        return await self._commit_adjustment(order, user, f"Order item removed: {name} (x{quantity})", work)

    # PUBLIC_INTERFACE
    async def override_margin(self, user: Any, ref: str | UUID, payload: MarginOverride) -> Order:
        """Replace the company margin with an explicit percent and reprice."""
        order = await self.get_order(user, ref)
        if OrderStatus(order.order_status) not in MARGIN_EDITABLE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Pricing can only be adjusted during PRICING_REVIEW or PENDING_APPROVAL",
            )
        override = {"percent": payload.margin_percent, "override_reason": payload.override_reason}
        async with self.unit_of_work():
            await self._reprice(order, user, override=override)
            await self.orders.add_status_history(
                order,
                order.order_status,
                f"Margin overridden to {money(payload.margin_percent)}%: {payload.override_reason}",
                user.id,
            )
        return await self.orders.get(order.platform_id, order.id)  # type: ignore[return-value]

    # PUBLIC_INTERFACE
    async def status_history(self, user: Any, ref: str | UUID) -> List[Any]:
        order = await self.get_order(user, ref)
        return await self.orders.list_status_history(order.id)
