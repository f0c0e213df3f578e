from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    LOGISTICS = "LOGISTICS"
    CLIENT = "CLIENT"


class OrderStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    PRICING_REVIEW = "PRICING_REVIEW"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    QUOTED = "QUOTED"
    DECLINED = "DECLINED"
    CONFIRMED = "CONFIRMED"
    IN_PREPARATION = "IN_PREPARATION"
    READY_FOR_DELIVERY = "READY_FOR_DELIVERY"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    IN_USE = "IN_USE"
    AWAITING_RETURN = "AWAITING_RETURN"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class FinancialStatus(str, Enum):
    PENDING_QUOTE = "PENDING_QUOTE"
    QUOTE_SENT = "QUOTE_SENT"
    QUOTE_REVISED = "QUOTE_REVISED"
    QUOTE_ACCEPTED = "QUOTE_ACCEPTED"
    PENDING_INVOICE = "PENDING_INVOICE"
    INVOICED = "INVOICED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class TripType(str, Enum):
    ONE_WAY = "ONE_WAY"
    ROUND_TRIP = "ROUND_TRIP"


class TrackingMethod(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    BATCH = "BATCH"


class AssetCondition(str, Enum):
    GREEN = "GREEN"
    ORANGE = "ORANGE"
    RED = "RED"


class AssetStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    BOOKED = "BOOKED"
    OUT = "OUT"
    MAINTENANCE = "MAINTENANCE"


class NotificationStatus(str, Enum):
    QUEUED = "QUEUED"
    SENT = "SENT"
    FAILED = "FAILED"
    RETRYING = "RETRYING"


class NotificationType(str, Enum):
    ORDER_SUBMITTED = "ORDER_SUBMITTED"
    QUOTE_SENT = "QUOTE_SENT"
    QUOTE_APPROVED = "QUOTE_APPROVED"
    QUOTE_DECLINED = "QUOTE_DECLINED"
    ORDER_CONFIRMED = "ORDER_CONFIRMED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    ORDER_CLOSED = "ORDER_CLOSED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    INVOICE_GENERATED = "INVOICE_GENERATED"
