"""
ORM models. Importing this package registers every table on Base.metadata.
"""

from fulfillment_api.db.models.platform import Company, CompanyDomain, Platform  # noqa: F401
from fulfillment_api.db.models.security import User  # noqa: F401
from fulfillment_api.db.models.location import City, Country  # noqa: F401
from fulfillment_api.db.models.inventory import (  # noqa: F401
    Asset,
    Brand,
    Collection,
    CollectionItem,
    Warehouse,
    Zone,
)
from fulfillment_api.db.models.pricing import OrderPrice, PricingTier  # noqa: F401
from fulfillment_api.db.models.orders import (  # noqa: F401
    FinancialStatusHistory,
    Order,
    OrderItem,
    OrderStatusHistory,
)
from fulfillment_api.db.models.billing import Invoice  # noqa: F401
from fulfillment_api.db.models.notifications import NotificationLog  # noqa: F401
