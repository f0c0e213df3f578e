from __future__ import annotations

from uuid import UUID as PyUUID

from sqlalchemy import ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment_api.db.base import Base, PlatformMixin, TimestampMixin, UUIDPkMixin


class Country(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Country a platform delivers to."""
    __tablename__ = "countries"
    __table_args__ = (
        UniqueConstraint("platform_id", "name", name="countries_platform_name_unique"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)


class City(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """City within a country."""
    __tablename__ = "cities"
    __table_args__ = (
        UniqueConstraint("platform_id", "country_id", "name", name="cities_platform_country_name_unique"),
    )

    country_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("countries.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)

    country: Mapped["Country"] = relationship("Country", lazy="selectin")
