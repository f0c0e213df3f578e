from __future__ import annotations

from typing import Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select

from fulfillment_api.core.pagination import PageRequest
from fulfillment_api.db.models.location import City, Country
from .base import BaseRepository

COUNTRY_SORT_FIELDS = ("name", "created_at", "updated_at")
CITY_SORT_FIELDS = ("name", "created_at", "updated_at")


class CountryRepository(BaseRepository):
    """Countries within a platform."""

    SORTABLE = {name: getattr(Country, name) for name in COUNTRY_SORT_FIELDS}

    async def get(self, platform_id: UUID, country_id: UUID) -> Optional[Country]:
        stmt = select(Country).where(Country.platform_id == platform_id, Country.id == country_id)
        return await self.scalar_one_or_none(stmt)

    async def list_countries(
        self, platform_id: UUID, paging: PageRequest, *, search: Optional[str] = None
    ) -> Tuple[Sequence[Country], int]:
        stmt = select(Country).where(Country.platform_id == platform_id)
        if search:
            stmt = stmt.where(Country.name.ilike(f"%{search}%"))
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def create(self, platform_id: UUID, name: str) -> Country:
        return await self.save(Country(platform_id=platform_id, name=name))

    async def update(self, country: Country, **fields) -> Country:
        for field, value in fields.items():
            setattr(country, field, value)
        return await self.save(country)

    async def delete(self, country: Country) -> None:
        await self.remove(country)


class CityRepository(BaseRepository):
    """Cities within a platform; each row carries its country via a selectin load."""

    SORTABLE = {name: getattr(City, name) for name in CITY_SORT_FIELDS}

    async def get(self, platform_id: UUID, city_id: UUID) -> Optional[City]:
        stmt = (
            select(City)
            .where(City.platform_id == platform_id, City.id == city_id)
            .execution_options(populate_existing=True)
        )
        return await self.scalar_one_or_none(stmt)

    async def list_cities(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        country_id: Optional[UUID] = None,
    ) -> Tuple[Sequence[City], int]:
        stmt = select(City).where(City.platform_id == platform_id)
        if search:
            stmt = stmt.where(City.name.ilike(f"%{search}%"))
        if country_id:
            stmt = stmt.where(City.country_id == country_id)
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def create(self, platform_id: UUID, *, name: str, country_id: UUID) -> City:
        city = await self.save(City(platform_id=platform_id, name=name, country_id=country_id))
        return await self.get(platform_id, city.id)  # type: ignore[return-value]

    async def update(self, city: City, **fields) -> City:
        for field, value in fields.items():
            setattr(city, field, value)
        await self.save(city)
        return await self.get(city.platform_id, city.id)  # type: ignore[return-value]

    async def delete(self, city: City) -> None:
        await self.remove(city)
