from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.core.errors import raise_for_unique_violation
from fulfillment_api.core.pagination import ListQuery, list_query
from fulfillment_api.repositories.platform import COMPANY_SORT_FIELDS, CompanyRepository, PlatformRepository
from fulfillment_api.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.platform import CompanyCreate, CompanyRead, CompanyUpdate

router = APIRouter(prefix="/companies", tags=["Companies"])

ADMIN = UserRole.ADMIN.value

COMPANY_CONSTRAINT_MESSAGES = {
    "companies_platform_domain_unique": "A company with this domain already exists on the platform",
    "company_domains_hostname_unique": "This hostname is already in use",
}


async def _company_or_404(repo: CompanyRepository, platform_id: UUID, company_id: UUID):
    company = await repo.get(platform_id, company_id)
    if company is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    return company


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[CompanyRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create company",
    description="Create a client company and register its vanity hostname.",
)
async def create_company(
    payload: CompanyCreate,
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    platform = await PlatformRepository(session).get(user.platform_id)
    if platform is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Platform not found")
    repo = CompanyRepository(session)
    try:
        company = await repo.create(user.platform_id, payload, f"{payload.domain}.{platform.domain}")
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, COMPANY_CONSTRAINT_MESSAGES)
    return ok(CompanyRead.model_validate(company), "Company created successfully")


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=PaginatedResponse[CompanyRead],
    summary="List companies",
    description="Search by name or domain. CLIENT users only see their own company.",
)
async def list_companies(
    query: ListQuery = Depends(list_query(*COMPANY_SORT_FIELDS)),
    include_inactive: bool = Query(False),
    user=Depends(require_roles(ADMIN, UserRole.LOGISTICS.value, UserRole.CLIENT.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = CompanyRepository(session)
    if user.role == UserRole.CLIENT.value:
        company = await repo.get(user.platform_id, user.company_id) if user.company_id else None
        rows = [company] if company else []
        return paginated([CompanyRead.model_validate(c) for c in rows], len(rows), query.paging, "Companies retrieved successfully")
    rows, total = await repo.list_companies(
        user.platform_id, query.paging, search=query.search_term, include_inactive=include_inactive
    )
    return paginated([CompanyRead.model_validate(c) for c in rows], total, query.paging, "Companies retrieved successfully")


# PUBLIC_INTERFACE
@router.get("/{company_id}", response_model=ApiResponse[CompanyRead], summary="Get company")
async def get_company(
    company_id: UUID = Path(...),
    user=Depends(require_roles(ADMIN, UserRole.LOGISTICS.value, UserRole.CLIENT.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    if user.role == UserRole.CLIENT.value and company_id != user.company_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own company")
    company = await _company_or_404(CompanyRepository(session), user.platform_id, company_id)
    return ok(CompanyRead.model_validate(company), "Company retrieved successfully")


# PUBLIC_INTERFACE
@router.patch("/{company_id}", response_model=ApiResponse[CompanyRead], summary="Update company")
async def update_company(
    payload: CompanyUpdate,
    company_id: UUID = Path(...),
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = CompanyRepository(session)
    company = await _company_or_404(repo, user.platform_id, company_id)
    company = await repo.update(company, payload)
    await repo.commit()
    return ok(CompanyRead.model_validate(company), "Company updated successfully")


# PUBLIC_INTERFACE
@router.delete("/{company_id}", response_model=MessageResponse, summary="Delete company (soft)")
async def delete_company(
    company_id: UUID = Path(...),
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    repo = CompanyRepository(session)
    company = await _company_or_404(repo, user.platform_id, company_id)
    await repo.soft_delete(company)
    await repo.commit()
    return MessageResponse(message="Company deleted successfully")
