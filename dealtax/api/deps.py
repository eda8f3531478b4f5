"""Request dependencies: collaborators and caches."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dealtax.database import get_db
from dealtax.engine.audit import AuditLog
from dealtax.storage.jurisdictions import JurisdictionResolver, JurisdictionSource
from dealtax.storage.repositories import SqlAuditLog, SqlJurisdictionSource
from dealtax.utils.cache import TTLCache


def get_calculation_cache(request: Request) -> TTLCache:
    return request.app.state.calculation_cache


def get_jurisdiction_cache(request: Request) -> TTLCache:
    return request.app.state.jurisdiction_cache


async def get_jurisdiction_source(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> JurisdictionSource:
    return SqlJurisdictionSource(db)


async def get_audit_log(db: Annotated[AsyncSession, Depends(get_db)]) -> AuditLog:
    return SqlAuditLog(db)


def get_resolver(
    source: Annotated[JurisdictionSource, Depends(get_jurisdiction_source)],
    cache: Annotated[TTLCache, Depends(get_jurisdiction_cache)],
) -> JurisdictionResolver:
    """Resolver over the request's source and the app-wide jurisdiction cache."""
    return JurisdictionResolver(source, cache)


ResolverDep = Annotated[JurisdictionResolver, Depends(get_resolver)]
AuditLogDep = Annotated[AuditLog, Depends(get_audit_log)]
CalculationCacheDep = Annotated[TTLCache, Depends(get_calculation_cache)]
