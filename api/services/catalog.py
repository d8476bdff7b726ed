"""Service catalog lookups used to price and classify order lines."""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.service import Service
from services.errors import ServiceNotFound


@dataclass(frozen=True)
class ServiceInfo:
    id: int
    name: str
    unit_price: float
    is_active: bool


async def lookup(db: AsyncSession, service_id: int) -> ServiceInfo:
    """Resolve a service id. Raises ServiceNotFound for unknown ids."""
    service = await db.get(Service, service_id)
    if service is None:
        raise ServiceNotFound(service_id)
    return ServiceInfo(
        id=service.id,
        name=service.name,
        unit_price=float(service.base_price),
        is_active=service.is_active,
    )


async def lookup_by_name(db: AsyncSession, name: str) -> ServiceInfo | None:
    """First active service with the given name, or None."""
    result = await db.execute(
        select(Service)
        .where(Service.name == name, Service.is_active.is_(True))
        .order_by(Service.id)
        .limit(1)
    )
    service = result.scalar_one_or_none()
    if service is None:
        return None
    return ServiceInfo(service.id, service.name, float(service.base_price), service.is_active)


async def list_active(db: AsyncSession) -> list[Service]:
    result = await db.execute(
        select(Service).where(Service.is_active.is_(True)).order_by(Service.id)
    )
    return list(result.scalars().all())


def quota_eligibility(quota_service_name: str):
    """Build the predicate deciding whether a service draws from bag quota."""
    def is_quota_eligible(service_name: str) -> bool:
        return service_name == quota_service_name
    return is_quota_eligible
