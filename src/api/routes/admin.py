"""
Admin / operations endpoints
============================

POST /api/v1/admin/rides/{ride_id}/dispatch -- run dispatch synchronously
GET  /api/v1/admin/health                   -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_container, get_tenant_id
from src.api.middleware import limiter
from src.api.schemas import DispatchOutcomeResponse, HealthResponse
from src.config import settings
from src.container import Container

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/rides/{ride_id}/dispatch",
    response_model=DispatchOutcomeResponse,
    summary="Re-run driver matching for a ride and wait for the outcome",
)
@limiter.limit(settings.rate_limit)
async def dispatch_ride(
    request: Request,
    ride_id: int,
    tenant_id: int = Depends(get_tenant_id),
    container: Container = Depends(get_container),
):
    # Tenant-scoped lookup so operators cannot dispatch another tenant's ride
    await container.lifecycle.get_ride(ride_id, tenant_id)
    outcome = await container.coordinator.dispatch(ride_id)
    return DispatchOutcomeResponse(
        ride_id=ride_id,
        status=outcome.status,
        driver_id=outcome.driver_id,
        vehicle_id=outcome.vehicle_id,
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
