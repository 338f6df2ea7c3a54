"""
Ride endpoints
==============

POST  /api/v1/rides/estimate                 -- fare estimate, nothing persisted
POST  /api/v1/rides                          -- create a ride (202 Accepted, dispatch is async)
GET   /api/v1/rides/{ride_id}                -- ride status, driver and fare
PATCH /api/v1/rides/{ride_id}/status         -- driver progress
POST  /api/v1/rides/{ride_id}/complete       -- complete with actual trip metrics
POST  /api/v1/rides/{ride_id}/cancel         -- cancel a ride
POST  /api/v1/rides/{ride_id}/offer-response -- driver accepts / declines an offer

Tenant and user identity come from the ``X-Tenant-ID`` / ``X-User-ID``
headers set by the authenticating gateway.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.api.dependencies import get_container, get_tenant_id, get_user_id
from src.api.middleware import limiter
from src.api.schemas import (
    CancelRideRequest,
    CompleteRideRequest,
    ErrorResponse,
    FareEstimateRequest,
    FareEstimateResponse,
    OfferResponseRequest,
    RideCreatedResponse,
    RideCreateRequest,
    RideResponse,
    StatusUpdateRequest,
)
from src.config import settings
from src.container import Container
from src.domain.enums import RideStatus

router = APIRouter(prefix="/rides", tags=["rides"])

_TENANT_ERRORS = {400: {"model": ErrorResponse, "description": "Unknown tenant"}}
_RIDE_ERRORS = {
    404: {"model": ErrorResponse, "description": "Ride not found for this tenant"},
    409: {"model": ErrorResponse, "description": "Transition not allowed"},
}


@router.post(
    "/estimate",
    response_model=FareEstimateResponse,
    summary="Estimate a fare",
    responses=_TENANT_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def estimate_fare(
    request: Request,
    body: FareEstimateRequest,
    tenant_id: int = Depends(get_tenant_id),
    container: Container = Depends(get_container),
):
    estimate = await container.lifecycle.estimate_fare(
        tenant_id,
        body.pickup.to_location(),
        body.dropoff.to_location(),
        body.vehicle_type,
    )
    return FareEstimateResponse.from_estimate(estimate)


@router.post(
    "",
    status_code=202,
    response_model=RideCreatedResponse,
    summary="Create a ride request",
    responses={
        202: {"description": "Ride accepted; driver matching is async."},
        **_TENANT_ERRORS,
    },
)
@limiter.limit(settings.rate_limit)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    tenant_id: int = Depends(get_tenant_id),
    rider_id: int = Depends(get_user_id),
    container: Container = Depends(get_container),
):
    ride, estimate = await container.lifecycle.create_ride(
        tenant_id, rider_id, body.to_domain()
    )
    if ride.status == RideStatus.SEARCHING:
        container.scheduler.schedule(ride.id)
    return RideCreatedResponse(
        ride=RideResponse.from_ride(ride),
        estimate=FareEstimateResponse.from_estimate(estimate),
    )


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get ride status and fare",
    responses=_RIDE_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    tenant_id: int = Depends(get_tenant_id),
    container: Container = Depends(get_container),
):
    ride = await container.lifecycle.get_ride(ride_id, tenant_id)
    return RideResponse.from_ride(ride)


@router.patch(
    "/{ride_id}/status",
    response_model=RideResponse,
    summary="Report driver progress",
    responses=_RIDE_ERRORS,
    description="driver_assigned -> driver_arriving -> arrived -> in_progress.",
)
@limiter.limit(settings.rate_limit)
async def update_status(
    request: Request,
    ride_id: int,
    body: StatusUpdateRequest,
    tenant_id: int = Depends(get_tenant_id),
    container: Container = Depends(get_container),
):
    ride = await container.lifecycle.update_status(
        ride_id, tenant_id, RideStatus(body.status)
    )
    return RideResponse.from_ride(ride)


@router.post(
    "/{ride_id}/complete",
    response_model=RideResponse,
    summary="Complete a ride",
    responses=_RIDE_ERRORS,
    description=(
        "Computes the final fare from the actual trip.  A taximeter "
        "reading, when supplied, overrides the computed total."
    ),
)
@limiter.limit(settings.rate_limit)
async def complete_ride(
    request: Request,
    ride_id: int,
    body: CompleteRideRequest,
    tenant_id: int = Depends(get_tenant_id),
    container: Container = Depends(get_container),
):
    ride = await container.lifecycle.complete_ride(
        ride_id,
        tenant_id,
        body.actual_distance_m,
        body.actual_duration_s,
        taximeter=body.taximeter.to_domain() if body.taximeter else None,
    )
    return RideResponse.from_ride(ride)


@router.post(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
    responses=_RIDE_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: int,
    body: CancelRideRequest,
    tenant_id: int = Depends(get_tenant_id),
    container: Container = Depends(get_container),
):
    ride = await container.lifecycle.cancel_ride(
        ride_id, tenant_id, body.cancelled_by, body.reason
    )
    return RideResponse.from_ride(ride)


@router.post(
    "/{ride_id}/offer-response",
    status_code=204,
    summary="Driver accepts or declines a ride offer",
    responses={409: {"model": ErrorResponse, "description": "Driver offers are not enabled"}},
)
@limiter.limit(settings.rate_limit)
async def offer_response(
    request: Request,
    ride_id: int,
    body: OfferResponseRequest,
    tenant_id: int = Depends(get_tenant_id),
    container: Container = Depends(get_container),
):
    if container.acceptance is None:
        return JSONResponse(
            status_code=409,
            content=ErrorResponse(
                error="OFFERS_DISABLED", message="Driver offers are not enabled"
            ).model_dump(),
        )
    await container.acceptance.respond(
        tenant_id, ride_id, body.driver_id, body.accept
    )
