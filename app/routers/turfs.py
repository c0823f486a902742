"""
Turf endpoints – listing, search, and owner management.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from app import db
from app.dependencies import TurfOwner
from app.models import MessageResponse, NearbyTurf, Turf, TurfCreate, TurfUpdate, User, UserRole
from app.services.geo import distance_km

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/turfs", tags=["turfs"])


async def _owned_turf(turf_id: str, user: User) -> Turf:
    """Load a turf the caller may manage (its owner, or any admin)."""
    turf = await db.get_turf(turf_id)
    if turf is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Turf not found")
    if user.role != UserRole.admin and turf.owner_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only manage your own turfs",
        )
    return turf


@router.get(
    "",
    response_model=list[Turf],
    operation_id="listTurfs",
    summary="Search active turfs",
)
async def list_turfs(
    query: Annotated[str | None, Query(description="Text in name, address or description")] = None,
    sport: Annotated[str | None, Query()] = None,
    price_min: Annotated[float | None, Query(ge=0)] = None,
    price_max: Annotated[float | None, Query(ge=0)] = None,
    rating: Annotated[float | None, Query(ge=0, le=5, description="Minimum rating")] = None,
    amenities: Annotated[str | None, Query(description="Comma-separated amenity names")] = None,
) -> list[Turf]:
    wanted = [a.strip() for a in amenities.split(",") if a.strip()] if amenities else []
    return await db.list_turfs(
        query=query,
        sport=sport,
        price_min=price_min,
        price_max=price_max,
        min_rating=rating,
        amenities=wanted,
    )


@router.get(
    "/nearby",
    response_model=list[NearbyTurf],
    operation_id="listNearbyTurfs",
    summary="Active turfs within a radius, closest first",
)
async def list_nearby_turfs(
    lat: Annotated[float, Query(ge=-90, le=90)],
    lng: Annotated[float, Query(ge=-180, le=180)],
    radius: Annotated[float, Query(gt=0, description="Radius in km")] = 10,
) -> list[NearbyTurf]:
    nearby = []
    for turf in await db.list_turfs():
        if turf.coordinates is None:
            continue
        distance = distance_km(lat, lng, turf.coordinates.lat, turf.coordinates.lng)
        if distance <= radius:
            nearby.append(NearbyTurf(turf=turf, distance_km=round(distance, 2)))
    nearby.sort(key=lambda n: n.distance_km)
    return nearby


@router.get(
    "/mine",
    response_model=list[Turf],
    operation_id="listMyTurfs",
    summary="Turfs owned by the current user",
)
async def list_my_turfs(current_user: TurfOwner) -> list[Turf]:
    return await db.list_turfs_by_owner(current_user.id)


@router.get(
    "/{turf_id}",
    response_model=Turf,
    operation_id="getTurf",
    summary="Get a turf by ID",
)
async def get_turf(turf_id: str) -> Turf:
    turf = await db.get_turf(turf_id)
    if turf is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Turf not found")
    return turf


@router.post(
    "",
    response_model=Turf,
    status_code=status.HTTP_201_CREATED,
    operation_id="createTurf",
    summary="Create a turf (owners and admins)",
)
async def create_turf(body: TurfCreate, current_user: TurfOwner) -> Turf:
    return await db.create_turf(current_user.id, body.model_dump())


@router.put(
    "/{turf_id}",
    response_model=Turf,
    operation_id="updateTurf",
    summary="Update a turf you own",
)
async def update_turf(turf_id: str, body: TurfUpdate, current_user: TurfOwner) -> Turf:
    await _owned_turf(turf_id, current_user)
    updated = await db.update_turf(turf_id, body.model_dump(exclude_unset=True, exclude_none=True))
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Turf not found")
    return updated


@router.delete(
    "/{turf_id}",
    response_model=MessageResponse,
    operation_id="deleteTurf",
    summary="Deactivate a turf you own",
)
async def delete_turf(turf_id: str, current_user: TurfOwner) -> MessageResponse:
    # Bookings keep referencing the turf, so it is hidden rather than removed.
    await _owned_turf(turf_id, current_user)
    await db.update_turf(turf_id, {"is_active": False})
    logger.info("Turf %s deactivated by %s", turf_id, current_user.id)
    return MessageResponse(message="Turf deleted successfully")
