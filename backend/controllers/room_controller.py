"""HTTP controller layer for room inventory and room projections."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator

from backend.controllers.dependencies import (
    get_allocation_service,
    get_current_operator,
    get_room_service,
    internal_error,
    require_admin,
    require_operator,
    to_http_exception,
)
from backend.controllers.schemas import MessageResponse, ParticipantResponse, RoomResponse
from backend.domain.constraints import normalize_gender
from backend.domain.errors import CheckInError
from backend.domain.models import Location
from backend.services.allocation_service import RoomAllocationService
from backend.services.room_service import RoomInventoryService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["rooms"])


class LocationRequest(BaseModel):
    address: str = ""
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)


class CreateRoomRequest(BaseModel):
    room_number: int = Field(gt=0)
    gender: str = Field(min_length=1)
    total_capacity: Optional[int] = Field(default=None, gt=0)
    block: str = ""
    floor: str = ""
    location: Optional[LocationRequest] = None

    @field_validator("block", "floor")
    @classmethod
    def strip_labels(cls, value: str) -> str:
        return value.strip()


class UpdateCapacityRequest(BaseModel):
    total_capacity: int


class OccupancySummaryResponse(BaseModel):
    rooms: int = Field(ge=0)
    capacity: int = Field(ge=0)
    occupied: int = Field(ge=0)
    available: int = Field(ge=0)


class RoomStatsResponse(BaseModel):
    total: OccupancySummaryResponse
    male: OccupancySummaryResponse
    female: OccupancySummaryResponse


class AvailableRoomsResponse(BaseModel):
    gender: str
    rooms: list[RoomResponse]
    count: int = Field(ge=0)


class RoomParticipantsResponse(BaseModel):
    room: RoomResponse
    participants: list[ParticipantResponse]
    count: int = Field(ge=0)


class InvariantViolationResponse(BaseModel):
    subject: str
    message: str


class IntegrityResponse(BaseModel):
    consistent: bool
    violations: list[InvariantViolationResponse]


@router.get(
    "",
    response_model=list[RoomResponse],
    dependencies=[Depends(get_current_operator)],
)
def list_rooms(
    service: RoomInventoryService = Depends(get_room_service),
) -> list[RoomResponse]:
    try:
        return [RoomResponse.from_domain(room) for room in service.list_rooms()]
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected room listing failure")
        raise internal_error("Server error while fetching rooms", exc) from exc


@router.get(
    "/stats",
    response_model=RoomStatsResponse,
    dependencies=[Depends(get_current_operator)],
)
def room_stats(
    service: RoomInventoryService = Depends(get_room_service),
) -> RoomStatsResponse:
    try:
        return RoomStatsResponse(**service.stats())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected room stats failure")
        raise internal_error("Server error while fetching room stats", exc) from exc


@router.get(
    "/integrity",
    response_model=IntegrityResponse,
    dependencies=[Depends(require_admin)],
)
def room_integrity(
    service: RoomAllocationService = Depends(get_allocation_service),
) -> IntegrityResponse:
    try:
        violations = service.verify_invariants()
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected integrity audit failure")
        raise internal_error("Server error while auditing rooms", exc) from exc
    return IntegrityResponse(
        consistent=not violations,
        violations=[InvariantViolationResponse(**item.to_dict()) for item in violations],
    )


@router.get(
    "/available/{gender}",
    response_model=AvailableRoomsResponse,
    dependencies=[Depends(require_operator)],
)
def available_rooms(
    gender: str,
    service: RoomAllocationService = Depends(get_allocation_service),
) -> AvailableRoomsResponse:
    try:
        rooms = service.list_available(gender)
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected available rooms failure")
        raise internal_error("Server error while fetching available rooms", exc) from exc
    return AvailableRoomsResponse(
        gender=normalize_gender(gender).value,
        rooms=[RoomResponse.from_domain(room) for room in rooms],
        count=len(rooms),
    )


@router.get(
    "/{room_number}/participants",
    response_model=RoomParticipantsResponse,
    dependencies=[Depends(get_current_operator)],
)
def room_participants(
    room_number: int,
    service: RoomInventoryService = Depends(get_room_service),
) -> RoomParticipantsResponse:
    try:
        room, participants = service.room_participants(room_number)
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected room participants failure")
        raise internal_error("Server error while fetching room participants", exc) from exc
    return RoomParticipantsResponse(
        room=RoomResponse.from_domain(room),
        participants=[ParticipantResponse.from_domain(p) for p in participants],
        count=len(participants),
    )


@router.get(
    "/{room_number}",
    response_model=RoomResponse,
    dependencies=[Depends(get_current_operator)],
)
def get_room(
    room_number: int,
    service: RoomInventoryService = Depends(get_room_service),
) -> RoomResponse:
    try:
        return RoomResponse.from_domain(service.get_room(room_number))
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected room lookup failure")
        raise internal_error("Server error while fetching room", exc) from exc


@router.post(
    "",
    response_model=RoomResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_room(
    payload: CreateRoomRequest,
    service: RoomInventoryService = Depends(get_room_service),
) -> RoomResponse:
    location = None
    if payload.location is not None:
        location = Location(
            address=payload.location.address,
            latitude=payload.location.latitude,
            longitude=payload.location.longitude,
        )
    try:
        room = service.create_room(
            room_number=payload.room_number,
            gender=payload.gender,
            total_capacity=payload.total_capacity,
            block=payload.block,
            floor=payload.floor,
            location=location,
        )
        return RoomResponse.from_domain(room)
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected room creation failure")
        raise internal_error("Server error while creating room", exc) from exc


@router.put(
    "/{room_number}/capacity",
    response_model=RoomResponse,
    dependencies=[Depends(require_admin)],
)
def update_room_capacity(
    room_number: int,
    payload: UpdateCapacityRequest,
    service: RoomInventoryService = Depends(get_room_service),
) -> RoomResponse:
    try:
        return RoomResponse.from_domain(service.update_capacity(room_number, payload.total_capacity))
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected room capacity failure")
        raise internal_error("Server error while updating room capacity", exc) from exc


@router.delete(
    "/{room_number}",
    response_model=MessageResponse,
    dependencies=[Depends(require_admin)],
)
def delete_room(
    room_number: int,
    service: RoomInventoryService = Depends(get_room_service),
) -> MessageResponse:
    try:
        service.delete_room(room_number)
        return MessageResponse(message="Room deleted successfully")
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected room deletion failure")
        raise internal_error("Server error while deleting room", exc) from exc
