"""Response DTOs shared across controllers."""

from __future__ import annotations

from pydantic import BaseModel, Field

from backend.domain.models import Participant, Room


class LocationResponse(BaseModel):
    address: str = ""
    latitude: float | None = None
    longitude: float | None = None


class RoomResponse(BaseModel):
    room_number: int = Field(gt=0)
    gender: str
    total_capacity: int = Field(gt=0)
    occupied_count: int = Field(ge=0)
    available_spots: int = Field(ge=0)
    is_full: bool
    block: str
    floor: str
    location: LocationResponse

    @classmethod
    def from_domain(cls, room: Room) -> "RoomResponse":
        return cls(
            room_number=room.room_number,
            gender=room.gender.value,
            total_capacity=room.total_capacity,
            occupied_count=room.occupied_count,
            available_spots=room.available_spots,
            is_full=room.is_full,
            block=room.block,
            floor=room.floor,
            location=LocationResponse(
                address=room.location.address,
                latitude=room.location.latitude,
                longitude=room.location.longitude,
            ),
        )


class ParticipantResponse(BaseModel):
    external_id: str = Field(min_length=1)
    name: str
    gender: str
    contact_number: str
    email: str
    payment_status: str
    allocation_status: str
    room_number: int | None = None
    allocated_by: str | None = None
    allocated_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_domain(cls, participant: Participant) -> "ParticipantResponse":
        return cls(
            external_id=participant.external_id,
            name=participant.name,
            gender=participant.gender.value,
            contact_number=participant.contact_number,
            email=participant.email,
            payment_status=participant.payment_status.value,
            allocation_status=participant.allocation_status.value,
            room_number=participant.room_number,
            allocated_by=participant.allocated_by,
            allocated_at=participant.allocated_at,
            created_at=participant.created_at,
            updated_at=participant.updated_at,
        )


class MessageResponse(BaseModel):
    message: str
