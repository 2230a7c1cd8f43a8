"""Room inventory management and read-only room projections."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Optional

from backend.domain.constraints import normalize_gender, validate_capacity, validate_room_number
from backend.domain.errors import NotFoundError, PreconditionFailedError
from backend.domain.models import AllocationStatus, Gender, Location, Participant, Room
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class OccupancySummary:
    rooms: int
    capacity: int
    occupied: int
    available: int

    @classmethod
    def of(cls, rooms: Iterable[Room]) -> "OccupancySummary":
        selected = list(rooms)
        return cls(
            rooms=len(selected),
            capacity=sum(room.total_capacity for room in selected),
            occupied=sum(room.occupied_count for room in selected),
            available=sum(room.available_spots for room in selected),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "rooms": self.rooms,
            "capacity": self.capacity,
            "occupied": self.occupied,
            "available": self.available,
        }


class RoomInventoryService:
    """Administrative room operations; each preserves occupancy <= capacity."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def list_rooms(self) -> list[Room]:
        return self._repository.list_rooms()

    def get_room(self, room_number: int) -> Room:
        room = self._repository.get_room(validate_room_number(room_number))
        if room is None:
            raise NotFoundError("Room not found")
        return room

    def create_room(
        self,
        *,
        room_number: int,
        gender: str | Gender,
        total_capacity: Optional[int] = None,
        block: str = "",
        floor: str = "",
        location: Optional[Location] = None,
    ) -> Room:
        capacity = (
            self._settings.default_room_capacity if total_capacity is None else total_capacity
        )
        room = Room(
            room_number=validate_room_number(room_number),
            gender=normalize_gender(gender),
            total_capacity=validate_capacity(capacity),
            occupied_count=0,
            block=(block or "").strip(),
            floor=(floor or "").strip(),
            location=location or Location(),
        )
        created = self._repository.create_room(room)
        logger.info(
            "Created %s room %s with capacity %s",
            created.gender.value,
            created.room_number,
            created.total_capacity,
        )
        return created

    def update_capacity(self, room_number: int, total_capacity: int) -> Room:
        validate_room_number(room_number)
        validate_capacity(total_capacity)
        with self._repository.transaction() as conn:
            room = self._repository.get_room(room_number, conn=conn)
            if room is None:
                raise NotFoundError("Room not found")
            if total_capacity < room.occupied_count:
                raise PreconditionFailedError(
                    "Cannot reduce capacity below current occupied count "
                    f"({room.occupied_count})"
                )
            if not self._repository.update_room_capacity(room_number, total_capacity, conn=conn):
                raise PreconditionFailedError(
                    f"Capacity of room {room_number} changed concurrently; retry"
                )
        updated = replace(room, total_capacity=total_capacity)
        logger.info(
            "Room %s capacity changed %s -> %s",
            room_number,
            room.total_capacity,
            updated.total_capacity,
        )
        return updated

    def delete_room(self, room_number: int) -> None:
        validate_room_number(room_number)
        with self._repository.transaction() as conn:
            room = self._repository.get_room(room_number, conn=conn)
            if room is None:
                raise NotFoundError("Room not found")
            if room.occupied_count > 0 or self._repository.count_assigned(room_number, conn=conn):
                raise PreconditionFailedError(
                    f"Cannot delete room with {room.occupied_count} occupied spots. "
                    "Please reallocate participants first."
                )
            self._repository.delete_room_if_empty(room_number, conn=conn)
        logger.info("Deleted room %s", room_number)

    def stats(self) -> dict[str, Any]:
        rooms = self._repository.list_rooms()
        return {
            "total": OccupancySummary.of(rooms).to_dict(),
            "male": OccupancySummary.of(r for r in rooms if r.gender is Gender.MALE).to_dict(),
            "female": OccupancySummary.of(r for r in rooms if r.gender is Gender.FEMALE).to_dict(),
        }

    def room_participants(self, room_number: int) -> tuple[Room, list[Participant]]:
        validate_room_number(room_number)
        with self._repository.snapshot() as conn:
            room = self._repository.get_room(room_number, conn=conn)
            if room is None:
                raise NotFoundError("Room not found")
            participants = self._repository.list_participants(
                room_number=room_number,
                allocation_status=AllocationStatus.ALLOCATED,
                order="name",
                conn=conn,
            )
        return room, participants
