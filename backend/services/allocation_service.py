"""Room allocation engine.

Allocation is a manual pick from a pre-filtered list: the operator chooses the
room and this service only verifies that the choice is legal and applies it.
Preconditions are evaluated in a fixed order, each with its own error:

1. the participant exists                     (NotFoundError)
2. an allocated participant keeps its room    (idempotent return)
3. payment is recorded                        (PreconditionFailedError)
4. the room exists                            (NotFoundError)
5. room and participant genders match         (PreconditionFailedError)
6. the room has a free spot                   (PreconditionFailedError)

The requested room number is ignored, and so not validated, when step 2 returns.

All reads and both writes run inside one write-locked transaction, and the
writes themselves are conditional, so a room can never be overfilled and a
participant can never be moved by a racing request.
"""

from __future__ import annotations

from typing import Optional

from backend.domain.constraints import (
    InvariantViolation,
    find_invariant_violations,
    normalize_external_id,
    normalize_gender,
    validate_room_number,
)
from backend.domain.errors import NotFoundError, PreconditionFailedError
from backend.domain.models import AllocationResult, Gender, Operator, Room
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

PAYMENT_REQUIRED = "Payment required before allocation"
GENDER_MISMATCH = "Gender mismatch: participants may only be placed in rooms of their own gender"
ROOM_FULL = "Room full"


class RoomAllocationService:
    """Enforces the invariants linking participants to room occupancy."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def list_available(self, gender: str | Gender) -> list[Room]:
        """Rooms of the given gender with spare capacity, by room number.

        Nothing is reserved; ``allocate`` re-validates capacity.
        """
        return self._repository.list_available_rooms(normalize_gender(gender))

    def allocate(
        self,
        external_id: str,
        room_number: int,
        operator: Operator,
    ) -> AllocationResult:
        normalized_id = normalize_external_id(external_id)

        with self._repository.transaction() as conn:
            participant = self._repository.get_participant(normalized_id, conn=conn)
            if participant is None:
                raise NotFoundError("Participant not found")

            if participant.is_allocated and participant.room_number is not None:
                existing_room = self._repository.get_room(participant.room_number, conn=conn)
                if existing_room is None:
                    raise NotFoundError(
                        f"Allocated room {participant.room_number} no longer exists"
                    )
                logger.info(
                    "Participant %s already allocated to room %s; requested %s ignored",
                    normalized_id,
                    participant.room_number,
                    room_number,
                )
                return AllocationResult(
                    participant=participant,
                    room=existing_room,
                    already_allocated=True,
                )

            validate_room_number(room_number)
            if not participant.is_paid:
                logger.info("Allocation of %s rejected: unpaid", normalized_id)
                raise PreconditionFailedError(PAYMENT_REQUIRED)

            room = self._repository.get_room(room_number, conn=conn)
            if room is None:
                raise NotFoundError("Room not found")

            if room.gender is not participant.gender:
                logger.info(
                    "Allocation of %s rejected: %s participant, %s room %s",
                    normalized_id,
                    participant.gender.value,
                    room.gender.value,
                    room_number,
                )
                raise PreconditionFailedError(GENDER_MISMATCH)

            if not room.has_capacity():
                logger.info("Allocation of %s rejected: room %s full", normalized_id, room_number)
                raise PreconditionFailedError(ROOM_FULL)

            if not self._repository.increment_occupancy(room_number, participant.gender, conn=conn):
                raise PreconditionFailedError(ROOM_FULL)
            if not self._repository.assign_room(
                normalized_id, room_number, operator.username, conn=conn
            ):
                # Raising rolls back the occupancy increment above.
                raise PreconditionFailedError(
                    f"Participant {normalized_id} was allocated concurrently"
                )

            allocated = self._repository.get_participant(normalized_id, conn=conn)
            updated_room = self._repository.get_room(room_number, conn=conn)
            if allocated is None or updated_room is None:
                raise NotFoundError(f"Allocation of {normalized_id} to room {room_number} could not be read back")

        logger.info(
            "Allocated %s to room %s by %s (%s/%s)",
            normalized_id,
            room_number,
            operator.username,
            updated_room.occupied_count,
            updated_room.total_capacity,
        )
        return AllocationResult(participant=allocated, room=updated_room, already_allocated=False)

    def verify_invariants(self) -> list[InvariantViolation]:
        """Audit occupancy counters against participant room pointers."""
        with self._repository.snapshot() as conn:
            rooms = self._repository.list_rooms(conn=conn)
            participants = self._repository.list_participants(conn=conn)
        violations = find_invariant_violations(rooms, participants)
        for violation in violations:
            logger.warning("Invariant violation on %s: %s", violation.subject, violation.message)
        return violations
