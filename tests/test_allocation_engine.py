"""Allocation engine behaviour: ordered preconditions, idempotence and capacity races."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import pytest

from backend.domain.errors import NotFoundError, PreconditionFailedError, ValidationError
from backend.domain.models import AllocationStatus, Gender, Operator, Role
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import (
    GENDER_MISMATCH,
    PAYMENT_REQUIRED,
    ROOM_FULL,
    RoomAllocationService,
)
from backend.services.participant_service import ParticipantService
from backend.services.room_service import RoomInventoryService
from backend.utils.config import get_settings


COORDINATOR = Operator(username="coordinator", name="Coordinator User", role=Role.COORDINATOR)


def _build_test_settings(tmp_path, filename: str = "allocation.db"):
    get_settings.cache_clear()
    return replace(get_settings(), database_path=tmp_path / filename)


@pytest.fixture()
def services(tmp_path):
    settings = _build_test_settings(tmp_path)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_default_rooms()
    return (
        repository,
        ParticipantService(repository=repository, settings=settings),
        RoomAllocationService(repository=repository, settings=settings),
        RoomInventoryService(repository=repository, settings=settings),
    )


def _register(participants: ParticipantService, external_id: str, gender: str, paid: bool = True):
    participants.create(
        external_id=external_id,
        name=f"Participant {external_id}",
        gender=gender,
        contact_number="9876543210",
    )
    if paid:
        participants.set_payment(external_id, "Paid")


def test_check_in_to_allocation_flow(services) -> None:
    repository, participants, allocation, _ = services
    _register(participants, "X001", "Male", paid=False)
    participants.set_payment("x001", "Paid")

    available = allocation.list_available("Male")
    assert available[0].room_number == 101
    assert available[0].total_capacity == 50
    assert available[0].occupied_count == 0
    assert all(room.gender is Gender.MALE for room in available)

    result = allocation.allocate("X001", 101, COORDINATOR)

    assert result.already_allocated is False
    assert result.participant.room_number == 101
    assert result.participant.allocation_status is AllocationStatus.ALLOCATED
    assert result.participant.allocated_by == "coordinator"
    assert result.participant.allocated_at
    assert result.room.occupied_count == 1
    assert repository.get_room(101).occupied_count == 1


def test_repeat_allocation_returns_existing_room(services) -> None:
    repository, participants, allocation, _ = services
    _register(participants, "X001", "Male")
    allocation.allocate("X001", 101, COORDINATOR)

    repeat = allocation.allocate("X001", 102, COORDINATOR)

    assert repeat.already_allocated is True
    assert repeat.participant.room_number == 101
    assert repeat.room.room_number == 101
    assert repository.get_room(101).occupied_count == 1
    assert repository.get_room(102).occupied_count == 0


def test_unpaid_participant_is_rejected_without_mutation(services) -> None:
    repository, participants, allocation, _ = services
    _register(participants, "X002", "Female", paid=False)

    with pytest.raises(PreconditionFailedError) as excinfo:
        allocation.allocate("X002", 201, COORDINATOR)

    assert excinfo.value.message == PAYMENT_REQUIRED
    assert repository.get_room(201).occupied_count == 0
    assert participants.get("X002").allocation_status is AllocationStatus.NOT_ALLOCATED


def test_payment_is_checked_before_room_existence(services) -> None:
    _, participants, allocation, _ = services
    _register(participants, "X002", "Female", paid=False)

    with pytest.raises(PreconditionFailedError):
        allocation.allocate("X002", 999, COORDINATOR)


def test_gender_mismatch_is_rejected_without_mutation(services) -> None:
    repository, participants, allocation, _ = services
    _register(participants, "X003", "Female")

    with pytest.raises(PreconditionFailedError) as excinfo:
        allocation.allocate("X003", 101, COORDINATOR)

    assert excinfo.value.message == GENDER_MISMATCH
    assert repository.get_room(101).occupied_count == 0
    assert participants.get("X003").room_number is None


def test_unknown_participant_and_room_raise_not_found(services) -> None:
    _, participants, allocation, _ = services
    with pytest.raises(NotFoundError):
        allocation.allocate("NOPE", 101, COORDINATOR)

    _register(participants, "X004", "Male")
    with pytest.raises(NotFoundError):
        allocation.allocate("X004", 999, COORDINATOR)


def test_invalid_room_number_is_a_validation_error(services) -> None:
    _, participants, allocation, _ = services
    _register(participants, "X001", "Male")
    with pytest.raises(ValidationError):
        allocation.allocate("X001", 0, COORDINATOR)


def test_repeat_allocation_ignores_invalid_room_number(services) -> None:
    _, participants, allocation, _ = services
    _register(participants, "X001", "Male")
    allocation.allocate("X001", 101, COORDINATOR)

    repeat = allocation.allocate("X001", 0, COORDINATOR)

    assert repeat.already_allocated is True
    assert repeat.room.room_number == 101


def test_failed_participant_update_rolls_back_occupancy(services, monkeypatch) -> None:
    repository, participants, allocation, _ = services
    _register(participants, "X005", "Male")
    monkeypatch.setattr(repository, "assign_room", lambda *args, **kwargs: False)

    with pytest.raises(PreconditionFailedError):
        allocation.allocate("X005", 101, COORDINATOR)

    assert repository.get_room(101).occupied_count == 0
    assert participants.get("X005").allocation_status is AllocationStatus.NOT_ALLOCATED
    assert allocation.verify_invariants() == []


def test_full_room_is_rejected_and_hidden_from_available(services) -> None:
    repository, participants, allocation, rooms = services
    rooms.create_room(room_number=301, gender="Male", total_capacity=1)
    _register(participants, "A1", "Male")
    _register(participants, "A2", "Male")
    allocation.allocate("A1", 301, COORDINATOR)

    with pytest.raises(PreconditionFailedError) as excinfo:
        allocation.allocate("A2", 301, COORDINATOR)

    assert excinfo.value.message == ROOM_FULL
    assert 301 not in [room.room_number for room in allocation.list_available("Male")]
    assert repository.get_room(301).occupied_count == 1


def test_concurrent_allocations_never_overfill_a_room(services) -> None:
    repository, participants, allocation, rooms = services
    rooms.create_room(room_number=302, gender="Female", total_capacity=1)
    _register(participants, "B1", "Female")
    _register(participants, "B2", "Female")

    def attempt(external_id: str):
        try:
            return allocation.allocate(external_id, 302, COORDINATOR)
        except PreconditionFailedError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(pool.map(attempt, ["B1", "B2"]))

    failures = [o for o in outcomes if isinstance(o, PreconditionFailedError)]
    successes = [o for o in outcomes if not isinstance(o, PreconditionFailedError)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert failures[0].message == ROOM_FULL
    assert repository.get_room(302).occupied_count == 1
    assert repository.count_assigned(302) == 1


def test_concurrent_repeat_allocations_increment_once(services) -> None:
    repository, participants, allocation, _ = services
    _register(participants, "C1", "Male")

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda room: allocation.allocate("C1", room, COORDINATOR), [101, 102, 103, 104]))

    assigned = {result.participant.room_number for result in results}
    assert len(assigned) == 1
    assert sum(1 for result in results if not result.already_allocated) == 1
    total_occupied = sum(repository.get_room(n).occupied_count for n in (101, 102, 103, 104))
    assert total_occupied == 1


def test_invariants_hold_after_mixed_operations(services) -> None:
    _, participants, allocation, _ = services
    for index in range(6):
        gender = "Male" if index % 2 == 0 else "Female"
        _register(participants, f"M{index}", gender, paid=index != 5)

    for index, room in enumerate([101, 201, 101, 101, 202, 201]):
        try:
            allocation.allocate(f"M{index}", room, COORDINATOR)
        except PreconditionFailedError:
            pass

    assert allocation.verify_invariants() == []


def test_payment_change_after_allocation_keeps_room(services) -> None:
    repository, participants, allocation, _ = services
    _register(participants, "D1", "Male")
    allocation.allocate("D1", 101, COORDINATOR)

    updated = participants.set_payment("D1", "Unpaid")

    assert updated.room_number == 101
    assert repository.get_room(101).occupied_count == 1
