"""Tests for input normalization and the occupancy invariant audit."""

from __future__ import annotations

import pytest

from backend.domain.constraints import (
    find_invariant_violations,
    normalize_email,
    normalize_external_id,
    normalize_gender,
    normalize_payment_status,
    normalize_role,
    validate_capacity,
    validate_room_number,
)
from backend.domain.errors import ValidationError
from backend.domain.models import (
    AllocationStatus,
    Gender,
    Participant,
    PaymentStatus,
    Role,
    Room,
)


def make_room(number: int = 101, gender: Gender = Gender.MALE, **overrides) -> Room:
    defaults = {
        "room_number": number,
        "gender": gender,
        "total_capacity": 2,
        "occupied_count": 0,
    }
    defaults.update(overrides)
    return Room(**defaults)


def make_participant(external_id: str = "P1", room_number: int | None = None, **overrides) -> Participant:
    defaults = {
        "external_id": external_id,
        "name": "Test Participant",
        "gender": Gender.MALE,
        "contact_number": "9876543210",
        "email": "",
        "payment_status": PaymentStatus.PAID,
        "allocation_status": AllocationStatus.ALLOCATED
        if room_number is not None
        else AllocationStatus.NOT_ALLOCATED,
        "room_number": room_number,
        "allocated_by": "coordinator" if room_number is not None else None,
    }
    defaults.update(overrides)
    return Participant(**defaults)


# --- normalizers ---

def test_external_id_is_trimmed_and_uppercased() -> None:
    assert normalize_external_id("  ab12cd ") == "AB12CD"


@pytest.mark.parametrize("value", [None, "", "   "])
def test_blank_external_id_raises(value) -> None:
    with pytest.raises(ValidationError):
        normalize_external_id(value)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Male", Gender.MALE),
        ("boys", Gender.MALE),
        (" M ", Gender.MALE),
        ("female", Gender.FEMALE),
        ("GIRLS", Gender.FEMALE),
        (Gender.FEMALE, Gender.FEMALE),
    ],
)
def test_gender_aliases_normalize(raw, expected) -> None:
    assert normalize_gender(raw) is expected


@pytest.mark.parametrize("value", [None, "", "other"])
def test_unknown_gender_raises(value) -> None:
    with pytest.raises(ValidationError):
        normalize_gender(value)


def test_payment_status_is_case_insensitive() -> None:
    assert normalize_payment_status("paid") is PaymentStatus.PAID
    assert normalize_payment_status("UNPAID") is PaymentStatus.UNPAID
    with pytest.raises(ValidationError):
        normalize_payment_status("partial")


def test_role_normalization() -> None:
    assert normalize_role("admin") is Role.ADMIN
    with pytest.raises(ValidationError):
        normalize_role("superuser")


def test_email_is_optional_but_checked_when_given() -> None:
    assert normalize_email(None) == ""
    assert normalize_email(" A@Example.COM ") == "a@example.com"
    with pytest.raises(ValidationError):
        normalize_email("not-an-email")


@pytest.mark.parametrize("value", [0, -3, True])
def test_room_number_and_capacity_must_be_positive_ints(value) -> None:
    with pytest.raises(ValidationError):
        validate_room_number(value)
    with pytest.raises(ValidationError):
        validate_capacity(value)


# --- invariant audit ---

def test_consistent_state_has_no_violations() -> None:
    rooms = [make_room(101, occupied_count=1), make_room(201, Gender.FEMALE)]
    participants = [make_participant("P1", 101), make_participant("P2")]
    assert find_invariant_violations(rooms, participants) == []


def test_occupancy_counter_mismatch_is_reported() -> None:
    rooms = [make_room(101, occupied_count=2)]
    participants = [make_participant("P1", 101)]
    violations = find_invariant_violations(rooms, participants)
    assert [v.subject for v in violations] == ["room 101"]


def test_gender_mismatch_is_reported() -> None:
    rooms = [make_room(201, Gender.FEMALE, occupied_count=1)]
    participants = [make_participant("P1", 201)]
    violations = find_invariant_violations(rooms, participants)
    assert len(violations) == 1
    assert violations[0].subject == "participant P1"
    assert "Female room 201" in violations[0].message


def test_status_pointer_disagreement_is_reported() -> None:
    participants = [
        make_participant("P1", None, allocation_status=AllocationStatus.ALLOCATED),
    ]
    violations = find_invariant_violations([], participants)
    assert violations[0].subject == "participant P1"


def test_missing_room_and_overfill_are_reported() -> None:
    rooms = [make_room(101, total_capacity=1, occupied_count=2)]
    participants = [
        make_participant("P1", 101),
        make_participant("P2", 101),
        make_participant("P3", 999),
    ]
    messages = [v.to_dict()["message"] for v in find_invariant_violations(rooms, participants)]
    assert any("missing room 999" in message for message in messages)
    assert any("outside [0, 1]" in message for message in messages)
