"""Input normalization and room/participant invariant checks."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from backend.domain.errors import ValidationError
from backend.domain.models import (
    AllocationStatus,
    Gender,
    Participant,
    PaymentStatus,
    Role,
    Room,
)


_GENDER_ALIASES = {
    "male": Gender.MALE,
    "m": Gender.MALE,
    "boy": Gender.MALE,
    "boys": Gender.MALE,
    "female": Gender.FEMALE,
    "f": Gender.FEMALE,
    "girl": Gender.FEMALE,
    "girls": Gender.FEMALE,
}


def normalize_external_id(value: str | None) -> str:
    if value is None or not str(value).strip():
        raise ValidationError("External ID is required")
    return str(value).strip().upper()


def normalize_gender(value: str | Gender | None) -> Gender:
    if isinstance(value, Gender):
        return value
    if value is None:
        raise ValidationError("Gender is required")
    resolved = _GENDER_ALIASES.get(str(value).strip().lower())
    if resolved is None:
        raise ValidationError(f'{value!r} is not a valid gender. Use "Male" or "Female"')
    return resolved


def normalize_payment_status(value: str | PaymentStatus | None) -> PaymentStatus:
    if isinstance(value, PaymentStatus):
        return value
    if value is None:
        raise ValidationError("Payment status is required")
    for status in PaymentStatus:
        if str(value).strip().lower() == status.value.lower():
            return status
    raise ValidationError(f'{value!r} is not a valid payment status. Use "Paid" or "Unpaid"')


def normalize_role(value: str | Role | None) -> Role:
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().upper())
    except ValueError as exc:
        raise ValidationError("Role must be either ADMIN or COORDINATOR") from exc


def require_text(value: str | None, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def normalize_email(value: str | None) -> str:
    if value is None:
        return ""
    email = str(value).strip().lower()
    if email and ("@" not in email or email.startswith("@") or email.endswith("@")):
        raise ValidationError(f"{value!r} is not a valid email address")
    return email


def validate_room_number(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("Room number must be a positive integer")
    return value


def validate_capacity(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("Valid total capacity is required")
    return value


@dataclass(frozen=True)
class InvariantViolation:
    subject: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"subject": self.subject, "message": self.message}


def find_invariant_violations(
    rooms: Iterable[Room],
    participants: Iterable[Participant],
) -> list[InvariantViolation]:
    """Cross-check occupancy counters against participant room pointers.

    Rooms and participants must come from the same snapshot; otherwise a
    concurrent allocation can show up as a spurious mismatch.
    """
    rooms_by_number = {room.room_number: room for room in rooms}
    assigned = Counter()
    violations: list[InvariantViolation] = []

    for participant in participants:
        subject = f"participant {participant.external_id}"
        has_room = participant.room_number is not None
        if has_room != (participant.allocation_status is AllocationStatus.ALLOCATED):
            violations.append(
                InvariantViolation(
                    subject,
                    f"allocation status {participant.allocation_status.value} "
                    f"disagrees with room pointer {participant.room_number}",
                )
            )
        if not has_room:
            continue
        assigned[participant.room_number] += 1
        room = rooms_by_number.get(participant.room_number)
        if room is None:
            violations.append(
                InvariantViolation(subject, f"assigned to missing room {participant.room_number}")
            )
        elif room.gender is not participant.gender:
            violations.append(
                InvariantViolation(
                    subject,
                    f"{participant.gender.value} participant in "
                    f"{room.gender.value} room {room.room_number}",
                )
            )

    for room_number, room in sorted(rooms_by_number.items()):
        subject = f"room {room_number}"
        if room.occupied_count != assigned[room_number]:
            violations.append(
                InvariantViolation(
                    subject,
                    f"occupied count {room.occupied_count} but "
                    f"{assigned[room_number]} participants assigned",
                )
            )
        if not 0 <= room.occupied_count <= room.total_capacity:
            violations.append(
                InvariantViolation(
                    subject,
                    f"occupied count {room.occupied_count} outside "
                    f"[0, {room.total_capacity}]",
                )
            )
    return violations
