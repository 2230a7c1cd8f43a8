"""Domain models for rooms, participants and operators."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class PaymentStatus(str, Enum):
    PAID = "Paid"
    UNPAID = "Unpaid"


class AllocationStatus(str, Enum):
    ALLOCATED = "Allocated"
    NOT_ALLOCATED = "NotAllocated"


class Role(str, Enum):
    ADMIN = "ADMIN"
    COORDINATOR = "COORDINATOR"


@dataclass(frozen=True)
class Location:
    address: str = ""
    latitude: float | None = None
    longitude: float | None = None


@dataclass(frozen=True)
class Room:
    room_number: int
    gender: Gender
    total_capacity: int
    occupied_count: int
    block: str = ""
    floor: str = ""
    location: Location = Location()

    @property
    def available_spots(self) -> int:
        return self.total_capacity - self.occupied_count

    @property
    def is_full(self) -> bool:
        return self.occupied_count >= self.total_capacity

    def has_capacity(self) -> bool:
        return self.occupied_count < self.total_capacity


@dataclass(frozen=True)
class Participant:
    external_id: str
    name: str
    gender: Gender
    contact_number: str
    email: str
    payment_status: PaymentStatus
    allocation_status: AllocationStatus
    room_number: int | None
    allocated_by: str | None
    allocated_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_allocated(self) -> bool:
        return self.allocation_status is AllocationStatus.ALLOCATED

    @property
    def is_paid(self) -> bool:
        return self.payment_status is PaymentStatus.PAID


@dataclass(frozen=True)
class Operator:
    """Authenticated operator identity handed to every core operation."""

    username: str
    name: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class OperatorAccount:
    username: str
    name: str
    role: Role
    password_hash: str
    is_active: bool

    def to_operator(self) -> Operator:
        return Operator(username=self.username, name=self.name, role=self.role)


@dataclass(frozen=True)
class AllocationResult:
    participant: Participant
    room: Room
    already_allocated: bool
