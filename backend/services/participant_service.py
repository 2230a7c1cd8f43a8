"""Participant registry: lookup, registration, payment and detail corrections."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from backend.domain.constraints import (
    normalize_email,
    normalize_external_id,
    normalize_gender,
    normalize_payment_status,
    require_text,
)
from backend.domain.errors import ConflictError, NotFoundError, ValidationError
from backend.domain.models import Participant, PaymentStatus
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    participant: Participant
    already_existed: bool


class ParticipantService:
    """Business rules for participant records outside of room allocation."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def check(self, external_id: str) -> Optional[Participant]:
        """Exact, side-effect-free lookup by normalized external ID."""
        return self._repository.get_participant(normalize_external_id(external_id))

    def get(self, external_id: str) -> Participant:
        participant = self.check(external_id)
        if participant is None:
            raise NotFoundError("Participant not found")
        return participant

    def create(
        self,
        *,
        external_id: str,
        name: str,
        gender: str,
        contact_number: str,
        email: Optional[str] = None,
    ) -> RegistrationResult:
        """Register a participant, or return the existing record for the same ID."""
        normalized_id = normalize_external_id(external_id)
        clean_name = require_text(name, "Name")
        resolved_gender = normalize_gender(gender)
        clean_contact = require_text(contact_number, "Contact number")
        clean_email = normalize_email(email)

        existing = self._repository.get_participant(normalized_id)
        if existing is not None:
            return RegistrationResult(participant=existing, already_existed=True)

        inserted = self._repository.insert_participant(
            external_id=normalized_id,
            name=clean_name,
            gender=resolved_gender,
            contact_number=clean_contact,
            email=clean_email,
        )
        participant = self._repository.get_participant(normalized_id)
        if participant is None:
            # The insert lost to a uniqueness clash but the winner is gone.
            raise ConflictError(f"Could not register participant {normalized_id}")
        if not inserted:
            logger.info("Concurrent registration of %s resolved to existing record", normalized_id)
            return RegistrationResult(participant=participant, already_existed=True)

        logger.info("Registered participant %s (%s)", normalized_id, resolved_gender.value)
        return RegistrationResult(participant=participant, already_existed=False)

    def set_payment(self, external_id: str, status: str | PaymentStatus) -> Participant:
        """Record payment status; never touches room allocation."""
        normalized_id = normalize_external_id(external_id)
        resolved_status = normalize_payment_status(status)

        if not self._repository.update_participant_fields(
            normalized_id, {"payment_status": resolved_status}
        ):
            raise NotFoundError("Participant not found")

        participant = self.get(normalized_id)
        if participant.is_allocated and resolved_status is PaymentStatus.UNPAID:
            logger.warning(
                "Participant %s marked Unpaid while allocated to room %s; allocation kept",
                normalized_id,
                participant.room_number,
            )
        logger.info("Payment status for %s set to %s", normalized_id, resolved_status.value)
        return participant

    def update(self, external_id: str, changes: dict[str, Any]) -> Participant:
        """Correct descriptive fields; allocation and occupancy are left alone."""
        normalized_id = normalize_external_id(external_id)
        fields: dict[str, Any] = {}
        if changes.get("name") is not None:
            fields["name"] = require_text(changes["name"], "Name")
        if changes.get("contact_number") is not None:
            fields["contact_number"] = require_text(changes["contact_number"], "Contact number")
        if changes.get("email") is not None:
            fields["email"] = normalize_email(changes["email"])
        if changes.get("gender") is not None:
            fields["gender"] = normalize_gender(changes["gender"])
        if changes.get("payment_status") is not None:
            fields["payment_status"] = normalize_payment_status(changes["payment_status"])
        if not fields:
            raise ValidationError("No fields to update")

        before = self.get(normalized_id)
        if not self._repository.update_participant_fields(normalized_id, fields):
            raise NotFoundError("Participant not found")
        after = self.get(normalized_id)

        if after.is_allocated and after.gender is not before.gender:
            logger.warning(
                "Participant %s changed gender to %s while allocated to room %s; "
                "allocation left for operator review",
                normalized_id,
                after.gender.value,
                after.room_number,
            )
        logger.info("Updated participant %s fields %s", normalized_id, sorted(fields))
        return after
