"""HTTP controller layer for the coordinator check-in workflow.

Normal flow: check -> create -> payment -> rooms/available -> allocate.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import (
    get_allocation_service,
    get_directory_service,
    get_participant_service,
    internal_error,
    require_operator,
    to_http_exception,
)
from backend.controllers.schemas import ParticipantResponse, RoomResponse
from backend.domain.errors import CheckInError
from backend.domain.models import Operator
from backend.services.allocation_service import RoomAllocationService
from backend.services.directory_service import DirectoryLookupService
from backend.services.participant_service import ParticipantService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/participants", tags=["participants"])


class CheckRequest(BaseModel):
    external_id: str = Field(min_length=1)


class CheckResponse(BaseModel):
    exists: bool
    participant: Optional[ParticipantResponse] = None


class CreateParticipantRequest(BaseModel):
    external_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    gender: str = Field(min_length=1)
    contact_number: str = Field(min_length=1)
    email: Optional[str] = None


class CreateParticipantResponse(BaseModel):
    participant: ParticipantResponse
    already_existed: bool


class PaymentRequest(BaseModel):
    external_id: str = Field(min_length=1)
    payment_status: str = Field(min_length=1)


class AllocateRequest(BaseModel):
    external_id: str = Field(min_length=1)
    room_number: int = Field(gt=0)


class AllocateResponse(BaseModel):
    participant: ParticipantResponse
    room: RoomResponse
    already_allocated: bool
    message: str


class UpdateParticipantRequest(BaseModel):
    name: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[str] = None
    gender: Optional[str] = None
    payment_status: Optional[str] = None


class DirectoryPrefillResponse(BaseModel):
    external_id: Optional[str] = None
    name: Optional[str] = None
    gender: Optional[str] = None
    contact_number: Optional[str] = None


def _check(service: ParticipantService, external_id: str) -> CheckResponse:
    try:
        participant = service.check(external_id)
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected participant check failure")
        raise internal_error("Server error while checking participant", exc) from exc
    if participant is None:
        return CheckResponse(exists=False)
    return CheckResponse(exists=True, participant=ParticipantResponse.from_domain(participant))


@router.get(
    "/check/{external_id}",
    response_model=CheckResponse,
    dependencies=[Depends(require_operator)],
)
def check_participant(
    external_id: str,
    service: ParticipantService = Depends(get_participant_service),
) -> CheckResponse:
    return _check(service, external_id)


@router.post(
    "/check",
    response_model=CheckResponse,
    dependencies=[Depends(require_operator)],
)
def check_participant_body(
    payload: CheckRequest,
    service: ParticipantService = Depends(get_participant_service),
) -> CheckResponse:
    return _check(service, payload.external_id)


@router.post(
    "/create",
    response_model=CreateParticipantResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_operator)],
)
def create_participant(
    payload: CreateParticipantRequest,
    response: Response,
    service: ParticipantService = Depends(get_participant_service),
) -> CreateParticipantResponse:
    try:
        result = service.create(
            external_id=payload.external_id,
            name=payload.name,
            gender=payload.gender,
            contact_number=payload.contact_number,
            email=payload.email,
        )
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected participant creation failure")
        raise internal_error("Server error while creating participant", exc) from exc
    if result.already_existed:
        response.status_code = status.HTTP_200_OK
    return CreateParticipantResponse(
        participant=ParticipantResponse.from_domain(result.participant),
        already_existed=result.already_existed,
    )


@router.put(
    "/payment",
    response_model=ParticipantResponse,
    dependencies=[Depends(require_operator)],
)
def update_payment_status(
    payload: PaymentRequest,
    service: ParticipantService = Depends(get_participant_service),
) -> ParticipantResponse:
    try:
        participant = service.set_payment(payload.external_id, payload.payment_status)
        return ParticipantResponse.from_domain(participant)
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected payment update failure")
        raise internal_error("Server error while updating payment status", exc) from exc


@router.post("/allocate", response_model=AllocateResponse)
def allocate_room(
    payload: AllocateRequest,
    operator: Operator = Depends(require_operator),
    service: RoomAllocationService = Depends(get_allocation_service),
) -> AllocateResponse:
    try:
        result = service.allocate(payload.external_id, payload.room_number, operator)
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected allocation failure")
        raise internal_error("Server error while allocating room", exc) from exc

    if result.already_allocated:
        message = f"Participant already allocated to room {result.room.room_number}"
    else:
        message = f"Room {result.room.room_number} allocated successfully"
    return AllocateResponse(
        participant=ParticipantResponse.from_domain(result.participant),
        room=RoomResponse.from_domain(result.room),
        already_allocated=result.already_allocated,
        message=message,
    )


@router.get(
    "/lookup/{identifier}",
    response_model=DirectoryPrefillResponse,
    dependencies=[Depends(require_operator)],
)
def lookup_directory(
    identifier: str,
    service: DirectoryLookupService = Depends(get_directory_service),
) -> DirectoryPrefillResponse:
    try:
        prefill = service.lookup(identifier)
        return DirectoryPrefillResponse(**prefill.to_dict())
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected directory lookup failure")
        raise internal_error("Server error while searching directory", exc) from exc


@router.put(
    "/{external_id}",
    response_model=ParticipantResponse,
    dependencies=[Depends(require_operator)],
)
def update_participant(
    external_id: str,
    payload: UpdateParticipantRequest,
    service: ParticipantService = Depends(get_participant_service),
) -> ParticipantResponse:
    try:
        participant = service.update(external_id, payload.model_dump(exclude_none=True))
        return ParticipantResponse.from_domain(participant)
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected participant update failure")
        raise internal_error("Server error while updating participant", exc) from exc
