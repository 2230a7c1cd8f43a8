"""Controller layer for spreadsheet exports."""

from __future__ import annotations

import io
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from backend.controllers.dependencies import (
    get_report_service,
    internal_error,
    require_admin,
    require_operator,
    to_http_exception,
)
from backend.domain.errors import CheckInError
from backend.services.report_service import ExportFile, ReportService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/export", tags=["export"])


def _stream(build: Callable[[], ExportFile], label: str) -> StreamingResponse:
    try:
        export = build()
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected %s export failure", label)
        raise internal_error(f"Server error while exporting {label}", exc) from exc
    return StreamingResponse(
        io.BytesIO(export.content),
        media_type=export.media_type,
        headers={"Content-Disposition": f"attachment; filename={export.filename}"},
    )


@router.get("/rooms", dependencies=[Depends(require_admin)])
def export_rooms(service: ReportService = Depends(get_report_service)) -> StreamingResponse:
    return _stream(service.export_rooms, "rooms")


@router.get("/room-occupancy", dependencies=[Depends(require_admin)])
def export_room_occupancy(
    service: ReportService = Depends(get_report_service),
) -> StreamingResponse:
    return _stream(service.export_room_occupancy, "occupancy")


@router.get("/participants", dependencies=[Depends(require_operator)])
def export_participants(
    gender: Optional[str] = Query(default=None, description="Male, Female or Both"),
    service: ReportService = Depends(get_report_service),
) -> StreamingResponse:
    return _stream(lambda: service.export_participants(gender), "participants")


@router.get("/paid", dependencies=[Depends(require_operator)])
def export_paid(service: ReportService = Depends(get_report_service)) -> StreamingResponse:
    return _stream(service.export_paid_participants, "paid participants")


@router.get("/unpaid", dependencies=[Depends(require_operator)])
def export_unpaid(service: ReportService = Depends(get_report_service)) -> StreamingResponse:
    return _stream(service.export_unpaid_participants, "unpaid participants")


@router.get("/allocations", dependencies=[Depends(require_operator)])
def export_allocations(
    service: ReportService = Depends(get_report_service),
) -> StreamingResponse:
    return _stream(service.export_allocations, "allocations")
