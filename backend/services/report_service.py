"""Spreadsheet exports built from point-in-time snapshots of the store."""

from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

import pandas as pd

from backend.domain.constraints import normalize_gender
from backend.domain.models import AllocationStatus, Gender, Participant, PaymentStatus, Room
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ROOM_COLUMNS = [
    "Room Number",
    "Gender",
    "Block",
    "Floor",
    "Total Capacity",
    "Occupied",
    "Available",
    "Occupancy %",
    "Location Address",
    "Latitude",
    "Longitude",
]
OCCUPANCY_COLUMNS = [
    "Room Number",
    "External ID",
    "Name",
    "Gender",
    "Contact",
    "Email",
    "Payment Status",
    "Allocated By",
    "Allocated At",
]
SUMMARY_COLUMNS = ["Room Number", "Gender", "Capacity", "Occupied", "Available", "Full"]
PARTICIPANT_COLUMNS = [
    "External ID",
    "Name",
    "Gender",
    "Contact Number",
    "Email",
    "Payment Status",
    "Allocation Status",
    "Room Number",
    "Allocated By",
    "Registered At",
]
PAID_COLUMNS = [
    "External ID",
    "Name",
    "Gender",
    "Contact Number",
    "Email",
    "Allocation Status",
    "Room Number",
    "Allocated By",
]
UNPAID_COLUMNS = ["External ID", "Name", "Gender", "Contact Number", "Email", "Registered At"]
ALLOCATION_COLUMNS = [
    "Room Number",
    "External ID",
    "Name",
    "Gender",
    "Contact Number",
    "Email",
    "Payment Status",
    "Allocated By",
    "Allocated At",
]


@dataclass(frozen=True)
class ExportFile:
    filename: str
    content: bytes
    media_type: str = XLSX_MEDIA_TYPE


def _occupancy_percent(room: Room) -> float:
    return round(room.occupied_count / room.total_capacity * 100, 2)


def _room_row(room: Room) -> dict[str, object]:
    return {
        "Room Number": room.room_number,
        "Gender": room.gender.value,
        "Block": room.block,
        "Floor": room.floor,
        "Total Capacity": room.total_capacity,
        "Occupied": room.occupied_count,
        "Available": room.available_spots,
        "Occupancy %": _occupancy_percent(room),
        "Location Address": room.location.address,
        "Latitude": room.location.latitude,
        "Longitude": room.location.longitude,
    }


def _participant_row(participant: Participant) -> dict[str, object]:
    return {
        "External ID": participant.external_id,
        "Name": participant.name,
        "Gender": participant.gender.value,
        "Contact Number": participant.contact_number,
        "Contact": participant.contact_number,
        "Email": participant.email,
        "Payment Status": participant.payment_status.value,
        "Allocation Status": participant.allocation_status.value,
        "Room Number": participant.room_number
        if participant.room_number is not None
        else "Not Allocated",
        "Allocated By": participant.allocated_by or "N/A",
        "Allocated At": participant.allocated_at or "",
        "Registered At": participant.created_at or "",
    }


def _frame(rows: Sequence[dict[str, object]], columns: list[str]) -> pd.DataFrame:
    return pd.DataFrame([{column: row.get(column) for column in columns} for row in rows], columns=columns)


def _to_workbook(sheets: Sequence[tuple[str, pd.DataFrame]]) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for sheet_name, frame in sheets:
            frame.to_excel(writer, index=False, sheet_name=sheet_name)
    return buffer.getvalue()


class ReportService:
    """Read-only tabular exports; never mutates rooms or participants."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._clock = clock

    def _filename(self, label: str) -> str:
        return f"{label}_{self._clock().strftime('%Y%m%d_%H%M%S')}.xlsx"

    def _export(self, label: str, sheets: Sequence[tuple[str, pd.DataFrame]]) -> ExportFile:
        export = ExportFile(filename=self._filename(label), content=_to_workbook(sheets))
        logger.info("Built export %s (%s bytes)", export.filename, len(export.content))
        return export

    def export_rooms(self) -> ExportFile:
        rooms = self._repository.list_rooms()
        return self._export("Rooms", [("Rooms", _frame([_room_row(r) for r in rooms], ROOM_COLUMNS))])

    def export_room_occupancy(self) -> ExportFile:
        with self._repository.snapshot() as conn:
            rooms = self._repository.list_rooms(conn=conn)
            allocated = self._repository.list_participants(
                allocation_status=AllocationStatus.ALLOCATED,
                order="room",
                conn=conn,
            )
        summary_rows = [
            {
                "Room Number": room.room_number,
                "Gender": room.gender.value,
                "Capacity": room.total_capacity,
                "Occupied": room.occupied_count,
                "Available": room.available_spots,
                "Full": "YES" if room.is_full else "NO",
            }
            for room in rooms
        ]
        return self._export(
            "Room_Occupancy",
            [
                ("Occupancy", _frame([_participant_row(p) for p in allocated], OCCUPANCY_COLUMNS)),
                ("Summary", _frame(summary_rows, SUMMARY_COLUMNS)),
            ],
        )

    def export_participants(self, gender: Optional[str] = None) -> ExportFile:
        """All participants, newest first; ``gender`` of None or "Both" means no filter."""
        resolved: Optional[Gender] = None
        if gender and gender.strip().lower() not in {"both", "all"}:
            resolved = normalize_gender(gender)
        participants = self._repository.list_participants(gender=resolved, order="created")
        suffix = resolved.value if resolved is not None else "All"
        return self._export(
            f"Participants_{suffix}",
            [
                (
                    "Participants",
                    _frame([_participant_row(p) for p in participants], PARTICIPANT_COLUMNS),
                )
            ],
        )

    def export_paid_participants(self) -> ExportFile:
        participants = self._repository.list_participants(
            payment_status=PaymentStatus.PAID, order="name"
        )
        return self._export(
            "Paid_Participants",
            [("Paid Participants", _frame([_participant_row(p) for p in participants], PAID_COLUMNS))],
        )

    def export_unpaid_participants(self) -> ExportFile:
        participants = self._repository.list_participants(
            payment_status=PaymentStatus.UNPAID, order="name"
        )
        return self._export(
            "Unpaid_Participants",
            [
                (
                    "Unpaid Participants",
                    _frame([_participant_row(p) for p in participants], UNPAID_COLUMNS),
                )
            ],
        )

    def export_allocations(self) -> ExportFile:
        participants = self._repository.list_participants(
            allocation_status=AllocationStatus.ALLOCATED, order="room"
        )
        return self._export(
            "Allocations",
            [("Allocations", _frame([_participant_row(p) for p in participants], ALLOCATION_COLUMNS))],
        )
