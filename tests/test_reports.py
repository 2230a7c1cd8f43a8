from __future__ import annotations

import io
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from openpyxl import load_workbook

from backend.domain.models import Operator, Role
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import RoomAllocationService
from backend.services.participant_service import ParticipantService
from backend.services.report_service import XLSX_MEDIA_TYPE, ReportService
from backend.utils.config import get_settings


FIXED_NOW = datetime(2026, 3, 1, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture()
def reports(tmp_path) -> ReportService:
    get_settings.cache_clear()
    settings = replace(get_settings(), database_path=tmp_path / "reports.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_default_rooms()

    participants = ParticipantService(repository=repository, settings=settings)
    allocation = RoomAllocationService(repository=repository, settings=settings)
    operator = Operator(username="coordinator", name="Coordinator User", role=Role.COORDINATOR)
    for external_id, name, gender, paid in (
        ("P001", "Arun", "Male", True),
        ("P002", "Bala", "Male", False),
        ("P003", "Divya", "Female", True),
    ):
        participants.create(external_id=external_id, name=name, gender=gender, contact_number="1")
        if paid:
            participants.set_payment(external_id, "Paid")
    allocation.allocate("P001", 101, operator)
    allocation.allocate("P003", 201, operator)

    return ReportService(repository=repository, settings=settings, clock=lambda: FIXED_NOW)


def _sheet_rows(content: bytes, sheet: str) -> list[tuple]:
    workbook = load_workbook(io.BytesIO(content), read_only=True)
    return list(workbook[sheet].iter_rows(values_only=True))


def test_rooms_export(reports: ReportService) -> None:
    export = reports.export_rooms()

    assert export.filename == "Rooms_20260301_093000.xlsx"
    assert export.media_type == XLSX_MEDIA_TYPE
    rows = _sheet_rows(export.content, "Rooms")
    header, first = rows[0], rows[1]
    assert header[0] == "Room Number"
    assert len(rows) == 17
    assert first[0] == 101
    assert first[header.index("Occupied")] == 1
    assert first[header.index("Available")] == 49


def test_room_occupancy_export_has_detail_and_summary(reports: ReportService) -> None:
    export = reports.export_room_occupancy()

    workbook = load_workbook(io.BytesIO(export.content), read_only=True)
    assert workbook.sheetnames == ["Occupancy", "Summary"]
    occupancy = _sheet_rows(export.content, "Occupancy")
    assert [row[1] for row in occupancy[1:]] == ["P001", "P003"]
    summary = _sheet_rows(export.content, "Summary")
    assert len(summary) == 17


def test_participant_exports_filter_by_gender_and_payment(reports: ReportService) -> None:
    everyone = _sheet_rows(reports.export_participants().content, "Participants")
    assert sorted(row[0] for row in everyone[1:]) == ["P001", "P002", "P003"]

    both = reports.export_participants("Both")
    assert both.filename.startswith("Participants_All_")

    female = reports.export_participants("girls")
    assert female.filename.startswith("Participants_Female_")
    assert [row[0] for row in _sheet_rows(female.content, "Participants")[1:]] == ["P003"]

    paid = _sheet_rows(reports.export_paid_participants().content, "Paid Participants")
    assert [row[0] for row in paid[1:]] == ["P001", "P003"]

    unpaid = _sheet_rows(reports.export_unpaid_participants().content, "Unpaid Participants")
    assert [row[0] for row in unpaid[1:]] == ["P002"]


def test_allocations_export_lists_allocated_only(reports: ReportService) -> None:
    rows = _sheet_rows(reports.export_allocations().content, "Allocations")
    header = rows[0]

    assert header[0] == "Room Number"
    assert [(row[0], row[1]) for row in rows[1:]] == [(101, "P001"), (201, "P003")]
    assert all(row[header.index("Allocated By")] == "coordinator" for row in rows[1:])
