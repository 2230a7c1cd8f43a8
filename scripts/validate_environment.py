#!/usr/bin/env python3
"""Validate local check-in environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.models import Operator, Role
from backend.repository.data_repository import DEFAULT_ROOM_INVENTORY, DataRepository
from backend.services.allocation_service import RoomAllocationService
from backend.services.participant_service import ParticipantService
from backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="checkin-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_names = [
        "fastapi",
        "uvicorn",
        "pydantic",
        "pandas",
        "openpyxl",
        "requests",
        "werkzeug",
        "httpx",
        "pytest",
    ]
    import_errors: list[str] = []
    for module_name in package_names:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "checkin_validation.db",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except RuntimeError as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Default room inventory
        try:
            seeded = repository.seed_default_rooms()
            if seeded != len(DEFAULT_ROOM_INVENTORY):
                raise RuntimeError(f"expected {len(DEFAULT_ROOM_INVENTORY)} rooms, got {seeded}")
            ok, line = _print_result("Default inventory", True, f": {seeded} rooms")
        except RuntimeError as exc:
            ok, line = _print_result("Default inventory", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Check-in and allocation round trip
        participants = ParticipantService(repository=repository, settings=validation_settings)
        allocation = RoomAllocationService(repository=repository, settings=validation_settings)
        operator = Operator(username="validator", name="Validator", role=Role.COORDINATOR)
        try:
            participants.create(
                external_id="val001",
                name="Validation Participant",
                gender="Male",
                contact_number="9876543210",
            )
            participants.set_payment("VAL001", "Paid")
            room = allocation.list_available("Male")[0]
            result = allocation.allocate("VAL001", room.room_number, operator)
            if result.room.occupied_count != 1:
                raise RuntimeError(f"expected occupancy 1, got {result.room.occupied_count}")
            ok, line = _print_result(
                "Check-in flow",
                True,
                f": VAL001 -> room {result.room.room_number}",
            )
        except Exception as exc:
            ok, line = _print_result("Check-in flow", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 6: Occupancy invariants
        try:
            violations = allocation.verify_invariants()
            if violations:
                raise RuntimeError("; ".join(v.message for v in violations))
            ok, line = _print_result("Occupancy invariants", True)
        except Exception as exc:
            ok, line = _print_result("Occupancy invariants", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Check-in Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
