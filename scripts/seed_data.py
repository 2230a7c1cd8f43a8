#!/usr/bin/env python3
"""Initialize the database with the default room inventory and operator accounts.

Safe to re-run: rooms are only seeded into an empty table and a default
operator is only created for a role that has no account yet.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.errors import CheckInError
from backend.repository.data_repository import DataRepository
from backend.services.auth_service import AuthService
from backend.services.participant_service import ParticipantService
from backend.utils.config import get_settings
from backend.utils.logger import get_logger


logger = get_logger("seed_data")

SAMPLE_PARTICIPANTS = (
    ("DEMO001", "Arun Kumar", "Male", "9876500001", "Paid"),
    ("DEMO002", "Bala Murugan", "Male", "9876500002", "Unpaid"),
    ("DEMO003", "Divya Shree", "Female", "9876500003", "Paid"),
    ("DEMO004", "Keerthana R", "Female", "9876500004", "Unpaid"),
)


def seed_sample_participants(service: ParticipantService) -> int:
    """Register missing demo participants; existing ones keep their current payment status."""
    registered = 0
    for external_id, name, gender, contact, payment in SAMPLE_PARTICIPANTS:
        result = service.create(
            external_id=external_id,
            name=name,
            gender=gender,
            contact_number=contact,
        )
        if result.already_existed:
            continue
        service.set_payment(external_id, payment)
        registered += 1
    return registered


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--with-sample-participants",
        action="store_true",
        help="also register a handful of demo participants",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    repository = DataRepository(settings)
    repository.initialize_database()

    rooms = repository.seed_default_rooms()
    operators = AuthService(repository=repository, settings=settings).ensure_default_operators()
    print(f"Rooms seeded: {rooms}")
    print(f"Default operators created: {operators}")

    if args.with_sample_participants:
        service = ParticipantService(repository=repository, settings=settings)
        try:
            registered = seed_sample_participants(service)
        except CheckInError as exc:
            logger.error("Could not seed sample participants: %s", exc.message)
            return 1
        print(f"Sample participants registered: {registered}")

    print(f"Database ready at {repository.database_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
