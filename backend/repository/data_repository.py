"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

from backend.domain.errors import ConflictError
from backend.domain.models import (
    AllocationStatus,
    Gender,
    Location,
    OperatorAccount,
    Participant,
    PaymentStatus,
    Role,
    Room,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


# Room number, gender, capacity, block, floor
DEFAULT_ROOM_INVENTORY: tuple[tuple[int, str, int | None, str, str], ...] = (
    (101, "Male", None, "A Block", "1st Floor"),
    (102, "Male", None, "A Block", "1st Floor"),
    (103, "Male", None, "A Block", "1st Floor"),
    (104, "Male", None, "A Block", "1st Floor"),
    (105, "Male", None, "A Block", "2nd Floor"),
    (106, "Male", 40, "A Block", "2nd Floor"),
    (107, "Male", 40, "A Block", "2nd Floor"),
    (108, "Male", 40, "A Block", "2nd Floor"),
    (201, "Female", None, "H Block", "1st Floor"),
    (202, "Female", None, "H Block", "1st Floor"),
    (203, "Female", None, "H Block", "1st Floor"),
    (204, "Female", None, "H Block", "1st Floor"),
    (205, "Female", None, "H Block", "2nd Floor"),
    (206, "Female", 40, "H Block", "2nd Floor"),
    (207, "Female", 40, "H Block", "2nd Floor"),
    (208, "Female", 40, "H Block", "2nd Floor"),
)

_PARTICIPANT_ORDERING = {
    "created": "created_at DESC, external_id ASC",
    "name": "name COLLATE NOCASE ASC, external_id ASC",
    "room": "room_number ASC, name COLLATE NOCASE ASC",
}

# Columns an operator may correct through the participant update path.
_UPDATABLE_PARTICIPANT_COLUMNS = frozenset(
    {"name", "contact_number", "email", "gender", "payment_status"}
)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _row_to_room(row: sqlite3.Row) -> Room:
    return Room(
        room_number=int(row["room_number"]),
        gender=Gender(row["gender"]),
        total_capacity=int(row["total_capacity"]),
        occupied_count=int(row["occupied_count"]),
        block=str(row["block"] or ""),
        floor=str(row["floor"] or ""),
        location=Location(
            address=str(row["location_address"] or ""),
            latitude=row["latitude"],
            longitude=row["longitude"],
        ),
    )


def _row_to_participant(row: sqlite3.Row) -> Participant:
    return Participant(
        external_id=str(row["external_id"]),
        name=str(row["name"]),
        gender=Gender(row["gender"]),
        contact_number=str(row["contact_number"]),
        email=str(row["email"] or ""),
        payment_status=PaymentStatus(row["payment_status"]),
        allocation_status=AllocationStatus(row["allocation_status"]),
        room_number=None if row["room_number"] is None else int(row["room_number"]),
        allocated_by=row["allocated_by"],
        allocated_at=row["allocated_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_operator(row: sqlite3.Row) -> OperatorAccount:
    return OperatorAccount(
        username=str(row["username"]),
        name=str(row["name"]),
        role=Role(row["role"]),
        password_hash=str(row["password_hash"]),
        is_active=bool(row["is_active"]),
    )


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic.

    Connections run in autocommit mode; multi-statement units of work go
    through :meth:`transaction`, which takes the database write lock up front
    so read-check-write sequences cannot interleave.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.sqlite_busy_timeout_seconds,
            isolation_level=None,
            check_same_thread=False,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _session(self, conn: Optional[sqlite3.Connection]) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        connection = self._connect()
        try:
            yield connection
        finally:
            connection.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a write unit of work under an immediate (write-locked) transaction."""
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE;")
            try:
                yield connection
            except BaseException:
                connection.execute("ROLLBACK;")
                raise
            connection.execute("COMMIT;")
        finally:
            connection.close()

    @contextmanager
    def snapshot(self) -> Iterator[sqlite3.Connection]:
        """Read-only transaction giving a consistent point-in-time view."""
        connection = self._connect()
        try:
            connection.execute("BEGIN;")
            try:
                yield connection
            finally:
                connection.execute("COMMIT;")
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._session(None) as conn:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        room_number INTEGER PRIMARY KEY CHECK (room_number > 0),
                        gender TEXT NOT NULL CHECK (gender IN ('Male', 'Female')),
                        total_capacity INTEGER NOT NULL CHECK (total_capacity > 0),
                        occupied_count INTEGER NOT NULL DEFAULT 0,
                        block TEXT NOT NULL DEFAULT '',
                        floor TEXT NOT NULL DEFAULT '',
                        location_address TEXT NOT NULL DEFAULT '',
                        latitude REAL,
                        longitude REAL,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        CHECK (occupied_count >= 0 AND occupied_count <= total_capacity)
                    );

                    CREATE TABLE IF NOT EXISTS Participants (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        external_id TEXT NOT NULL UNIQUE,
                        name TEXT NOT NULL,
                        gender TEXT NOT NULL CHECK (gender IN ('Male', 'Female')),
                        contact_number TEXT NOT NULL,
                        email TEXT NOT NULL DEFAULT '',
                        payment_status TEXT NOT NULL DEFAULT 'Unpaid'
                            CHECK (payment_status IN ('Paid', 'Unpaid')),
                        allocation_status TEXT NOT NULL DEFAULT 'NotAllocated'
                            CHECK (allocation_status IN ('Allocated', 'NotAllocated')),
                        room_number INTEGER REFERENCES Rooms(room_number),
                        allocated_by TEXT,
                        allocated_at TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        CHECK ((allocation_status = 'Allocated') = (room_number IS NOT NULL))
                    );

                    CREATE TABLE IF NOT EXISTS Operators (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        username TEXT NOT NULL UNIQUE,
                        password_hash TEXT NOT NULL,
                        role TEXT NOT NULL CHECK (role IN ('ADMIN', 'COORDINATOR')),
                        name TEXT NOT NULL,
                        is_active INTEGER NOT NULL DEFAULT 1,
                        created_at TEXT NOT NULL
                    );

                    CREATE INDEX IF NOT EXISTS idx_rooms_gender_occupancy
                    ON Rooms(gender, occupied_count);

                    CREATE INDEX IF NOT EXISTS idx_participants_room
                    ON Participants(room_number);

                    CREATE INDEX IF NOT EXISTS idx_participants_payment
                    ON Participants(payment_status);

                    CREATE INDEX IF NOT EXISTS idx_participants_allocation
                    ON Participants(allocation_status);
                    """
                )
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_default_rooms(self) -> int:
        """Insert the default inventory only when no rooms exist yet."""
        try:
            with self.transaction() as conn:
                count = int(conn.execute("SELECT COUNT(*) AS count FROM Rooms;").fetchone()["count"])
                if count > 0:
                    logger.info("Room inventory already present; skipping seed")
                    return 0
                now = _utc_now()
                conn.executemany(
                    """
                    INSERT INTO Rooms (
                        room_number, gender, total_capacity, occupied_count,
                        block, floor, created_at, updated_at
                    )
                    VALUES (?, ?, ?, 0, ?, ?, ?, ?);
                    """,
                    [
                        (
                            number,
                            gender,
                            capacity or self._settings.default_room_capacity,
                            block,
                            floor,
                            now,
                            now,
                        )
                        for number, gender, capacity, block, floor in DEFAULT_ROOM_INVENTORY
                    ],
                )
            logger.info("Seeded %s default rooms", len(DEFAULT_ROOM_INVENTORY))
            return len(DEFAULT_ROOM_INVENTORY)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Room seeding failed: {exc}") from exc

    # ------------------------------------------------------------------ rooms

    def get_room(
        self,
        room_number: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Room]:
        with self._session(conn) as session:
            row = session.execute(
                "SELECT * FROM Rooms WHERE room_number = ?;",
                (room_number,),
            ).fetchone()
            return None if row is None else _row_to_room(row)

    def list_rooms(self, conn: Optional[sqlite3.Connection] = None) -> list[Room]:
        with self._session(conn) as session:
            rows = session.execute("SELECT * FROM Rooms ORDER BY room_number ASC;").fetchall()
            return [_row_to_room(row) for row in rows]

    def list_available_rooms(
        self,
        gender: Gender,
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Room]:
        """Rooms for the gender with at least one free spot, by room number."""
        with self._session(conn) as session:
            rows = session.execute(
                """
                SELECT *
                FROM Rooms
                WHERE gender = ?
                  AND occupied_count < total_capacity
                ORDER BY room_number ASC;
                """,
                (gender.value,),
            ).fetchall()
            return [_row_to_room(row) for row in rows]

    def create_room(self, room: Room, conn: Optional[sqlite3.Connection] = None) -> Room:
        now = _utc_now()
        with self._session(conn) as session:
            try:
                session.execute(
                    """
                    INSERT INTO Rooms (
                        room_number, gender, total_capacity, occupied_count,
                        block, floor, location_address, latitude, longitude,
                        created_at, updated_at
                    )
                    VALUES (?, ?, ?, 0, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        room.room_number,
                        room.gender.value,
                        room.total_capacity,
                        room.block,
                        room.floor,
                        room.location.address,
                        room.location.latitude,
                        room.location.longitude,
                        now,
                        now,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("Room with this number already exists") from exc
        return replace(room, occupied_count=0)

    def update_room_capacity(
        self,
        room_number: int,
        total_capacity: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Set capacity unless it would drop below current occupancy."""
        with self._session(conn) as session:
            cursor = session.execute(
                """
                UPDATE Rooms
                SET total_capacity = ?, updated_at = ?
                WHERE room_number = ?
                  AND occupied_count <= ?;
                """,
                (total_capacity, _utc_now(), room_number, total_capacity),
            )
            return cursor.rowcount == 1

    def delete_room_if_empty(
        self,
        room_number: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        with self._session(conn) as session:
            cursor = session.execute(
                "DELETE FROM Rooms WHERE room_number = ? AND occupied_count = 0;",
                (room_number,),
            )
            return cursor.rowcount == 1

    def increment_occupancy(
        self,
        room_number: int,
        gender: Gender,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Compare-and-swap style increment gated on gender and free capacity."""
        with self._session(conn) as session:
            cursor = session.execute(
                """
                UPDATE Rooms
                SET occupied_count = occupied_count + 1, updated_at = ?
                WHERE room_number = ?
                  AND gender = ?
                  AND occupied_count < total_capacity;
                """,
                (_utc_now(), room_number, gender.value),
            )
            return cursor.rowcount == 1

    # ----------------------------------------------------------- participants

    def get_participant(
        self,
        external_id: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Participant]:
        with self._session(conn) as session:
            row = session.execute(
                "SELECT * FROM Participants WHERE external_id = ?;",
                (external_id,),
            ).fetchone()
            return None if row is None else _row_to_participant(row)

    def insert_participant(
        self,
        *,
        external_id: str,
        name: str,
        gender: Gender,
        contact_number: str,
        email: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Insert a new unpaid, unallocated participant.

        Returns False when the unique index on ``external_id`` rejects the row.
        """
        now = _utc_now()
        with self._session(conn) as session:
            try:
                session.execute(
                    """
                    INSERT INTO Participants (
                        external_id, name, gender, contact_number, email,
                        payment_status, allocation_status, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, 'Unpaid', 'NotAllocated', ?, ?);
                    """,
                    (external_id, name, gender.value, contact_number, email, now, now),
                )
            except sqlite3.IntegrityError:
                return False
            return True

    def update_participant_fields(
        self,
        external_id: str,
        fields: Mapping[str, Any],
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        unknown = set(fields) - _UPDATABLE_PARTICIPANT_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update participant columns: {sorted(unknown)}")
        if not fields:
            return False
        assignments = ", ".join(f"{column} = ?" for column in fields)
        values = [
            value.value if isinstance(value, (Gender, PaymentStatus)) else value
            for value in fields.values()
        ]
        with self._session(conn) as session:
            cursor = session.execute(
                f"""
                UPDATE Participants
                SET {assignments}, updated_at = ?
                WHERE external_id = ?;
                """,
                (*values, _utc_now(), external_id),
            )
            return cursor.rowcount == 1

    def assign_room(
        self,
        external_id: str,
        room_number: int,
        allocated_by: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Point an unallocated participant at a room; no-op if already allocated."""
        now = _utc_now()
        with self._session(conn) as session:
            cursor = session.execute(
                """
                UPDATE Participants
                SET room_number = ?,
                    allocation_status = 'Allocated',
                    allocated_by = ?,
                    allocated_at = ?,
                    updated_at = ?
                WHERE external_id = ?
                  AND allocation_status = 'NotAllocated';
                """,
                (room_number, allocated_by, now, now, external_id),
            )
            return cursor.rowcount == 1

    def list_participants(
        self,
        *,
        gender: Optional[Gender] = None,
        payment_status: Optional[PaymentStatus] = None,
        allocation_status: Optional[AllocationStatus] = None,
        room_number: Optional[int] = None,
        order: str = "created",
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Participant]:
        clauses: list[str] = []
        params: list[Any] = []
        if gender is not None:
            clauses.append("gender = ?")
            params.append(gender.value)
        if payment_status is not None:
            clauses.append("payment_status = ?")
            params.append(payment_status.value)
        if allocation_status is not None:
            clauses.append("allocation_status = ?")
            params.append(allocation_status.value)
        if room_number is not None:
            clauses.append("room_number = ?")
            params.append(room_number)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        ordering = _PARTICIPANT_ORDERING[order]
        with self._session(conn) as session:
            rows = session.execute(
                f"SELECT * FROM Participants {where} ORDER BY {ordering};",
                tuple(params),
            ).fetchall()
            return [_row_to_participant(row) for row in rows]

    def count_assigned(
        self,
        room_number: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        with self._session(conn) as session:
            row = session.execute(
                "SELECT COUNT(*) AS count FROM Participants WHERE room_number = ?;",
                (room_number,),
            ).fetchone()
            return int(row["count"])

    # -------------------------------------------------------------- operators

    def get_operator(
        self,
        username: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[OperatorAccount]:
        with self._session(conn) as session:
            row = session.execute(
                "SELECT * FROM Operators WHERE username = ?;",
                (username,),
            ).fetchone()
            return None if row is None else _row_to_operator(row)

    def create_operator(
        self,
        account: OperatorAccount,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Insert an operator account; False if the username is taken."""
        with self._session(conn) as session:
            try:
                session.execute(
                    """
                    INSERT INTO Operators (username, password_hash, role, name, is_active, created_at)
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    (
                        account.username,
                        account.password_hash,
                        account.role.value,
                        account.name,
                        int(account.is_active),
                        _utc_now(),
                    ),
                )
            except sqlite3.IntegrityError:
                return False
            return True

    def set_operator_active(
        self,
        username: str,
        is_active: bool,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        with self._session(conn) as session:
            cursor = session.execute(
                "UPDATE Operators SET is_active = ? WHERE username = ?;",
                (int(is_active), username),
            )
            return cursor.rowcount == 1

    def has_operator_with_role(
        self,
        role: Role,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        with self._session(conn) as session:
            row = session.execute(
                "SELECT 1 FROM Operators WHERE role = ? LIMIT 1;",
                (role.value,),
            ).fetchone()
            return row is not None
