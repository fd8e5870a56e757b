import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID
import asyncpg
from datetime import datetime

from ..models.db_models import (
    AttendanceRecord, EventType, ROLE_MODELS, Student, Teacher, TeachingAssignment,
    UserBase, UserRole, UserSnapshot
)

logger = logging.getLogger(__name__)

ROLE_TABLES: Dict[UserRole, str] = {
    UserRole.STUDENT: "students",
    UserRole.TEACHER: "teachers",
    UserRole.EMPLOYEE: "employees",
}

COMMON_COLUMNS = (
    "id", "code", "first_name", "middle_name", "last_name", "email", "password",
    "number", "address", "image", "sign_in_time", "sign_out_time",
)

ROLE_COLUMNS: Dict[UserRole, Tuple[str, ...]] = {
    UserRole.STUDENT: COMMON_COLUMNS + (
        "student_number", "education_level", "grade_year_level", "section", "class_schedule", "subjects",
    ),
    UserRole.TEACHER: COMMON_COLUMNS + (
        "teaching_assignments", "class_schedule", "education_level", "grade_year_level", "section", "subjects",
    ),
    UserRole.EMPLOYEE: COMMON_COLUMNS + ("position",),
}

TEACHER_LIST_COLUMNS = ("class_schedule", "education_level", "grade_year_level", "section", "subjects")

SIGN_TIME_COLUMNS: Dict[EventType, str] = {
    EventType.SIGN_IN: "sign_in_time",
    EventType.SIGN_OUT: "sign_out_time",
}

_USER_COLUMNS_DDL = """
    id UUID PRIMARY KEY,
    code TEXT NOT NULL UNIQUE,
    first_name TEXT NOT NULL,
    middle_name TEXT,
    last_name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    number VARCHAR(11) NOT NULL,
    address TEXT,
    image TEXT,
    sign_in_time TIMESTAMPTZ,
    sign_out_time TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
"""

SCHEMA_STATEMENTS = (
    f"""
    CREATE TABLE IF NOT EXISTS students ({_USER_COLUMNS_DDL},
        student_number TEXT NOT NULL,
        education_level TEXT NOT NULL,
        grade_year_level TEXT NOT NULL,
        section TEXT NOT NULL,
        class_schedule TEXT[] NOT NULL DEFAULT '{{}}',
        subjects TEXT[] NOT NULL DEFAULT '{{}}'
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS teachers ({_USER_COLUMNS_DDL},
        teaching_assignments JSONB NOT NULL DEFAULT '[]',
        class_schedule TEXT[] NOT NULL DEFAULT '{{}}',
        education_level TEXT[] NOT NULL DEFAULT '{{}}',
        grade_year_level TEXT[] NOT NULL DEFAULT '{{}}',
        section TEXT[] NOT NULL DEFAULT '{{}}',
        subjects TEXT[] NOT NULL DEFAULT '{{}}'
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS employees ({_USER_COLUMNS_DDL},
        position TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS attendance (
        id UUID PRIMARY KEY,
        user_id UUID NOT NULL,
        user_type TEXT NOT NULL CHECK (user_type IN ('Student', 'Teacher', 'Employee')),
        event_type TEXT NOT NULL CHECK (event_type IN ('sign-in', 'sign-out')),
        "timestamp" TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    'CREATE INDEX IF NOT EXISTS attendance_timestamp_idx ON attendance ("timestamp");',
    "CREATE INDEX IF NOT EXISTS attendance_user_idx ON attendance (user_id, user_type);",
)

# Attendance rows joined with whatever the owning user looks like right now.
# Deleted users come back with NULL display fields.
_ATTENDANCE_SELECT = """
    SELECT a.id, a.user_id, a.user_type, a.event_type, a."timestamp",
           u.id AS snapshot_id, u.first_name, u.middle_name, u.last_name, u.student_number, u.position
    FROM attendance a
    LEFT JOIN (
        SELECT id, 'Student' AS user_type, first_name, middle_name, last_name, student_number, NULL::text AS position
        FROM students
        UNION ALL
        SELECT id, 'Teacher', first_name, middle_name, last_name, NULL::text, NULL::text
        FROM teachers
        UNION ALL
        SELECT id, 'Employee', first_name, middle_name, last_name, NULL::text, position
        FROM employees
    ) u ON u.id = a.user_id AND u.user_type = a.user_type
"""


def _encode_value(column: str, value: Any) -> Any:
    if column == "teaching_assignments":
        return json.dumps([
            TeachingAssignment.model_validate(item).model_dump(mode="json", by_alias=True)
            for item in (value or [])
        ])
    return value


def _attendance_from_record(record: asyncpg.Record) -> AttendanceRecord:
    snapshot = None
    if record["snapshot_id"] is not None:
        snapshot = UserSnapshot(
            first_name=record["first_name"],
            middle_name=record["middle_name"],
            last_name=record["last_name"],
            student_number=record["student_number"],
            position=record["position"],
        )
    return AttendanceRecord(
        id=record["id"],
        user_id=record["user_id"],
        user_type=record["user_type"],
        event_type=record["event_type"],
        timestamp=record["timestamp"],
        user=snapshot,
    )


class AsyncPostgresClient:
    """
    PostgreSQL client for every database operation.

    User operations are written once and parameterized by UserRole; the role
    picks the table, the allowed columns and the pydantic model for rows.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def init_schema(self):
        """Creates the tables and indexes if they do not exist yet."""
        async with self._pool.acquire() as connection:
            for statement in SCHEMA_STATEMENTS:
                await connection.execute(statement)

    @staticmethod
    def _to_model(role: UserRole, record: Optional[asyncpg.Record]) -> Optional[UserBase]:
        return ROLE_MODELS[role].model_validate(dict(record)) if record else None

    @staticmethod
    def _checked_columns(role: UserRole, columns) -> List[str]:
        allowed = ROLE_COLUMNS[role]
        unknown = [c for c in columns if c not in allowed]
        if unknown:
            raise ValueError(f"Unknown column(s) for {ROLE_TABLES[role]}: {', '.join(unknown)}")
        return list(columns)

    # ===== Users (generic per role) =====

    async def add_user(self, role: UserRole, values: Dict[str, Any]) -> UserBase:
        """Inserts a user row and returns it. Duplicate code/email raises asyncpg.UniqueViolationError."""
        columns = self._checked_columns(role, values.keys())
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        query = f"""
            INSERT INTO {ROLE_TABLES[role]} ({", ".join(columns)})
            VALUES ({placeholders})
            RETURNING *;
        """
        args = [_encode_value(c, values[c]) for c in columns]
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, *args)
            return self._to_model(role, record)

    async def get_user_by_id(self, role: UserRole, user_id: UUID) -> Optional[UserBase]:
        query = f"SELECT * FROM {ROLE_TABLES[role]} WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return self._to_model(role, record)

    async def get_user_by_code(self, role: UserRole, code: str) -> Optional[UserBase]:
        query = f"SELECT * FROM {ROLE_TABLES[role]} WHERE code = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, code)
            return self._to_model(role, record)

    async def get_user_by_email(self, role: UserRole, email: str) -> Optional[UserBase]:
        query = f"SELECT * FROM {ROLE_TABLES[role]} WHERE lower(email) = lower($1);"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, email)
            return self._to_model(role, record)

    async def list_users(self, role: UserRole) -> List[UserBase]:
        query = f"SELECT * FROM {ROLE_TABLES[role]} ORDER BY last_name, first_name;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [self._to_model(role, record) for record in records]

    async def count_users(self, role: UserRole) -> int:
        query = f"SELECT count(*) FROM {ROLE_TABLES[role]};"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query)

    async def update_user(self, role: UserRole, user_id: UUID, changes: Dict[str, Any]) -> Optional[UserBase]:
        """Updates the given columns and returns the new row, or None if the id does not exist."""
        if not changes:
            return await self.get_user_by_id(role, user_id)
        columns = self._checked_columns(role, changes.keys())
        assignments = ", ".join(f"{c} = ${i}" for i, c in enumerate(columns, start=2))
        query = f"""
            UPDATE {ROLE_TABLES[role]}
            SET {assignments}, updated_at = now()
            WHERE id = $1
            RETURNING *;
        """
        args = [_encode_value(c, changes[c]) for c in columns]
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id, *args)
            return self._to_model(role, record)

    async def delete_user(self, role: UserRole, user_id: UUID) -> str:
        """Hard delete. Returns the asyncpg status string, e.g. 'DELETE 1'."""
        query = f"DELETE FROM {ROLE_TABLES[role]} WHERE id = $1;"
        async with self._pool.acquire() as connection:
            return await connection.execute(query, user_id)

    async def stamp_sign_time(self, role: UserRole, user_id: UUID, event_type: EventType, when: datetime) -> str:
        """Writes sign_in_time or sign_out_time on the user row."""
        column = SIGN_TIME_COLUMNS[event_type]
        query = f"UPDATE {ROLE_TABLES[role]} SET {column} = $2, updated_at = now() WHERE id = $1;"
        async with self._pool.acquire() as connection:
            return await connection.execute(query, user_id, when)

    async def clear_sign_times(self, role: UserRole, user_id: UUID) -> str:
        query = f"""
            UPDATE {ROLE_TABLES[role]}
            SET sign_in_time = NULL, sign_out_time = NULL, updated_at = now()
            WHERE id = $1;
        """
        async with self._pool.acquire() as connection:
            return await connection.execute(query, user_id)

    async def clear_stale_sign_times(self, role: UserRole, before: datetime) -> str:
        """Clears both stamps on every row whose sign-in happened before the given instant."""
        query = f"""
            UPDATE {ROLE_TABLES[role]}
            SET sign_in_time = NULL, sign_out_time = NULL, updated_at = now()
            WHERE sign_in_time < $1;
        """
        async with self._pool.acquire() as connection:
            return await connection.execute(query, before)

    # ===== Teachers =====

    async def set_teaching_assignments(self, teacher_id: UUID, assignments: List[TeachingAssignment]) -> Optional[Teacher]:
        """Replaces the whole teaching_assignments list."""
        return await self.update_user(UserRole.TEACHER, teacher_id, {"teaching_assignments": assignments})

    # Each list edit is one UPDATE statement

    @staticmethod
    def _teacher_list_column(column: str) -> str:
        if column not in TEACHER_LIST_COLUMNS:
            raise ValueError(f"'{column}' is not a teacher list column")
        return column

    async def append_teacher_list_value(self, teacher_id: UUID, column: str, value: str) -> Optional[Teacher]:
        column = self._teacher_list_column(column)
        query = f"""
            UPDATE teachers
            SET {column} = array_append({column}, $2), updated_at = now()
            WHERE id = $1
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, teacher_id, value)
            return self._to_model(UserRole.TEACHER, record)

    async def remove_teacher_list_value(self, teacher_id: UUID, column: str, value: str) -> Optional[Teacher]:
        """Removes every occurrence of the value."""
        column = self._teacher_list_column(column)
        query = f"""
            UPDATE teachers
            SET {column} = array_remove({column}, $2), updated_at = now()
            WHERE id = $1
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, teacher_id, value)
            return self._to_model(UserRole.TEACHER, record)

    async def replace_teacher_list_value(
        self, teacher_id: UUID, column: str, old_value: str, new_value: str
    ) -> Optional[Teacher]:
        """
        Replaces the first occurrence of old_value. Returns None both for an
        unknown teacher and for a list that does not hold old_value.
        """
        column = self._teacher_list_column(column)
        query = f"""
            UPDATE teachers
            SET {column}[array_position({column}, $2)] = $3, updated_at = now()
            WHERE id = $1 AND $2 = ANY({column})
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, teacher_id, old_value, new_value)
            return self._to_model(UserRole.TEACHER, record)

    # ===== Students =====

    async def get_students_in_scope(self, scope: Sequence[Tuple[str, str, str]]) -> List[Student]:
        """
        Returns students whose (education_level, grade_year_level, section) equals
        one of the given triples, compared case-insensitively field by field.
        """
        if not scope:
            return []
        query = """
            SELECT s.* FROM students s
            WHERE EXISTS (
                SELECT 1
                FROM unnest($1::text[], $2::text[], $3::text[]) AS scope(education_level, grade_year_level, section)
                WHERE lower(s.education_level) = lower(scope.education_level)
                  AND lower(s.grade_year_level) = lower(scope.grade_year_level)
                  AND lower(s.section) = lower(scope.section)
            )
            ORDER BY s.last_name, s.first_name;
        """
        education_levels = [triple[0] for triple in scope]
        grade_year_levels = [triple[1] for triple in scope]
        sections = [triple[2] for triple in scope]
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, education_levels, grade_year_levels, sections)
            return [self._to_model(UserRole.STUDENT, record) for record in records]

    # ===== Attendance =====

    async def add_attendance_record(self, record: AttendanceRecord):
        query = """
            INSERT INTO attendance (id, user_id, user_type, event_type, "timestamp")
            VALUES ($1, $2, $3, $4, $5);
        """
        async with self._pool.acquire() as connection:
            await connection.execute(
                query, record.id, record.user_id, record.user_type.value, record.event_type.value, record.timestamp
            )

    async def get_attendance_for_user(self, user_id: UUID, user_type: UserRole) -> List[AttendanceRecord]:
        """All events of one user, oldest first."""
        query = _ATTENDANCE_SELECT + """
            WHERE a.user_id = $1 AND a.user_type = $2
            ORDER BY a."timestamp" ASC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, user_id, user_type.value)
            return [_attendance_from_record(record) for record in records]

    async def get_attendance_between(
        self,
        start: datetime,
        end: datetime,
        user_type: Optional[UserRole] = None,
        user_ids: Optional[List[UUID]] = None,
    ) -> List[AttendanceRecord]:
        """Events with start <= timestamp <= end (both inclusive), oldest first."""
        query = _ATTENDANCE_SELECT + """
            WHERE a."timestamp" BETWEEN $1 AND $2
              AND ($3::text IS NULL OR a.user_type = $3::text)
              AND ($4::uuid[] IS NULL OR a.user_id = ANY($4::uuid[]))
            ORDER BY a."timestamp" ASC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(
                query, start, end, user_type.value if user_type else None, user_ids
            )
            return [_attendance_from_record(record) for record in records]
