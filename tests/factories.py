# tests/factories.py
import uuid
from datetime import datetime, timezone

from school_attendance.backend.models.db_models import (
    AttendanceRecord, Employee, EventType, Student, Teacher, TeachingAssignment, UserRole, UserSnapshot
)


def make_student(**overrides) -> Student:
    values = dict(
        id=uuid.uuid4(), code="S-001", first_name="Juan", last_name="Dela Cruz",
        email="juan@school.test", password=None, number="09171234567",
        student_number="2024-0001", education_level="Junior High", grade_year_level="Grade 7",
        section="Rizal",
    )
    values.update(overrides)
    return Student(**values)


def make_teacher(**overrides) -> Teacher:
    values = dict(
        id=uuid.uuid4(), code="T-001", first_name="Maria", last_name="Santos",
        email="maria@school.test", password=None, number="09179876543",
    )
    values.update(overrides)
    return Teacher(**values)


def make_employee(**overrides) -> Employee:
    values = dict(
        id=uuid.uuid4(), code="E-001", first_name="Pedro", last_name="Reyes",
        email="pedro@school.test", password=None, number="09170000000", position="Registrar",
    )
    values.update(overrides)
    return Employee(**values)


def make_assignment(education_level="Junior High", grade_year_level="Grade 7", section="Rizal", **overrides) -> TeachingAssignment:
    return TeachingAssignment(
        education_level=education_level, grade_year_level=grade_year_level, section=section, **overrides
    )


def make_record(user_id, event_type: EventType, timestamp: datetime, user_type=UserRole.STUDENT, user=None) -> AttendanceRecord:
    return AttendanceRecord(
        id=uuid.uuid4(), user_id=user_id, user_type=user_type,
        event_type=event_type, timestamp=timestamp, user=user,
    )


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def snapshot(first_name="Juan", last_name="Dela Cruz", **overrides) -> UserSnapshot:
    return UserSnapshot(first_name=first_name, last_name=last_name, **overrides)
