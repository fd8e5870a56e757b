import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import AttendanceSummary, CamelModel, Student, UserRole
from ..modules.attendance_aggregator import summarize_daily_attendance
from ..modules.school_calendar import InvalidDateError, query_bounds, school_timezone
from ..modules.teaching_assignments import scope_of
from .errors import InvalidDataError, NotFoundError, PersistenceError

logger = logging.getLogger(__name__)


class RosterEntry(CamelModel):
    """A student in someone's scope, with their daily attendance when a date range was asked for."""
    student: Student
    attendance: Optional[List[AttendanceSummary]] = None


class RosterService:
    """
    Resolves which students a teacher or student may see.

    A teacher's scope is the set of (education level, grade/year level, section)
    triples in their teaching assignments; a student's scope is their own triple.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def _load(self, role: UserRole, user_id: UUID):
        try:
            user = await self.db_client.get_user_by_id(role, user_id)
        except Exception as e:
            logger.error(f"Error fetching {role.value} {user_id}.", exc_info=True)
            raise PersistenceError(f"Error fetching {role.value.lower()}") from e
        if not user:
            raise NotFoundError(f"{role.value} not found")
        return user

    async def students_by_teacher(
        self, teacher_id: UUID, day: Optional[str] = None,
        start_day: Optional[str] = None, end_day: Optional[str] = None,
    ) -> List[RosterEntry]:
        teacher = await self._load(UserRole.TEACHER, teacher_id)
        return await self._roster(scope_of(teacher.teaching_assignments), day, start_day, end_day)

    async def students_by_student(
        self, student_id: UUID, day: Optional[str] = None,
        start_day: Optional[str] = None, end_day: Optional[str] = None,
    ) -> List[RosterEntry]:
        student = await self._load(UserRole.STUDENT, student_id)
        scope = [(student.education_level, student.grade_year_level, student.section)]
        return await self._roster(scope, day, start_day, end_day)

    async def _roster(
        self, scope: Sequence[Tuple[str, str, str]],
        day: Optional[str], start_day: Optional[str], end_day: Optional[str],
    ) -> List[RosterEntry]:
        # Bad dates are rejected before anything is read
        try:
            bounds = query_bounds(day, start_day, end_day, school_timezone())
        except InvalidDateError as e:
            raise InvalidDataError(str(e)) from e

        if not scope:
            return []
        try:
            students = await self.db_client.get_students_in_scope(scope)
        except Exception as e:
            logger.error("Error resolving students in scope.", exc_info=True)
            raise PersistenceError("Error fetching students") from e

        if bounds is None:
            return [RosterEntry(student=student) for student in students]
        attendance = await self._attendance_by_student(students, bounds)
        return [
            RosterEntry(student=student, attendance=attendance.get(student.id, []))
            for student in students
        ]

    async def _attendance_by_student(self, students: List[Student], bounds) -> Dict[UUID, List[AttendanceSummary]]:
        if not students:
            return {}
        start, end = bounds
        try:
            records = await self.db_client.get_attendance_between(
                start, end, user_type=UserRole.STUDENT, user_ids=[s.id for s in students]
            )
        except Exception as e:
            logger.error("Error fetching roster attendance.", exc_info=True)
            raise PersistenceError("Error fetching attendance") from e

        grouped: Dict[UUID, List[AttendanceSummary]] = defaultdict(list)
        for summary in summarize_daily_attendance(records):
            grouped[summary.user_id].append(summary)
        return grouped
