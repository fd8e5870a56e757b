import logging
from enum import Enum
from typing import List
from uuid import UUID

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Teacher, TeachingAssignment, UserRole
from ..modules.teaching_assignments import (
    DuplicateAssignmentError, add_assignment, remove_assignment, replace_assignments
)
from .errors import InvalidDataError, NotFoundError, PersistenceError

logger = logging.getLogger(__name__)


class TeacherListField(str, Enum):
    """The plain string lists on a teacher row that the admin edits one value at a time."""
    CLASS_SCHEDULE = "class-schedule"
    EDUCATION_LEVEL = "education-level"
    GRADE_YEAR_LEVEL = "grade-year-level"
    SECTION = "section"
    SUBJECTS = "subjects"

    @property
    def column(self) -> str:
        return self.value.replace("-", "_")


class TeacherService:
    """
    Service layer for teacher-owned data: teaching assignments and the
    per-teacher string lists.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def get_teacher(self, teacher_id: UUID) -> Teacher:
        try:
            teacher = await self.db_client.get_user_by_id(UserRole.TEACHER, teacher_id)
        except Exception as e:
            logger.error(f"Error fetching teacher {teacher_id}.", exc_info=True)
            raise PersistenceError("Error fetching teacher") from e
        if not teacher:
            raise NotFoundError("Teacher not found")
        return teacher

    async def _save_assignments(self, teacher_id: UUID, assignments: List[TeachingAssignment]) -> List[TeachingAssignment]:
        try:
            teacher = await self.db_client.set_teaching_assignments(teacher_id, assignments)
        except Exception as e:
            logger.error(f"Error saving teaching assignments of teacher {teacher_id}.", exc_info=True)
            raise PersistenceError("Error saving teaching assignments") from e
        if not teacher:
            raise NotFoundError("Teacher not found")
        return teacher.teaching_assignments

    # --- Teaching assignments ---

    async def list_assignments(self, teacher_id: UUID) -> List[TeachingAssignment]:
        teacher = await self.get_teacher(teacher_id)
        return teacher.teaching_assignments

    async def add_assignment(self, teacher_id: UUID, candidate: TeachingAssignment) -> List[TeachingAssignment]:
        teacher = await self.get_teacher(teacher_id)
        try:
            assignments = add_assignment(teacher.teaching_assignments, candidate)
        except DuplicateAssignmentError as e:
            raise InvalidDataError(str(e)) from e
        saved = await self._save_assignments(teacher_id, assignments)
        logger.info(
            f"Teacher {teacher_id} assigned to {candidate.education_level} / "
            f"{candidate.grade_year_level} / {candidate.section}."
        )
        return saved

    async def remove_assignment(self, teacher_id: UUID, target: TeachingAssignment) -> List[TeachingAssignment]:
        """Removing an assignment the teacher does not hold is a no-op."""
        teacher = await self.get_teacher(teacher_id)
        assignments = remove_assignment(teacher.teaching_assignments, target)
        if len(assignments) == len(teacher.teaching_assignments):
            return teacher.teaching_assignments
        return await self._save_assignments(teacher_id, assignments)

    async def replace_assignments(self, teacher_id: UUID, assignments: List[TeachingAssignment]) -> List[TeachingAssignment]:
        await self.get_teacher(teacher_id)
        try:
            replacement = replace_assignments(assignments)
        except DuplicateAssignmentError as e:
            raise InvalidDataError(str(e)) from e
        return await self._save_assignments(teacher_id, replacement)

    # --- String list fields ---

    async def _edit_list(self, teacher_id: UUID, field: TeacherListField, edit, *values: str):
        try:
            return await edit(teacher_id, field.column, *values)
        except Exception as e:
            logger.error(f"Error saving {field.column} of teacher {teacher_id}.", exc_info=True)
            raise PersistenceError(f"Error updating {field.value}") from e

    async def add_list_value(self, teacher_id: UUID, field: TeacherListField, value: str) -> List[str]:
        if not value:
            raise InvalidDataError(f"A {field.value} value is required.")
        teacher = await self._edit_list(teacher_id, field, self.db_client.append_teacher_list_value, value)
        if not teacher:
            raise NotFoundError("Teacher not found")
        logger.info(f"Added '{value}' to {field.column} of teacher {teacher_id}.")
        return getattr(teacher, field.column)

    async def remove_list_value(self, teacher_id: UUID, field: TeacherListField, value: str) -> List[str]:
        """Removes every occurrence of the value."""
        teacher = await self._edit_list(teacher_id, field, self.db_client.remove_teacher_list_value, value)
        if not teacher:
            raise NotFoundError("Teacher not found")
        return getattr(teacher, field.column)

    async def edit_list_value(self, teacher_id: UUID, field: TeacherListField, old_value: str, new_value: str) -> List[str]:
        """Replaces the first occurrence of old_value."""
        if not new_value:
            raise InvalidDataError(f"A new {field.value} value is required.")
        teacher = await self._edit_list(
            teacher_id, field, self.db_client.replace_teacher_list_value, old_value, new_value
        )
        if not teacher:
            # Either the teacher is gone or the list never held old_value
            await self.get_teacher(teacher_id)
            raise NotFoundError(f"'{old_value}' not found in {field.value}")
        return getattr(teacher, field.column)
