# school_attendance/backend/modules/teaching_assignments.py

from typing import Iterable, List
from uuid import uuid4

from ..models.db_models import TeachingAssignment


class DuplicateAssignmentError(ValueError):
    """Raised when a teacher already holds an identical assignment."""
    pass


def add_assignment(assignments: List[TeachingAssignment], candidate: TeachingAssignment) -> List[TeachingAssignment]:
    """
    Returns a new list with the candidate appended under a fresh id.
    Identical triples cannot be told apart once stored, so duplicates are rejected here.
    """
    if any(existing.same_as(candidate) for existing in assignments):
        raise DuplicateAssignmentError("This teaching assignment is already added.")
    return list(assignments) + [candidate.model_copy(update={"id": uuid4()})]


def remove_assignment(assignments: List[TeachingAssignment], target: TeachingAssignment) -> List[TeachingAssignment]:
    """Returns a new list without any triple equal to the target."""
    return [existing for existing in assignments if not existing.same_as(target)]


def replace_assignments(assignments: Iterable[TeachingAssignment]) -> List[TeachingAssignment]:
    """Takes a full replacement list; entries without an id get one. The list itself must not repeat a triple."""
    result: List[TeachingAssignment] = []
    for assignment in assignments:
        if any(kept.same_as(assignment) for kept in result):
            raise DuplicateAssignmentError("This teaching assignment is already added.")
        result.append(assignment if assignment.id is not None else assignment.model_copy(update={"id": uuid4()}))
    return result


def scope_of(assignments: Iterable[TeachingAssignment]) -> List[tuple]:
    """The (education level, grade/year level, section) triples an assignment list covers."""
    return [(a.education_level, a.grade_year_level, a.section) for a in assignments]
