from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from ..models.db_models import TeachingAssignment, UserRole
from ..services.roster_service import RosterService
from ..services.teacher_service import TeacherService
from .auth import ensure_self_or_admin, require_role
from .dependencies import get_roster_service, get_teacher_service
from .schemas.envelope import ok, to_wire
from .schemas.user import SessionUser
from .self_service import add_self_service_routes
from .utilities.limiter import limiter

router = APIRouter(prefix="/teacher", tags=["Teacher Endpoints"])

add_self_service_routes(router, "teacher", UserRole.TEACHER)

# A teacher manages their own assignments; the admin manages anyone's
teacher_or_admin = require_role("teacher", "admin")


# === SECTION 1: TEACHING ASSIGNMENTS ===

@router.get("/{teacher_id}/teaching-assignments", summary="List a teacher's teaching assignments")
@limiter.limit("60/minute")
async def get_teaching_assignments(
    request: Request,
    teacher_id: UUID,
    user: SessionUser = Depends(teacher_or_admin),
    service: TeacherService = Depends(get_teacher_service)
):
    ensure_self_or_admin(user, "teacher", teacher_id)
    assignments = await service.list_assignments(teacher_id)
    return ok(teachingAssignments=to_wire(assignments))


@router.post("/{teacher_id}/teaching-assignments", summary="Add a teaching assignment")
@limiter.limit("30/minute")
async def add_teaching_assignment(
    request: Request,
    teacher_id: UUID,
    assignment: TeachingAssignment,
    user: SessionUser = Depends(teacher_or_admin),
    service: TeacherService = Depends(get_teacher_service)
):
    ensure_self_or_admin(user, "teacher", teacher_id)
    assignments = await service.add_assignment(teacher_id, assignment)
    return ok(message="Teaching assignment added", teachingAssignments=to_wire(assignments))


@router.delete("/{teacher_id}/teaching-assignments", summary="Remove a teaching assignment")
@limiter.limit("30/minute")
async def remove_teaching_assignment(
    request: Request,
    teacher_id: UUID,
    assignment: TeachingAssignment,
    user: SessionUser = Depends(teacher_or_admin),
    service: TeacherService = Depends(get_teacher_service)
):
    ensure_self_or_admin(user, "teacher", teacher_id)
    assignments = await service.remove_assignment(teacher_id, assignment)
    return ok(message="Teaching assignment removed", teachingAssignments=to_wire(assignments))


@router.put("/{teacher_id}/teaching-assignments", summary="Replace all teaching assignments")
@limiter.limit("30/minute")
async def replace_teaching_assignments(
    request: Request,
    teacher_id: UUID,
    assignments: List[TeachingAssignment],
    user: SessionUser = Depends(teacher_or_admin),
    service: TeacherService = Depends(get_teacher_service)
):
    ensure_self_or_admin(user, "teacher", teacher_id)
    saved = await service.replace_assignments(teacher_id, assignments)
    return ok(message="Teaching assignments updated", teachingAssignments=to_wire(saved))


# === SECTION 2: ROSTER ===

@router.get("/students-by-teacher/{teacher_id}", summary="Students covered by a teacher's assignments")
@limiter.limit("30/minute")
async def students_by_teacher(
    request: Request,
    teacher_id: UUID,
    date: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: SessionUser = Depends(teacher_or_admin),
    service: RosterService = Depends(get_roster_service)
):
    ensure_self_or_admin(user, "teacher", teacher_id)
    roster = await service.students_by_teacher(teacher_id, date, start_date, end_date)
    return ok(students=to_wire(roster, exclude={"student": {"email"}}))
