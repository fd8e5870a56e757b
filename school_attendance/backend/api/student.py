from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from ..models.db_models import UserRole
from ..services.roster_service import RosterService
from .auth import ensure_self_or_admin, require_role
from .dependencies import get_roster_service
from .schemas.envelope import ok, to_wire
from .schemas.user import SessionUser
from .self_service import add_self_service_routes
from .utilities.limiter import limiter

router = APIRouter(prefix="/student", tags=["Student Endpoints"])

add_self_service_routes(router, "student", UserRole.STUDENT)


@router.get("/students-by-student/{student_id}", summary="Classmates of a student, optionally with attendance")
@limiter.limit("30/minute")
async def students_by_student(
    request: Request,
    student_id: UUID,
    date: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: SessionUser = Depends(require_role("student", "admin")),
    service: RosterService = Depends(get_roster_service)
):
    ensure_self_or_admin(user, "student", student_id)
    roster = await service.students_by_student(student_id, date, start_date, end_date)
    return ok(students=to_wire(roster, exclude={"student": {"email"}}))
