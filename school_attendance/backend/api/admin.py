from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Request, status
from starlette.datastructures import UploadFile

from ..models.db_models import EventType, UserRole
from ..services.attendance_service import AttendanceService
from ..services.teacher_service import TeacherListField, TeacherService
from ..services.user_service import UserService
from .auth import require_role
from .dependencies import get_attendance_service, get_teacher_service, get_user_service
from .schemas.envelope import ok, to_wire
from .schemas.user import ListValueEditRequest, ListValueRequest
from .utilities.limiter import limiter

router = APIRouter(
    prefix="/admin",
    tags=["Admin Endpoints"],
    dependencies=[Depends(require_role("admin"))],
)


class UserCollection(str, Enum):
    STUDENTS = "students"
    TEACHERS = "teachers"
    EMPLOYEES = "employees"

    @property
    def role(self) -> UserRole:
        return {
            UserCollection.STUDENTS: UserRole.STUDENT,
            UserCollection.TEACHERS: UserRole.TEACHER,
            UserCollection.EMPLOYEES: UserRole.EMPLOYEE,
        }[self]


# --- HELPER FUNCTIONS ---

async def _add_user(role: UserRole, request: Request, service: UserService) -> dict:
    """Reads the multipart 'add' form: text fields plus an 'image' file."""
    form = await request.form()
    image = form.get("image")
    data = {key: value for key, value in form.items() if key != "image" and isinstance(value, str)}

    image_bytes, filename, content_type = None, None, None
    if isinstance(image, UploadFile):
        image_bytes = await image.read()
        filename, content_type = image.filename, image.content_type

    user = await service.add_user(role, data, image_bytes, filename, content_type)
    return ok(message=f"{role.value} added successfully", user=to_wire(user))


# === SECTION 1: ATTENDANCE (badge kiosk and reports) ===

@router.post("/sign-in/{code}", summary="Record a sign-in for a badge code")
@limiter.limit("120/minute")
async def sign_in(request: Request, code: str, service: AttendanceService = Depends(get_attendance_service)):
    record = await service.record_event(code, EventType.SIGN_IN)
    return ok(message="Sign-in recorded", record=to_wire(record))


@router.post("/sign-out/{code}", summary="Record a sign-out for a badge code")
@limiter.limit("120/minute")
async def sign_out(request: Request, code: str, service: AttendanceService = Depends(get_attendance_service)):
    record = await service.record_event(code, EventType.SIGN_OUT)
    return ok(message="Sign-out recorded", record=to_wire(record))


@router.get("/attendance-records", summary="Raw attendance events of one day")
@limiter.limit("60/minute")
async def attendance_records(
    request: Request,
    date: str = Query(...),
    user_type: Optional[UserRole] = Query(None, alias="userType"),
    service: AttendanceService = Depends(get_attendance_service)
):
    records = await service.records_for_day(date, user_type)
    return ok(records=to_wire(records))


@router.get("/attendance-summary", summary="First sign-in and sign-out per user for one day")
@limiter.limit("60/minute")
async def attendance_summary(
    request: Request,
    date: str = Query(...),
    user_type: Optional[UserRole] = Query(None, alias="userType"),
    service: AttendanceService = Depends(get_attendance_service)
):
    summary = await service.summary_for_day(date, user_type)
    return ok(summary=to_wire(summary))


# === SECTION 2: LOOKUPS ===

@router.get("/dashboard", summary="User counts")
@limiter.limit("60/minute")
async def dashboard(request: Request, service: UserService = Depends(get_user_service)):
    counts = await service.dashboard()
    return ok(**counts)


@router.get("/user/{code}", summary="Find a student, teacher or employee by badge code")
@limiter.limit("120/minute")
async def user_by_code(request: Request, code: str, service: UserService = Depends(get_user_service)):
    role, user = await service.get_user_by_code(code)
    return ok(userType=role.value, user=to_wire(user))


@router.get("/student/{code}", summary="Find a student by badge code")
@limiter.limit("120/minute")
async def student_by_code(request: Request, code: str, service: UserService = Depends(get_user_service)):
    student = await service.get_student_by_code(code)
    return ok(student=to_wire(student))


# === SECTION 3: USER MANAGEMENT ===

@router.post("/add-student", status_code=status.HTTP_201_CREATED, summary="Add a student (multipart form with image)")
@limiter.limit("30/minute")
async def add_student(request: Request, service: UserService = Depends(get_user_service)):
    return await _add_user(UserRole.STUDENT, request, service)


@router.post("/add-teacher", status_code=status.HTTP_201_CREATED, summary="Add a teacher (multipart form with image)")
@limiter.limit("30/minute")
async def add_teacher(request: Request, service: UserService = Depends(get_user_service)):
    return await _add_user(UserRole.TEACHER, request, service)


@router.post("/add-employee", status_code=status.HTTP_201_CREATED, summary="Add an employee (multipart form with image)")
@limiter.limit("30/minute")
async def add_employee(request: Request, service: UserService = Depends(get_user_service)):
    return await _add_user(UserRole.EMPLOYEE, request, service)


@router.get("/all-students")
@limiter.limit("60/minute")
async def all_students(request: Request, service: UserService = Depends(get_user_service)):
    return ok(students=to_wire(await service.list_users(UserRole.STUDENT)))


@router.get("/all-teachers")
@limiter.limit("60/minute")
async def all_teachers(request: Request, service: UserService = Depends(get_user_service)):
    return ok(teachers=to_wire(await service.list_users(UserRole.TEACHER)))


@router.get("/all-employees")
@limiter.limit("60/minute")
async def all_employees(request: Request, service: UserService = Depends(get_user_service)):
    return ok(employees=to_wire(await service.list_users(UserRole.EMPLOYEE)))


@router.put("/{collection}/{user_id}", summary="Update any field of a user, including code and password")
@limiter.limit("30/minute")
async def update_user(
    request: Request,
    collection: UserCollection,
    user_id: UUID,
    changes: Dict[str, Any] = Body(...),
    service: UserService = Depends(get_user_service)
):
    user = await service.update_user(collection.role, user_id, changes, as_admin=True)
    return ok(message=f"{collection.role.value} updated successfully", user=to_wire(user))


@router.delete("/{collection}/{user_id}", summary="Delete a user")
@limiter.limit("30/minute")
async def delete_user(
    request: Request,
    collection: UserCollection,
    user_id: UUID,
    service: UserService = Depends(get_user_service)
):
    await service.delete_user(collection.role, user_id)
    return ok(message=f"{collection.role.value} deleted successfully")


# === SECTION 4: TEACHER LIST FIELDS ===

@router.post("/teachers/{teacher_id}/{field}", summary="Append a value to one of a teacher's lists")
@limiter.limit("60/minute")
async def add_teacher_list_value(
    request: Request,
    teacher_id: UUID,
    field: TeacherListField,
    body: ListValueRequest,
    service: TeacherService = Depends(get_teacher_service)
):
    values = await service.add_list_value(teacher_id, field, body.value)
    return ok(field=field.value, values=values)


@router.delete("/teachers/{teacher_id}/{field}", summary="Remove a value from one of a teacher's lists")
@limiter.limit("60/minute")
async def remove_teacher_list_value(
    request: Request,
    teacher_id: UUID,
    field: TeacherListField,
    body: ListValueRequest,
    service: TeacherService = Depends(get_teacher_service)
):
    values = await service.remove_list_value(teacher_id, field, body.value)
    return ok(field=field.value, values=values)


@router.put("/teachers/{teacher_id}/{field}", summary="Replace a value in one of a teacher's lists")
@limiter.limit("60/minute")
async def edit_teacher_list_value(
    request: Request,
    teacher_id: UUID,
    field: TeacherListField,
    body: ListValueEditRequest,
    service: TeacherService = Depends(get_teacher_service)
):
    values = await service.edit_list_value(teacher_id, field, body.old_value, body.new_value)
    return ok(field=field.value, values=values)
