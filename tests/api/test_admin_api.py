import uuid

from school_attendance.backend.models.db_models import EventType, UserRole
from school_attendance.backend.modules.attendance_aggregator import summarize_daily_attendance
from school_attendance.backend.services.errors import InvalidDataError, NotFoundError
from school_attendance.backend.services.teacher_service import TeacherListField
from tests.factories import make_employee, make_record, make_student, snapshot, utc


# --- Access ---

def test_admin_routes_reject_other_roles(client, services, sign_in_as):
    sign_in_as("teacher")

    response = client.post("/api/admin/sign-in/S-001")

    assert response.status_code == 403
    assert response.json()["success"] is False
    services["attendance"].record_event.assert_not_called()


# --- Attendance ---

def test_sign_in(client, services, sign_in_as):
    sign_in_as("admin")
    student = make_student()
    services["attendance"].record_event.return_value = make_record(student.id, EventType.SIGN_IN, utc(2024, 3, 1, 0, 5))

    response = client.post("/api/admin/sign-in/S-001")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["record"]["eventType"] == "sign-in"
    assert data["record"]["userId"] == str(student.id)
    services["attendance"].record_event.assert_awaited_once_with("S-001", EventType.SIGN_IN)


def test_sign_out_unknown_code(client, services, sign_in_as):
    sign_in_as("admin")
    services["attendance"].record_event.side_effect = NotFoundError("User not found")

    response = client.post("/api/admin/sign-out/NOPE")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "User not found"}


def test_attendance_records(client, services, sign_in_as):
    sign_in_as("admin")
    user_id = uuid.uuid4()
    services["attendance"].records_for_day.return_value = [
        make_record(user_id, EventType.SIGN_IN, utc(2024, 3, 1, 0, 0), user=snapshot()),
        make_record(uuid.uuid4(), EventType.SIGN_IN, utc(2024, 3, 1, 0, 1)),
    ]

    response = client.get("/api/admin/attendance-records", params={"date": "2024-03-01", "userType": "Student"})

    assert response.status_code == 200
    records = response.json()["records"]
    assert records[0]["user"]["firstName"] == "Juan"
    # the second user was deleted since
    assert records[1]["user"] is None
    services["attendance"].records_for_day.assert_awaited_once_with("2024-03-01", UserRole.STUDENT)


def test_attendance_records_without_date(client, services, sign_in_as):
    sign_in_as("admin")

    response = client.get("/api/admin/attendance-records")

    assert response.status_code == 400
    assert "date" in response.json()["errors"]


def test_attendance_records_with_unknown_user_type(client, services, sign_in_as):
    sign_in_as("admin")

    response = client.get("/api/admin/attendance-records", params={"date": "2024-03-01", "userType": "Parent"})

    assert response.status_code == 400
    services["attendance"].records_for_day.assert_not_called()


def test_attendance_records_with_malformed_date(client, services, sign_in_as):
    sign_in_as("admin")
    services["attendance"].records_for_day.side_effect = InvalidDataError("Invalid date format 'x'. Please use ISO format.")

    response = client.get("/api/admin/attendance-records", params={"date": "x"})

    assert response.status_code == 400
    assert "ISO" in response.json()["message"]


def test_attendance_summary(client, services, sign_in_as):
    sign_in_as("admin")
    user_id = uuid.uuid4()
    services["attendance"].summary_for_day.return_value = summarize_daily_attendance([
        make_record(user_id, EventType.SIGN_IN, utc(2024, 3, 1, 0, 0)),
        make_record(user_id, EventType.SIGN_OUT, utc(2024, 3, 1, 9, 0)),
    ])

    response = client.get("/api/admin/attendance-summary", params={"date": "2024-03-01"})

    assert response.status_code == 200
    [row] = response.json()["summary"]
    assert row["date"] == "2024-03-01"
    assert row["signInTime"].startswith("2024-03-01T00:00:00")
    assert row["signOutTime"].startswith("2024-03-01T09:00:00")
    services["attendance"].summary_for_day.assert_awaited_once_with("2024-03-01", None)


# --- Lookups ---

def test_user_by_code(client, services, sign_in_as):
    sign_in_as("admin")
    employee = make_employee()
    services["user"].get_user_by_code.return_value = (UserRole.EMPLOYEE, employee)

    response = client.get("/api/admin/user/E-001")

    data = response.json()
    assert data["userType"] == "Employee"
    assert data["user"]["position"] == "Registrar"
    assert "password" not in data["user"]


def test_student_by_code_not_found(client, services, sign_in_as):
    sign_in_as("admin")
    services["user"].get_student_by_code.side_effect = NotFoundError("Student not found")

    response = client.get("/api/admin/student/T-001")

    assert response.status_code == 404


# --- User management ---

def test_add_student_multipart(client, services, sign_in_as):
    sign_in_as("admin")
    services["user"].add_user.return_value = make_student(image="https://cdn.test/juan.jpg")
    form = {"code": "S-001", "firstName": "Juan", "lastName": "Dela Cruz", "email": "juan@school.test"}

    response = client.post(
        "/api/admin/add-student",
        data=form,
        files={"image": ("juan.jpg", b"jpeg-bytes", "image/jpeg")},
    )

    assert response.status_code == 201
    assert response.json()["user"]["image"] == "https://cdn.test/juan.jpg"
    role, data, image_bytes, filename, content_type = services["user"].add_user.call_args[0]
    assert role == UserRole.STUDENT
    assert data == form
    assert (image_bytes, filename, content_type) == (b"jpeg-bytes", "juan.jpg", "image/jpeg")


def test_add_teacher_without_image(client, services, sign_in_as):
    sign_in_as("admin")
    services["user"].add_user.side_effect = InvalidDataError("Image is required")

    response = client.post("/api/admin/add-teacher", data={"code": "T-001"})

    assert response.status_code == 400
    assert response.json()["message"] == "Image is required"
    assert services["user"].add_user.call_args[0][2] is None


def test_add_employee_field_errors(client, services, sign_in_as):
    sign_in_as("admin")
    services["user"].add_user.side_effect = InvalidDataError("Validation error", errors={"email": "value is not a valid email address"})

    response = client.post(
        "/api/admin/add-employee",
        data={"email": "nope"},
        files={"image": ("p.png", b"png-bytes", "image/png")},
    )

    assert response.status_code == 400
    assert response.json()["errors"] == {"email": "value is not a valid email address"}


def test_all_students_include_email(client, services, sign_in_as):
    sign_in_as("admin")
    services["user"].list_users.return_value = [make_student()]

    response = client.get("/api/admin/all-students")

    [student] = response.json()["students"]
    assert student["email"] == "juan@school.test"
    assert student["studentNumber"] == "2024-0001"
    services["user"].list_users.assert_awaited_once_with(UserRole.STUDENT)


def test_update_user(client, services, sign_in_as):
    sign_in_as("admin")
    employee = make_employee(code="E-777")
    services["user"].update_user.return_value = employee

    response = client.put(f"/api/admin/employees/{employee.id}", json={"code": "E-777"})

    assert response.status_code == 200
    assert response.json()["user"]["code"] == "E-777"
    services["user"].update_user.assert_awaited_once_with(UserRole.EMPLOYEE, employee.id, {"code": "E-777"}, as_admin=True)


def test_delete_user_not_found(client, services, sign_in_as):
    sign_in_as("admin")
    services["user"].delete_user.side_effect = NotFoundError("Teacher not found")
    teacher_id = uuid.uuid4()

    response = client.delete(f"/api/admin/teachers/{teacher_id}")

    assert response.status_code == 404
    services["user"].delete_user.assert_awaited_once_with(UserRole.TEACHER, teacher_id)


def test_delete_with_unknown_collection(client, services, sign_in_as):
    sign_in_as("admin")

    response = client.delete(f"/api/admin/parents/{uuid.uuid4()}")

    assert response.status_code == 400
    services["user"].delete_user.assert_not_called()


# --- Teacher list fields ---

def test_add_teacher_subject(client, services, sign_in_as):
    sign_in_as("admin")
    services["teacher"].add_list_value.return_value = ["Math", "Science"]
    teacher_id = uuid.uuid4()

    response = client.post(f"/api/admin/teachers/{teacher_id}/subjects", json={"value": "Science"})

    assert response.json() == {"success": True, "field": "subjects", "values": ["Math", "Science"]}
    services["teacher"].add_list_value.assert_awaited_once_with(teacher_id, TeacherListField.SUBJECTS, "Science")


def test_edit_teacher_section(client, services, sign_in_as):
    sign_in_as("admin")
    services["teacher"].edit_list_value.return_value = ["Bonifacio"]
    teacher_id = uuid.uuid4()

    response = client.put(
        f"/api/admin/teachers/{teacher_id}/section", json={"oldValue": "Rizal", "newValue": "Bonifacio"}
    )

    assert response.status_code == 200
    services["teacher"].edit_list_value.assert_awaited_once_with(
        teacher_id, TeacherListField.SECTION, "Rizal", "Bonifacio"
    )


def test_remove_teacher_schedule_entry(client, services, sign_in_as):
    sign_in_as("admin")
    services["teacher"].remove_list_value.return_value = []
    teacher_id = uuid.uuid4()

    response = client.request(
        "DELETE", f"/api/admin/teachers/{teacher_id}/class-schedule", json={"value": "Mon 8:00"}
    )

    assert response.status_code == 200
    services["teacher"].remove_list_value.assert_awaited_once_with(
        teacher_id, TeacherListField.CLASS_SCHEDULE, "Mon 8:00"
    )
