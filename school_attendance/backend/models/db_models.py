# school_attendance/backend/models/db_models.py

import json
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Type
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class UserRole(str, Enum):
    """The three kinds of people that carry a badge code. Values match the 'user_type' column."""
    STUDENT = "Student"
    TEACHER = "Teacher"
    EMPLOYEE = "Employee"


class EventType(str, Enum):
    SIGN_IN = "sign-in"
    SIGN_OUT = "sign-out"


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire (the web client expects e.g. 'firstName')."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _empty_list_if_none(value):
    return [] if value is None else value


class TeachingAssignment(CamelModel):
    """
    A teacher's claim on one (education level, grade/year level, section) combination.
    Two assignments with the same three fields are the same assignment, whatever their ids.
    """
    id: Optional[UUID] = None
    education_level: str = Field(..., min_length=1)
    grade_year_level: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)

    def same_as(self, other: "TeachingAssignment") -> bool:
        return (
            self.education_level == other.education_level
            and self.grade_year_level == other.grade_year_level
            and self.section == other.section
        )


class UserBase(CamelModel):
    """
    Columns shared by the 'students', 'teachers' and 'employees' tables.
    """
    id: UUID = Field(..., description="Primary key")
    code: str = Field(..., description="Badge code used for sign-in/sign-out, unique per table")
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    email: str
    # bcrypt hash; never serialized
    password: Optional[str] = Field(None, exclude=True)
    number: str
    address: Optional[str] = None
    image: Optional[str] = None
    sign_in_time: Optional[datetime] = None
    sign_out_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Student(UserBase):
    student_number: str
    education_level: str
    grade_year_level: str
    section: str
    class_schedule: List[str] = Field(default_factory=list)
    subjects: List[str] = Field(default_factory=list)

    normalize_lists = field_validator("class_schedule", "subjects", mode="before")(_empty_list_if_none)


class Teacher(UserBase):
    teaching_assignments: List[TeachingAssignment] = Field(default_factory=list)
    class_schedule: List[str] = Field(default_factory=list)
    education_level: List[str] = Field(default_factory=list)
    grade_year_level: List[str] = Field(default_factory=list)
    section: List[str] = Field(default_factory=list)
    subjects: List[str] = Field(default_factory=list)

    normalize_lists = field_validator(
        "class_schedule", "education_level", "grade_year_level", "section", "subjects", mode="before"
    )(_empty_list_if_none)

    @field_validator("teaching_assignments", mode="before")
    @classmethod
    def decode_assignments(cls, value):
        # asyncpg hands jsonb columns back as text unless a codec is registered
        if isinstance(value, str):
            return json.loads(value)
        return _empty_list_if_none(value)


class Employee(UserBase):
    position: Optional[str] = None


ROLE_MODELS: Dict[UserRole, Type[UserBase]] = {
    UserRole.STUDENT: Student,
    UserRole.TEACHER: Teacher,
    UserRole.EMPLOYEE: Employee,
}


# ===== Input models (admin "add" forms and profile updates) =====

class UserCreate(CamelModel):
    code: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    middle_name: Optional[str] = None
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72, description="Plain text; hashed before storage.")
    number: str = Field(..., min_length=1, max_length=11)
    address: Optional[str] = None


class StudentCreate(UserCreate):
    student_number: str = Field(..., min_length=1)
    education_level: str = Field(..., min_length=1)
    grade_year_level: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)


class TeacherCreate(UserCreate):
    pass


class EmployeeCreate(UserCreate):
    position: str = Field(..., min_length=1)


ROLE_CREATE_MODELS: Dict[UserRole, Type[UserCreate]] = {
    UserRole.STUDENT: StudentCreate,
    UserRole.TEACHER: TeacherCreate,
    UserRole.EMPLOYEE: EmployeeCreate,
}


class UserUpdate(CamelModel):
    """Fields a signed-in user may change on their own profile. Unset fields are left alone."""
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(None, min_length=1)
    middle_name: Optional[str] = None
    last_name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    number: Optional[str] = Field(None, min_length=1, max_length=11)
    address: Optional[str] = None
    image: Optional[str] = None


class StudentUpdate(UserUpdate):
    student_number: Optional[str] = Field(None, min_length=1)
    education_level: Optional[str] = Field(None, min_length=1)
    grade_year_level: Optional[str] = Field(None, min_length=1)
    section: Optional[str] = Field(None, min_length=1)
    class_schedule: Optional[List[str]] = None
    subjects: Optional[List[str]] = None


class TeacherUpdate(UserUpdate):
    class_schedule: Optional[List[str]] = None
    education_level: Optional[List[str]] = None
    grade_year_level: Optional[List[str]] = None
    section: Optional[List[str]] = None
    subjects: Optional[List[str]] = None


class EmployeeUpdate(UserUpdate):
    position: Optional[str] = None


class StudentAdminUpdate(StudentUpdate):
    code: Optional[str] = Field(None, min_length=1)
    password: Optional[str] = Field(None, min_length=8, max_length=72)


class TeacherAdminUpdate(TeacherUpdate):
    code: Optional[str] = Field(None, min_length=1)
    password: Optional[str] = Field(None, min_length=8, max_length=72)


class EmployeeAdminUpdate(EmployeeUpdate):
    code: Optional[str] = Field(None, min_length=1)
    password: Optional[str] = Field(None, min_length=8, max_length=72)


ROLE_UPDATE_MODELS: Dict[UserRole, Type[UserUpdate]] = {
    UserRole.STUDENT: StudentUpdate,
    UserRole.TEACHER: TeacherUpdate,
    UserRole.EMPLOYEE: EmployeeUpdate,
}

ROLE_ADMIN_UPDATE_MODELS: Dict[UserRole, Type[UserUpdate]] = {
    UserRole.STUDENT: StudentAdminUpdate,
    UserRole.TEACHER: TeacherAdminUpdate,
    UserRole.EMPLOYEE: EmployeeAdminUpdate,
}


# ===== Attendance =====

class UserSnapshot(CamelModel):
    """Display fields joined onto attendance rows at read time. Absent when the user was deleted."""
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    student_number: Optional[str] = None
    position: Optional[str] = None


class AttendanceRecord(CamelModel):
    """
    One sign-in or sign-out event, mapping to the append-only 'attendance' table.
    """
    id: UUID
    user_id: UUID = Field(..., description="Id in the table named by user_type")
    user_type: UserRole
    event_type: EventType
    timestamp: datetime
    user: Optional[UserSnapshot] = None


class AttendanceSummary(CamelModel):
    """One user's first sign-in and first sign-out on one calendar day. Derived, never stored."""
    user_id: UUID
    user_type: UserRole
    user: Optional[UserSnapshot] = None
    day: date = Field(..., alias="date")
    sign_in_time: Optional[datetime] = None
    sign_out_time: Optional[datetime] = None
