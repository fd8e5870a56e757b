import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

import asyncpg
from pydantic import ValidationError

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import (
    ROLE_ADMIN_UPDATE_MODELS, ROLE_CREATE_MODELS, ROLE_UPDATE_MODELS, Student, UserBase, UserRole
)
from ..modules.school_calendar import local_day
from ..tools.image_uploader import ImageUploadError, upload_image
from ..tools.passwords import hash_password, verify_password
from .errors import (
    AuthenticationError, InvalidDataError, NotFoundError, PersistenceError, validation_errors_to_fields
)

logger = logging.getLogger(__name__)

# Badge codes are looked up in this order; the first table with a match wins.
LOOKUP_ORDER = (UserRole.STUDENT, UserRole.TEACHER, UserRole.EMPLOYEE)


def affected_rows(status: str) -> int:
    """'DELETE 1' -> 1"""
    try:
        return int(str(status).split()[-1])
    except (ValueError, IndexError):
        return 0


class UserService:
    """
    User management shared by students, teachers and employees.
    Every operation takes the UserRole it acts on instead of being written three times.
    """
    def __init__(self, db_client: AsyncPostgresClient, image_uploader=upload_image):
        self.db_client = db_client
        self.image_uploader = image_uploader

    # --- Authentication ---

    async def authenticate(self, role: UserRole, email: str, password: str) -> UserBase:
        if not password:
            raise InvalidDataError("Password is required")
        try:
            user = await self.db_client.get_user_by_email(role, email)
        except Exception as e:
            logger.error(f"Database error while looking up {role.value} '{email}'.", exc_info=True)
            raise PersistenceError("Login error") from e

        if not user or not user.password or not verify_password(password, user.password):
            logger.warning(f"Failed {role.value} login for '{email}'.")
            raise AuthenticationError("Invalid credentials")
        return user

    # --- Create / read / update / delete ---

    async def add_user(
        self,
        role: UserRole,
        data: Dict[str, Any],
        image_bytes: Optional[bytes],
        image_filename: Optional[str] = None,
        image_content_type: Optional[str] = None,
    ) -> UserBase:
        """Validates an admin 'add' form, uploads the picture, hashes the password and stores the user."""
        if not image_bytes:
            raise InvalidDataError("Image is required")
        try:
            new_user = ROLE_CREATE_MODELS[role].model_validate(data)
        except ValidationError as e:
            raise InvalidDataError("Validation error", errors=validation_errors_to_fields(e.errors())) from e

        try:
            image_url = await self.image_uploader(image_bytes, image_filename, image_content_type)
        except ImageUploadError as e:
            logger.error(f"Image upload failed while adding {role.value} '{new_user.code}': {e}")
            raise PersistenceError("Image upload failed.") from e

        values = new_user.model_dump()
        values.update(id=uuid4(), password=hash_password(new_user.password), image=image_url)
        try:
            created = await self.db_client.add_user(role, values)
        except asyncpg.UniqueViolationError as e:
            logger.warning(f"Duplicate code or email for new {role.value} '{new_user.code}'.")
            raise InvalidDataError(f"A {role.value.lower()} with this code or email already exists.") from e
        except Exception as e:
            logger.error(f"Error adding {role.value} '{new_user.code}'.", exc_info=True)
            raise PersistenceError(f"An error occurred while adding the {role.value.lower()}.") from e

        logger.info(f"{role.value} '{created.code}' ({created.id}) added.")
        return created

    async def list_users(self, role: UserRole) -> List[UserBase]:
        try:
            return await self.db_client.list_users(role)
        except Exception as e:
            logger.error(f"Error listing {role.value} users.", exc_info=True)
            raise PersistenceError(f"Error getting {role.value.lower()} list") from e

    async def get_profile(self, role: UserRole, user_id: UUID) -> UserBase:
        try:
            user = await self.db_client.get_user_by_id(role, user_id)
        except Exception as e:
            logger.error(f"Error fetching {role.value} {user_id}.", exc_info=True)
            raise PersistenceError(f"Error fetching {role.value.lower()} profile") from e
        if not user:
            raise NotFoundError(f"{role.value} not found")
        return user

    async def update_user(self, role: UserRole, user_id: UUID, changes: Dict[str, Any], as_admin: bool = False) -> UserBase:
        """
        Applies a partial update. Users editing their own profile cannot touch
        'code' or 'password'; the admin can, and a new password is re-hashed.
        """
        update_model = (ROLE_ADMIN_UPDATE_MODELS if as_admin else ROLE_UPDATE_MODELS)[role]
        try:
            values = update_model.model_validate(changes).model_dump(exclude_unset=True)
        except ValidationError as e:
            raise InvalidDataError("Validation error", errors=validation_errors_to_fields(e.errors())) from e

        if values.get("password"):
            values["password"] = hash_password(values["password"])

        try:
            updated = await self.db_client.update_user(role, user_id, values)
        except asyncpg.UniqueViolationError as e:
            raise InvalidDataError(f"A {role.value.lower()} with this code or email already exists.") from e
        except asyncpg.NotNullViolationError as e:
            raise InvalidDataError("Required fields cannot be empty.") from e
        except Exception as e:
            logger.error(f"Error updating {role.value} {user_id}.", exc_info=True)
            raise PersistenceError(f"An error occurred while updating the {role.value.lower()}.") from e

        if not updated:
            raise NotFoundError(f"{role.value} not found")
        logger.info(f"{role.value} {user_id} updated fields: {sorted(values)}")
        return updated

    async def delete_user(self, role: UserRole, user_id: UUID) -> None:
        try:
            status = await self.db_client.delete_user(role, user_id)
        except Exception as e:
            logger.error(f"Error deleting {role.value} {user_id}.", exc_info=True)
            raise PersistenceError(f"An error occurred while deleting the {role.value.lower()}.") from e
        if affected_rows(status) == 0:
            raise NotFoundError(f"{role.value} not found")
        logger.info(f"{role.value} {user_id} deleted.")

    async def dashboard(self) -> Dict[str, int]:
        try:
            return {
                "students": await self.db_client.count_users(UserRole.STUDENT),
                "teachers": await self.db_client.count_users(UserRole.TEACHER),
                "employees": await self.db_client.count_users(UserRole.EMPLOYEE),
            }
        except Exception as e:
            logger.error("Error counting users for the dashboard.", exc_info=True)
            raise PersistenceError("Error loading dashboard data") from e

    # --- Badge code lookups ---

    async def find_user_by_code(self, code: str) -> Tuple[UserRole, UserBase]:
        """Looks the code up in each table in LOOKUP_ORDER."""
        try:
            for role in LOOKUP_ORDER:
                user = await self.db_client.get_user_by_code(role, code)
                if user:
                    return role, user
        except Exception as e:
            logger.error(f"Database error while looking up code '{code}'.", exc_info=True)
            raise PersistenceError("Error fetching user") from e
        raise NotFoundError("User not found")

    async def get_user_by_code(self, code: str) -> Tuple[UserRole, UserBase]:
        """
        Like find_user_by_code, but a sign-in stamp from an earlier day is cleared
        (together with the sign-out stamp) so the kiosk starts each day blank.
        """
        role, user = await self.find_user_by_code(code)
        if user.sign_in_time and local_day(user.sign_in_time) < local_day(datetime.now(timezone.utc)):
            try:
                await self.db_client.clear_sign_times(role, user.id)
            except Exception as e:
                logger.error(f"Error resetting sign times of {role.value} {user.id}.", exc_info=True)
                raise PersistenceError("Error fetching user") from e
            user = user.model_copy(update={"sign_in_time": None, "sign_out_time": None})
            logger.info(f"Reset stale sign times of {role.value} '{code}'.")
        return role, user

    async def get_student_by_code(self, code: str) -> Student:
        try:
            student = await self.db_client.get_user_by_code(UserRole.STUDENT, code)
        except Exception as e:
            logger.error(f"Database error while looking up student code '{code}'.", exc_info=True)
            raise PersistenceError("Error fetching student") from e
        if not student:
            raise NotFoundError("Student not found")
        return student
