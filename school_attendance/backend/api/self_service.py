from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Request

from ..models.db_models import UserRole
from ..services.attendance_service import AttendanceService
from ..services.user_service import UserService
from .auth import require_role
from .dependencies import get_attendance_service, get_user_service
from .schemas.envelope import ok, to_wire
from .schemas.user import SessionUser
from .utilities.limiter import limiter


def _limited(endpoint, name: str, limit: str):
    # slowapi keys its limits by function name, so each role gets its own
    endpoint.__name__ = endpoint.__qualname__ = name
    return limiter.limit(limit)(endpoint)


def add_self_service_routes(router: APIRouter, token_role: str, role: UserRole):
    """
    Registers the routes every signed-in student, teacher and employee has:
    their profile, a profile update, the directory of their peers and their
    own attendance history.
    """
    current = require_role(token_role)

    async def get_profile(
        request: Request,
        user: SessionUser = Depends(current),
        service: UserService = Depends(get_user_service)
    ):
        profile = await service.get_profile(role, UUID(user.id))
        return ok(user=to_wire(profile))

    async def update_profile(
        request: Request,
        changes: Dict[str, Any] = Body(...),
        user: SessionUser = Depends(current),
        service: UserService = Depends(get_user_service)
    ):
        profile = await service.update_user(role, UUID(user.id), changes)
        return ok(message="Profile updated successfully", user=to_wire(profile))

    async def list_users(
        request: Request,
        user: SessionUser = Depends(current),
        service: UserService = Depends(get_user_service)
    ):
        users = await service.list_users(role)
        return ok(users=to_wire(users, exclude={"email"}))

    async def my_attendance(
        request: Request,
        user: SessionUser = Depends(current),
        service: AttendanceService = Depends(get_attendance_service)
    ):
        summary = await service.my_attendance(role, UUID(user.id))
        return ok(attendance=to_wire(summary))

    router.get("/profile", summary=f"The signed-in {token_role}'s profile")(
        _limited(get_profile, f"{token_role}_profile", "60/minute"))
    router.put("/update-profile", summary=f"Update the signed-in {token_role}'s own profile")(
        _limited(update_profile, f"{token_role}_update_profile", "20/minute"))
    router.get("/list", summary=f"All {token_role}s, without email addresses")(
        _limited(list_users, f"{token_role}_list", "30/minute"))
    router.get("/attendance", summary=f"The signed-in {token_role}'s daily attendance")(
        _limited(my_attendance, f"{token_role}_attendance", "30/minute"))
