from fastapi import APIRouter

from ..models.db_models import UserRole
from .self_service import add_self_service_routes

router = APIRouter(prefix="/employee", tags=["Employee Endpoints"])

add_self_service_routes(router, "employee", UserRole.EMPLOYEE)
