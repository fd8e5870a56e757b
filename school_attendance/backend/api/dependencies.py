# school_attendance/backend/api/dependencies.py
from fastapi import Request, Depends
import redis.asyncio as redis
import asyncpg

from ..db.db_client import AsyncPostgresClient
from ..services.attendance_service import AttendanceService
from ..services.roster_service import RosterService
from ..services.teacher_service import TeacherService
from ..services.user_service import UserService


def get_redis_pool(request: Request) -> redis.ConnectionPool:
    """
    Returns the Redis connection pool created at startup.
    """
    return request.app.state.redis_pool


def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """
    Returns the PostgreSQL connection pool created at startup.
    """
    return request.app.state.postgres_pool


def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    return AsyncPostgresClient(pool=postgres_pool)


def get_user_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> UserService:
    """
    Creates a fresh UserService for each request.

    The services are cheap wrappers around the shared pools, so building them
    per request keeps them stateless and lets tests swap any of them through
    app.dependency_overrides.
    """
    return UserService(db_client=db_client)


def get_attendance_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    user_service: UserService = Depends(get_user_service)
) -> AttendanceService:
    return AttendanceService(db_client=db_client, user_service=user_service)


def get_teacher_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> TeacherService:
    return TeacherService(db_client=db_client)


def get_roster_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> RosterService:
    return RosterService(db_client=db_client)
