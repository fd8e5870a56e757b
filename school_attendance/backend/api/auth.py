import logging
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Union
from uuid import UUID, uuid4

import jwt
import redis.asyncio as redis
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import ValidationError

from .schemas.user import LoginRequest, LoginResponse, SessionUser, TokenData
from ..models.db_models import UserRole
from ..models.redis_models import UserSessionRedis
from ..db.redis_client import RedisClient
from ..config.config import settings
from ..services.errors import AuthenticationError, AuthorizationError, InvalidDataError, PersistenceError
from ..services.user_service import UserService
from .dependencies import get_redis_pool, get_user_service
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/admin/login")


class LoginRole(str, Enum):
    ADMIN = "admin"
    STUDENT = "student"
    TEACHER = "teacher"
    EMPLOYEE = "employee"


# Token roles of the people stored in the database
USER_ROLES = {
    LoginRole.STUDENT: UserRole.STUDENT,
    LoginRole.TEACHER: UserRole.TEACHER,
    LoginRole.EMPLOYEE: UserRole.EMPLOYEE,
}


def create_access_token(data: dict, expires_delta: timedelta) -> str:
    """Creates a signed JWT carrying the given data and an 'exp' claim."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool)
) -> SessionUser:
    """
    Decodes the bearer token, validates its payload, and requires the session it
    belongs to to still be alive in Redis. Logging out kills the token early.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        logger.warning(f"Token validation error: {e}")
        raise AuthenticationError("Not authorized, token failed")

    try:
        user_session = await RedisClient(pool=redis_pool).get_user_session(token_data.role, token_data.id)
    except Exception as e:
        logger.error("Session lookup failed.", exc_info=True)
        raise PersistenceError("Session store unavailable") from e

    if user_session is None:
        logger.warning(f"{token_data.role} '{token_data.id}' has a valid token but no active session.")
        raise AuthenticationError("Session expired, please sign in again")

    return SessionUser(id=token_data.id, role=token_data.role)


def require_role(*roles: str):
    """Builds a dependency that lets through only tokens of the given roles."""
    async def dependency(user: SessionUser = Depends(get_current_user)) -> SessionUser:
        if user.role not in roles:
            logger.warning(f"{user.role} '{user.id}' denied access to a {'/'.join(roles)} route.")
            raise AuthorizationError("Not allowed for your role")
        return user
    return dependency


def ensure_self_or_admin(user: SessionUser, owner_role: str, owner_id: Union[UUID, str]):
    """People act on their own records; the admin acts on anyone's."""
    if user.role == LoginRole.ADMIN.value:
        return
    if user.role != owner_role or user.id != str(owner_id):
        raise AuthorizationError("You can only access your own records")


def _check_admin_credentials(email: str, password: str) -> bool:
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.error("Admin login attempted but ADMIN_EMAIL/ADMIN_PASSWORD are not configured.")
        return False
    return (
        email.strip().lower() == settings.ADMIN_EMAIL.strip().lower()
        and secrets.compare_digest(password.encode("utf-8"), settings.ADMIN_PASSWORD.encode("utf-8"))
    )


async def _perform_login(
    role: LoginRole, email: str, password: str,
    redis_pool: redis.ConnectionPool, user_service: UserService
) -> str:
    """Checks the credentials, opens a Redis session and returns the access token."""
    logger.info(f"Login attempt for {role.value} '{email}'.")
    if not password:
        raise InvalidDataError("Password is required")

    if role == LoginRole.ADMIN:
        if not _check_admin_credentials(email, password):
            logger.warning(f"Failed admin login for '{email}'.")
            raise AuthenticationError("Invalid credentials")
        user_id = "admin"
    else:
        user = await user_service.authenticate(USER_ROLES[role], email, password)
        user_id = str(user.id)

    ttl = settings.SESSION_TTL_SECONDS
    now = datetime.now(timezone.utc)
    session = UserSessionRedis(
        user_id=user_id,
        role=role.value,
        session_id=uuid4(),
        session_start_time=now,
        session_end_time=now + timedelta(seconds=ttl),
    )
    try:
        await RedisClient(pool=redis_pool).save_user_session(session, ttl=ttl)
    except Exception as e:
        logger.error(f"Could not store session for {role.value} '{user_id}'.", exc_info=True)
        raise PersistenceError("Login error") from e

    logger.info(f"{role.value} '{user_id}' logged in; session lives {ttl} seconds.")
    return create_access_token(data={"id": user_id, "role": role.value}, expires_delta=timedelta(seconds=ttl))


@router.post("/{role}/login", response_model=LoginResponse)
@limiter.limit("20/minute")
async def login(
    request: Request,
    role: LoginRole,
    login_request: LoginRequest,
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool),
    user_service: UserService = Depends(get_user_service)
):
    token = await _perform_login(role, login_request.email, login_request.password, redis_pool, user_service)
    return LoginResponse(token=token)


@router.post("/{role}/logout", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("60/minute")
async def logout(
    request: Request,
    role: LoginRole,
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool),
    current_user: SessionUser = Depends(get_current_user)
):
    """Deletes the caller's session, which invalidates their token."""
    if current_user.role != role.value:
        raise AuthorizationError("Not allowed for your role")
    try:
        await RedisClient(pool=redis_pool).delete_user_session(current_user.role, current_user.id)
    except Exception as e:
        logger.error(f"Error during logout of {current_user.role} '{current_user.id}'.", exc_info=True)
        raise PersistenceError("An error occurred during logout.") from e
    logger.info(f"{current_user.role} '{current_user.id}' logged out.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
